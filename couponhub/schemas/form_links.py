from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FormLinkGenerateRequest(BaseModel):
    count: int = Field(ge=1)


class FormLinkOut(BaseModel):
    id: str
    token: str
    campaign_id: str
    used_at: datetime | None
    coupon_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class FormLinkStatistics(BaseModel):
    total: int
    used: int
    available: int


class FormSubmission(BaseModel):
    """Public form body: fixed contact fields plus free-form custom field values."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    email: str = Field(max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    first_name: str | None = Field(default=None, alias="firstName", max_length=120)
    last_name: str | None = Field(default=None, alias="lastName", max_length=120)
    phone: str | None = Field(default=None, max_length=60)
    address: str | None = None
    allergies: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict, alias="customFields")

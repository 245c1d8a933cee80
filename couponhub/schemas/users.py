from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from couponhub.schemas.coupons import CouponOut


class EndUserSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    first_name: str | None
    last_name: str | None
    campaigns: list[str]
    total_coupons: int
    first_coupon_date: datetime | None
    last_coupon_date: datetime | None
    custom_fields: dict[str, str | None] = Field(default_factory=dict, alias="customFields")


class EndUserDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    address: str | None
    allergies: str | None
    created_at: datetime
    custom_fields: dict[str, str | None] = Field(default_factory=dict, alias="customFields")


class EndUserUpdateRequest(BaseModel):
    """Partial update; `customFields`, when present, replaces every stored custom value."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = Field(default=None, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    phone: str | None = Field(default=None, max_length=60)
    address: str | None = None
    allergies: str | None = None
    custom_fields: dict[str, str | int | float | None] | None = Field(default=None, alias="customFields")


class UserCouponOut(CouponOut):
    campaign_name: str | None = None

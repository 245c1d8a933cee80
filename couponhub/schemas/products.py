from datetime import datetime

from pydantic import BaseModel, Field


class ProductWriteRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    value: float = Field(ge=0)
    margin_price: float = Field(ge=0)
    sku: str | None = Field(default=None, max_length=120)


class ProductOut(BaseModel):
    id: str
    name: str
    value: float
    margin_price: float
    sku: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

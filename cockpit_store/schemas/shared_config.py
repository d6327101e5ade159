"""
Pydantic Schemas for shared configuration links
"""
from typing import Any, Dict

from pydantic import BaseModel, Field

from cockpit_store.schemas.configuration import RawConfiguration


class SharedConfigCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    configuration: RawConfiguration = Field(default_factory=RawConfiguration)


class SharedConfigCreated(BaseModel):
    short_code: str
    url: str
    product_id: int


class SharedConfigResponse(BaseModel):
    short_code: str
    product_id: int
    configuration: Dict[str, Any]
    view_count: int

    model_config = {"from_attributes": True}

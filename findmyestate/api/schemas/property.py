"""Property listing schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PropertyRead(BaseModel):
    """Listing as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    seller_id: str
    title: str
    description: str
    price: int
    property_type: str
    bedrooms: int
    bathrooms: int
    area: int
    address: str
    city: str
    state: str
    zip_code: str
    images: list[str] = Field(default_factory=list)
    status: str
    featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OwnerPropertyRead(PropertyRead):
    """Listing as seen by its owner (or an admin): includes the tax receipt link."""

    tax_receipt_url: Optional[str] = None


class PropertyListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: list[PropertyRead]


class FileRejectionOut(BaseModel):
    filename: str
    message: str


class SubmissionResponse(BaseModel):
    message: str
    property: OwnerPropertyRead
    rejected_files: list[FileRejectionOut] = Field(default_factory=list)

"""Admin dashboard schemas."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from findmyestate.api.schemas.property import OwnerPropertyRead
from findmyestate.services.moderation_service import DashboardData


class SellerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str


class AdminPropertyRow(OwnerPropertyRead):
    seller: Optional[SellerOut] = None
    actions: list[str] = Field(default_factory=list)


class DashboardStatsOut(BaseModel):
    total_properties: int
    pending_verification: int
    total_users: int


class DashboardResponse(BaseModel):
    message: Optional[str] = None
    stats: DashboardStatsOut
    properties: list[AdminPropertyRow]

    @classmethod
    def from_data(cls, data: DashboardData, message: Optional[str] = None) -> "DashboardResponse":
        rows = [
            AdminPropertyRow(
                **OwnerPropertyRead.model_validate(row.property).model_dump(),
                seller=SellerOut.model_validate(row.seller) if row.seller else None,
                actions=row.actions,
            )
            for row in data.properties
        ]
        return cls(
            message=message,
            stats=DashboardStatsOut(
                total_properties=data.stats.total_properties,
                pending_verification=data.stats.pending_verification,
                total_users=data.stats.total_users,
            ),
            properties=rows,
        )


class StatusUpdateBody(BaseModel):
    status: str

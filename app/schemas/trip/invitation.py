from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.schemas.trip.trip_schema import TripPublic, TripOwner
from app.models.trips.trip_invitation import InvitationStatus


# Optional body for minting a fresh link
class InvitationOptions(BaseModel):
    custom_message: Optional[str] = Field(default=None, max_length=500)
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=365)
    max_uses: Optional[int] = Field(default=None, ge=1, le=100)


# What the sharing member gets back
class InviteLinkResponse(BaseModel):
    token: str
    code: str
    expires_at: datetime
    link: str
    max_uses: int
    current_uses: int
    # Still the trip's active link, but nobody else can join with it until it is rotated
    exhausted: bool = False


class InvitationPublic(BaseModel):
    id: int
    custom_message: Optional[str] = None
    expires_at: datetime
    max_uses: int
    current_uses: int
    creator: TripOwner

    model_config = {"from_attributes": True}


class InvitationValidationResponse(BaseModel):
    valid: bool = True
    trip: TripPublic
    invitation: InvitationPublic


class InvitationAcceptResponse(BaseModel):
    message: str
    trip: TripPublic


class CodeLookupResponse(BaseModel):
    token: str
    trip_id: int


# Full row, for members reviewing a trip's invitation history
class InvitationOut(BaseModel):
    id: int
    trip_id: int
    created_by: int
    token: str
    code: str
    status: InvitationStatus
    expires_at: datetime
    used_at: Optional[datetime] = None
    max_uses: int
    current_uses: int
    custom_message: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class InvitationListResponse(BaseModel):
    invitations: List[InvitationOut]


class RevokeResponse(BaseModel):
    message: str
    revoked: int

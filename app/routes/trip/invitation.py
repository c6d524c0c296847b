from typing import Optional

from fastapi import APIRouter, Depends, Body
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import RateLimited
from app.core.rate_limiter import RedisRateLimiter
from app.core.redis_lifecyle import get_redis_client
from app.dependencies.auth import get_current_user
from app.models.user.user import User
from app.schemas.trip.invitation import (
    CodeLookupResponse,
    InvitationAcceptResponse,
    InvitationListResponse,
    InvitationOptions,
    InvitationValidationResponse,
    InviteLinkResponse,
    RevokeResponse,
)
from app.services.trips.invitation_service import InvitationService

router = APIRouter(prefix="/invitations", tags=["Trip Invitations"])


async def get_invitation_service() -> InvitationService:
    return InvitationService()


async def get_code_lookup_limiter(
    redis_client=Depends(get_redis_client)
) -> RedisRateLimiter:
    return RedisRateLimiter(
        redis_client,
        limit=settings.CODE_LOOKUP_RATE_LIMIT,
        window_seconds=settings.CODE_LOOKUP_WINDOW_SECONDS,
        prefix="code-lookup",
    )


@router.get("/trips/{trip_id}/link", response_model=InviteLinkResponse)
async def get_invite_link(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    return await invitation_service.get_or_create_link(db, trip_id, current_user)


@router.post("/trips/{trip_id}/link", response_model=InviteLinkResponse)
async def generate_new_invite_link(
    trip_id: int,
    options: Optional[InvitationOptions] = Body(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    return await invitation_service.rotate_link(db, trip_id, current_user, options)


@router.delete("/trips/{trip_id}/link", response_model=RevokeResponse)
async def revoke_invite_links(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    return await invitation_service.revoke_links(db, trip_id, current_user)


@router.get("/trips/{trip_id}", response_model=InvitationListResponse)
async def list_trip_invitations(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    return await invitation_service.list_invitations(db, trip_id, current_user)


# Public: lets the recipient preview the trip before logging in
@router.get("/join/{token}", response_model=InvitationValidationResponse)
async def validate_invitation(
    token: str,
    db: AsyncSession = Depends(get_db),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    return await invitation_service.validate_token(db, token)


@router.post("/join/{token}/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    token: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    return await invitation_service.accept_invitation(db, token, current_user)


@router.get("/find-by-code/{code}", response_model=CodeLookupResponse)
async def find_invitation_by_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    limiter: RedisRateLimiter = Depends(get_code_lookup_limiter),
    invitation_service: InvitationService = Depends(get_invitation_service)
):
    if not await limiter.hit(current_user.id):
        raise RateLimited()
    return await invitation_service.find_by_code(db, code)

from datetime import timedelta
from typing import Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.core.config import settings
from app.core.errors import (
    Conflict,
    Forbidden,
    GenerationExhausted,
    InvalidCode,
    InvalidState,
    NotFound,
)
from app.core.logger import logger
from app.models.trips.trip_invitation import Invitation, InvitationStatus
from app.models.trips.trip_model import Trip
from app.models.user.user import User
from app.schemas.trip.invitation import (
    CodeLookupResponse,
    InvitationAcceptResponse,
    InvitationListResponse,
    InvitationOptions,
    InvitationOut,
    InvitationPublic,
    InvitationValidationResponse,
    InviteLinkResponse,
    RevokeResponse,
)
from app.schemas.trip.trip_schema import TripPublic
from app.services.trips.invite_codes import (
    generate_unique_code,
    generate_unique_token,
    is_well_formed_code,
)
from app.services.trips.invite_link import generate_invite_link
from app.services.trips.trip_access import has_access, is_user_already_participant
from app.services.trips.trip_participant_service import add_participant
from app.utils.clock import utcnow

# Unique indexes that signal "pick another candidate" or "another request minted first".
# Postgres reports the index name, SQLite the indexed column.
RETRYABLE_CONSTRAINTS = (
    "ix_invitations_token",
    "uq_invitations_active_code",
    "uq_invitations_active_trip",
    "invitations.token",
    "invitations.code",
    "invitations.trip_id",
)


def is_invitation_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    if "unique constraint" not in message.lower():
        return False
    return any(name in message for name in RETRYABLE_CONSTRAINTS)


class InvitationService:
    """
    Lifecycle of trip invitations: mint, get-or-create, rotate, revoke,
    validate, accept and code lookup.

    Expiry is lazy. A row whose expires_at has passed keeps status
    ``active`` until some read observes it and writes ``expired``.
    Exhaustion (current_uses == max_uses) is never stored as a status.
    """

    def __init__(self, clock: Callable = utcnow, max_attempts: Optional[int] = None):
        self.clock = clock
        self.max_attempts = max_attempts or settings.INVITE_GENERATION_MAX_ATTEMPTS

    # -- helpers ---------------------------------------------------------

    async def _require_access(self, db: AsyncSession, trip_id: int, user_id: int):
        if not await has_access(db, user_id, trip_id):
            logger.warning(f"User {user_id} denied invitation management for trip {trip_id}")
            raise Forbidden()

    async def _active_invitations(self, db: AsyncSession, trip_id: int) -> List[Invitation]:
        result = await db.execute(
            select(Invitation)
            .where(
                Invitation.trip_id == trip_id,
                Invitation.status == InvitationStatus.active,
            )
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def _get_by_token(self, db: AsyncSession, token: str) -> Optional[Invitation]:
        result = await db.execute(
            select(Invitation)
            .options(
                selectinload(Invitation.trip).selectinload(Trip.owner),
                selectinload(Invitation.creator),
            )
            .where(Invitation.token == token)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _set_status_if_active(self, db: AsyncSession, invitation: Invitation, new_status: InvitationStatus):
        # Conditional so a concurrent revoke is never overwritten by a lazy expiry
        await db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.active,
            )
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(invitation, "status", new_status)

    async def _mark_expired(self, db: AsyncSession, invitation: Invitation):
        await self._set_status_if_active(db, invitation, InvitationStatus.expired)
        logger.info(f"Invitation {invitation.id} for trip {invitation.trip_id} marked expired")

    async def _expire_stale(self, db: AsyncSession, invitations: List[Invitation], now) -> List[Invitation]:
        """Lazily expire stale rows; returns the ones still live."""
        live = []
        for invitation in invitations:
            if invitation.status == InvitationStatus.active and invitation.is_expired(now):
                await self._mark_expired(db, invitation)
            elif invitation.status == InvitationStatus.active:
                live.append(invitation)
        return live

    async def _revoke_active(self, db: AsyncSession, trip_id: int) -> int:
        result = await db.execute(
            update(Invitation)
            .where(
                Invitation.trip_id == trip_id,
                Invitation.status == InvitationStatus.active,
            )
            .values(status=InvitationStatus.revoked)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _mint(
        self,
        db: AsyncSession,
        trip_id: int,
        user_id: int,
        options: Optional[InvitationOptions],
        now,
    ) -> Invitation:
        token = await generate_unique_token(db, self.max_attempts)
        code = await generate_unique_code(db, self.max_attempts)
        if token is None or code is None:
            logger.error(f"Could not find a free token/code for trip {trip_id} after {self.max_attempts} attempts")
            raise GenerationExhausted()

        options = options or InvitationOptions()
        expires_in_days = options.expires_in_days or settings.INVITE_EXPIRE_DAYS
        invitation = Invitation(
            trip_id=trip_id,
            created_by=user_id,
            token=token,
            code=code,
            status=InvitationStatus.active,
            expires_at=now + timedelta(days=expires_in_days),
            max_uses=options.max_uses or settings.INVITE_DEFAULT_MAX_USES,
            current_uses=0,
            custom_message=options.custom_message,
            created_at=now,
        )
        db.add(invitation)
        await db.flush()
        return invitation

    async def _check_redeemable(self, db: AsyncSession, invitation: Invitation, now):
        if invitation.status == InvitationStatus.active and invitation.is_expired(now):
            await self._mark_expired(db, invitation)
            await db.commit()

        if invitation.status == InvitationStatus.revoked:
            raise InvalidState("This invitation has been revoked", "invitation_revoked")
        if invitation.status == InvitationStatus.expired:
            raise InvalidState("This invitation has expired", "invitation_expired")
        if invitation.is_exhausted():
            raise InvalidState("This invitation has reached its maximum number of uses", "invitation_exhausted")

    @staticmethod
    def _link_response(invitation: Invitation) -> InviteLinkResponse:
        return InviteLinkResponse(
            token=invitation.token,
            code=invitation.code,
            expires_at=invitation.expires_at,
            link=generate_invite_link(invitation.token),
            max_uses=invitation.max_uses,
            current_uses=invitation.current_uses,
            exhausted=invitation.is_exhausted(),
        )

    # -- management (trip members only) ---------------------------------

    async def get_or_create_link(self, db: AsyncSession, trip_id: int, current_user: User) -> InviteLinkResponse:
        user_id = current_user.id
        await self._require_access(db, trip_id, user_id)

        for attempt in range(1, self.max_attempts + 1):
            now = self.clock()
            live = await self._expire_stale(db, await self._active_invitations(db, trip_id), now)

            if live:
                current, duplicates = live[0], live[1:]
                for duplicate in duplicates:
                    await self._set_status_if_active(db, duplicate, InvitationStatus.revoked)
                    logger.warning(f"Revoked duplicate active invitation {duplicate.id} for trip {trip_id}")
                response = self._link_response(current)
                await db.commit()
                return response

            try:
                invitation = await self._mint(db, trip_id, user_id, None, now)
                response = self._link_response(invitation)
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                if not is_invitation_collision(exc):
                    logger.error(f"Invitation insert for trip {trip_id} failed: {exc.orig}")
                    raise
                logger.warning(f"Invitation insert for trip {trip_id} conflicted (attempt {attempt}), retrying")
                continue
            except GenerationExhausted:
                await db.rollback()
                raise

            logger.info(f"Invitation {invitation.id} created for trip {trip_id} by user {user_id}")
            return response

        raise GenerationExhausted()

    async def rotate_link(
        self,
        db: AsyncSession,
        trip_id: int,
        current_user: User,
        options: Optional[InvitationOptions] = None,
    ) -> InviteLinkResponse:
        user_id = current_user.id
        await self._require_access(db, trip_id, user_id)

        for attempt in range(1, self.max_attempts + 1):
            now = self.clock()
            # Revoke and mint share one transaction; a failed mint keeps the old link
            revoked = await self._revoke_active(db, trip_id)
            try:
                invitation = await self._mint(db, trip_id, user_id, options, now)
                response = self._link_response(invitation)
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                if not is_invitation_collision(exc):
                    logger.error(f"Invitation rotation for trip {trip_id} failed: {exc.orig}")
                    raise
                logger.warning(f"Invitation rotation for trip {trip_id} conflicted (attempt {attempt}), retrying")
                continue
            except GenerationExhausted:
                await db.rollback()
                raise

            logger.info(
                f"Invitation link rotated for trip {trip_id} by user {user_id}: "
                f"revoked {revoked}, new invitation {invitation.id}"
            )
            return response

        raise GenerationExhausted()

    async def revoke_links(self, db: AsyncSession, trip_id: int, current_user: User) -> RevokeResponse:
        user_id = current_user.id
        await self._require_access(db, trip_id, user_id)

        revoked = await self._revoke_active(db, trip_id)
        await db.commit()

        logger.info(f"User {user_id} revoked {revoked} invitation(s) for trip {trip_id}")
        return RevokeResponse(message="Invitations revoked successfully", revoked=revoked)

    async def list_invitations(self, db: AsyncSession, trip_id: int, current_user: User) -> InvitationListResponse:
        await self._require_access(db, trip_id, current_user.id)

        result = await db.execute(
            select(Invitation)
            .where(Invitation.trip_id == trip_id)
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
            .execution_options(populate_existing=True)
        )
        invitations = result.scalars().all()
        await self._expire_stale(db, invitations, self.clock())

        response = InvitationListResponse(
            invitations=[InvitationOut.model_validate(invitation) for invitation in invitations]
        )
        await db.commit()
        return response

    # -- redemption -----------------------------------------------------

    async def validate_token(self, db: AsyncSession, token: str) -> InvitationValidationResponse:
        invitation = await self._get_by_token(db, token)
        if invitation is None:
            raise NotFound()

        await self._check_redeemable(db, invitation, self.clock())

        return InvitationValidationResponse(
            valid=True,
            trip=TripPublic.model_validate(invitation.trip),
            invitation=InvitationPublic.model_validate(invitation),
        )

    async def accept_invitation(self, db: AsyncSession, token: str, current_user: User) -> InvitationAcceptResponse:
        user_id = current_user.id

        invitation = await self._get_by_token(db, token)
        if invitation is None:
            raise NotFound()

        # Always re-check server side, whatever the client validated earlier
        now = self.clock()
        await self._check_redeemable(db, invitation, now)

        trip = invitation.trip
        if trip.owner_id == user_id or await is_user_already_participant(db, trip.id, user_id):
            logger.info(f"User {user_id} tried to join trip {trip.id} again")
            raise Conflict()

        trip_public = TripPublic.model_validate(trip)
        owner_id = trip.owner_id
        invitation_id = invitation.id

        # Bounded increment in one statement so concurrent redeemers cannot overshoot
        result = await db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.status == InvitationStatus.active,
                Invitation.expires_at > now,
                Invitation.current_uses < Invitation.max_uses,
            )
            .values(current_uses=Invitation.current_uses + 1, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            logger.info(f"Invitation {invitation_id} lost a redemption race for user {user_id}")
            # A double-submitted accept may have consumed the last use itself
            if owner_id == user_id or await is_user_already_participant(db, trip_public.id, user_id):
                raise Conflict()
            fresh = await self._get_by_token(db, token)
            if fresh is None:
                raise NotFound()
            await self._check_redeemable(db, fresh, self.clock())
            raise InvalidState("This invitation has reached its maximum number of uses", "invitation_exhausted")

        try:
            await add_participant(db, trip_public.id, user_id)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info(f"User {user_id} joined trip {trip_public.id} concurrently, invitation use rolled back")
            raise Conflict()

        logger.info(f"User {user_id} joined trip {trip_public.id} with invitation {invitation_id}")
        return InvitationAcceptResponse(message="Joined trip successfully", trip=trip_public)

    async def find_by_code(self, db: AsyncSession, code: str) -> CodeLookupResponse:
        if not is_well_formed_code(code):
            raise InvalidCode()

        result = await db.execute(
            select(Invitation).where(
                Invitation.code == code,
                Invitation.status == InvitationStatus.active,
                Invitation.expires_at > self.clock(),
            )
        )
        invitation = result.scalars().first()
        if invitation is None:
            raise NotFound("No active invitation matches this code")

        return CodeLookupResponse(token=invitation.token, trip_id=invitation.trip_id)

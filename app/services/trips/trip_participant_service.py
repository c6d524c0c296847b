from sqlalchemy.ext.asyncio import AsyncSession
from app.models.trips.trip_participant import TripParticipant
from app.utils.clock import utcnow


async def add_participant(db: AsyncSession, trip_id: int, user_id: int) -> TripParticipant:
    """
    Stage a membership row and flush it so uq_trip_user is checked now.
    The caller owns the transaction and handles IntegrityError.
    """
    new_participant = TripParticipant(
        trip_id=trip_id,
        user_id=user_id,
        joined_at=utcnow()
    )
    db.add(new_participant)
    await db.flush()
    return new_participant

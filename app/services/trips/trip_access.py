from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.trips.trip_model import Trip
from app.models.trips.trip_participant import TripParticipant


async def is_user_already_participant(db: AsyncSession, trip_id: int, user_id: int) -> bool:
    result = await db.execute(select(TripParticipant.id).where(
        TripParticipant.trip_id == trip_id,
        TripParticipant.user_id == user_id
    ))
    return result.first() is not None


async def has_access(db: AsyncSession, user_id: int, trip_id: int) -> bool:
    """True when the user owns the trip or already participates in it."""
    owner_id = await db.scalar(select(Trip.owner_id).where(Trip.id == trip_id))
    if owner_id is None:
        return False
    if owner_id == user_id:
        return True
    return await is_user_already_participant(db, trip_id, user_id)

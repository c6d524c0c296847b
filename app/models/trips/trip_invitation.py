from sqlalchemy import Integer, Column, String, ForeignKey, DateTime, Index, text
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.utils.clock import utcnow
import sqlalchemy as sa
import enum


class InvitationStatus(enum.Enum):
    active = "active"
    expired = "expired"
    revoked = "revoked"


ACTIVE_ONLY = text("status = 'active'")


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    token = Column(String(12), unique=True, index=True, nullable=False)
    code = Column(String(6), nullable=False, index=True)

    invitationstatus_enum = sa.Enum(
        InvitationStatus,
        name="invitationstatus",
        values_callable=lambda obj: [e.value for e in obj]
    )
    status = Column(invitationstatus_enum, nullable=False, default=InvitationStatus.active)

    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    max_uses = Column(Integer, nullable=False, default=1)
    current_uses = Column(Integer, nullable=False, default=0)
    custom_message = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Codes only need to be unique while redeemable; at most one active link per trip
    __table_args__ = (
        Index("uq_invitations_active_code", "code", unique=True,
              postgresql_where=ACTIVE_ONLY, sqlite_where=ACTIVE_ONLY),
        Index("uq_invitations_active_trip", "trip_id", unique=True,
              postgresql_where=ACTIVE_ONLY, sqlite_where=ACTIVE_ONLY),
    )

    trip = relationship("Trip", back_populates="invitations")
    creator = relationship("User", back_populates="sent_invitations")

    def is_expired(self, now) -> bool:
        return self.expires_at <= now

    def is_exhausted(self) -> bool:
        return self.current_uses >= self.max_uses

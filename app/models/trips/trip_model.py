from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey, DateTime, func
from app.core.database import Base
from sqlalchemy.orm import relationship


class Trip(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    destination = Column(String, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    image_url = Column(String, nullable=True)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    owner = relationship("User", back_populates="owned_trips")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    invitations = relationship("Invitation", back_populates="trip", cascade="all, delete")

    participants = relationship("TripParticipant", back_populates="trip", cascade="all, delete")

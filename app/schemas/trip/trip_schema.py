from pydantic import BaseModel
from typing import Optional
from datetime import date


class TripOwner(BaseModel):
    id: int
    username: str

    model_config = {"from_attributes": True}


# Read-only view of a trip shown to someone holding an invitation
class TripPublic(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    destination: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    image_url: Optional[str] = None
    owner: TripOwner

    model_config = {"from_attributes": True}

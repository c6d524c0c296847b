from .user.user import User
from .trips.trip_model import Trip
from .trips.trip_participant import TripParticipant
from .trips.trip_invitation import Invitation, InvitationStatus

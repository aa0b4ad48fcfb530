from stayhub.models.user import User
from stayhub.models.listing import Listing
from stayhub.models.booking import Booking

__all__ = ["User", "Listing", "Booking"]

from carmarket.models.favorite import Favorite
from carmarket.models.listing import FuelType, Gearbox, Listing
from carmarket.models.listing_image import ListingImage
from carmarket.models.profile import Profile, UserRole

__all__ = [
    "Listing",
    "ListingImage",
    "Favorite",
    "Profile",
    "Gearbox",
    "FuelType",
    "UserRole",
]

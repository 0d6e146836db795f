from realty.models.base import Base  # noqa: F401

from realty.models.user import User  # noqa: F401
from realty.models.listing import Listing  # noqa: F401

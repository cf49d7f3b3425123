"""Social domain exports."""

from . import audit, edges, policy, service  # noqa: F401
from .models import FriendRequest, RequestStatus  # noqa: F401

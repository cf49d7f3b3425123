"""Identity domain exports."""

from .models import UserProfile  # noqa: F401
from .session import SessionIdentity, require_uid  # noqa: F401

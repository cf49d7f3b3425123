"""Chat domain exports."""

from . import registry, stream  # noqa: F401
from .models import Chat, ChatKind, Message  # noqa: F401

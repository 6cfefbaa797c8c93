"""ID generation for conversations."""

from __future__ import annotations

from uuid import uuid4


def new_conversation_id() -> str:
    """Generate a new random conversation identifier."""
    return str(uuid4())

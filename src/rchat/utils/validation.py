# src/rchat/utils/validation.py
"""Input validation helpers shared by the services.

Each validator raises :class:`rchat.core.errors.ValidationError` with a
message naming the offending field.
"""

from __future__ import annotations

from rchat.core.errors import ValidationError
from rchat.core.settings import settings
from rchat.services.profanity import contains_profanity

_PASSWORD_MAX_LENGTH = 128


def is_printable_ascii(value: str) -> bool:
    return all(" " <= char <= "~" for char in value)


def _validate_name(value: str, label: str) -> None:
    if not value:
        raise ValidationError(f"{label} cannot be empty")
    if len(value) > settings.name_max_length:
        raise ValidationError(
            f"{label} must be at most {settings.name_max_length} characters long"
        )
    if not is_printable_ascii(value):
        raise ValidationError(f"{label} must contain only printable ASCII characters")
    if contains_profanity(value):
        raise ValidationError(f"{label} contains inappropriate language")


def validate_username(username: str) -> None:
    _validate_name(username, "Username")


def validate_server_name(name: str) -> None:
    _validate_name(name, "Server name")


def validate_channel_name(name: str) -> None:
    _validate_name(name, "Channel name")


def validate_password(password: str) -> None:
    if len(password) < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters long"
        )
    if len(password) > _PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"Password must be at most {_PASSWORD_MAX_LENGTH} characters long"
        )


def validate_message_content(content: str) -> None:
    """Reject empty content and content longer than the configured limit.

    Length is measured in characters, not encoded bytes.
    """
    if not content or not content.strip():
        raise ValidationError("Message content cannot be empty")
    if len(content) > settings.message_max_length:
        raise ValidationError(
            f"Message content must be at most {settings.message_max_length} characters long"
        )

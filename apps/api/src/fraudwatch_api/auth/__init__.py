"""Authentication module."""

from fraudwatch_api.auth.jwt import (
    authenticate_channel,
    create_access_token,
    decode_token,
    get_current_user,
    get_current_user_optional,
)

__all__ = [
    "authenticate_channel",
    "create_access_token",
    "decode_token",
    "get_current_user",
    "get_current_user_optional",
]


from handoff.utils.security import (
    create_access_token,
    decode_token,
    generate_portal_token,
    get_password_hash,
    verify_password,
)
from handoff.utils.text import slugify

__all__ = [
    "create_access_token",
    "decode_token",
    "generate_portal_token",
    "get_password_hash",
    "verify_password",
    "slugify",
]

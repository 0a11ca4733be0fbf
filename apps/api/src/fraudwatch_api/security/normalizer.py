"""Entity normalization.

Turns a raw phone number, email address or payment handle into the stable
key used to store and look up community reports.
"""

import re

from fraudwatch_shared.schemas import EntityType

from fraudwatch_api.errors import ValidationError

# Formatting characters dropped from phone numbers: "(763) 274-3899" -> "7632743899"
_PHONE_FORMATTING = re.compile(r"[\s\-()+.]")

# name@domain.tld is an email; name@bank (no dot after @) is a UPI handle
_EMAIL_DOMAIN = re.compile(r"@[^@\s]+\.[^@\s]+$")

# Numbers written as +<home code><national number> fold onto the national number
HOME_COUNTRY_CODE = "91"
NATIONAL_NUMBER_LENGTH = 10


def normalize_entity(raw: str, home_country_code: str = HOME_COUNTRY_CODE) -> str:
    """Canonicalize an identifier into its lookup key.

    Entities containing ``@`` (emails, payment handles) are only trimmed and
    case-folded. Everything else is treated as a phone number and stripped
    of spaces, dashes, parentheses, plus signs and dots. A number written in
    international form with the home country code ("+91 98765-43210") keys
    the same as its national form ("9876543210").

    Normalizing an already normalized key returns it unchanged.

    Raises:
        ValidationError: If the entity is empty or only formatting.
    """
    if not isinstance(raw, str):
        raise ValidationError("Entity must be a string")

    normalized = raw.strip().lower()
    if "@" not in normalized:
        international = normalized.startswith("+")
        normalized = _PHONE_FORMATTING.sub("", normalized)
        if (
            international
            and home_country_code
            and normalized.startswith(home_country_code)
            and len(normalized) == len(home_country_code) + NATIONAL_NUMBER_LENGTH
        ):
            normalized = normalized[len(home_country_code) :]

    if not normalized:
        raise ValidationError("Entity (phone/email/UPI) is required")

    return normalized


def escape_for_search(key: str) -> str:
    """Escape regex metacharacters so a key can be matched literally."""
    return re.escape(key)


def detect_entity_type(raw: str) -> EntityType:
    """Guess what kind of identifier a raw entity is."""
    value = raw.strip().lower()
    if "@" in value:
        if _EMAIL_DOMAIN.search(value):
            return EntityType.EMAIL
        return EntityType.UPI
    return EntityType.PHONE

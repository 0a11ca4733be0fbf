"""One-time code generation and verification."""

from fraudwatch_api.otc.service import (
    DEFAULT_PURPOSE,
    OTCResult,
    OTCService,
    OTCStatus,
    generate_code,
)

__all__ = [
    "DEFAULT_PURPOSE",
    "OTCResult",
    "OTCService",
    "OTCStatus",
    "generate_code",
]

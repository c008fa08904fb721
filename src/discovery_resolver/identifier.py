"""
Identifier validation and normalization module.

Identifiers are business registration numbers prefixed with a two-letter
country or namespace code, e.g. ``DK12345678``. The resolution engine only
ever sees normalized identifiers; this module produces them.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .enums import IdentifierValidationErrorCode

# Anything that is not an uppercase letter or digit is dropped during
# normalization (spaces, dashes, dots, ...).
STRIP_PATTERN = re.compile(r"[^A-Z0-9]+")

IDENTIFIER_PATTERN = re.compile(r"^[A-Z]{2}[A-Z0-9]{1,14}$")


@dataclass
class IdentifierValidationError:
    """Structured error information for identifier validation failures."""

    code: IdentifierValidationErrorCode
    message: str
    details: dict

    def to_dict(self) -> dict:
        """Client error body, e.g. ``{"error": "invalid_id"}``."""
        return {"error": self.code.value}


@dataclass
class IdentifierValidationResult:
    """Result of identifier validation."""

    valid: bool
    identifier: Optional[str]
    error: Optional[IdentifierValidationError]


class IdentifierValidator:
    """Validates raw identifiers and normalizes them to canonical form."""

    def validate(self, raw_identifier: Optional[str]) -> IdentifierValidationResult:
        """
        Validate and normalize a raw identifier.

        Args:
            raw_identifier: The identifier as supplied by the caller

        Returns:
            IdentifierValidationResult with the normalized identifier or error
        """
        if raw_identifier is None or not raw_identifier.strip():
            return IdentifierValidationResult(
                valid=False,
                identifier=None,
                error=IdentifierValidationError(
                    code=IdentifierValidationErrorCode.MISSING_ID,
                    message="Identifier is missing",
                    details={"raw_input": raw_identifier},
                ),
            )

        normalized = self.normalize(raw_identifier)
        if not IDENTIFIER_PATTERN.match(normalized):
            return IdentifierValidationResult(
                valid=False,
                identifier=None,
                error=IdentifierValidationError(
                    code=IdentifierValidationErrorCode.INVALID_ID,
                    message=(
                        "Identifier must be two letters followed by 1-14 "
                        "letters or digits"
                    ),
                    details={"raw_input": raw_identifier, "normalized": normalized},
                ),
            )

        return IdentifierValidationResult(valid=True, identifier=normalized, error=None)

    def normalize(self, raw_identifier: str) -> str:
        """Upper-case and strip separators. Idempotent."""
        return STRIP_PATTERN.sub("", raw_identifier.upper())

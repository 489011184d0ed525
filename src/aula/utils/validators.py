"""Input normalisation and validation helpers.

Conventions:
- matricula: trimmed, uppercase
- correo / email: trimmed, lowercase, must contain '@'
- Drive ids: extracted from any Drive URL form (folders/, d/, id=, open?id=)
"""

from __future__ import annotations

import re

from aula.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DRIVE_ID_PATTERN = re.compile(r"(?:folders/|d/|id=|/open\?id=)([-\w]{25,})")


def normalize_matricula(matricula: str) -> str:
    return (matricula or "").strip().upper()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    """Normalise an email address.

    Raises:
        ValidationError: If it does not look like an email address
    """
    normalized = normalize_email(email)
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("El correo electrónico no es válido.")
    return normalized


def extract_drive_id(url_or_id: str | None) -> str | None:
    """Extract a Drive file/folder id from a URL.

    A bare id (25+ url-safe characters) is returned unchanged.

    Returns:
        The id, or None if nothing id-like is found
    """
    if not url_or_id:
        return None
    match = DRIVE_ID_PATTERN.search(url_or_id)
    if match:
        return match.group(1)
    if re.fullmatch(r"[-\w]{25,}", url_or_id):
        return url_or_id
    return None


def round1(value: float) -> float:
    """Round to one decimal, the precision used for every grade."""
    return round(float(value), 1)

"""Password hashing and bearer tokens.

Passwords are hashed with werkzeug. Bearer tokens are itsdangerous timed
signatures over ``{"sub": id, "role": "docente" | "alumno"}``.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Literal

import structlog
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from aula.config.app_config import load_app_config
from aula.errors import AuthenticationError

logger = structlog.get_logger(__name__)

Role = Literal["docente", "alumno"]

TOKEN_SALT = "aula-bearer"
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""

    id: int
    role: Role


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(load_app_config().auth.get_secret(), salt=TOKEN_SALT)


def create_token(subject_id: int, role: Role) -> str:
    """Sign a bearer token for a docente or alumno."""
    return _serializer().dumps({"sub": subject_id, "role": role})


def decode_token(token: str) -> Principal:
    """Verify a bearer token.

    Raises:
        AuthenticationError: If the token is expired, tampered or malformed
    """
    max_age = load_app_config().auth.token_max_age_seconds
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise AuthenticationError("La sesión ha expirado.") from e
    except BadSignature as e:
        raise AuthenticationError("Token inválido.") from e

    if not isinstance(data, dict) or data.get("role") not in ("docente", "alumno"):
        raise AuthenticationError("Token inválido.")
    try:
        return Principal(id=int(data["sub"]), role=data["role"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError("Token inválido.") from e


def check_service_key(provided: str | None) -> None:
    """Verify the key used by schedulers to trigger queue workers.

    Raises:
        AuthenticationError: If no key is configured or it does not match
    """
    expected = load_app_config().auth.get_service_key()
    if not expected or not provided or not hmac.compare_digest(expected, provided):
        logger.warning("auth.service_key_rejected")
        raise AuthenticationError("No autorizado.")

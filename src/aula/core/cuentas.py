"""Account registration and login for docentes and alumnos."""

from __future__ import annotations

import sqlite3

import structlog

from aula.auth.security import (
    MIN_PASSWORD_LENGTH,
    create_token,
    hash_password,
    verify_password,
)
from aula.db import alumnos_repository, docentes_repository
from aula.db.alumnos_repository import AlumnoRecord
from aula.db.docentes_repository import DocenteRecord
from aula.errors import AuthenticationError, ConflictError, ValidationError
from aula.utils.validators import normalize_email, validate_email

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Credenciales inválidas."


def validate_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres."
        )


def register_docente(email: str, nombre: str, password: str) -> DocenteRecord:
    """Create a docente account.

    Raises:
        ValidationError: Invalid email, empty name or short password
        ConflictError: Email already registered
    """
    email = validate_email(email)
    if not nombre or not nombre.strip():
        raise ValidationError("El nombre es obligatorio.")
    validate_password(password)

    try:
        docente_id = docentes_repository.insert_docente(
            email, nombre.strip(), hash_password(password)
        )
    except sqlite3.IntegrityError as e:
        raise ConflictError("El correo ya está registrado.") from e

    logger.info("cuentas.docente_registered", docente_id=docente_id)
    return docentes_repository.get_docente_by_id(docente_id)


def login_docente(email: str, password: str) -> tuple[str, DocenteRecord]:
    """Check docente credentials and issue a bearer token.

    Raises:
        AuthenticationError: Unknown email or wrong password
    """
    docente = docentes_repository.get_docente_by_email(normalize_email(email))
    if docente is None or not verify_password(docente.password_hash, password):
        logger.info("cuentas.login_failed", role="docente")
        raise AuthenticationError(INVALID_CREDENTIALS)
    return create_token(docente.id, "docente"), docente


def login_alumno(email: str, password: str) -> tuple[str, AlumnoRecord]:
    """Check alumno credentials and issue a bearer token.

    Raises:
        AuthenticationError: No account for the email or wrong password
    """
    alumno = alumnos_repository.get_alumno_by_cuenta_email(normalize_email(email))
    if alumno is None or not verify_password(alumno.password_hash, password):
        logger.info("cuentas.login_failed", role="alumno")
        raise AuthenticationError(INVALID_CREDENTIALS)
    return create_token(alumno.id, "alumno"), alumno

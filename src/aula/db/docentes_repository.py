"""Repository functions for docentes (teacher accounts)."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import structlog

from aula.db.database import get_db

logger = structlog.get_logger(__name__)


@dataclass
class DocenteRecord:
    """Docente record from database."""

    id: int
    email: str
    nombre: str
    password_hash: str
    created_at: str


def insert_docente(email: str, nombre: str, password_hash: str) -> int:
    """Insert a new docente.

    Args:
        email: Login email (stored lowercased)
        nombre: Display name
        password_hash: werkzeug password hash

    Returns:
        New docente id

    Raises:
        sqlite3.IntegrityError: If the email is already registered
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO docentes (email, nombre, password_hash) VALUES (?, ?, ?)",
            (email.lower(), nombre, password_hash),
        )
        docente_id = cursor.lastrowid

    logger.debug("docentes.inserted", docente_id=docente_id)
    return docente_id


def get_docente_by_id(docente_id: int) -> DocenteRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM docentes WHERE id = ?", (docente_id,)
        ).fetchone()
    return _row_to_record(row) if row else None


def get_docente_by_email(email: str) -> DocenteRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM docentes WHERE email = ?", (email.lower(),)
        ).fetchone()
    return _row_to_record(row) if row else None


def _row_to_record(row: sqlite3.Row) -> DocenteRecord:
    return DocenteRecord(
        id=row["id"],
        email=row["email"],
        nombre=row["nombre"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )

"""Repository functions for alumnos (students enrolled in a materia)."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from aula.db.database import get_db

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {"matricula", "nombre", "apellido", "correo"}


@dataclass
class AlumnoRecord:
    """Alumno record from database."""

    id: int
    materia_id: int
    matricula: str
    nombre: str
    apellido: str
    correo: str | None
    cuenta_email: str | None
    password_hash: str | None
    created_at: str

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellido}".strip()

    @property
    def tiene_cuenta(self) -> bool:
        return self.cuenta_email is not None


def insert_alumno(
    materia_id: int,
    matricula: str,
    nombre: str,
    apellido: str = "",
    correo: str | None = None,
) -> int:
    """Insert an alumno into a materia.

    Matricula is stored uppercased and correo lowercased.

    Returns:
        New alumno id

    Raises:
        sqlite3.IntegrityError: If the matricula already exists in the materia
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO alumnos (materia_id, matricula, nombre, apellido, correo) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                materia_id,
                matricula.strip().upper(),
                nombre.strip(),
                apellido.strip(),
                correo.strip().lower() if correo else None,
            ),
        )
        alumno_id = cursor.lastrowid

    logger.debug("alumnos.inserted", alumno_id=alumno_id, materia_id=materia_id)
    return alumno_id


def get_alumno(alumno_id: int) -> AlumnoRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM alumnos WHERE id = ?", (alumno_id,)
        ).fetchone()
    return _row_to_record(row) if row else None


def get_alumno_by_matricula(materia_id: int, matricula: str) -> AlumnoRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM alumnos WHERE materia_id = ? AND matricula = ?",
            (materia_id, matricula.strip().upper()),
        ).fetchone()
    return _row_to_record(row) if row else None


def find_alumno(matricula: str, correo: str) -> AlumnoRecord | None:
    """Find an alumno by matricula and correo in any materia.

    Returns:
        The first (oldest) match, or None
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM alumnos WHERE matricula = ? AND correo = ? ORDER BY id LIMIT 1",
            (matricula.strip().upper(), correo.strip().lower()),
        ).fetchone()
    return _row_to_record(row) if row else None


def get_alumno_by_cuenta_email(email: str) -> AlumnoRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM alumnos WHERE cuenta_email = ?", (email.strip().lower(),)
        ).fetchone()
    return _row_to_record(row) if row else None


def list_alumnos(materia_id: int) -> list[AlumnoRecord]:
    """List alumnos of a materia ordered by apellido, nombre."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM alumnos WHERE materia_id = ? ORDER BY apellido, nombre, id",
            (materia_id,),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def update_alumno(alumno_id: int, **fields: Any) -> bool:
    """Update the given columns of an alumno. None values are ignored.

    Raises:
        sqlite3.IntegrityError: If the new matricula collides in the materia
    """
    values = {
        k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and v is not None
    }
    if "matricula" in values:
        values["matricula"] = values["matricula"].strip().upper()
    if "correo" in values:
        values["correo"] = values["correo"].strip().lower()
    if not values:
        return False

    assignments = ", ".join(f"{column} = ?" for column in values)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE alumnos SET {assignments} WHERE id = ?",
            (*values.values(), alumno_id),
        )
        return cursor.rowcount > 0


def delete_alumno(alumno_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM alumnos WHERE id = ?", (alumno_id,))
        return cursor.rowcount > 0


def link_account(alumno_id: int, email: str, password_hash: str) -> bool:
    """Attach login credentials to an alumno that has none yet.

    Returns:
        False if the alumno already had an account (nothing changed)

    Raises:
        sqlite3.IntegrityError: If another alumno already uses the email
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE alumnos SET cuenta_email = ?, password_hash = ? "
            "WHERE id = ? AND cuenta_email IS NULL",
            (email.strip().lower(), password_hash, alumno_id),
        )
        linked = cursor.rowcount == 1

    if linked:
        logger.info("alumnos.account_linked", alumno_id=alumno_id)
    return linked


def _row_to_record(row: sqlite3.Row) -> AlumnoRecord:
    return AlumnoRecord(
        id=row["id"],
        materia_id=row["materia_id"],
        matricula=row["matricula"],
        nombre=row["nombre"],
        apellido=row["apellido"],
        correo=row["correo"],
        cuenta_email=row["cuenta_email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )

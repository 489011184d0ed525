"""Repository functions for materias (courses)."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from aula.db.database import get_db

logger = structlog.get_logger(__name__)

# Columns a caller may change through update_materia
UPDATABLE_FIELDS = {
    "nombre",
    "semestre",
    "unidades",
    "drive_url",
    "drive_folder_material_id",
    "rubricas_spreadsheet_id",
    "plagio_spreadsheet_id",
    "calificaciones_spreadsheet_id",
}


@dataclass
class MateriaRecord:
    """Materia record from database."""

    id: int
    docente_id: int
    nombre: str
    semestre: str | None
    unidades: int
    drive_url: str | None
    drive_folder_material_id: str | None
    rubricas_spreadsheet_id: str | None
    plagio_spreadsheet_id: str | None
    calificaciones_spreadsheet_id: str | None
    created_at: str


def insert_materia(
    docente_id: int,
    nombre: str,
    semestre: str | None = None,
    unidades: int = 1,
) -> int:
    """Insert a new materia.

    Args:
        docente_id: Owner
        nombre: Course name
        semestre: Free-form semester label
        unidades: Number of units (>= 1)

    Returns:
        New materia id
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO materias (docente_id, nombre, semestre, unidades) "
            "VALUES (?, ?, ?, ?)",
            (docente_id, nombre, semestre, unidades),
        )
        materia_id = cursor.lastrowid

    logger.debug("materias.inserted", materia_id=materia_id, docente_id=docente_id)
    return materia_id


def get_materia(materia_id: int) -> MateriaRecord | None:
    """Get materia by id.

    Returns:
        MateriaRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM materias WHERE id = ?", (materia_id,)
        ).fetchone()
    return _row_to_record(row) if row else None


def list_materias(docente_id: int) -> list[MateriaRecord]:
    """List the materias owned by a docente, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM materias WHERE docente_id = ? ORDER BY id DESC",
            (docente_id,),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def update_materia(materia_id: int, **fields: Any) -> bool:
    """Update the given columns of a materia.

    Unknown columns and None values are ignored.

    Returns:
        True if a row was updated
    """
    values = {
        k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and v is not None
    }
    if not values:
        return False

    assignments = ", ".join(f"{column} = ?" for column in values)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE materias SET {assignments} WHERE id = ?",
            (*values.values(), materia_id),
        )
        updated = cursor.rowcount > 0

    logger.debug("materias.updated", materia_id=materia_id, fields=sorted(values))
    return updated


def delete_materia(materia_id: int) -> bool:
    """Delete a materia and, by cascade, everything under it."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM materias WHERE id = ?", (materia_id,))
        deleted = cursor.rowcount > 0

    if deleted:
        logger.info("materias.deleted", materia_id=materia_id)
    return deleted


def _row_to_record(row: sqlite3.Row) -> MateriaRecord:
    return MateriaRecord(
        id=row["id"],
        docente_id=row["docente_id"],
        nombre=row["nombre"],
        semestre=row["semestre"],
        unidades=row["unidades"],
        drive_url=row["drive_url"],
        drive_folder_material_id=row["drive_folder_material_id"],
        rubricas_spreadsheet_id=row["rubricas_spreadsheet_id"],
        plagio_spreadsheet_id=row["plagio_spreadsheet_id"],
        calificaciones_spreadsheet_id=row["calificaciones_spreadsheet_id"],
        created_at=row["created_at"],
    )

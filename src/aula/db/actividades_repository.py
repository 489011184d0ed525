"""Repository functions for actividades and their calificaciones.

A calificacion row is both the delivery record (file, timestamp) and the
grade of one alumno for one actividad.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from aula.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

ACTIVIDAD_FIELDS = {
    "nombre",
    "unidad",
    "tipo_entrega",
    "descripcion",
    "fecha_limite",
    "criterios",
    "drive_folder_id",
    "rubrica_sheet_range",
}

CALIFICACION_FIELDS = {
    "estado",
    "calificacion_obtenida",
    "justificacion",
    "justificacion_sheet_cell",
    "progreso_evaluacion",
    "drive_file_id",
    "archivo_url",
    "fecha_entrega",
}


@dataclass
class ActividadRecord:
    """Actividad record from database."""

    id: int
    materia_id: int
    docente_id: int
    nombre: str
    unidad: int
    tipo_entrega: str
    descripcion: str | None
    fecha_limite: str | None
    criterios: list[dict[str, Any]] = field(default_factory=list)
    drive_folder_id: str | None = None
    rubrica_sheet_range: str | None = None
    created_at: str = ""


@dataclass
class CalificacionRecord:
    """Calificacion record, joined with alumno and actividad names."""

    id: int
    actividad_id: int
    alumno_id: int
    estado: str
    calificacion_obtenida: float | None
    justificacion: str | None
    justificacion_sheet_cell: str | None
    progreso_evaluacion: str | None
    drive_file_id: str | None
    archivo_url: str | None
    fecha_entrega: str | None
    updated_at: str
    matricula: str = ""
    alumno_nombre: str = ""
    actividad_nombre: str = ""
    unidad: int = 0


# =============================================================================
# ACTIVIDADES
# =============================================================================


def insert_actividad(
    materia_id: int,
    docente_id: int,
    nombre: str,
    unidad: int,
    tipo_entrega: str = "individual",
    descripcion: str | None = None,
    fecha_limite: str | None = None,
    criterios: list[dict[str, Any]] | None = None,
) -> int:
    """Insert a new actividad.

    Returns:
        New actividad id
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO actividades (
                materia_id, docente_id, nombre, unidad, tipo_entrega,
                descripcion, fecha_limite, criterios
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                materia_id,
                docente_id,
                nombre,
                unidad,
                tipo_entrega,
                descripcion,
                fecha_limite,
                json.dumps(criterios or [], ensure_ascii=False),
            ),
        )
        actividad_id = cursor.lastrowid

    logger.debug("actividades.inserted", actividad_id=actividad_id)
    return actividad_id


def get_actividad(actividad_id: int) -> ActividadRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM actividades WHERE id = ?", (actividad_id,)
        ).fetchone()
    return _row_to_actividad(row) if row else None


def list_actividades(materia_id: int, unidad: int | None = None) -> list[ActividadRecord]:
    """List actividades of a materia, optionally filtered by unidad."""
    query = "SELECT * FROM actividades WHERE materia_id = ?"
    params: list[Any] = [materia_id]
    if unidad is not None:
        query += " AND unidad = ?"
        params.append(unidad)
    query += " ORDER BY unidad, id"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_actividad(row) for row in rows]


def update_actividad(actividad_id: int, **fields: Any) -> bool:
    """Update the given columns of an actividad. None values are ignored."""
    values = {
        k: v for k, v in fields.items() if k in ACTIVIDAD_FIELDS and v is not None
    }
    if "criterios" in values:
        values["criterios"] = json.dumps(values["criterios"], ensure_ascii=False)
    if not values:
        return False

    assignments = ", ".join(f"{column} = ?" for column in values)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE actividades SET {assignments} WHERE id = ?",
            (*values.values(), actividad_id),
        )
        return cursor.rowcount > 0


def delete_actividad(actividad_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM actividades WHERE id = ?", (actividad_id,))
        deleted = cursor.rowcount > 0

    if deleted:
        logger.info("actividades.deleted", actividad_id=actividad_id)
    return deleted


def count_actividades(materia_id: int, unidad: int) -> int:
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM actividades WHERE materia_id = ? AND unidad = ?",
            (materia_id, unidad),
        ).fetchone()
    return row["n"]


# =============================================================================
# CALIFICACIONES
# =============================================================================

_CALIFICACION_SELECT = """
    SELECT c.*, a.matricula, a.nombre || ' ' || a.apellido AS alumno_nombre,
           act.nombre AS actividad_nombre, act.unidad AS unidad
    FROM calificaciones c
    JOIN alumnos a ON a.id = c.alumno_id
    JOIN actividades act ON act.id = c.actividad_id
"""


def upsert_entrega(
    actividad_id: int,
    alumno_id: int,
    drive_file_id: str | None,
    archivo_url: str | None,
) -> int:
    """Record a delivery, creating the calificacion row if needed.

    A re-delivery replaces the file and timestamp. An existing grade is
    kept: a graded row stays 'calificado'.

    Returns:
        Calificacion id
    """
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO calificaciones (
                actividad_id, alumno_id, estado, drive_file_id, archivo_url,
                fecha_entrega, updated_at
            ) VALUES (?, ?, 'entregado', ?, ?, ?, ?)
            ON CONFLICT(actividad_id, alumno_id) DO UPDATE SET
                drive_file_id = excluded.drive_file_id,
                archivo_url = excluded.archivo_url,
                fecha_entrega = excluded.fecha_entrega,
                updated_at = excluded.updated_at,
                estado = CASE WHEN calificaciones.estado = 'calificado'
                              THEN 'calificado' ELSE 'entregado' END
            """,
            (actividad_id, alumno_id, drive_file_id, archivo_url, now, now),
        )
        row = conn.execute(
            "SELECT id FROM calificaciones WHERE actividad_id = ? AND alumno_id = ?",
            (actividad_id, alumno_id),
        ).fetchone()

    logger.debug("calificaciones.entrega", calificacion_id=row["id"])
    return row["id"]


def get_calificacion(calificacion_id: int) -> CalificacionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            _CALIFICACION_SELECT + " WHERE c.id = ?", (calificacion_id,)
        ).fetchone()
    return _row_to_calificacion(row) if row else None


def list_calificaciones(actividad_id: int) -> list[CalificacionRecord]:
    """List calificaciones of an actividad ordered by student name."""
    with get_db() as conn:
        rows = conn.execute(
            _CALIFICACION_SELECT + " WHERE c.actividad_id = ? ORDER BY a.apellido, a.nombre",
            (actividad_id,),
        ).fetchall()
    return [_row_to_calificacion(row) for row in rows]


def list_calificaciones_alumno(
    alumno_id: int, unidad: int | None = None
) -> list[CalificacionRecord]:
    """List an alumno's calificaciones, optionally for one unidad."""
    query = _CALIFICACION_SELECT + " WHERE c.alumno_id = ?"
    params: list[Any] = [alumno_id]
    if unidad is not None:
        query += " AND act.unidad = ?"
        params.append(unidad)
    query += " ORDER BY act.unidad, act.id"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_calificacion(row) for row in rows]


def update_calificacion(calificacion_id: int, **fields: Any) -> bool:
    """Update the given columns of a calificacion.

    Unlike other update helpers, explicit None values are written (they
    clear the column); pass only the columns to change.
    """
    values = {k: v for k, v in fields.items() if k in CALIFICACION_FIELDS}
    if not values:
        return False
    values["updated_at"] = utc_now()

    assignments = ", ".join(f"{column} = ?" for column in values)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE calificaciones SET {assignments} WHERE id = ?",
            (*values.values(), calificacion_id),
        )
        return cursor.rowcount > 0


def _row_to_actividad(row: sqlite3.Row) -> ActividadRecord:
    return ActividadRecord(
        id=row["id"],
        materia_id=row["materia_id"],
        docente_id=row["docente_id"],
        nombre=row["nombre"],
        unidad=row["unidad"],
        tipo_entrega=row["tipo_entrega"],
        descripcion=row["descripcion"],
        fecha_limite=row["fecha_limite"],
        criterios=json.loads(row["criterios"] or "[]"),
        drive_folder_id=row["drive_folder_id"],
        rubrica_sheet_range=row["rubrica_sheet_range"],
        created_at=row["created_at"],
    )


def _row_to_calificacion(row: sqlite3.Row) -> CalificacionRecord:
    return CalificacionRecord(
        id=row["id"],
        actividad_id=row["actividad_id"],
        alumno_id=row["alumno_id"],
        estado=row["estado"],
        calificacion_obtenida=row["calificacion_obtenida"],
        justificacion=row["justificacion"],
        justificacion_sheet_cell=row["justificacion_sheet_cell"],
        progreso_evaluacion=row["progreso_evaluacion"],
        drive_file_id=row["drive_file_id"],
        archivo_url=row["archivo_url"],
        fecha_entrega=row["fecha_entrega"],
        updated_at=row["updated_at"],
        matricula=row["matricula"],
        alumno_nombre=row["alumno_nombre"].strip(),
        actividad_nombre=row["actividad_nombre"],
        unidad=row["unidad"],
    )

"""Repository functions for computed unit grades."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import structlog

from aula.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class CalificacionUnidadRecord:
    """Stored final grade of an alumno for one unidad."""

    materia_id: int
    alumno_id: int
    unidad: int
    asistencia: float
    actividades: float
    evaluaciones: float
    calificacion_final: float
    updated_at: str


def upsert_calificacion_unidad(
    materia_id: int,
    alumno_id: int,
    unidad: int,
    asistencia: float,
    actividades: float,
    evaluaciones: float,
    calificacion_final: float,
) -> None:
    """Insert or replace the final grade of an alumno for a unidad."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO calificaciones_unidad (
                materia_id, alumno_id, unidad, asistencia, actividades,
                evaluaciones, calificacion_final, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(materia_id, alumno_id, unidad) DO UPDATE SET
                asistencia = excluded.asistencia,
                actividades = excluded.actividades,
                evaluaciones = excluded.evaluaciones,
                calificacion_final = excluded.calificacion_final,
                updated_at = excluded.updated_at
            """,
            (
                materia_id,
                alumno_id,
                unidad,
                asistencia,
                actividades,
                evaluaciones,
                calificacion_final,
                utc_now(),
            ),
        )


def list_calificaciones_unidad(
    materia_id: int, unidad: int | None = None
) -> list[CalificacionUnidadRecord]:
    query = "SELECT * FROM calificaciones_unidad WHERE materia_id = ?"
    params: list[int] = [materia_id]
    if unidad is not None:
        query += " AND unidad = ?"
        params.append(unidad)
    query += " ORDER BY alumno_id, unidad"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_record(row) for row in rows]


def _row_to_record(row: sqlite3.Row) -> CalificacionUnidadRecord:
    return CalificacionUnidadRecord(
        materia_id=row["materia_id"],
        alumno_id=row["alumno_id"],
        unidad=row["unidad"],
        asistencia=row["asistencia"],
        actividades=row["actividades"],
        evaluaciones=row["evaluaciones"],
        calificacion_final=row["calificacion_final"],
        updated_at=row["updated_at"],
    )

"""Repository functions for attendance: QR sessions, records and closed units."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from aula.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class SesionRecord:
    """Attendance session (QR) record."""

    id: int
    materia_id: int
    unidad: int
    sesion: int
    token: str
    expires_at: str
    created_at: str


@dataclass
class AsistenciaRecord:
    """Attendance record, joined with the alumno."""

    id: int
    materia_id: int
    alumno_id: int
    fecha: str
    unidad: int
    sesion: int
    presente: bool
    justificacion: str | None
    matricula: str = ""
    nombre_completo: str = ""


# =============================================================================
# SESIONES
# =============================================================================


def insert_sesion(
    materia_id: int, unidad: int, sesion: int, token: str, expires_at: str
) -> int:
    """Open an attendance session.

    Any previous open session for the same unidad/sesion is replaced.
    """
    with get_db() as conn:
        conn.execute(
            "DELETE FROM sesiones_activas WHERE materia_id = ? AND unidad = ? AND sesion = ?",
            (materia_id, unidad, sesion),
        )
        cursor = conn.execute(
            "INSERT INTO sesiones_activas (materia_id, unidad, sesion, token, expires_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (materia_id, unidad, sesion, token, expires_at),
        )
        sesion_id = cursor.lastrowid

    logger.debug("sesiones.inserted", sesion_id=sesion_id, materia_id=materia_id)
    return sesion_id


def get_active_sesion(
    materia_id: int, unidad: int, sesion: int, token: str
) -> SesionRecord | None:
    """Get the session matching the token if it has not expired."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM sesiones_activas
            WHERE materia_id = ? AND unidad = ? AND sesion = ? AND token = ?
              AND expires_at > ?
            """,
            (materia_id, unidad, sesion, token, utc_now()),
        ).fetchone()
    return _row_to_sesion(row) if row else None


def expire_sesion(materia_id: int, unidad: int, sesion: int) -> int:
    """Remove the session so no more registrations are accepted."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM sesiones_activas WHERE materia_id = ? AND unidad = ? AND sesion = ?",
            (materia_id, unidad, sesion),
        )
        return cursor.rowcount


# =============================================================================
# ASISTENCIAS
# =============================================================================

_ASISTENCIA_SELECT = """
    SELECT s.*, a.matricula, a.nombre || ' ' || a.apellido AS nombre_completo
    FROM asistencias s
    JOIN alumnos a ON a.id = s.alumno_id
"""


def insert_asistencia(
    materia_id: int,
    alumno_id: int,
    fecha: str,
    unidad: int,
    sesion: int,
    presente: bool,
) -> int:
    """Insert one attendance record.

    Raises:
        sqlite3.IntegrityError: If the alumno already has a record for the
            same fecha, unidad and sesion
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO asistencias (materia_id, alumno_id, fecha, unidad, sesion, presente) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (materia_id, alumno_id, fecha, unidad, sesion, int(presente)),
        )
        return cursor.lastrowid


def upsert_asistencia(
    materia_id: int,
    alumno_id: int,
    fecha: str,
    unidad: int,
    sesion: int,
    presente: bool,
) -> bool:
    """Insert a record or overwrite its presente flag.

    Returns:
        True if a row was inserted or its value changed
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO asistencias (materia_id, alumno_id, fecha, unidad, sesion, presente)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(alumno_id, fecha, unidad, sesion) DO UPDATE SET
                presente = excluded.presente
            WHERE asistencias.presente != excluded.presente
            """,
            (materia_id, alumno_id, fecha, unidad, sesion, int(presente)),
        )
        return cursor.rowcount > 0


def insert_ausentes(
    materia_id: int, fecha: str, unidad: int, sesion: int
) -> int:
    """Insert presente = false for every alumno without a record.

    Returns:
        Number of absence rows inserted
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO asistencias (materia_id, alumno_id, fecha, unidad, sesion, presente)
            SELECT a.materia_id, a.id, ?, ?, ?, 0
            FROM alumnos a
            WHERE a.materia_id = ?
              AND NOT EXISTS (
                  SELECT 1 FROM asistencias s
                  WHERE s.alumno_id = a.id AND s.fecha = ? AND s.unidad = ? AND s.sesion = ?
              )
            """,
            (fecha, unidad, sesion, materia_id, fecha, unidad, sesion),
        )
        inserted = cursor.rowcount

    logger.debug("asistencias.ausentes_inserted", materia_id=materia_id, count=inserted)
    return inserted


def get_asistencia(asistencia_id: int) -> AsistenciaRecord | None:
    with get_db() as conn:
        row = conn.execute(
            _ASISTENCIA_SELECT + " WHERE s.id = ?", (asistencia_id,)
        ).fetchone()
    return _row_to_asistencia(row) if row else None


def list_asistencias(
    materia_id: int,
    unidad: int | None = None,
    fecha: str | None = None,
    sesion: int | None = None,
    alumno_id: int | None = None,
) -> list[AsistenciaRecord]:
    """List attendance records of a materia with optional filters."""
    query = _ASISTENCIA_SELECT + " WHERE s.materia_id = ?"
    params: list[Any] = [materia_id]
    for column, value in (
        ("s.unidad", unidad),
        ("s.fecha", fecha),
        ("s.sesion", sesion),
        ("s.alumno_id", alumno_id),
    ):
        if value is not None:
            query += f" AND {column} = ?"
            params.append(value)
    query += " ORDER BY s.fecha, s.sesion, a.apellido, a.nombre"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_asistencia(row) for row in rows]


def update_asistencia(
    asistencia_id: int, presente: bool, justificacion: str | None = None
) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE asistencias SET presente = ?, justificacion = ? WHERE id = ?",
            (int(presente), justificacion, asistencia_id),
        )
        return cursor.rowcount > 0


# =============================================================================
# UNIDADES CERRADAS
# =============================================================================


def close_unidad(materia_id: int, unidad: int) -> int:
    """Mark a unidad as closed.

    Raises:
        sqlite3.IntegrityError: If the unidad is already closed
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO unidades_cerradas (materia_id, unidad) VALUES (?, ?)",
            (materia_id, unidad),
        )
        return cursor.lastrowid


def is_unidad_cerrada(materia_id: int, unidad: int) -> bool:
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM unidades_cerradas WHERE materia_id = ? AND unidad = ?",
            (materia_id, unidad),
        ).fetchone()
    return row is not None


def list_unidades_cerradas(materia_id: int) -> list[int]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT unidad FROM unidades_cerradas WHERE materia_id = ? ORDER BY unidad",
            (materia_id,),
        ).fetchall()
    return [row["unidad"] for row in rows]


def _row_to_sesion(row: sqlite3.Row) -> SesionRecord:
    return SesionRecord(
        id=row["id"],
        materia_id=row["materia_id"],
        unidad=row["unidad"],
        sesion=row["sesion"],
        token=row["token"],
        expires_at=row["expires_at"],
        created_at=row["created_at"],
    )


def _row_to_asistencia(row: sqlite3.Row) -> AsistenciaRecord:
    return AsistenciaRecord(
        id=row["id"],
        materia_id=row["materia_id"],
        alumno_id=row["alumno_id"],
        fecha=row["fecha"],
        unidad=row["unidad"],
        sesion=row["sesion"],
        presente=bool(row["presente"]),
        justificacion=row["justificacion"],
        matricula=row["matricula"],
        nombre_completo=row["nombre_completo"].strip(),
    )

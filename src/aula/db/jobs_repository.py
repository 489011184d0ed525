"""Repository functions for the database-backed work queues.

Three queues share the same claiming pattern:
- cola_de_trabajos: AI grading of activity deliveries (column 'estado')
- plagio_jobs: plagiarism comparisons (column 'status')
- drive_sync_jobs: Drive folder creation for a docente (column 'status')

A job is claimed by reading the oldest row in a state and moving it to the
next state with a conditional UPDATE. Only the worker whose UPDATE changed
the row owns the job; losers try the next candidate.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from aula.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

COLA_FIELDS = {
    "estado",
    "intentos",
    "texto_rubrica",
    "texto_trabajo",
    "respuesta_ia_json",
    "ultimo_error",
}
PLAGIO_FIELDS = {"status", "resultado_plagio", "ultimo_error"}
DRIVE_SYNC_FIELDS = {"status", "ultimo_error"}

# Bound on rows inspected per claim when other workers keep winning
_MAX_CLAIM_CANDIDATES = 20


@dataclass
class ColaJobRecord:
    """Row of cola_de_trabajos."""

    id: int
    calificacion_id: int
    docente_id: int
    estado: str
    intentos: int
    texto_rubrica: str | None
    texto_trabajo: str | None
    respuesta_ia_json: dict[str, Any] | None
    ultimo_error: str | None
    created_at: str
    updated_at: str


@dataclass
class PlagioJobRecord:
    """Row of plagio_jobs."""

    id: int
    docente_id: int
    materia_id: int
    drive_file_ids: list[str]
    status: str
    resultado_plagio: list[dict[str, Any]] | None
    ultimo_error: str | None
    created_at: str
    updated_at: str


@dataclass
class DriveSyncJobRecord:
    """Row of drive_sync_jobs."""

    id: int
    docente_id: int
    status: str
    ultimo_error: str | None
    created_at: str
    updated_at: str


def _claim(
    conn: sqlite3.Connection,
    table: str,
    state_column: str,
    from_state: str,
    to_state: str,
) -> sqlite3.Row | None:
    """Move the oldest row in from_state to to_state and return it."""
    candidates = conn.execute(
        f"SELECT id FROM {table} WHERE {state_column} = ? "
        f"ORDER BY created_at, id LIMIT ?",
        (from_state, _MAX_CLAIM_CANDIDATES),
    ).fetchall()

    for candidate in candidates:
        cursor = conn.execute(
            f"UPDATE {table} SET {state_column} = ?, updated_at = ? "
            f"WHERE id = ? AND {state_column} = ?",
            (to_state, utc_now(), candidate["id"], from_state),
        )
        if cursor.rowcount == 1:
            return conn.execute(
                f"SELECT * FROM {table} WHERE id = ?", (candidate["id"],)
            ).fetchone()
        logger.debug("jobs.claim_lost", table=table, job_id=candidate["id"])

    return None


def _update(table: str, allowed: set[str], job_id: int, fields: dict[str, Any]) -> bool:
    values = {k: v for k, v in fields.items() if k in allowed}
    if not values:
        return False
    values["updated_at"] = utc_now()

    assignments = ", ".join(f"{column} = ?" for column in values)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            (*values.values(), job_id),
        )
        return cursor.rowcount > 0


# =============================================================================
# COLA DE TRABAJOS (calificación con IA)
# =============================================================================


def insert_cola_jobs(docente_id: int, calificacion_ids: list[int]) -> int:
    """Enqueue one 'pendiente' job per calificacion.

    Returns:
        Number of jobs inserted
    """
    with get_db() as conn:
        conn.executemany(
            "INSERT INTO cola_de_trabajos (calificacion_id, docente_id, estado, intentos) "
            "VALUES (?, ?, 'pendiente', 0)",
            [(calificacion_id, docente_id) for calificacion_id in calificacion_ids],
        )

    logger.info("cola.enqueued", docente_id=docente_id, count=len(calificacion_ids))
    return len(calificacion_ids)


def claim_cola_job(from_estado: str, to_estado: str) -> ColaJobRecord | None:
    """Claim the oldest grading job in from_estado.

    Returns:
        The claimed job (already in to_estado), or None if the queue is empty
    """
    with get_db() as conn:
        row = _claim(conn, "cola_de_trabajos", "estado", from_estado, to_estado)
    return _row_to_cola(row) if row else None


def get_cola_job(job_id: int) -> ColaJobRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM cola_de_trabajos WHERE id = ?", (job_id,)
        ).fetchone()
    return _row_to_cola(row) if row else None


def update_cola_job(job_id: int, **fields: Any) -> bool:
    if isinstance(fields.get("respuesta_ia_json"), dict):
        fields["respuesta_ia_json"] = json.dumps(
            fields["respuesta_ia_json"], ensure_ascii=False
        )
    return _update("cola_de_trabajos", COLA_FIELDS, job_id, fields)


def list_cola_jobs(estados: list[str], max_intentos: int | None = None) -> list[ColaJobRecord]:
    """List grading jobs in any of the given states."""
    placeholders = ", ".join("?" for _ in estados)
    query = f"SELECT * FROM cola_de_trabajos WHERE estado IN ({placeholders})"
    params: list[Any] = list(estados)
    if max_intentos is not None:
        query += " AND intentos < ?"
        params.append(max_intentos)
    query += " ORDER BY created_at, id"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_cola(row) for row in rows]


def count_cola_jobs_by_estado(docente_id: int) -> dict[str, int]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT estado, COUNT(*) AS n FROM cola_de_trabajos "
            "WHERE docente_id = ? GROUP BY estado",
            (docente_id,),
        ).fetchall()
    return {row["estado"]: row["n"] for row in rows}


# =============================================================================
# PLAGIO
# =============================================================================


def insert_plagio_job(docente_id: int, materia_id: int, drive_file_ids: list[str]) -> int:
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO plagio_jobs (docente_id, materia_id, drive_file_ids, status) "
            "VALUES (?, ?, ?, 'pendiente')",
            (docente_id, materia_id, json.dumps(drive_file_ids)),
        )
        job_id = cursor.lastrowid

    logger.info("plagio.enqueued", job_id=job_id, files=len(drive_file_ids))
    return job_id


def claim_plagio_job() -> PlagioJobRecord | None:
    with get_db() as conn:
        row = _claim(conn, "plagio_jobs", "status", "pendiente", "procesando")
    return _row_to_plagio(row) if row else None


def get_plagio_job(job_id: int) -> PlagioJobRecord | None:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM plagio_jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_plagio(row) if row else None


def update_plagio_job(job_id: int, **fields: Any) -> bool:
    if isinstance(fields.get("resultado_plagio"), list):
        fields["resultado_plagio"] = json.dumps(
            fields["resultado_plagio"], ensure_ascii=False
        )
    return _update("plagio_jobs", PLAGIO_FIELDS, job_id, fields)


# =============================================================================
# DRIVE SYNC
# =============================================================================


def replace_drive_sync_job(docente_id: int) -> int:
    """Drop the docente's previous sync jobs and enqueue a fresh 'pending' one."""
    with get_db() as conn:
        conn.execute("DELETE FROM drive_sync_jobs WHERE docente_id = ?", (docente_id,))
        cursor = conn.execute(
            "INSERT INTO drive_sync_jobs (docente_id, status) VALUES (?, 'pending')",
            (docente_id,),
        )
        job_id = cursor.lastrowid

    logger.info("drive_sync.enqueued", job_id=job_id, docente_id=docente_id)
    return job_id


def claim_drive_sync_job() -> DriveSyncJobRecord | None:
    with get_db() as conn:
        row = _claim(conn, "drive_sync_jobs", "status", "pending", "processing")
    return _row_to_drive_sync(row) if row else None


def get_latest_drive_sync_job(docente_id: int) -> DriveSyncJobRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM drive_sync_jobs WHERE docente_id = ? ORDER BY id DESC LIMIT 1",
            (docente_id,),
        ).fetchone()
    return _row_to_drive_sync(row) if row else None


def update_drive_sync_job(job_id: int, **fields: Any) -> bool:
    return _update("drive_sync_jobs", DRIVE_SYNC_FIELDS, job_id, fields)


def _row_to_cola(row: sqlite3.Row) -> ColaJobRecord:
    return ColaJobRecord(
        id=row["id"],
        calificacion_id=row["calificacion_id"],
        docente_id=row["docente_id"],
        estado=row["estado"],
        intentos=row["intentos"],
        texto_rubrica=row["texto_rubrica"],
        texto_trabajo=row["texto_trabajo"],
        respuesta_ia_json=(
            json.loads(row["respuesta_ia_json"]) if row["respuesta_ia_json"] else None
        ),
        ultimo_error=row["ultimo_error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_plagio(row: sqlite3.Row) -> PlagioJobRecord:
    return PlagioJobRecord(
        id=row["id"],
        docente_id=row["docente_id"],
        materia_id=row["materia_id"],
        drive_file_ids=json.loads(row["drive_file_ids"]),
        status=row["status"],
        resultado_plagio=(
            json.loads(row["resultado_plagio"]) if row["resultado_plagio"] else None
        ),
        ultimo_error=row["ultimo_error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_drive_sync(row: sqlite3.Row) -> DriveSyncJobRecord:
    return DriveSyncJobRecord(
        id=row["id"],
        docente_id=row["docente_id"],
        status=row["status"],
        ultimo_error=row["ultimo_error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )

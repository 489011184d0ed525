"""Background provisioning of Drive structures for a docente's materias."""

from __future__ import annotations

from typing import Any

import structlog

from aula.core.materias import provision_drive
from aula.db import jobs_repository, materias_repository
from aula.db.jobs_repository import DriveSyncJobRecord
from aula.errors import NotFoundError
from aula.scripts.client import ScriptClient, ScriptError

logger = structlog.get_logger(__name__)


def queue_drive_sync(docente_id: int) -> dict[str, Any]:
    """Queue a sync for the docente, replacing any previous job."""
    job_id = jobs_repository.replace_drive_sync_job(docente_id)
    return {"message": "Sincronización con Drive encolada.", "job_id": job_id}


def process_drive_sync(script: ScriptClient) -> dict[str, Any]:
    """Process one pending sync job.

    Every materia without a Drive url gets its structure created. A
    docente with no materias still gets the root structure through an
    empty batch call.
    """
    job = jobs_repository.claim_drive_sync_job()
    if job is None:
        return {"message": "No hay sincronizaciones pendientes."}

    materias = materias_repository.list_materias(job.docente_id)
    try:
        if not materias:
            script.call("create_materias_batch", docente_id=job.docente_id, materias=[])
        for materia in materias:
            if not materia.drive_url:
                provision_drive(materia, script)
    except ScriptError as e:
        jobs_repository.update_drive_sync_job(job.id, status="failed", ultimo_error=str(e))
        logger.warning("drive_sync.failed", job_id=job.id, error=str(e))
        return {"message": f"La sincronización {job.id} falló: {e}", "job_id": job.id}

    jobs_repository.update_drive_sync_job(job.id, status="completed", ultimo_error=None)
    logger.info("drive_sync.completed", job_id=job.id, materias=len(materias))
    return {"message": f"Sincronización {job.id} completada.", "job_id": job.id}


def drive_sync_status(docente_id: int) -> DriveSyncJobRecord:
    job = jobs_repository.get_latest_drive_sync_job(docente_id)
    if job is None:
        raise NotFoundError("No hay sincronizaciones registradas.")
    return job

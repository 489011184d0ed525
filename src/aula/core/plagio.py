"""Plagiarism checks between deliveries, queued or synchronous."""

from __future__ import annotations

import time
from typing import Any

import structlog

from aula.config.app_config import load_app_config
from aula.core.materias import get_owned_materia
from aula.db import jobs_repository
from aula.db.jobs_repository import PlagioJobRecord
from aula.errors import AulaError, ExternalServiceError, NotFoundError, ValidationError
from aula.llm.client import LLMClient, LLMError
from aula.prompts.registry import get_prompt
from aula.scripts.client import ScriptClient, ScriptError

logger = structlog.get_logger(__name__)


def _unique_ids(drive_file_ids: list[str]) -> list[str]:
    ids = list(dict.fromkeys(i.strip() for i in drive_file_ids or [] if i and i.strip()))
    if len(ids) < 2:
        raise ValidationError("Se necesitan al menos dos archivos distintos para comparar.")
    return ids


def _fetch_texts(script: ScriptClient, drive_file_ids: list[str]) -> list[dict[str, str]]:
    """Texts of the files that could be read; at least two are required."""
    data = script.call("get_multiple_file_contents", drive_file_ids=drive_file_ids)
    textos = [
        {"id": c["fileId"], "texto": c["texto"]}
        for c in data.get("contenidos", [])
        if c.get("texto") and not c.get("error")
    ]
    if len(textos) < 2:
        raise ExternalServiceError(
            "No se pudo obtener el texto de al menos dos trabajos para comparar."
        )
    return textos


def _compare(llm: LLMClient, textos: list[dict[str, str]]) -> list[dict[str, Any]]:
    trabajos = "\n\n".join(f"--- TRABAJO ID: {t['id']} ---\n{t['texto']}" for t in textos)
    data = llm.simple_json(
        get_prompt("system/asistente_docente"),
        get_prompt("plagio/comparar_trabajos", trabajos=trabajos),
    )
    if isinstance(data, dict):
        # Some models wrap the list in an object
        data = next((v for v in data.values() if isinstance(v, list)), None)
    if not isinstance(data, list):
        raise ExternalServiceError("La IA no devolvió una lista de comparaciones.")

    return [
        {
            "trabajo_A_id": str(item.get("trabajo_A_id", "")),
            "trabajo_B_id": str(item.get("trabajo_B_id", "")),
            "porcentaje_similitud": float(item.get("porcentaje_similitud") or 0),
            "fragmentos_similares": list(item.get("fragmentos_similares") or []),
        }
        for item in data
        if isinstance(item, dict)
    ]


def _run_check(
    llm: LLMClient,
    script: ScriptClient,
    drive_file_ids: list[str],
    pause_seconds: float,
) -> list[dict[str, Any]]:
    textos = _fetch_texts(script, drive_file_ids)
    # Fixed pause before the LLM call keeps us under provider rate limits
    if pause_seconds > 0:
        time.sleep(pause_seconds)
    return _compare(llm, textos)


def encolar_plagio(docente_id: int, materia_id: int, drive_file_ids: list[str]) -> dict[str, Any]:
    """Queue a plagiarism check; returns the job id."""
    get_owned_materia(docente_id, materia_id)
    ids = _unique_ids(drive_file_ids)
    job_id = jobs_repository.insert_plagio_job(docente_id, materia_id, ids)
    return {"message": "Comprobación de plagio encolada.", "job_id": job_id}


def procesar_plagio(
    llm: LLMClient, script: ScriptClient, pause_seconds: float | None = None
) -> dict[str, Any]:
    """Process one pending plagiarism job.

    Failures are stored on the job ('fallido', ultimo_error) and reported
    in the returned message.
    """
    job = jobs_repository.claim_plagio_job()
    if job is None:
        return {"message": "No hay trabajos de plagio pendientes."}
    if pause_seconds is None:
        pause_seconds = load_app_config().grading.plagiarism_pause_seconds

    try:
        reporte = _run_check(llm, script, job.drive_file_ids, pause_seconds)
        script.call(
            "guardar_reporte_plagio", materia_id=job.materia_id, reporte_plagio=reporte
        )
    except (ScriptError, LLMError, AulaError) as e:
        message = getattr(e, "message", None) or str(e)
        jobs_repository.update_plagio_job(job.id, status="fallido", ultimo_error=message)
        logger.warning("plagio.failed", job_id=job.id, error=message)
        return {"message": f"Trabajo de plagio {job.id} fallido: {message}", "job_id": job.id}

    jobs_repository.update_plagio_job(job.id, status="completado", resultado_plagio=reporte)
    logger.info("plagio.completed", job_id=job.id, pairs=len(reporte))
    return {"message": f"Trabajo de plagio {job.id} completado.", "job_id": job.id}


def comprobar_plagio(
    docente_id: int,
    materia_id: int,
    drive_file_ids: list[str],
    llm: LLMClient,
    script: ScriptClient,
) -> list[dict[str, Any]]:
    """Run a plagiarism check right away and return the report."""
    get_owned_materia(docente_id, materia_id)
    ids = _unique_ids(drive_file_ids)
    if not script.is_configured:
        raise ExternalServiceError("El script remoto no está configurado.")
    try:
        return _run_check(llm, script, ids, pause_seconds=0)
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudieron leer los archivos: {e}") from e


def get_plagio_job(docente_id: int, job_id: int) -> PlagioJobRecord:
    job = jobs_repository.get_plagio_job(job_id)
    if job is None or job.docente_id != docente_id:
        raise NotFoundError(f"Trabajo de plagio {job_id} no encontrado.")
    return job

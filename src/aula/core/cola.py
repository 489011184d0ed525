"""AI grading pipeline for activity deliveries.

Each delivery to grade becomes a row in cola_de_trabajos and moves through
three stages, each run by a separate call (cron, worker or endpoint):

    pendiente -> obteniendo_textos -> listo_para_ia        (1/3 fetch texts)
    listo_para_ia -> llamando_ia -> listo_para_guardar     (2/3 LLM grading)
    listo_para_guardar -> guardando -> completado          (3/3 save results)

A stage processes one job. Failures never escape a stage: they are
recorded on the job (fallido_*, intentos + 1, ultimo_error) and on the
calificacion row, and may be requeued later.
"""

from __future__ import annotations

from typing import Any

import structlog

from aula.config.app_config import load_app_config
from aula.core.actividades import get_owned_actividad, rubric_as_text
from aula.db import actividades_repository, jobs_repository, materias_repository
from aula.db.jobs_repository import ColaJobRecord
from aula.errors import AulaError, ExternalServiceError, NotFoundError, ValidationError
from aula.llm.client import LLMClient, LLMError
from aula.prompts.registry import get_prompt
from aula.scripts.client import ScriptClient, ScriptError
from aula.utils.text_utils import truncate
from aula.utils.validators import round1

logger = structlog.get_logger(__name__)

NO_JOBS_MESSAGE = "No hay trabajos en esta etapa."

# Failed state -> state the job returns to when requeued
REQUEUE_TARGETS = {
    "fallido_textos": "pendiente",
    "fallido_ia": "listo_para_ia",
    "fallido_guardado": "listo_para_guardar",
}


def iniciar_evaluacion_masiva(docente_id: int, calificacion_ids: list[int]) -> dict[str, Any]:
    """Queue deliveries for AI grading.

    Every calificacion must belong to one of the docente's actividades and
    have a delivered file.
    """
    ids = list(dict.fromkeys(calificacion_ids or []))
    if not ids:
        raise ValidationError("Selecciona al menos un trabajo para evaluar.")

    for calificacion_id in ids:
        calificacion = actividades_repository.get_calificacion(calificacion_id)
        if calificacion is None:
            raise NotFoundError(f"Calificación {calificacion_id} no encontrada.")
        get_owned_actividad(docente_id, calificacion.actividad_id)
        if not calificacion.drive_file_id:
            raise ValidationError(
                f"El alumno {calificacion.matricula} no ha entregado un archivo."
            )

    count = jobs_repository.insert_cola_jobs(docente_id, ids)
    for calificacion_id in ids:
        actividades_repository.update_calificacion(
            calificacion_id, estado="procesando", progreso_evaluacion="En cola..."
        )
    return {"message": f"{count} trabajos añadidos a la cola de evaluación.", "encolados": count}


def _set_progress(job: ColaJobRecord, text: str) -> None:
    actividades_repository.update_calificacion(job.calificacion_id, progreso_evaluacion=text)


def _fail(job: ColaJobRecord, estado: str, etapa: str, error: Exception) -> dict[str, Any]:
    message = getattr(error, "message", None) or str(error)
    jobs_repository.update_cola_job(
        job.id, estado=estado, intentos=job.intentos + 1, ultimo_error=message
    )
    actividades_repository.update_calificacion(
        job.calificacion_id,
        estado="fallido",
        progreso_evaluacion=f"Error {etapa}: {truncate(message, 100)}",
    )
    logger.warning("cola.stage_failed", job_id=job.id, estado=estado, error=message)
    return {"message": f"El trabajo {job.id} falló: {message}", "job_id": job.id}


# =============================================================================
# STAGE 1: TEXTS
# =============================================================================


def _fetch_texts(job: ColaJobRecord, script: ScriptClient) -> tuple[str, str]:
    calificacion = actividades_repository.get_calificacion(job.calificacion_id)
    if calificacion is None:
        raise NotFoundError("La calificación ya no existe.")
    actividad = actividades_repository.get_actividad(calificacion.actividad_id)
    materia = materias_repository.get_materia(actividad.materia_id)

    if actividad.criterios:
        texto_rubrica = rubric_as_text(actividad.criterios)
    else:
        if not materia.rubricas_spreadsheet_id or not actividad.rubrica_sheet_range:
            raise ValidationError("La actividad no tiene rúbrica.")
        texto_rubrica = script.call(
            "get_rubric_text",
            spreadsheet_id=materia.rubricas_spreadsheet_id,
            rubrica_sheet_range=actividad.rubrica_sheet_range,
        ).get("texto_rubrica") or ""

    if not calificacion.drive_file_id:
        raise ValidationError("La entrega no tiene archivo.")
    texto_trabajo = script.call(
        "get_student_work_text", drive_file_id=calificacion.drive_file_id
    ).get("texto_trabajo") or ""

    if not str(texto_rubrica).strip():
        raise ValidationError("El texto de la rúbrica está vacío.")
    if not str(texto_trabajo).strip():
        raise ValidationError("No se pudo extraer texto del trabajo.")
    return str(texto_rubrica), str(texto_trabajo)


def procesar_obtener_textos(script: ScriptClient) -> dict[str, Any]:
    """Stage 1: fetch the rubric and the alumno's work as text."""
    job = jobs_repository.claim_cola_job("pendiente", "obteniendo_textos")
    if job is None:
        return {"message": NO_JOBS_MESSAGE}

    _set_progress(job, "1/3: Obteniendo textos...")
    try:
        texto_rubrica, texto_trabajo = _fetch_texts(job, script)
    except (ScriptError, AulaError) as e:
        return _fail(job, "fallido_textos", "obteniendo textos", e)
    except Exception as e:
        logger.exception("cola.unexpected_error", job_id=job.id, etapa="textos")
        return _fail(job, "fallido_textos", "obteniendo textos", e)

    jobs_repository.update_cola_job(
        job.id,
        estado="listo_para_ia",
        texto_rubrica=texto_rubrica,
        texto_trabajo=texto_trabajo,
    )
    logger.info("cola.texts_ready", job_id=job.id)
    return {"message": f"Textos obtenidos para el trabajo {job.id}.", "job_id": job.id}


# =============================================================================
# STAGE 2: LLM
# =============================================================================


def _grade_with_llm(job: ColaJobRecord, llm: LLMClient) -> dict[str, Any]:
    if not job.texto_rubrica or not job.texto_trabajo:
        raise ValidationError("Faltan los textos de rúbrica o trabajo.")

    data = llm.simple_json(
        get_prompt("system/asistente_docente"),
        get_prompt(
            "cola/calificar_trabajo",
            texto_rubrica=job.texto_rubrica,
            texto_trabajo=job.texto_trabajo,
        ),
    )
    if (
        not isinstance(data, dict)
        or not isinstance(data.get("calificacion_total"), (int, float))
        or isinstance(data.get("calificacion_total"), bool)
        or not isinstance(data.get("justificacion_texto"), str)
    ):
        raise ExternalServiceError("Respuesta de IA con formato inválido.")
    return {
        "calificacion_total": data["calificacion_total"],
        "justificacion_texto": data["justificacion_texto"],
    }


def procesar_llamar_ia(llm: LLMClient) -> dict[str, Any]:
    """Stage 2: grade the texts with the LLM."""
    job = jobs_repository.claim_cola_job("listo_para_ia", "llamando_ia")
    if job is None:
        return {"message": NO_JOBS_MESSAGE}

    _set_progress(job, "2/3: Calificando con IA...")
    try:
        respuesta = _grade_with_llm(job, llm)
    except (LLMError, AulaError) as e:
        return _fail(job, "fallido_ia", "de IA", e)
    except Exception as e:
        logger.exception("cola.unexpected_error", job_id=job.id, etapa="ia")
        return _fail(job, "fallido_ia", "de IA", e)

    jobs_repository.update_cola_job(
        job.id, estado="listo_para_guardar", respuesta_ia_json=respuesta
    )
    logger.info("cola.graded", job_id=job.id, calificacion=respuesta["calificacion_total"])
    return {"message": f"Trabajo {job.id} calificado por la IA.", "job_id": job.id}


# =============================================================================
# STAGE 3: SAVE
# =============================================================================


def _save_results(job: ColaJobRecord, script: ScriptClient) -> float:
    respuesta = job.respuesta_ia_json or {}
    if "calificacion_total" not in respuesta:
        raise ValidationError("El trabajo no tiene respuesta de IA.")
    calificacion = round1(min(max(float(respuesta["calificacion_total"]), 0.0), 100.0))
    justificacion = str(respuesta.get("justificacion_texto") or "")

    registro = actividades_repository.get_calificacion(job.calificacion_id)
    if registro is None:
        raise NotFoundError("La calificación ya no existe.")
    actividad = actividades_repository.get_actividad(registro.actividad_id)
    materia = materias_repository.get_materia(actividad.materia_id)

    celda = None
    if script.is_configured and materia.calificaciones_spreadsheet_id:
        celda = script.call(
            "write_justification",
            calificaciones_spreadsheet_id=materia.calificaciones_spreadsheet_id,
            actividad_id=actividad.id,
            nombre_actividad=actividad.nombre,
            unidad=actividad.unidad,
            matricula=registro.matricula,
            calificacion=calificacion,
            justificacion=justificacion,
        ).get("justificacion_sheet_cell")

    actividades_repository.update_calificacion(
        job.calificacion_id,
        estado="calificado",
        calificacion_obtenida=calificacion,
        justificacion=justificacion,
        justificacion_sheet_cell=celda,
        progreso_evaluacion=None,
    )
    return calificacion


def procesar_guardar(script: ScriptClient) -> dict[str, Any]:
    """Stage 3: store the grade locally and in the grades sheet."""
    job = jobs_repository.claim_cola_job("listo_para_guardar", "guardando")
    if job is None:
        return {"message": NO_JOBS_MESSAGE}

    _set_progress(job, "3/3: Guardando resultados...")
    try:
        calificacion = _save_results(job, script)
    except (ScriptError, AulaError) as e:
        return _fail(job, "fallido_guardado", "al guardar", e)
    except Exception as e:
        logger.exception("cola.unexpected_error", job_id=job.id, etapa="guardado")
        return _fail(job, "fallido_guardado", "al guardar", e)

    jobs_repository.update_cola_job(job.id, estado="completado", ultimo_error=None)
    logger.info("cola.saved", job_id=job.id, calificacion=calificacion)
    return {"message": f"Trabajo {job.id} guardado con calificación {calificacion}.", "job_id": job.id}


# =============================================================================
# MAINTENANCE
# =============================================================================


def reencolar_fallidos(max_attempts: int | None = None) -> dict[str, Any]:
    """Send failed jobs back to the stage that failed, up to max_attempts."""
    if max_attempts is None:
        max_attempts = load_app_config().grading.queue_max_attempts

    jobs = jobs_repository.list_cola_jobs(list(REQUEUE_TARGETS), max_intentos=max_attempts)
    for job in jobs:
        jobs_repository.update_cola_job(job.id, estado=REQUEUE_TARGETS[job.estado])
        actividades_repository.update_calificacion(
            job.calificacion_id,
            estado="procesando",
            progreso_evaluacion="Reintentando...",
        )

    if jobs:
        logger.info("cola.requeued", count=len(jobs))
    return {"message": f"{len(jobs)} trabajos reencolados.", "reencolados": len(jobs)}


def estado_cola(docente_id: int) -> dict[str, int]:
    """Number of the docente's jobs per state."""
    return jobs_repository.count_cola_jobs_by_estado(docente_id)

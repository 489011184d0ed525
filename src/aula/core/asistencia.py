"""Attendance: QR sessions, self registration, absences, unit closing and
import of the marks edited in the grades sheet.
"""

from __future__ import annotations

import secrets
import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog

from aula.config.app_config import load_app_config
from aula.core.materias import get_owned_materia, validate_unidad
from aula.db import alumnos_repository, asistencia_repository
from aula.db.asistencia_repository import AsistenciaRecord, SesionRecord
from aula.db.database import TIMESTAMP_FORMAT
from aula.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from aula.scripts.client import ScriptClient, ScriptError
from aula.utils.validators import normalize_matricula

logger = structlog.get_logger(__name__)

SYNC_SKIPPED_NO_DRIVE = "Sincronización omitida (la materia no tiene una URL de Drive)."
SYNC_SKIPPED_NO_SCRIPT = "Sincronización omitida (script remoto no configurado)."


def _today() -> str:
    return date.today().isoformat()


def abrir_sesion(
    docente_id: int,
    materia_id: int,
    unidad: int,
    sesion: int,
    minutes: int | None = None,
) -> SesionRecord:
    """Open a QR attendance session with a fresh token.

    Raises:
        ConflictError: If the unidad is already closed
    """
    materia = get_owned_materia(docente_id, materia_id)
    validate_unidad(materia, unidad)
    if sesion < 1:
        raise ValidationError("La sesión debe ser un número positivo.")
    if asistencia_repository.is_unidad_cerrada(materia_id, unidad):
        raise ConflictError(f"La unidad {unidad} ya está cerrada.")

    minutes = minutes or load_app_config().grading.attendance_session_minutes
    expires_at = (datetime.now(timezone.utc) + timedelta(minutes=minutes)).strftime(
        TIMESTAMP_FORMAT
    )
    token = secrets.token_urlsafe(16)
    sesion_id = asistencia_repository.insert_sesion(
        materia_id, unidad, sesion, token, expires_at
    )

    logger.info(
        "asistencia.session_opened", materia_id=materia_id, unidad=unidad, sesion=sesion
    )
    return SesionRecord(
        id=sesion_id,
        materia_id=materia_id,
        unidad=unidad,
        sesion=sesion,
        token=token,
        expires_at=expires_at,
        created_at="",
    )


def registrar_asistencia(
    materia_id: int,
    unidad: int,
    sesion: int,
    token: str,
    matricula: str,
    fecha: str | None = None,
) -> dict[str, Any]:
    """Register an alumno as present using the session's QR token.

    Raises:
        ValidationError: Invalid or expired session, unknown matricula, or a
            record already exists for today
    """
    if not token or not matricula:
        raise ValidationError("Faltan datos para registrar la asistencia.")
    if asistencia_repository.get_active_sesion(materia_id, unidad, sesion, token) is None:
        raise ValidationError("La sesión de asistencia no es válida o ha expirado.")

    alumno = alumnos_repository.get_alumno_by_matricula(
        materia_id, normalize_matricula(matricula)
    )
    if alumno is None:
        raise ValidationError("La matrícula no pertenece a esta materia.")

    fecha = fecha or _today()
    try:
        asistencia_repository.insert_asistencia(
            materia_id, alumno.id, fecha, unidad, sesion, presente=True
        )
    except sqlite3.IntegrityError as e:
        raise ValidationError("Asistencia ya registrada previamente.") from e

    logger.info("asistencia.registered", alumno_id=alumno.id, materia_id=materia_id)
    return {
        "message": f"Asistencia registrada para {alumno.nombre_completo}.",
        "alumno_id": alumno.id,
    }


def finalizar_sesion(
    docente_id: int,
    materia_id: int,
    unidad: int,
    sesion: int,
    script: ScriptClient,
    fecha: str | None = None,
) -> dict[str, Any]:
    """Close a session: record absentees and push the roster to the sheet.

    Returns:
        {"ausentes_registrados", "total_registros", "sincronizado", "message"}
    """
    materia = get_owned_materia(docente_id, materia_id)
    fecha = fecha or _today()

    ausentes = asistencia_repository.insert_ausentes(materia_id, fecha, unidad, sesion)
    asistencia_repository.expire_sesion(materia_id, unidad, sesion)
    registros = asistencia_repository.list_asistencias(
        materia_id, unidad=unidad, fecha=fecha, sesion=sesion
    )

    sincronizado = False
    if not script.is_configured:
        message = SYNC_SKIPPED_NO_SCRIPT
    elif not materia.calificaciones_spreadsheet_id:
        message = "Sincronización omitida (la materia no tiene hoja de calificaciones)."
    else:
        try:
            script.call(
                "log_asistencia",
                calificaciones_spreadsheet_id=materia.calificaciones_spreadsheet_id,
                fecha=fecha,
                unidad=unidad,
                sesion=sesion,
                asistencias=[
                    {
                        "matricula": r.matricula,
                        "nombre_completo": r.nombre_completo,
                        "presente": r.presente,
                    }
                    for r in registros
                ],
            )
            sincronizado = True
            message = "Sesión finalizada y sincronizada."
        except ScriptError as e:
            logger.warning("asistencia.sync_failed", materia_id=materia_id, error=str(e))
            message = f"Sesión finalizada, pero la sincronización falló: {e}"

    logger.info(
        "asistencia.session_finalized",
        materia_id=materia_id,
        unidad=unidad,
        sesion=sesion,
        absent=ausentes,
    )
    return {
        "ausentes_registrados": ausentes,
        "total_registros": len(registros),
        "sincronizado": sincronizado,
        "message": message,
    }


def cerrar_unidad(
    docente_id: int, materia_id: int, unidad: int, script: ScriptClient
) -> dict[str, Any]:
    """Close a unidad for attendance and send its records to Drive.

    Raises:
        ConflictError: If the unidad is already closed
    """
    materia = get_owned_materia(docente_id, materia_id)
    validate_unidad(materia, unidad)
    try:
        asistencia_repository.close_unidad(materia_id, unidad)
    except sqlite3.IntegrityError as e:
        raise ConflictError(f"La unidad {unidad} ya estaba cerrada.") from e

    if not materia.drive_url:
        return {"message": f"Unidad {unidad} cerrada. {SYNC_SKIPPED_NO_DRIVE}", "sincronizado": False}
    if not script.is_configured:
        return {"message": f"Unidad {unidad} cerrada. {SYNC_SKIPPED_NO_SCRIPT}", "sincronizado": False}

    alumnos = alumnos_repository.list_alumnos(materia_id)
    registros = asistencia_repository.list_asistencias(materia_id, unidad=unidad)
    try:
        script.call(
            "cerrar_unidad",
            drive_url=materia.drive_url,
            unidad=unidad,
            alumnos=[
                {"matricula": a.matricula, "nombre_completo": a.nombre_completo}
                for a in alumnos
            ],
            registros_asistencia=[
                {
                    "matricula": r.matricula,
                    "fecha": r.fecha,
                    "sesion": r.sesion,
                    "presente": r.presente,
                }
                for r in registros
            ],
        )
    except ScriptError as e:
        logger.warning("asistencia.close_sync_failed", materia_id=materia_id, error=str(e))
        return {
            "message": f"Unidad {unidad} cerrada, pero la sincronización falló: {e}",
            "sincronizado": False,
        }

    logger.info("asistencia.unit_closed", materia_id=materia_id, unidad=unidad)
    return {"message": f"Unidad {unidad} cerrada y sincronizada.", "sincronizado": True}


def list_asistencias(
    docente_id: int,
    materia_id: int,
    unidad: int | None = None,
    fecha: str | None = None,
) -> list[AsistenciaRecord]:
    get_owned_materia(docente_id, materia_id)
    return asistencia_repository.list_asistencias(materia_id, unidad=unidad, fecha=fecha)


def actualizar_asistencia(
    docente_id: int,
    asistencia_id: int,
    presente: bool,
    justificacion: str | None = None,
) -> AsistenciaRecord:
    """Correct or justify one attendance record."""
    registro = asistencia_repository.get_asistencia(asistencia_id)
    if registro is None:
        raise NotFoundError(f"Registro de asistencia {asistencia_id} no encontrado.")
    get_owned_materia(docente_id, registro.materia_id)
    asistencia_repository.update_asistencia(asistencia_id, presente, justificacion)
    return asistencia_repository.get_asistencia(asistencia_id)


def unidades_cerradas(docente_id: int, materia_id: int) -> list[int]:
    get_owned_materia(docente_id, materia_id)
    return asistencia_repository.list_unidades_cerradas(materia_id)


def _parse_registro(registro: Any, alumnos: dict[str, int], unidades: int) -> tuple | None:
    """(alumno_id, fecha, unidad, sesion, presente), or None if unusable."""
    try:
        alumno_id = alumnos[normalize_matricula(str(registro["matricula"]))]
        fecha = date.fromisoformat(str(registro["fecha"])).isoformat()
        unidad = int(registro["unidad"])
        sesion = int(registro["sesion"])
        presente = registro["presente"]
    except (KeyError, TypeError, ValueError):
        return None
    if presente not in (0, 1) or not 1 <= unidad <= unidades or sesion < 1:
        return None
    return alumno_id, fecha, unidad, sesion, bool(presente)


def sincronizar_desde_sheets(
    docente_id: int, materia_id: int, script: ScriptClient
) -> dict[str, Any]:
    """Import the attendance marks edited by hand in the grades sheet.

    The sheet wins: existing records take its presente value. Rows with
    an unknown matricula or malformed values are skipped and counted.

    Raises:
        ValidationError: The materia has no grades sheet
        ExternalServiceError: The script is missing, failed or sent no list
    """
    materia = get_owned_materia(docente_id, materia_id)
    if not materia.calificaciones_spreadsheet_id:
        raise ValidationError("La materia no tiene hoja de calificaciones.")
    if not script.is_configured:
        raise ExternalServiceError("El script remoto no está configurado.")

    try:
        data = script.call(
            "leer_datos_asistencia",
            calificaciones_spreadsheet_id=materia.calificaciones_spreadsheet_id,
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudieron leer las asistencias: {e}") from e
    registros = data.get("asistencias")
    if not isinstance(registros, list):
        raise ExternalServiceError("El script no devolvió la lista de asistencias.")

    alumnos = {a.matricula: a.id for a in alumnos_repository.list_alumnos(materia_id)}
    actualizados = omitidos = 0
    for registro in registros:
        parsed = _parse_registro(registro, alumnos, materia.unidades)
        if parsed is None:
            omitidos += 1
            continue
        if asistencia_repository.upsert_asistencia(materia_id, *parsed):
            actualizados += 1

    logger.info(
        "asistencia.imported_from_sheet",
        materia_id=materia_id,
        updated=actualizados,
        skipped=omitidos,
    )
    if not registros:
        message = "No se encontraron datos de asistencia en la hoja."
    else:
        message = f"{actualizados} registros de asistencia actualizados desde la hoja."
    return {
        "message": message,
        "leidos": len(registros),
        "actualizados": actualizados,
        "omitidos": omitidos,
    }

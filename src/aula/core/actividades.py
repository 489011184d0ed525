"""Actividades: authoring, rubrics, deliveries (uploaded or found in Drive),
grade justifications and resource deletion.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Literal

import structlog

from aula.core.materias import get_owned_materia, validate_unidad
from aula.db import actividades_repository, alumnos_repository, materias_repository
from aula.db.actividades_repository import ActividadRecord, CalificacionRecord
from aula.db.materias_repository import MateriaRecord
from aula.errors import (
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from aula.scripts.client import ScriptClient, ScriptError
from aula.utils.validators import extract_drive_id, round1

logger = structlog.get_logger(__name__)

TIPOS_ENTREGA = ("individual", "equipo", "presencial")


def validate_criterios(criterios: list[dict[str, Any]]) -> float:
    """Check rubric criteria and return their total points.

    Every criterion needs a description and non-negative points, and the
    points must add up to 100.

    Raises:
        ValidationError: If a criterion is malformed or the total is not 100
    """
    total = 0.0
    for index, criterio in enumerate(criterios, start=1):
        descripcion = str(criterio.get("descripcion") or "").strip()
        puntos = criterio.get("puntos")
        if not descripcion:
            raise ValidationError(f"El criterio {index} no tiene descripción.")
        if not isinstance(puntos, (int, float)) or isinstance(puntos, bool) or puntos < 0:
            raise ValidationError(f"El criterio {index} tiene puntos inválidos.")
        total += puntos
    if abs(total - 100) > 0.01:
        raise ValidationError(
            f"Los puntos de la rúbrica deben sumar 100 (suman {round1(total)})."
        )
    return total


def rubric_as_text(criterios: list[dict[str, Any]]) -> str:
    """Plain text rendering of a rubric for prompts and sheets."""
    return "\n".join(
        f"- {c['descripcion']} ({c['puntos']} pts)" for c in criterios
    )


def get_owned_actividad(
    docente_id: int, actividad_id: int
) -> tuple[ActividadRecord, MateriaRecord]:
    actividad = actividades_repository.get_actividad(actividad_id)
    if actividad is None:
        raise NotFoundError(f"Actividad {actividad_id} no encontrada.")
    materia = get_owned_materia(docente_id, actividad.materia_id)
    return actividad, materia


def create_actividad(
    docente_id: int,
    materia_id: int,
    nombre: str,
    unidad: int,
    script: ScriptClient,
    tipo_entrega: str = "individual",
    descripcion: str | None = None,
    fecha_limite: str | None = None,
    criterios: list[dict[str, Any]] | None = None,
) -> ActividadRecord:
    """Create an actividad and its Drive folder when the materia has one."""
    materia = get_owned_materia(docente_id, materia_id)
    if not nombre or not nombre.strip():
        raise ValidationError("El nombre de la actividad es obligatorio.")
    validate_unidad(materia, unidad)
    if tipo_entrega not in TIPOS_ENTREGA:
        raise ValidationError(
            f"Tipo de entrega inválido. Usa uno de: {', '.join(TIPOS_ENTREGA)}."
        )
    if criterios:
        validate_criterios(criterios)

    actividad_id = actividades_repository.insert_actividad(
        materia_id=materia_id,
        docente_id=docente_id,
        nombre=nombre.strip(),
        unidad=unidad,
        tipo_entrega=tipo_entrega,
        descripcion=descripcion,
        fecha_limite=fecha_limite,
        criterios=criterios,
    )

    if script.is_configured and materia.drive_url:
        try:
            data = script.call(
                "create_activity_folder",
                drive_url=materia.drive_url,
                actividad_id=actividad_id,
                nombre_actividad=nombre.strip(),
                unidad=unidad,
            )
            actividades_repository.update_actividad(
                actividad_id, drive_folder_id=data.get("drive_folder_id")
            )
        except ScriptError as e:
            logger.warning(
                "actividades.folder_failed", actividad_id=actividad_id, error=str(e)
            )

    logger.info("actividades.created", actividad_id=actividad_id, materia_id=materia_id)
    return actividades_repository.get_actividad(actividad_id)


def list_actividades(
    docente_id: int, materia_id: int, unidad: int | None = None
) -> list[ActividadRecord]:
    get_owned_materia(docente_id, materia_id)
    return actividades_repository.list_actividades(materia_id, unidad)


def update_actividad(
    docente_id: int,
    actividad_id: int,
    script: ScriptClient,
    criterios: list[dict[str, Any]] | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Update an actividad; a new rubric is also saved to the rubric sheet.

    Only the docente who created the actividad may update it.

    Returns:
        {"actividad": ActividadRecord, "rubrica_sincronizada": bool}
    """
    actividad, materia = get_owned_actividad(docente_id, actividad_id)
    if actividad.docente_id != docente_id:
        raise PermissionDeniedError("Solo el autor puede modificar la actividad.")
    if fields.get("unidad") is not None:
        validate_unidad(materia, fields["unidad"])
    if fields.get("tipo_entrega") is not None and fields["tipo_entrega"] not in TIPOS_ENTREGA:
        raise ValidationError("Tipo de entrega inválido.")
    if criterios is not None:
        validate_criterios(criterios)

    actividades_repository.update_actividad(actividad_id, criterios=criterios, **fields)

    sincronizada = False
    if criterios is not None and script.is_configured and materia.rubricas_spreadsheet_id:
        try:
            data = script.call(
                "guardar_rubrica",
                spreadsheet_id=materia.rubricas_spreadsheet_id,
                actividad_id=actividad_id,
                nombre_actividad=fields.get("nombre") or actividad.nombre,
                criterios=criterios,
            )
            actividades_repository.update_actividad(
                actividad_id, rubrica_sheet_range=data.get("rubrica_sheet_range")
            )
            sincronizada = True
        except ScriptError as e:
            logger.warning(
                "actividades.rubric_sync_failed", actividad_id=actividad_id, error=str(e)
            )

    return {
        "actividad": actividades_repository.get_actividad(actividad_id),
        "rubrica_sincronizada": sincronizada,
    }


def get_actividad_detalle(docente_id: int, actividad_id: int) -> dict[str, Any]:
    """Actividad with the calificacion row of every delivery."""
    actividad, _ = get_owned_actividad(docente_id, actividad_id)
    return {
        "actividad": actividad,
        "calificaciones": actividades_repository.list_calificaciones(actividad_id),
    }


def calificar_manual(
    docente_id: int,
    calificacion_id: int,
    calificacion: float,
    justificacion: str | None = None,
) -> CalificacionRecord:
    """Grade a delivery by hand (0-100)."""
    record = actividades_repository.get_calificacion(calificacion_id)
    if record is None:
        raise NotFoundError(f"Calificación {calificacion_id} no encontrada.")
    get_owned_actividad(docente_id, record.actividad_id)
    if calificacion < 0 or calificacion > 100:
        raise ValidationError("La calificación debe estar entre 0 y 100.")

    actividades_repository.update_calificacion(
        calificacion_id,
        estado="calificado",
        calificacion_obtenida=round1(calificacion),
        justificacion=justificacion,
        progreso_evaluacion=None,
    )
    return actividades_repository.get_calificacion(calificacion_id)


def eliminar_recurso(
    docente_id: int,
    tipo_recurso: Literal["materia", "actividad"],
    recurso_id: int,
    script: ScriptClient,
) -> str:
    """Delete a materia or actividad together with its Drive folder.

    The Drive folder is deleted first; if that fails nothing is deleted
    locally. Rubric removal is best effort.

    Raises:
        ValidationError: Unknown tipo_recurso
        ExternalServiceError: Remote deletion failed
    """
    if tipo_recurso == "materia":
        materia = get_owned_materia(docente_id, recurso_id)
        drive_id = extract_drive_id(materia.drive_url)
    elif tipo_recurso == "actividad":
        actividad, materia = get_owned_actividad(docente_id, recurso_id)
        drive_id = actividad.drive_folder_id
    else:
        raise ValidationError("tipo_recurso debe ser 'materia' o 'actividad'.")

    if drive_id and script.is_configured:
        try:
            script.call("eliminar_recurso_drive", drive_id=drive_id, tipo_recurso=tipo_recurso)
        except ScriptError as e:
            raise ExternalServiceError(
                f"No se pudo eliminar la carpeta en Drive; no se borró nada: {e}"
            ) from e

    if tipo_recurso == "actividad":
        if materia.rubricas_spreadsheet_id and script.is_configured:
            try:
                script.call(
                    "eliminar_rubrica",
                    spreadsheet_id=materia.rubricas_spreadsheet_id,
                    actividad_id=recurso_id,
                )
            except ScriptError as e:
                logger.warning(
                    "actividades.rubric_delete_failed", actividad_id=recurso_id, error=str(e)
                )
        actividades_repository.delete_actividad(recurso_id)
        return "Actividad eliminada correctamente."

    materias_repository.delete_materia(recurso_id)
    return "Materia eliminada correctamente."


def entregar_actividad(
    alumno_id: int,
    actividad_id: int,
    file_name: str,
    mime_type: str,
    base64_data: str,
    script: ScriptClient,
) -> CalificacionRecord:
    """Upload an alumno's delivery through the remote script.

    Raises:
        ValidationError: Missing file data or invalid base64
        PermissionDeniedError: The alumno is not enrolled in the materia
        ExternalServiceError: The script is unavailable or failed
    """
    alumno = alumnos_repository.get_alumno(alumno_id)
    actividad = actividades_repository.get_actividad(actividad_id)
    if alumno is None or actividad is None:
        raise NotFoundError("Actividad no encontrada.")
    if alumno.materia_id != actividad.materia_id:
        raise PermissionDeniedError("No estás inscrito en la materia de esta actividad.")
    if not file_name or not base64_data:
        raise ValidationError("Faltan datos del archivo (fileName, base64Data).")
    try:
        base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("El archivo no está codificado en base64 válido.") from e
    if not script.is_configured:
        raise ExternalServiceError("La entrega de archivos no está disponible.")

    try:
        data = script.call(
            "handleEntregaActividad",
            drive_folder_id=actividad.drive_folder_id,
            actividad_id=actividad_id,
            matricula=alumno.matricula,
            fileName=file_name,
            mimeType=mime_type or "application/octet-stream",
            base64Data=base64_data,
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudo subir el archivo: {e}") from e

    calificacion_id = actividades_repository.upsert_entrega(
        actividad_id,
        alumno_id,
        drive_file_id=data.get("fileId") or extract_drive_id(data.get("fileUrl")),
        archivo_url=data.get("fileUrl"),
    )
    logger.info("actividades.delivered", actividad_id=actividad_id, alumno_id=alumno_id)
    return actividades_repository.get_calificacion(calificacion_id)


def list_actividades_alumno(alumno_id: int) -> list[dict[str, Any]]:
    """Actividades of the alumno's materia with the alumno's own status."""
    alumno = alumnos_repository.get_alumno(alumno_id)
    if alumno is None:
        raise NotFoundError("Alumno no encontrado.")
    propias = {
        c.actividad_id: c for c in actividades_repository.list_calificaciones_alumno(alumno_id)
    }
    result = []
    for actividad in actividades_repository.list_actividades(alumno.materia_id):
        calificacion = propias.get(actividad.id)
        result.append(
            {
                "id": actividad.id,
                "nombre": actividad.nombre,
                "unidad": actividad.unidad,
                "descripcion": actividad.descripcion,
                "fecha_limite": actividad.fecha_limite,
                "estado": calificacion.estado if calificacion else "pendiente",
                "calificacion_obtenida": (
                    calificacion.calificacion_obtenida if calificacion else None
                ),
            }
        )
    return result


# =============================================================================
# DELIVERIES FROM DRIVE
# =============================================================================


def _delivery_folder(actividad: ActividadRecord, script: ScriptClient) -> str:
    if not actividad.drive_folder_id:
        raise ValidationError("La actividad no tiene carpeta de entregas en Drive.")
    if not script.is_configured:
        raise ExternalServiceError("El script remoto no está configurado.")
    return actividad.drive_folder_id


def listar_entregas_drive(
    docente_id: int, actividad_id: int, script: ScriptClient
) -> dict[str, Any]:
    """Files currently in the actividad's delivery folder."""
    actividad, _ = get_owned_actividad(docente_id, actividad_id)
    folder_id = _delivery_folder(actividad, script)
    try:
        data = script.call("get_folder_contents", drive_folder_id=folder_id)
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudo leer la carpeta de entregas: {e}") from e
    return {"folder_id": folder_id, "archivos": list(data.get("files") or [])}


def sincronizar_entregas_drive(
    docente_id: int, actividad_id: int, script: ScriptClient
) -> dict[str, Any]:
    """Record deliveries dropped straight into the Drive folder.

    A file belongs to the alumno whose matricula appears in its name
    (longest matricula first, so A10 does not claim A101's file). Files
    already recorded for that alumno are left alone.
    """
    actividad, _ = get_owned_actividad(docente_id, actividad_id)
    archivos = listar_entregas_drive(docente_id, actividad_id, script)["archivos"]

    alumnos = sorted(
        alumnos_repository.list_alumnos(actividad.materia_id),
        key=lambda a: len(a.matricula),
        reverse=True,
    )
    registradas = {
        c.alumno_id: c.drive_file_id
        for c in actividades_repository.list_calificaciones(actividad_id)
    }

    nuevas = 0
    sin_alumno = []
    for archivo in archivos:
        if not isinstance(archivo, dict) or not archivo.get("id"):
            continue
        nombre = str(archivo.get("name") or "").upper()
        alumno = next((a for a in alumnos if a.matricula in nombre), None)
        if alumno is None:
            sin_alumno.append(archivo.get("name"))
            continue
        if registradas.get(alumno.id) == archivo["id"]:
            continue
        actividades_repository.upsert_entrega(
            actividad_id, alumno.id, archivo["id"], archivo.get("webViewLink")
        )
        registradas[alumno.id] = archivo["id"]
        nuevas += 1

    logger.info(
        "actividades.drive_deliveries_synced",
        actividad_id=actividad_id,
        found=len(archivos),
        new=nuevas,
    )
    return {
        "message": f"{nuevas} entregas nuevas registradas desde Drive.",
        "archivos_encontrados": len(archivos),
        "nuevas": nuevas,
        "sin_alumno": sin_alumno,
    }


def obtener_justificacion(
    docente_id: int, calificacion_id: int, script: ScriptClient
) -> dict[str, Any]:
    """Justification of a grade, read from its cell in the grades sheet.

    Falls back to the locally stored text when the grade has no sheet cell
    or the script is not configured.
    """
    registro = actividades_repository.get_calificacion(calificacion_id)
    if registro is None:
        raise NotFoundError(f"Calificación {calificacion_id} no encontrada.")
    _, materia = get_owned_actividad(docente_id, registro.actividad_id)

    celda = registro.justificacion_sheet_cell
    if not (celda and materia.calificaciones_spreadsheet_id and script.is_configured):
        if registro.justificacion is None:
            raise NotFoundError("La calificación no tiene justificación.")
        return {"justificacion_texto": registro.justificacion, "origen": "local"}

    try:
        data = script.call(
            "get_justification_text",
            spreadsheet_id=materia.calificaciones_spreadsheet_id,
            justificacion_sheet_cell=celda,
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudo leer la justificación: {e}") from e
    return {"justificacion_texto": str(data.get("justificacion_texto") or ""), "origen": "sheet"}

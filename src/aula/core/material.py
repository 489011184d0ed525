"""Course material: the materia's Drive folder and its subfolders.

Every operation goes through the remote script; nothing is stored
locally. Without an explicit folder id the materia's material folder
(created with the Drive structure) is used.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

import structlog

from aula.core.materias import get_owned_materia
from aula.db.materias_repository import MateriaRecord
from aula.errors import ExternalServiceError, ValidationError
from aula.scripts.client import ScriptClient, ScriptError
from aula.utils.validators import extract_drive_id

logger = structlog.get_logger(__name__)

MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def _folder(materia: MateriaRecord, folder_id: str | None, script: ScriptClient) -> str:
    if not script.is_configured:
        raise ExternalServiceError("El script remoto no está configurado.")
    if folder_id:
        resolved = extract_drive_id(folder_id)
        if resolved is None:
            raise ValidationError("El id de carpeta de Drive no es válido.")
        return resolved
    if not materia.drive_folder_material_id:
        raise ValidationError("La materia no tiene carpeta de material en Drive.")
    return materia.drive_folder_material_id


def listar_material(
    docente_id: int,
    materia_id: int,
    script: ScriptClient,
    folder_id: str | None = None,
) -> dict[str, Any]:
    """Folders and files inside a material folder."""
    materia = get_owned_materia(docente_id, materia_id)
    carpeta = _folder(materia, folder_id, script)
    try:
        data = script.call("get_folder_contents", drive_folder_id=carpeta)
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudo leer la carpeta de material: {e}") from e
    return {
        "folder_id": carpeta,
        "folders": list(data.get("folders") or []),
        "files": list(data.get("files") or []),
    }


def crear_carpeta(
    docente_id: int,
    materia_id: int,
    nombre: str,
    script: ScriptClient,
    parent_folder_id: str | None = None,
) -> dict[str, Any]:
    materia = get_owned_materia(docente_id, materia_id)
    if not nombre or not nombre.strip():
        raise ValidationError("El nombre de la carpeta es obligatorio.")
    padre = _folder(materia, parent_folder_id, script)
    try:
        data = script.call(
            "create_folder", parent_folder_id=padre, nombre_carpeta=nombre.strip()
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudo crear la carpeta: {e}") from e

    logger.info("material.folder_created", materia_id=materia_id, parent=padre)
    return {
        "message": f"Carpeta '{nombre.strip()}' creada.",
        "folder_id": data.get("folder_id"),
        "parent_folder_id": padre,
    }


def subir_archivo(
    docente_id: int,
    materia_id: int,
    file_name: str,
    mime_type: str,
    base64_data: str,
    script: ScriptClient,
    folder_id: str | None = None,
) -> dict[str, Any]:
    """Upload a base64 file into a material folder.

    Raises:
        ValidationError: Missing name, invalid base64 or a file too large
        ExternalServiceError: The script is unavailable or failed
    """
    materia = get_owned_materia(docente_id, materia_id)
    if not file_name or not base64_data:
        raise ValidationError("Faltan datos del archivo (fileName, base64Data).")
    try:
        contenido = base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("El archivo no está codificado en base64 válido.") from e
    if len(contenido) > MAX_UPLOAD_BYTES:
        raise ValidationError("El archivo supera el tamaño máximo de 25 MB.")
    carpeta = _folder(materia, folder_id, script)

    try:
        data = script.call(
            "upload_file",
            target_folder_id=carpeta,
            fileName=file_name,
            mimeType=mime_type or "application/octet-stream",
            base64Data=base64_data,
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudo subir el archivo: {e}") from e

    logger.info("material.file_uploaded", materia_id=materia_id, size=len(contenido))
    return {
        "message": f"Archivo '{file_name}' subido.",
        "file_id": data.get("fileId"),
        "file_url": data.get("fileUrl"),
        "folder_id": carpeta,
    }

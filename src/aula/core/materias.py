"""Materia (course) management and Drive provisioning."""

from __future__ import annotations

import structlog

from aula.db import docentes_repository, materias_repository
from aula.db.materias_repository import MateriaRecord
from aula.errors import NotFoundError, PermissionDeniedError, ValidationError
from aula.scripts.client import ScriptClient, ScriptError

logger = structlog.get_logger(__name__)

# Fields returned by the remote 'create_materia_struct' action
DRIVE_FIELDS = (
    "drive_url",
    "drive_folder_material_id",
    "rubricas_spreadsheet_id",
    "plagio_spreadsheet_id",
    "calificaciones_spreadsheet_id",
)


def get_owned_materia(docente_id: int, materia_id: int) -> MateriaRecord:
    """Load a materia and check the docente owns it.

    Raises:
        NotFoundError: If the materia does not exist
        PermissionDeniedError: If it belongs to another docente
    """
    materia = materias_repository.get_materia(materia_id)
    if materia is None:
        raise NotFoundError(f"Materia {materia_id} no encontrada.")
    if materia.docente_id != docente_id:
        raise PermissionDeniedError("No tienes permiso sobre esta materia.")
    return materia


def validate_unidad(materia: MateriaRecord, unidad: int) -> None:
    if unidad < 1 or unidad > materia.unidades:
        raise ValidationError(
            f"La unidad debe estar entre 1 y {materia.unidades}."
        )


def provision_drive(materia: MateriaRecord, script: ScriptClient) -> MateriaRecord:
    """Ask the remote script to create the materia's Drive structure.

    Stores every id the script returns.

    Raises:
        ScriptError: If the remote call fails
    """
    docente = docentes_repository.get_docente_by_id(materia.docente_id)
    data = script.call(
        "create_materia_struct",
        materia_id=materia.id,
        nombre=materia.nombre,
        semestre=materia.semestre,
        unidades=materia.unidades,
        docente_email=docente.email if docente else None,
    )
    materias_repository.update_materia(
        materia.id, **{field: data.get(field) for field in DRIVE_FIELDS}
    )
    logger.info("materias.drive_provisioned", materia_id=materia.id)
    return materias_repository.get_materia(materia.id)


def create_materia(
    docente_id: int,
    nombre: str,
    semestre: str | None,
    unidades: int,
    script: ScriptClient,
) -> MateriaRecord:
    """Create a materia and, when possible, its Drive structure.

    A failing remote call is logged; the materia is still created and a
    later Drive sync can provision it.
    """
    if not nombre or not nombre.strip():
        raise ValidationError("El nombre de la materia es obligatorio.")
    if unidades < 1:
        raise ValidationError("La materia debe tener al menos una unidad.")

    materia_id = materias_repository.insert_materia(
        docente_id, nombre.strip(), semestre, unidades
    )
    materia = materias_repository.get_materia(materia_id)

    if script.is_configured:
        try:
            materia = provision_drive(materia, script)
        except ScriptError as e:
            logger.warning(
                "materias.drive_provision_failed", materia_id=materia_id, error=str(e)
            )

    return materia


def list_materias(docente_id: int) -> list[MateriaRecord]:
    return materias_repository.list_materias(docente_id)


def update_materia(
    docente_id: int,
    materia_id: int,
    nombre: str | None = None,
    semestre: str | None = None,
    unidades: int | None = None,
) -> MateriaRecord:
    get_owned_materia(docente_id, materia_id)
    if unidades is not None and unidades < 1:
        raise ValidationError("La materia debe tener al menos una unidad.")
    materias_repository.update_materia(
        materia_id, nombre=nombre, semestre=semestre, unidades=unidades
    )
    return materias_repository.get_materia(materia_id)

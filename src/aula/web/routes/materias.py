"""Materia endpoints."""

from fastapi import APIRouter, Depends, status

from aula.core import actividades, materias
from aula.scripts.client import ScriptClient
from aula.web.deps import current_docente, get_script_client
from aula.web.schemas import (
    MateriaCreate,
    MateriaResponse,
    MateriaUpdate,
    MessageResponse,
)

router = APIRouter(prefix="/api/materias", tags=["materias"])


@router.get("", response_model=list[MateriaResponse])
def list_materias(docente_id: int = Depends(current_docente)):
    """List the docente's materias."""
    return materias.list_materias(docente_id)


@router.post("", response_model=MateriaResponse, status_code=status.HTTP_201_CREATED)
def create_materia(
    request: MateriaCreate,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
):
    """Create a materia and provision its Drive structure when possible."""
    return materias.create_materia(
        docente_id, request.nombre, request.semestre, request.unidades, script
    )


@router.get("/{materia_id}", response_model=MateriaResponse)
def get_materia(materia_id: int, docente_id: int = Depends(current_docente)):
    return materias.get_owned_materia(docente_id, materia_id)


@router.patch("/{materia_id}", response_model=MateriaResponse)
def update_materia(
    materia_id: int,
    request: MateriaUpdate,
    docente_id: int = Depends(current_docente),
):
    return materias.update_materia(
        docente_id,
        materia_id,
        nombre=request.nombre,
        semestre=request.semestre,
        unidades=request.unidades,
    )


@router.delete("/{materia_id}", response_model=MessageResponse)
def delete_materia(
    materia_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> MessageResponse:
    """Delete a materia together with its Drive folder."""
    message = actividades.eliminar_recurso(docente_id, "materia", materia_id, script)
    return MessageResponse(message=message)

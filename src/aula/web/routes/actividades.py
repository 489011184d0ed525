"""Actividad, delivery and manual grading endpoints."""

from fastapi import APIRouter, Depends, status

from aula.core import actividades
from aula.scripts.client import ScriptClient
from aula.web.deps import current_alumno, current_docente, get_script_client
from aula.web.schemas import (
    ActividadCreate,
    ActividadDetalleResponse,
    ActividadResponse,
    ActividadUpdate,
    ActividadUpdateResponse,
    CalificacionManualRequest,
    CalificacionResponse,
    EliminarRecursoRequest,
    EntregaRequest,
    MessageResponse,
)

router = APIRouter(prefix="/api", tags=["actividades"])


@router.get("/materias/{materia_id}/actividades", response_model=list[ActividadResponse])
def list_actividades(
    materia_id: int,
    unidad: int | None = None,
    docente_id: int = Depends(current_docente),
):
    return actividades.list_actividades(docente_id, materia_id, unidad)


@router.post(
    "/materias/{materia_id}/actividades",
    response_model=ActividadResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_actividad(
    materia_id: int,
    request: ActividadCreate,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
):
    criterios = (
        [c.model_dump() for c in request.criterios] if request.criterios is not None else None
    )
    return actividades.create_actividad(
        docente_id,
        materia_id,
        request.nombre,
        request.unidad,
        script,
        tipo_entrega=request.tipo_entrega,
        descripcion=request.descripcion,
        fecha_limite=request.fecha_limite,
        criterios=criterios,
    )


@router.get("/actividades/{actividad_id}", response_model=ActividadDetalleResponse)
def get_actividad(actividad_id: int, docente_id: int = Depends(current_docente)):
    """Actividad with every delivery and grade."""
    return actividades.get_actividad_detalle(docente_id, actividad_id)


@router.patch("/actividades/{actividad_id}", response_model=ActividadUpdateResponse)
def update_actividad(
    actividad_id: int,
    request: ActividadUpdate,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
):
    fields = request.model_dump(exclude={"criterios"})
    criterios = (
        [c.model_dump() for c in request.criterios] if request.criterios is not None else None
    )
    return actividades.update_actividad(
        docente_id, actividad_id, script, criterios=criterios, **fields
    )


@router.delete("/actividades/{actividad_id}", response_model=MessageResponse)
def delete_actividad(
    actividad_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> MessageResponse:
    message = actividades.eliminar_recurso(docente_id, "actividad", actividad_id, script)
    return MessageResponse(message=message)


@router.post("/eliminar-recurso", response_model=MessageResponse)
def eliminar_recurso(
    request: EliminarRecursoRequest,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> MessageResponse:
    """Delete a materia or actividad and its Drive folder."""
    message = actividades.eliminar_recurso(
        docente_id, request.tipo_recurso, request.recurso_id, script
    )
    return MessageResponse(message=message)


@router.post("/calificaciones/{calificacion_id}/manual", response_model=CalificacionResponse)
def calificar_manual(
    calificacion_id: int,
    request: CalificacionManualRequest,
    docente_id: int = Depends(current_docente),
):
    return actividades.calificar_manual(
        docente_id, calificacion_id, request.calificacion, request.justificacion
    )


@router.get("/calificaciones/{calificacion_id}/justificacion")
def obtener_justificacion(
    calificacion_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict:
    return actividades.obtener_justificacion(docente_id, calificacion_id, script)


@router.get("/actividades/{actividad_id}/entregas-drive")
def listar_entregas_drive(
    actividad_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict:
    return actividades.listar_entregas_drive(docente_id, actividad_id, script)


@router.post("/actividades/{actividad_id}/sincronizar-entregas")
def sincronizar_entregas(
    actividad_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict:
    """Register files found in the delivery folder, matched by matricula."""
    return actividades.sincronizar_entregas_drive(docente_id, actividad_id, script)


# =============================================================================
# ALUMNO PORTAL
# =============================================================================


@router.get("/alumno/actividades")
def list_actividades_alumno(alumno_id: int = Depends(current_alumno)) -> list[dict]:
    return actividades.list_actividades_alumno(alumno_id)


@router.post("/alumno/entregas", response_model=CalificacionResponse)
def entregar_actividad(
    request: EntregaRequest,
    alumno_id: int = Depends(current_alumno),
    script: ScriptClient = Depends(get_script_client),
):
    """Upload a delivery (base64) through the remote script."""
    return actividades.entregar_actividad(
        alumno_id,
        request.actividad_id,
        request.fileName,
        request.mimeType,
        request.base64Data,
        script,
    )

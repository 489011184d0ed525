"""Attendance endpoints."""

from fastapi import APIRouter, Depends, status

from aula.core import asistencia
from aula.scripts.client import ScriptClient
from aula.web.deps import current_docente, get_script_client
from aula.web.schemas import (
    AsistenciaResponse,
    AsistenciaUpdate,
    CerrarUnidadRequest,
    FinalizarSesionRequest,
    FinalizarSesionResponse,
    RegistrarAsistenciaRequest,
    SesionCreate,
    SesionResponse,
    SyncMessageResponse,
)

router = APIRouter(prefix="/api/asistencia", tags=["asistencia"])


@router.post(
    "/materias/{materia_id}/sesiones",
    response_model=SesionResponse,
    status_code=status.HTTP_201_CREATED,
)
def abrir_sesion(
    materia_id: int,
    request: SesionCreate,
    docente_id: int = Depends(current_docente),
):
    """Open a QR session; the token goes into the QR code."""
    return asistencia.abrir_sesion(
        docente_id, materia_id, request.unidad, request.sesion, request.minutos
    )


@router.post("/registrar")
def registrar(request: RegistrarAsistenciaRequest) -> dict:
    """Public endpoint hit by alumnos after scanning the QR code."""
    return asistencia.registrar_asistencia(
        request.materia_id,
        request.unidad,
        request.sesion,
        request.token,
        request.matricula,
    )


@router.post("/materias/{materia_id}/finalizar", response_model=FinalizarSesionResponse)
def finalizar_sesion(
    materia_id: int,
    request: FinalizarSesionRequest,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
):
    return asistencia.finalizar_sesion(
        docente_id, materia_id, request.unidad, request.sesion, script, request.fecha
    )


@router.post("/materias/{materia_id}/cerrar-unidad", response_model=SyncMessageResponse)
def cerrar_unidad(
    materia_id: int,
    request: CerrarUnidadRequest,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
):
    return asistencia.cerrar_unidad(docente_id, materia_id, request.unidad, script)


@router.get("/materias/{materia_id}", response_model=list[AsistenciaResponse])
def list_asistencias(
    materia_id: int,
    unidad: int | None = None,
    fecha: str | None = None,
    docente_id: int = Depends(current_docente),
):
    return asistencia.list_asistencias(docente_id, materia_id, unidad=unidad, fecha=fecha)


@router.get("/materias/{materia_id}/unidades-cerradas")
def unidades_cerradas(materia_id: int, docente_id: int = Depends(current_docente)) -> dict:
    return {"unidades_cerradas": asistencia.unidades_cerradas(docente_id, materia_id)}


@router.patch("/{asistencia_id}", response_model=AsistenciaResponse)
def actualizar_asistencia(
    asistencia_id: int,
    request: AsistenciaUpdate,
    docente_id: int = Depends(current_docente),
):
    """Correct or justify one record."""
    return asistencia.actualizar_asistencia(
        docente_id, asistencia_id, request.presente, request.justificacion
    )


@router.post("/materias/{materia_id}/sincronizar-desde-sheets")
def sincronizar_desde_sheets(
    materia_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict:
    """Import the attendance the calificaciones sheet holds; the sheet wins."""
    return asistencia.sincronizar_desde_sheets(docente_id, materia_id, script)

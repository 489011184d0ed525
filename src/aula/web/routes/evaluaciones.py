"""Evaluacion authoring, question bank and alumno attempt endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, status

from aula.core import evaluaciones
from aula.scripts.client import ScriptClient
from aula.web.deps import current_alumno, current_docente, get_script_client
from aula.web.schemas import (
    BancoPreguntaResponse,
    CalificacionIntentoResponse,
    CalificarRespuestaRequest,
    CopiarBancoRequest,
    EvaluacionCreate,
    EvaluacionDetalleResponse,
    EvaluacionResponse,
    EvaluacionUpdate,
    FinalizarIntentoRequest,
    FocusChangeRequest,
    IntentoResumenResponse,
    MessageResponse,
    PreguntaIn,
    RespuestaRequest,
)

router = APIRouter(prefix="/api", tags=["evaluaciones"])


# =============================================================================
# DOCENTE
# =============================================================================


@router.get("/materias/{materia_id}/evaluaciones", response_model=list[EvaluacionResponse])
def list_evaluaciones(
    materia_id: int,
    unidad: int | None = None,
    docente_id: int = Depends(current_docente),
):
    return evaluaciones.list_evaluaciones(docente_id, materia_id, unidad)


@router.post(
    "/materias/{materia_id}/evaluaciones",
    response_model=EvaluacionDetalleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_evaluacion(
    materia_id: int,
    request: EvaluacionCreate,
    docente_id: int = Depends(current_docente),
):
    """Create a draft evaluacion with its preguntas."""
    return evaluaciones.create_evaluacion(
        docente_id,
        materia_id,
        request.titulo,
        unidad=request.unidad,
        descripcion=request.descripcion,
        tiempo_limite_minutos=request.tiempo_limite_minutos,
        preguntas=[p.model_dump() for p in request.preguntas],
    )


@router.get("/evaluaciones/{evaluacion_id}", response_model=EvaluacionDetalleResponse)
def get_evaluacion(evaluacion_id: int, docente_id: int = Depends(current_docente)):
    return evaluaciones.get_evaluacion_detalle(docente_id, evaluacion_id)


@router.patch("/evaluaciones/{evaluacion_id}", response_model=EvaluacionDetalleResponse)
def update_evaluacion(
    evaluacion_id: int,
    request: EvaluacionUpdate,
    docente_id: int = Depends(current_docente),
):
    """Update fields or publish; preguntas, when sent, replace the current ones."""
    preguntas = (
        [p.model_dump() for p in request.preguntas] if request.preguntas is not None else None
    )
    fields = request.model_dump(exclude={"preguntas"}, exclude_none=True)
    return evaluaciones.update_evaluacion(docente_id, evaluacion_id, preguntas, **fields)


@router.delete("/evaluaciones/{evaluacion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_evaluacion(evaluacion_id: int, docente_id: int = Depends(current_docente)) -> None:
    evaluaciones.delete_evaluacion(docente_id, evaluacion_id)


@router.get(
    "/evaluaciones/{evaluacion_id}/intentos", response_model=list[IntentoResumenResponse]
)
def list_intentos(evaluacion_id: int, docente_id: int = Depends(current_docente)):
    """Attempts with how many times each alumno left the exam tab."""
    return evaluaciones.list_intentos(docente_id, evaluacion_id)


@router.post("/evaluaciones/{evaluacion_id}/sincronizar")
def sincronizar(
    evaluacion_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    """Push graded attempts to the materia's grades sheet."""
    return evaluaciones.sincronizar_evaluacion_sheets(docente_id, evaluacion_id, script)


@router.post("/evaluaciones/{evaluacion_id}/banco", response_model=EvaluacionDetalleResponse)
def copiar_banco(
    evaluacion_id: int,
    request: CopiarBancoRequest,
    docente_id: int = Depends(current_docente),
):
    return evaluaciones.copiar_banco_a_evaluacion(docente_id, evaluacion_id, request.banco_ids)


@router.get("/intentos/{intento_id}")
def get_intento(intento_id: int, docente_id: int = Depends(current_docente)) -> dict[str, Any]:
    return evaluaciones.get_intento_detalle(docente_id, intento_id)


@router.post(
    "/intentos/{intento_id}/calificar-respuesta",
    response_model=CalificacionIntentoResponse,
)
def calificar_respuesta(
    intento_id: int,
    request: CalificarRespuestaRequest,
    docente_id: int = Depends(current_docente),
):
    """Grade an open answer by hand and recompute the attempt."""
    return evaluaciones.calificar_respuesta_manual(
        docente_id, intento_id, request.pregunta_id, request.puntos, request.comentario
    )


@router.get("/banco-preguntas", response_model=list[BancoPreguntaResponse])
def list_banco(
    tipo_pregunta: str | None = None,
    docente_id: int = Depends(current_docente),
):
    return evaluaciones.list_banco_preguntas(docente_id, tipo_pregunta)


@router.post(
    "/banco-preguntas",
    response_model=BancoPreguntaResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_banco(request: PreguntaIn, docente_id: int = Depends(current_docente)):
    return evaluaciones.add_banco_pregunta(docente_id, request.model_dump())


@router.delete("/banco-preguntas/{pregunta_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_banco(pregunta_id: int, docente_id: int = Depends(current_docente)) -> None:
    evaluaciones.delete_banco_pregunta(docente_id, pregunta_id)


# =============================================================================
# ALUMNO
# =============================================================================


@router.get("/alumno/evaluaciones")
def list_evaluaciones_alumno(alumno_id: int = Depends(current_alumno)) -> list[dict[str, Any]]:
    return evaluaciones.list_evaluaciones_alumno(alumno_id)


@router.post("/alumno/evaluaciones/{evaluacion_id}/iniciar")
def iniciar_intento(
    evaluacion_id: int, alumno_id: int = Depends(current_alumno)
) -> dict[str, Any]:
    """Start or resume the attempt. Correct answers are never included."""
    return evaluaciones.iniciar_intento(alumno_id, evaluacion_id)


@router.put("/alumno/intentos/{intento_id}/respuestas", response_model=MessageResponse)
def guardar_respuesta(
    intento_id: int,
    request: RespuestaRequest,
    alumno_id: int = Depends(current_alumno),
) -> MessageResponse:
    evaluaciones.guardar_respuesta(alumno_id, intento_id, request.pregunta_id, request.respuesta)
    return MessageResponse(message="Respuesta guardada.")


@router.post(
    "/alumno/intentos/{intento_id}/finalizar",
    response_model=CalificacionIntentoResponse,
)
def finalizar_intento(
    intento_id: int,
    request: FinalizarIntentoRequest,
    alumno_id: int = Depends(current_alumno),
):
    return evaluaciones.finalizar_intento(alumno_id, intento_id, request.respuestas)


@router.post("/alumno/log-focus-change", response_model=MessageResponse)
def log_focus_change(
    request: FocusChangeRequest, alumno_id: int = Depends(current_alumno)
) -> MessageResponse:
    evaluaciones.log_focus_change(alumno_id, request.intento_id, request.tipo_evento)
    return MessageResponse(message="Evento registrado.")

"""AI authoring helpers for docentes."""

from typing import Any

from fastapi import APIRouter, Depends

from aula.core import ia
from aula.llm.client import LLMClient
from aula.web.deps import current_docente, get_llm_client
from aula.web.schemas import (
    GenerarEvaluacionRequest,
    GenerarRubricaRequest,
    RubricaResponse,
    SugerenciaResponse,
    SugerirCalificacionRequest,
)

router = APIRouter(prefix="/api/ia", tags=["ia"])


@router.post("/generar-evaluacion")
def generar_evaluacion(
    request: GenerarEvaluacionRequest,
    docente_id: int = Depends(current_docente),
    llm: LLMClient = Depends(get_llm_client),
) -> dict[str, Any]:
    """Draft preguntas for the editor; nothing is stored."""
    return ia.generar_evaluacion(
        llm,
        request.tema,
        request.num_preguntas,
        request.tipos_preguntas,
        request.instrucciones_adicionales,
    )


@router.post("/generar-rubrica", response_model=RubricaResponse)
def generar_rubrica(
    request: GenerarRubricaRequest,
    docente_id: int = Depends(current_docente),
    llm: LLMClient = Depends(get_llm_client),
):
    return ia.generar_rubrica(llm, request.descripcion_actividad)


@router.post("/sugerir-calificacion", response_model=SugerenciaResponse)
def sugerir_calificacion(
    request: SugerirCalificacionRequest,
    docente_id: int = Depends(current_docente),
    llm: LLMClient = Depends(get_llm_client),
):
    return ia.sugerir_calificacion(
        llm, request.texto_pregunta, request.respuesta_alumno, request.puntos_maximos
    )

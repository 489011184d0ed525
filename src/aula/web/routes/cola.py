"""Bulk AI grading queue endpoints.

The ``/procesar/*`` endpoints are meant for a scheduler and require the
service key; ``aula worker`` drives the same stages in-process.
"""

from typing import Any

from fastapi import APIRouter, Depends

from aula.core import cola
from aula.llm.client import LLMClient
from aula.scripts.client import ScriptClient
from aula.web.deps import (
    current_docente,
    get_llm_client,
    get_script_client,
    require_service_key,
)
from aula.web.schemas import EvaluacionMasivaRequest

router = APIRouter(prefix="/api/cola", tags=["cola"])


@router.post("/iniciar-evaluacion-masiva")
def iniciar_evaluacion_masiva(
    request: EvaluacionMasivaRequest, docente_id: int = Depends(current_docente)
) -> dict[str, Any]:
    return cola.iniciar_evaluacion_masiva(docente_id, request.calificacion_ids)


@router.get("/estado")
def estado(docente_id: int = Depends(current_docente)) -> dict[str, int]:
    """Job counts per state for the docente."""
    return cola.estado_cola(docente_id)


@router.post("/procesar/obtener-textos", dependencies=[Depends(require_service_key)])
def procesar_obtener_textos(
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    return cola.procesar_obtener_textos(script)


@router.post("/procesar/llamar-ia", dependencies=[Depends(require_service_key)])
def procesar_llamar_ia(llm: LLMClient = Depends(get_llm_client)) -> dict[str, Any]:
    return cola.procesar_llamar_ia(llm)


@router.post("/procesar/guardar", dependencies=[Depends(require_service_key)])
def procesar_guardar(script: ScriptClient = Depends(get_script_client)) -> dict[str, Any]:
    return cola.procesar_guardar(script)


@router.post("/reencolar", dependencies=[Depends(require_service_key)])
def reencolar() -> dict[str, Any]:
    return cola.reencolar_fallidos()

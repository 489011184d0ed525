"""Plagiarism check endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, status

from aula.core import plagio
from aula.llm.client import LLMClient
from aula.scripts.client import ScriptClient
from aula.web.deps import (
    current_docente,
    get_llm_client,
    get_script_client,
    require_service_key,
)
from aula.web.schemas import (
    ComparacionPlagio,
    JobQueuedResponse,
    PlagioJobResponse,
    PlagioRequest,
)

router = APIRouter(prefix="/api/plagio", tags=["plagio"])


@router.post(
    "/encolar",
    response_model=JobQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def encolar(request: PlagioRequest, docente_id: int = Depends(current_docente)):
    return plagio.encolar_plagio(docente_id, request.materia_id, request.drive_file_ids)


@router.post("/procesar", dependencies=[Depends(require_service_key)])
def procesar(
    llm: LLMClient = Depends(get_llm_client),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    return plagio.procesar_plagio(llm, script)


@router.post("/comprobar", response_model=list[ComparacionPlagio])
def comprobar(
    request: PlagioRequest,
    docente_id: int = Depends(current_docente),
    llm: LLMClient = Depends(get_llm_client),
    script: ScriptClient = Depends(get_script_client),
):
    """Run the comparison synchronously and return the suspicious pairs."""
    return plagio.comprobar_plagio(
        docente_id, request.materia_id, request.drive_file_ids, llm, script
    )


@router.get("/jobs/{job_id}", response_model=PlagioJobResponse)
def get_job(job_id: int, docente_id: int = Depends(current_docente)):
    return plagio.get_plagio_job(docente_id, job_id)

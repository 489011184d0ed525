"""Reporting and unit grade endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from aula.core import reportes
from aula.llm.client import LLMClient
from aula.scripts.client import ScriptClient
from aula.web.deps import current_docente, get_llm_client, get_script_client
from aula.web.schemas import PesosUnidadRequest

router = APIRouter(prefix="/api/reportes", tags=["reportes"])


@router.get("/alumnos/{alumno_id}/holistico")
def reporte_holistico(
    alumno_id: int, docente_id: int = Depends(current_docente)
) -> dict[str, Any]:
    return reportes.reporte_holistico(docente_id, alumno_id)


@router.get("/alumnos/{alumno_id}/resumen-ia")
def resumen_ia(
    alumno_id: int,
    docente_id: int = Depends(current_docente),
    llm: LLMClient = Depends(get_llm_client),
) -> dict[str, Any]:
    """Narrative summary of the holistic report."""
    return reportes.resumen_ia_alumno(docente_id, alumno_id, llm)


@router.get("/materias/{materia_id}/en-riesgo")
def alumnos_en_riesgo(
    materia_id: int,
    umbral_asistencia: float | None = None,
    umbral_calificacion: float | None = None,
    docente_id: int = Depends(current_docente),
) -> list[dict[str, Any]]:
    return reportes.alumnos_en_riesgo(
        docente_id, materia_id, umbral_asistencia, umbral_calificacion
    )


@router.get("/materias/{materia_id}/unidades/{unidad}/conteo")
def conteo_componentes(
    materia_id: int, unidad: int, docente_id: int = Depends(current_docente)
) -> dict[str, Any]:
    return reportes.conteo_componentes(docente_id, materia_id, unidad)


@router.post("/materias/{materia_id}/unidades/{unidad}/calificacion-final")
def calcular_calificacion_unidad(
    materia_id: int,
    unidad: int,
    request: PesosUnidadRequest,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    """Weighted unit grade for every alumno, stored and pushed to Sheets."""
    return reportes.calcular_calificacion_unidad(
        docente_id, materia_id, unidad, request.model_dump(), script
    )


@router.get("/materias/{materia_id}/calificacion-final")
def calificacion_final(
    materia_id: int, docente_id: int = Depends(current_docente)
) -> list[dict[str, Any]]:
    return reportes.calificacion_final_materia(docente_id, materia_id)


@router.get("/materias/{materia_id}/estadisticas")
def estadisticas_curso(
    materia_id: int,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    """Statistics of the final grades kept in the calificaciones sheet."""
    return reportes.estadisticas_curso(docente_id, materia_id, script)

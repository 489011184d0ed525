"""AI assistance for docentes: exam drafts, rubrics, grade suggestions.

All generation goes through the LLM client's JSON mode; the returned
structures are validated here before reaching the caller. LLM transport
errors propagate as LLMError.
"""

from __future__ import annotations

import time
from typing import Any

import structlog

from aula.core.calificador import TIPOS_PREGUNTA
from aula.errors import ExternalServiceError, ValidationError
from aula.llm.client import LLMClient
from aula.prompts.registry import get_prompt
from aula.utils.text_utils import strip_think
from aula.utils.validators import round1

logger = structlog.get_logger(__name__)

MAX_PREGUNTAS = 50


def _system_prompt() -> str:
    return get_prompt("system/asistente_docente")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# =============================================================================
# EXAM DRAFT
# =============================================================================


def _validate_generated(pregunta: Any, index: int, tipos: set[str]) -> None:
    if not isinstance(pregunta, dict):
        raise ExternalServiceError(f"La IA devolvió una pregunta {index} inválida.")
    if not str(pregunta.get("texto_pregunta") or "").strip():
        raise ExternalServiceError(f"La pregunta {index} generada no tiene texto.")
    if pregunta.get("tipo_pregunta") not in tipos:
        raise ExternalServiceError(
            f"La pregunta {index} generada tiene un tipo no solicitado: "
            f"{pregunta.get('tipo_pregunta')}."
        )
    if not _is_number(pregunta.get("puntos")):
        raise ExternalServiceError(f"La pregunta {index} generada no tiene puntos numéricos.")

    if pregunta["tipo_pregunta"] == "opcion_multiple_unica":
        opciones = pregunta.get("opciones")
        if not isinstance(opciones, list) or len(opciones) != 4:
            raise ExternalServiceError(
                f"La pregunta {index} de opción única debe tener exactamente 4 opciones."
            )
        if sum(1 for o in opciones if isinstance(o, dict) and o.get("es_correcta")) != 1:
            raise ExternalServiceError(
                f"La pregunta {index} de opción única debe tener exactamente una correcta."
            )


def generar_evaluacion(
    llm: LLMClient,
    tema: str,
    num_preguntas: int,
    tipos_preguntas: list[str],
    instrucciones_adicionales: str | None = None,
) -> dict[str, Any]:
    """Draft an evaluacion with the LLM.

    The draft is not stored: every pregunta gets a temporary id and
    ``is_new`` so the editor can save it later.

    Returns:
        {"preguntas": [...]}

    Raises:
        ValidationError: Bad parameters
        ExternalServiceError: The LLM answer does not have the expected shape
    """
    if not tema or not tema.strip():
        raise ValidationError("El tema es obligatorio.")
    if num_preguntas < 1 or num_preguntas > MAX_PREGUNTAS:
        raise ValidationError(f"num_preguntas debe estar entre 1 y {MAX_PREGUNTAS}.")
    if not tipos_preguntas:
        raise ValidationError("Indica al menos un tipo de pregunta.")
    invalidos = [t for t in tipos_preguntas if t not in TIPOS_PREGUNTA]
    if invalidos:
        raise ValidationError(f"Tipos de pregunta inválidos: {', '.join(invalidos)}.")

    prompt = get_prompt(
        "ia/generar_evaluacion",
        tema=tema.strip(),
        num_preguntas=num_preguntas,
        tipos_preguntas=", ".join(tipos_preguntas),
        instrucciones_adicionales=(instrucciones_adicionales or "ninguna").strip(),
    )
    data = llm.simple_json(_system_prompt(), prompt)

    preguntas = data.get("preguntas") if isinstance(data, dict) else None
    if not isinstance(preguntas, list) or not preguntas:
        raise ExternalServiceError("La IA no devolvió una lista de preguntas.")

    tipos = set(tipos_preguntas)
    for index, pregunta in enumerate(preguntas, start=1):
        _validate_generated(pregunta, index, tipos)

    total = sum(p["puntos"] for p in preguntas)
    if len(preguntas) != num_preguntas or abs(total - 100) > 0.01:
        logger.warning(
            "ia.exam_mismatch",
            requested=num_preguntas,
            received=len(preguntas),
            total_points=total,
        )

    stamp = int(time.time() * 1000)
    for i, pregunta in enumerate(preguntas):
        pregunta["id"] = f"temp-ia-{stamp}-{i}"
        pregunta["is_new"] = True
        pregunta["orden"] = i
        pregunta["opciones"] = [
            {
                "id": f"temp-opt-ia-{stamp}-{i}-{j}",
                "texto_opcion": str(opcion.get("texto_opcion", "")),
                "es_correcta": bool(opcion.get("es_correcta")),
            }
            for j, opcion in enumerate(pregunta.get("opciones") or [])
            if isinstance(opcion, dict)
        ]

    logger.info("ia.exam_generated", tema=tema, preguntas=len(preguntas))
    return {"preguntas": preguntas}


# =============================================================================
# RUBRIC / GRADE SUGGESTION / SUMMARY
# =============================================================================


def generar_rubrica(llm: LLMClient, descripcion_actividad: str) -> dict[str, Any]:
    """Propose rubric criteria for an actividad description.

    Returns:
        {"criterios": [{"descripcion", "puntos"}], "total_puntos": float}
    """
    if not descripcion_actividad or not descripcion_actividad.strip():
        raise ValidationError("La descripción de la actividad es obligatoria.")

    data = llm.simple_json(
        _system_prompt(),
        get_prompt("ia/generar_rubrica", descripcion_actividad=descripcion_actividad.strip()),
    )
    criterios = data.get("criterios") if isinstance(data, dict) else None
    if not isinstance(criterios, list) or not criterios:
        raise ExternalServiceError("La IA no devolvió criterios de rúbrica.")

    limpios = []
    for criterio in criterios:
        if (
            not isinstance(criterio, dict)
            or not str(criterio.get("descripcion") or "").strip()
            or not _is_number(criterio.get("puntos"))
        ):
            raise ExternalServiceError("La IA devolvió un criterio de rúbrica inválido.")
        limpios.append(
            {"descripcion": criterio["descripcion"].strip(), "puntos": criterio["puntos"]}
        )

    return {"criterios": limpios, "total_puntos": sum(c["puntos"] for c in limpios)}


def sugerir_calificacion(
    llm: LLMClient, texto_pregunta: str, respuesta_alumno: str, puntos_maximos: float
) -> dict[str, Any]:
    """Suggest points and a comment for an open answer.

    Returns:
        {"puntos_sugeridos": float, "comentario_sugerido": str}
    """
    if not texto_pregunta or puntos_maximos is None or puntos_maximos <= 0:
        raise ValidationError("Faltan la pregunta o los puntos máximos.")

    data = llm.simple_json(
        _system_prompt(),
        get_prompt(
            "ia/sugerir_calificacion",
            texto_pregunta=texto_pregunta,
            respuesta_alumno=respuesta_alumno or "(sin respuesta)",
            puntos_maximos=puntos_maximos,
        ),
    )
    if not isinstance(data, dict) or not _is_number(data.get("puntos_sugeridos")):
        raise ExternalServiceError("La IA no devolvió una puntuación válida.")

    puntos = round1(min(max(float(data["puntos_sugeridos"]), 0.0), float(puntos_maximos)))
    return {
        "puntos_sugeridos": puntos,
        "comentario_sugerido": str(data.get("comentario_sugerido") or "").strip(),
    }


def resumen_alumno(llm: LLMClient, nombre_alumno: str, reporte: dict[str, Any]) -> str:
    """Short advisory summary of a holistic report, in bullets."""
    asistencia = reporte["asistencia"]
    lineas = [
        f"Asistencia: {asistencia['asistidas']}/{asistencia['total_sesiones']} "
        f"({asistencia['porcentaje']}%)",
        f"Promedio de actividades: {reporte['promedio_actividades']}",
        f"Promedio de evaluaciones: {reporte['promedio_evaluaciones']}",
    ]
    lineas += [
        f"- Actividad '{a['nombre']}': {a['calificacion']}" for a in reporte["actividades"]
    ]
    lineas += [
        f"- Evaluación '{e['titulo']}': {e['calificacion']}" for e in reporte["evaluaciones"]
    ]

    text = llm.simple_chat(
        _system_prompt(),
        get_prompt("ia/resumen_alumno", nombre_alumno=nombre_alumno, reporte="\n".join(lineas)),
    )
    return strip_think(text).strip()

"""Student and course reports.

Holistic report, at-risk list, unit and course grades, and statistics over
the final grades kept in the calificaciones sheet.
"""

from __future__ import annotations

import statistics
from typing import Any

import structlog

from aula.config.app_config import load_app_config
from aula.core import ia
from aula.core.alumnos import get_owned_alumno
from aula.core.materias import get_owned_materia, validate_unidad
from aula.db import (
    actividades_repository,
    alumnos_repository,
    asistencia_repository,
    evaluaciones_repository,
    reportes_repository,
)
from aula.db.alumnos_repository import AlumnoRecord
from aula.errors import ExternalServiceError, ValidationError
from aula.llm.client import LLMClient
from aula.scripts.client import ScriptClient, ScriptError
from aula.utils.validators import round1

logger = structlog.get_logger(__name__)

COMPONENTES = ("asistencia", "actividades", "evaluaciones")


def _average(values: list[float]) -> float:
    return round1(sum(values) / len(values)) if values else 0.0


def _attendance(alumno: AlumnoRecord, unidad: int | None = None) -> dict[str, Any]:
    registros = asistencia_repository.list_asistencias(
        alumno.materia_id, unidad=unidad, alumno_id=alumno.id
    )
    asistidas = sum(1 for r in registros if r.presente)
    total = len(registros)
    return {
        "total_sesiones": total,
        "asistidas": asistidas,
        "porcentaje": round1(asistidas / total * 100) if total else 0.0,
    }


def _build_report(alumno: AlumnoRecord) -> dict[str, Any]:
    actividades = [
        {"nombre": c.actividad_nombre, "calificacion": c.calificacion_obtenida}
        for c in actividades_repository.list_calificaciones_alumno(alumno.id)
        if c.estado == "calificado" and c.calificacion_obtenida is not None
    ]
    evaluaciones = [
        {"titulo": i["titulo"], "calificacion": i["calificacion_final"]}
        for i in evaluaciones_repository.list_intentos_alumno(alumno.id)
        if i["estado"] == "calificado" and i["calificacion_final"] is not None
    ]
    return {
        "alumno_id": alumno.id,
        "nombre_alumno": alumno.nombre_completo,
        "asistencia": _attendance(alumno),
        "actividades": actividades,
        "promedio_actividades": _average([a["calificacion"] for a in actividades]),
        "evaluaciones": evaluaciones,
        "promedio_evaluaciones": _average([e["calificacion"] for e in evaluaciones]),
    }


def reporte_holistico(docente_id: int, alumno_id: int) -> dict[str, Any]:
    """Attendance, graded actividades and graded evaluaciones of an alumno."""
    return _build_report(get_owned_alumno(docente_id, alumno_id))


def alumnos_en_riesgo(
    docente_id: int,
    materia_id: int,
    attendance_threshold: float | None = None,
    grade_threshold: float | None = None,
) -> list[dict[str, Any]]:
    """Alumnos below the attendance or grade thresholds, with reasons.

    The grade criterion uses the average of every graded actividad and
    evaluacion together. Alumnos without sessions are not flagged for
    attendance, and alumnos without grades are not flagged for grades.
    """
    get_owned_materia(docente_id, materia_id)
    grading = load_app_config().grading
    if attendance_threshold is None:
        attendance_threshold = grading.risk_attendance_threshold
    if grade_threshold is None:
        grade_threshold = grading.risk_grade_threshold

    en_riesgo = []
    for alumno in alumnos_repository.list_alumnos(materia_id):
        reporte = _build_report(alumno)
        asistencia = reporte["asistencia"]
        notas = [a["calificacion"] for a in reporte["actividades"]] + [
            e["calificacion"] for e in reporte["evaluaciones"]
        ]
        promedio = _average(notas)

        razones = []
        if asistencia["total_sesiones"] and asistencia["porcentaje"] < attendance_threshold:
            razones.append(f"Asistencia de {asistencia['porcentaje']}%")
        if notas and promedio < grade_threshold:
            razones.append(f"Promedio de {promedio}")

        if razones:
            en_riesgo.append(
                {
                    "alumno_id": alumno.id,
                    "matricula": alumno.matricula,
                    "nombre_completo": alumno.nombre_completo,
                    "porcentaje_asistencia": asistencia["porcentaje"],
                    "promedio_general": promedio,
                    "razones": razones,
                }
            )

    logger.info("reportes.at_risk", materia_id=materia_id, count=len(en_riesgo))
    return en_riesgo


def conteo_componentes(docente_id: int, materia_id: int, unidad: int) -> dict[str, Any]:
    materia = get_owned_materia(docente_id, materia_id)
    validate_unidad(materia, unidad)
    return {
        "counts": {
            "actividades": actividades_repository.count_actividades(materia_id, unidad),
            "evaluaciones": evaluaciones_repository.count_evaluaciones(materia_id, unidad),
        }
    }


def _validate_pesos(pesos: dict[str, float]) -> dict[str, float]:
    limpios = {}
    for componente in COMPONENTES:
        valor = pesos.get(componente, 0)
        if not isinstance(valor, (int, float)) or isinstance(valor, bool) or valor < 0:
            raise ValidationError(f"Peso inválido para {componente}.")
        limpios[componente] = float(valor)
    if abs(sum(limpios.values()) - 100) > 0.01:
        raise ValidationError("Los pesos deben sumar 100.")
    return limpios


def calcular_calificacion_unidad(
    docente_id: int,
    materia_id: int,
    unidad: int,
    pesos: dict[str, float],
    script: ScriptClient | None = None,
) -> dict[str, Any]:
    """Compute, store and optionally publish every alumno's unit grade.

    Component percentages: attendance share of the unit's sessions (100
    when the unit has none), mean of the unit's actividades and mean of
    its evaluaciones, where anything ungraded counts as 0.
    """
    materia = get_owned_materia(docente_id, materia_id)
    validate_unidad(materia, unidad)
    pesos = _validate_pesos(pesos)

    actividades = actividades_repository.list_actividades(materia_id, unidad)
    evaluaciones = evaluaciones_repository.list_evaluaciones(materia_id, unidad=unidad)
    if pesos["actividades"] > 0 and not actividades:
        raise ValidationError("La unidad no tiene actividades pero su peso es mayor a 0.")
    if pesos["evaluaciones"] > 0 and not evaluaciones:
        raise ValidationError("La unidad no tiene evaluaciones pero su peso es mayor a 0.")

    resultados = []
    for alumno in alumnos_repository.list_alumnos(materia_id):
        asistencia = _attendance(alumno, unidad)
        componentes = {
            "asistencia": asistencia["porcentaje"] if asistencia["total_sesiones"] else 100.0,
            "actividades": 0.0,
            "evaluaciones": 0.0,
        }
        if actividades:
            notas = {
                c.actividad_id: c.calificacion_obtenida or 0.0
                for c in actividades_repository.list_calificaciones_alumno(alumno.id, unidad)
                if c.estado == "calificado"
            }
            componentes["actividades"] = round1(
                sum(notas.get(a.id, 0.0) for a in actividades) / len(actividades)
            )
        if evaluaciones:
            notas = {
                i["evaluacion_id"]: i["calificacion_final"] or 0.0
                for i in evaluaciones_repository.list_intentos_alumno(alumno.id, unidad)
                if i["estado"] == "calificado"
            }
            componentes["evaluaciones"] = round1(
                sum(notas.get(e.id, 0.0) for e in evaluaciones) / len(evaluaciones)
            )

        final = round1(sum(componentes[c] * pesos[c] for c in COMPONENTES) / 100)
        reportes_repository.upsert_calificacion_unidad(
            materia_id, alumno.id, unidad, calificacion_final=final, **componentes
        )
        resultados.append(
            {
                "alumno_id": alumno.id,
                "matricula": alumno.matricula,
                "nombre_completo": alumno.nombre_completo,
                **componentes,
                "calificacion_final": final,
            }
        )

    sincronizado = False
    if script is not None and script.is_configured and materia.calificaciones_spreadsheet_id:
        try:
            script.call(
                "calculate_and_save_final_grade",
                calificaciones_spreadsheet_id=materia.calificaciones_spreadsheet_id,
                unidad=unidad,
                weights=pesos,
                calificaciones=resultados,
            )
            sincronizado = True
        except ScriptError as e:
            logger.warning("reportes.unit_sync_failed", materia_id=materia_id, error=str(e))

    logger.info(
        "reportes.unit_grades", materia_id=materia_id, unidad=unidad, alumnos=len(resultados)
    )
    return {"unidad": unidad, "calificaciones": resultados, "sincronizado": sincronizado}


def calificacion_final_materia(docente_id: int, materia_id: int) -> list[dict[str, Any]]:
    """Course grade per alumno: mean of stored unit finals over all units."""
    materia = get_owned_materia(docente_id, materia_id)
    por_alumno: dict[int, dict[int, float]] = {}
    for registro in reportes_repository.list_calificaciones_unidad(materia_id):
        por_alumno.setdefault(registro.alumno_id, {})[registro.unidad] = (
            registro.calificacion_final
        )

    resultados = []
    for alumno in alumnos_repository.list_alumnos(materia_id):
        unidades = por_alumno.get(alumno.id, {})
        resultados.append(
            {
                "alumno_id": alumno.id,
                "matricula": alumno.matricula,
                "nombre_completo": alumno.nombre_completo,
                "unidades": {str(u): unidades.get(u) for u in range(1, materia.unidades + 1)},
                "calificacion_final": round1(
                    sum(unidades.get(u, 0.0) for u in range(1, materia.unidades + 1))
                    / materia.unidades
                ),
            }
        )
    return resultados


def resumen_ia_alumno(docente_id: int, alumno_id: int, llm: LLMClient) -> dict[str, Any]:
    reporte = reporte_holistico(docente_id, alumno_id)
    return {"resumen": ia.resumen_alumno(llm, reporte["nombre_alumno"], reporte)}


def estadisticas_curso(docente_id: int, materia_id: int, script: ScriptClient) -> dict[str, Any]:
    """Summary statistics of the final grades in the calificaciones sheet.

    Non-numeric cells are skipped. Passing uses grading.passing_grade.
    """
    materia = get_owned_materia(docente_id, materia_id)
    if not materia.calificaciones_spreadsheet_id:
        raise ValidationError("La materia no tiene hoja de calificaciones.")
    if not script.is_configured:
        raise ExternalServiceError("El script remoto no está configurado.")
    try:
        data = script.call(
            "get_final_course_grades", spreadsheetId=materia.calificaciones_spreadsheet_id
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudieron leer las calificaciones: {e}") from e

    notas = []
    for valor in data.get("grades") or []:
        if isinstance(valor, bool):
            continue
        try:
            notas.append(float(valor))
        except (TypeError, ValueError):
            continue

    aprobatoria = load_app_config().grading.passing_grade
    if not notas:
        return {
            "total": 0,
            "promedio": None,
            "mediana": None,
            "minima": None,
            "maxima": None,
            "aprobados": 0,
            "reprobados": 0,
            "calificacion_aprobatoria": aprobatoria,
        }

    aprobados = sum(1 for n in notas if n >= aprobatoria)
    logger.info("reportes.course_statistics", materia_id=materia_id, total=len(notas))
    return {
        "total": len(notas),
        "promedio": round1(statistics.fmean(notas)),
        "mediana": round1(statistics.median(notas)),
        "minima": round1(min(notas)),
        "maxima": round1(max(notas)),
        "aprobados": aprobados,
        "reprobados": len(notas) - aprobados,
        "calificacion_aprobatoria": aprobatoria,
    }

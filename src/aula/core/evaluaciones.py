"""Evaluaciones (quizzes/exams): authoring, question bank and attempts.

Docente side: create and edit evaluaciones with their preguntas, keep a
reusable question bank, review attempts, grade open answers by hand and
push final grades to the grades sheet.

Alumno side: start (or resume) the single attempt allowed per
evaluacion, save answers, log focus changes and finish the attempt,
which triggers automatic grading.
"""

from __future__ import annotations

import sqlite3
from typing import Any

import structlog

from aula.core import calificador
from aula.core.calificador import TIPOS_PREGUNTA
from aula.core.materias import get_owned_materia, validate_unidad
from aula.db import alumnos_repository, evaluaciones_repository
from aula.db.evaluaciones_repository import (
    BancoPreguntaRecord,
    EvaluacionRecord,
    IntentoRecord,
    PreguntaRecord,
)
from aula.errors import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from aula.puzzles.crossword import normalize_answer
from aula.scripts.client import ScriptClient, ScriptError

logger = structlog.get_logger(__name__)

ESTADOS_EVALUACION = ("borrador", "publicado", "cerrado")
EVENTOS_FOCO = ("blur", "focus", "visibility_hidden", "visibility_visible")


# =============================================================================
# VALIDATION
# =============================================================================


def validate_pregunta(pregunta: dict[str, Any], index: int = 1) -> None:
    """Check one pregunta dict before it is stored.

    Raises:
        ValidationError: Describing the first problem found
    """
    prefix = f"Pregunta {index}:"
    if not str(pregunta.get("texto_pregunta") or "").strip():
        raise ValidationError(f"{prefix} falta el texto.")
    tipo = pregunta.get("tipo_pregunta")
    if tipo not in TIPOS_PREGUNTA:
        raise ValidationError(f"{prefix} tipo de pregunta inválido '{tipo}'.")
    puntos = pregunta.get("puntos")
    if not isinstance(puntos, (int, float)) or isinstance(puntos, bool) or puntos < 0:
        raise ValidationError(f"{prefix} puntos inválidos.")

    opciones = pregunta.get("opciones") or []
    correctas = sum(1 for o in opciones if o.get("es_correcta"))
    datos = pregunta.get("datos_extra") or {}

    if tipo == "opcion_multiple_unica":
        if len(opciones) < 2 or correctas != 1:
            raise ValidationError(
                f"{prefix} requiere al menos 2 opciones y exactamente una correcta."
            )
    elif tipo == "opcion_multiple_multiple":
        if len(opciones) < 2 or correctas < 1:
            raise ValidationError(
                f"{prefix} requiere al menos 2 opciones y una o más correctas."
            )
    elif tipo == "sopa_letras":
        palabras = [p for p in datos.get("palabras", []) if normalize_answer(str(p))]
        if not palabras:
            raise ValidationError(f"{prefix} la sopa de letras necesita palabras.")
    elif tipo == "crucigrama":
        entradas = datos.get("entradas", [])
        if not entradas or any(
            not isinstance(e, dict) or not normalize_answer(e.get("palabra")) or not e.get("pista")
            for e in entradas
        ):
            raise ValidationError(
                f"{prefix} el crucigrama necesita entradas con palabra y pista."
            )
        layout, _ = calificador.crossword_layout(entradas)
        if layout.unplaced:
            raise ValidationError(
                f"{prefix} estas palabras no se cruzan con el resto del crucigrama: "
                f"{', '.join(layout.unplaced)}."
            )
    elif tipo == "relacionar_columnas":
        columnas = datos.get("columnas", [])
        grupos = [c.get("grupo") for c in columnas if isinstance(c, dict)]
        if not columnas or not {"A", "B"} <= set(grupos):
            raise ValidationError(
                f"{prefix} relacionar columnas necesita elementos en los grupos A y B."
            )
        _validate_pares(datos.get("pares_correctos"), grupos.count("A"), grupos.count("B"), prefix)


def _validate_pares(pares: Any, total_a: int, total_b: int, prefix: str) -> None:
    """pares_correctos: non-empty list of [index_A, index_B] within each group."""
    if not isinstance(pares, list) or not pares:
        raise ValidationError(f"{prefix} relacionar columnas necesita pares_correctos.")
    for par in pares:
        if (
            not isinstance(par, (list, tuple))
            or len(par) != 2
            or any(not isinstance(i, int) or isinstance(i, bool) for i in par)
            or not (0 <= par[0] < total_a and 0 <= par[1] < total_b)
        ):
            raise ValidationError(
                f"{prefix} par inválido {par!r}: usa [índice en A, índice en B]."
            )


def _validate_preguntas(preguntas: list[dict[str, Any]]) -> None:
    for index, pregunta in enumerate(preguntas, start=1):
        validate_pregunta(pregunta, index)


# =============================================================================
# DOCENTE: EVALUACIONES
# =============================================================================


def get_owned_evaluacion(docente_id: int, evaluacion_id: int) -> EvaluacionRecord:
    evaluacion = evaluaciones_repository.get_evaluacion(evaluacion_id)
    if evaluacion is None:
        raise NotFoundError(f"Evaluación {evaluacion_id} no encontrada.")
    get_owned_materia(docente_id, evaluacion.materia_id)
    return evaluacion


def create_evaluacion(
    docente_id: int,
    materia_id: int,
    titulo: str,
    unidad: int = 1,
    descripcion: str | None = None,
    tiempo_limite_minutos: int | None = None,
    preguntas: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Create an evaluacion (as 'borrador') with its preguntas."""
    materia = get_owned_materia(docente_id, materia_id)
    if not titulo or not titulo.strip():
        raise ValidationError("El título es obligatorio.")
    validate_unidad(materia, unidad)
    preguntas = preguntas or []
    _validate_preguntas(preguntas)

    evaluacion_id = evaluaciones_repository.insert_evaluacion(
        materia_id=materia_id,
        docente_id=docente_id,
        titulo=titulo.strip(),
        descripcion=descripcion,
        unidad=unidad,
        tiempo_limite_minutos=tiempo_limite_minutos,
    )
    if preguntas:
        evaluaciones_repository.replace_preguntas(evaluacion_id, preguntas)

    logger.info(
        "evaluaciones.created", evaluacion_id=evaluacion_id, preguntas=len(preguntas)
    )
    return get_evaluacion_detalle(docente_id, evaluacion_id)


def get_evaluacion_detalle(docente_id: int, evaluacion_id: int) -> dict[str, Any]:
    evaluacion = get_owned_evaluacion(docente_id, evaluacion_id)
    preguntas = evaluaciones_repository.list_preguntas(evaluacion_id)
    return {
        "evaluacion": evaluacion,
        "preguntas": preguntas,
        "total_puntos": sum(p.puntos for p in preguntas),
    }


def list_evaluaciones(
    docente_id: int, materia_id: int, unidad: int | None = None
) -> list[EvaluacionRecord]:
    get_owned_materia(docente_id, materia_id)
    return evaluaciones_repository.list_evaluaciones(materia_id, unidad=unidad)


def update_evaluacion(
    docente_id: int,
    evaluacion_id: int,
    preguntas: list[dict[str, Any]] | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Update an evaluacion; preguntas are replaced as a whole.

    Raises:
        ConflictError: Replacing preguntas once alumnos have attempts
    """
    evaluacion = get_owned_evaluacion(docente_id, evaluacion_id)
    if fields.get("estado") is not None and fields["estado"] not in ESTADOS_EVALUACION:
        raise ValidationError("Estado de evaluación inválido.")
    if fields.get("unidad") is not None:
        validate_unidad(get_owned_materia(docente_id, evaluacion.materia_id), fields["unidad"])

    if preguntas is not None:
        _validate_preguntas(preguntas)
        if evaluaciones_repository.list_intentos(evaluacion_id):
            raise ConflictError(
                "No se pueden modificar las preguntas: ya hay intentos de alumnos."
            )
        evaluaciones_repository.replace_preguntas(evaluacion_id, preguntas)

    evaluaciones_repository.update_evaluacion(evaluacion_id, **fields)
    return get_evaluacion_detalle(docente_id, evaluacion_id)


def delete_evaluacion(docente_id: int, evaluacion_id: int) -> None:
    get_owned_evaluacion(docente_id, evaluacion_id)
    evaluaciones_repository.delete_evaluacion(evaluacion_id)
    logger.info("evaluaciones.deleted", evaluacion_id=evaluacion_id)


# =============================================================================
# DOCENTE: BANCO DE PREGUNTAS
# =============================================================================


def add_banco_pregunta(docente_id: int, pregunta: dict[str, Any]) -> BancoPreguntaRecord:
    validate_pregunta(pregunta)
    pregunta_id = evaluaciones_repository.insert_banco_pregunta(docente_id, pregunta)
    return evaluaciones_repository.get_banco_pregunta(pregunta_id)


def list_banco_preguntas(
    docente_id: int, tipo_pregunta: str | None = None
) -> list[BancoPreguntaRecord]:
    return evaluaciones_repository.list_banco_preguntas(docente_id, tipo_pregunta)


def _get_owned_banco(docente_id: int, pregunta_id: int) -> BancoPreguntaRecord:
    pregunta = evaluaciones_repository.get_banco_pregunta(pregunta_id)
    if pregunta is None or pregunta.docente_id != docente_id:
        raise NotFoundError(f"Pregunta {pregunta_id} no encontrada en el banco.")
    return pregunta


def delete_banco_pregunta(docente_id: int, pregunta_id: int) -> None:
    _get_owned_banco(docente_id, pregunta_id)
    evaluaciones_repository.delete_banco_pregunta(pregunta_id)


def copiar_banco_a_evaluacion(
    docente_id: int, evaluacion_id: int, banco_ids: list[int]
) -> dict[str, Any]:
    """Append bank preguntas to an evaluacion, after its current ones."""
    get_owned_evaluacion(docente_id, evaluacion_id)
    if evaluaciones_repository.list_intentos(evaluacion_id):
        raise ConflictError(
            "No se pueden agregar preguntas: ya hay intentos de alumnos."
        )
    existing = evaluaciones_repository.list_preguntas(evaluacion_id)
    next_orden = max((p.orden for p in existing), default=-1) + 1

    for offset, banco_id in enumerate(banco_ids):
        banco = _get_owned_banco(docente_id, banco_id)
        evaluaciones_repository.insert_pregunta(
            evaluacion_id,
            {
                "texto_pregunta": banco.texto_pregunta,
                "tipo_pregunta": banco.tipo_pregunta,
                "puntos": banco.puntos,
                "datos_extra": banco.datos_extra,
                "opciones": banco.opciones,
                "orden": next_orden + offset,
            },
        )

    return get_evaluacion_detalle(docente_id, evaluacion_id)


# =============================================================================
# ALUMNO: INTENTOS
# =============================================================================


def _public_datos_extra(pregunta: PreguntaRecord) -> dict[str, Any] | None:
    """Datos extra an alumno may see (never the solutions)."""
    datos = pregunta.datos_extra or {}
    if pregunta.tipo_pregunta == "sopa_letras":
        layout = calificador.word_search_layout(pregunta)
        return {"grid": layout.grid, "palabras": [w.word for w in layout.words]}

    if pregunta.tipo_pregunta == "crucigrama":
        layout, colocadas = calificador.crossword_layout(datos.get("entradas", []))
        palabras = [
            {
                "indice": indice,
                "numero": word.number,
                "pista": word.clue,
                "startx": word.startx,
                "starty": word.starty,
                "orientation": word.orientation,
                "longitud": len(word.answer),
            }
            for indice, word in colocadas
        ]
        return {"rows": layout.rows, "cols": layout.cols, "palabras": palabras}

    if pregunta.tipo_pregunta == "relacionar_columnas":
        return {"columnas": datos.get("columnas", [])}

    return None


def _pregunta_publica(pregunta: PreguntaRecord) -> dict[str, Any]:
    return {
        "id": pregunta.id,
        "texto_pregunta": pregunta.texto_pregunta,
        "tipo_pregunta": pregunta.tipo_pregunta,
        "puntos": pregunta.puntos,
        "orden": pregunta.orden,
        "opciones": [{"id": o.id, "texto_opcion": o.texto_opcion} for o in pregunta.opciones],
        "datos_extra": _public_datos_extra(pregunta),
    }


def _get_alumno_intento(alumno_id: int, intento_id: int) -> IntentoRecord:
    intento = evaluaciones_repository.get_intento(intento_id)
    if intento is None:
        raise NotFoundError(f"Intento {intento_id} no encontrado.")
    if intento.alumno_id != alumno_id:
        raise PermissionDeniedError("Este intento no te pertenece.")
    return intento


def list_evaluaciones_alumno(alumno_id: int) -> list[dict[str, Any]]:
    """Published evaluaciones of the alumno's materia with attempt status."""
    alumno = alumnos_repository.get_alumno(alumno_id)
    if alumno is None:
        raise NotFoundError("Alumno no encontrado.")
    result = []
    for evaluacion in evaluaciones_repository.list_evaluaciones(
        alumno.materia_id, estado="publicado"
    ):
        intento = evaluaciones_repository.get_intento_alumno(evaluacion.id, alumno_id)
        result.append(
            {
                "id": evaluacion.id,
                "titulo": evaluacion.titulo,
                "unidad": evaluacion.unidad,
                "tiempo_limite_minutos": evaluacion.tiempo_limite_minutos,
                "estado_intento": intento.estado if intento else None,
                "calificacion_final": intento.calificacion_final if intento else None,
            }
        )
    return result


def iniciar_intento(alumno_id: int, evaluacion_id: int) -> dict[str, Any]:
    """Start the alumno's attempt, or resume it if still in progress.

    Raises:
        NotFoundError: Evaluacion missing or not published for the alumno
        ConflictError: The attempt was already finished
    """
    alumno = alumnos_repository.get_alumno(alumno_id)
    evaluacion = evaluaciones_repository.get_evaluacion(evaluacion_id)
    if (
        alumno is None
        or evaluacion is None
        or evaluacion.materia_id != alumno.materia_id
        or evaluacion.estado != "publicado"
    ):
        raise NotFoundError("Evaluación no disponible.")

    intento = evaluaciones_repository.get_intento_alumno(evaluacion_id, alumno_id)
    if intento is None:
        try:
            intento_id = evaluaciones_repository.insert_intento(evaluacion_id, alumno_id)
        except sqlite3.IntegrityError:
            # Another request created it first
            intento = evaluaciones_repository.get_intento_alumno(evaluacion_id, alumno_id)
        else:
            intento = evaluaciones_repository.get_intento(intento_id)
            logger.info("intentos.started", intento_id=intento_id, alumno_id=alumno_id)
    if intento.estado != "en_progreso":
        raise ConflictError("Ya completaste esta evaluación.")

    respuestas = {
        r.pregunta_id: r.respuesta
        for r in evaluaciones_repository.list_respuestas(intento.id)
    }
    return {
        "intento": intento,
        "evaluacion": {
            "id": evaluacion.id,
            "titulo": evaluacion.titulo,
            "descripcion": evaluacion.descripcion,
            "tiempo_limite_minutos": evaluacion.tiempo_limite_minutos,
        },
        "preguntas": [
            _pregunta_publica(p) for p in evaluaciones_repository.list_preguntas(evaluacion_id)
        ],
        "respuestas": respuestas,
    }


def guardar_respuesta(
    alumno_id: int, intento_id: int, pregunta_id: int, respuesta: Any
) -> None:
    intento = _get_alumno_intento(alumno_id, intento_id)
    if intento.estado != "en_progreso":
        raise ConflictError("El intento ya fue enviado.")
    pregunta_ids = {p.id for p in evaluaciones_repository.list_preguntas(intento.evaluacion_id)}
    if pregunta_id not in pregunta_ids:
        raise ValidationError("La pregunta no pertenece a esta evaluación.")
    evaluaciones_repository.upsert_respuesta(intento_id, pregunta_id, respuesta)


def log_focus_change(alumno_id: int, intento_id: int, tipo_evento: str) -> None:
    """Record that the alumno left or came back to the exam tab."""
    if tipo_evento not in EVENTOS_FOCO:
        raise ValidationError(
            f"tipo_evento inválido. Usa uno de: {', '.join(EVENTOS_FOCO)}."
        )
    _get_alumno_intento(alumno_id, intento_id)
    evaluaciones_repository.insert_registro_actividad(intento_id, tipo_evento)
    logger.debug("intentos.focus_change", intento_id=intento_id, evento=tipo_evento)


def calificar_intento(intento_id: int) -> dict[str, Any]:
    """Auto-grade every answer of a finished attempt.

    Answers already graded by hand (open questions) are kept. The attempt
    is 'calificado' when no open answer is pending, else 'completado'.
    """
    intento = evaluaciones_repository.get_intento(intento_id)
    if intento is None:
        raise NotFoundError(f"Intento {intento_id} no encontrado.")

    preguntas = evaluaciones_repository.list_preguntas(intento.evaluacion_id)
    respuestas = {r.pregunta_id: r for r in evaluaciones_repository.list_respuestas(intento_id)}

    puntos: dict[int, float | None] = {}
    pendientes = 0
    for pregunta in preguntas:
        respuesta = respuestas.get(pregunta.id)
        if pregunta.tipo_pregunta == "abierta":
            if respuesta is None or not str(respuesta.respuesta or "").strip():
                # Unanswered open questions score 0 without review
                puntos[pregunta.id] = 0.0
                evaluaciones_repository.grade_respuesta(intento_id, pregunta.id, 0.0, False)
                continue
            puntos[pregunta.id] = respuesta.puntos_obtenidos
            if respuesta.puntos_obtenidos is None:
                pendientes += 1
            continue

        grade = calificador.grade_question(
            pregunta, respuesta.respuesta if respuesta else None
        )
        puntos[pregunta.id] = grade.puntos
        evaluaciones_repository.grade_respuesta(
            intento_id, pregunta.id, grade.puntos, grade.es_correcta
        )

    calificacion = calificador.final_grade(preguntas, puntos)
    estado = "calificado" if pendientes == 0 else "completado"
    evaluaciones_repository.update_intento(
        intento_id, estado=estado, calificacion_final=calificacion, finished=True
    )

    logger.info(
        "intentos.graded",
        intento_id=intento_id,
        calificacion=calificacion,
        pending_open=pendientes,
    )
    return {
        "intento_id": intento_id,
        "estado": estado,
        "calificacion_final": calificacion,
        "preguntas_pendientes": pendientes,
    }


def finalizar_intento(
    alumno_id: int, intento_id: int, respuestas: dict[int, Any] | None = None
) -> dict[str, Any]:
    """Submit the attempt (optionally with last answers) and grade it."""
    intento = _get_alumno_intento(alumno_id, intento_id)
    if intento.estado != "en_progreso":
        raise ConflictError("El intento ya fue enviado.")
    for pregunta_id, respuesta in (respuestas or {}).items():
        guardar_respuesta(alumno_id, intento_id, int(pregunta_id), respuesta)
    return calificar_intento(intento_id)


# =============================================================================
# DOCENTE: REVISIÓN
# =============================================================================


def list_intentos(docente_id: int, evaluacion_id: int) -> list[dict[str, Any]]:
    """Attempts of an evaluacion with their focus-change counts."""
    get_owned_evaluacion(docente_id, evaluacion_id)
    result = []
    for intento in evaluaciones_repository.list_intentos(evaluacion_id):
        registros = evaluaciones_repository.list_registros_actividad(intento.id)
        result.append(
            {
                "intento": intento,
                "cambios_de_foco": sum(
                    1 for r in registros if r["tipo_evento"] in ("blur", "visibility_hidden")
                ),
            }
        )
    return result


def get_intento_detalle(docente_id: int, intento_id: int) -> dict[str, Any]:
    intento = evaluaciones_repository.get_intento(intento_id)
    if intento is None:
        raise NotFoundError(f"Intento {intento_id} no encontrado.")
    get_owned_evaluacion(docente_id, intento.evaluacion_id)
    return {
        "intento": intento,
        "preguntas": evaluaciones_repository.list_preguntas(intento.evaluacion_id),
        "respuestas": evaluaciones_repository.list_respuestas(intento_id),
        "registros_actividad": evaluaciones_repository.list_registros_actividad(intento_id),
    }


def calificar_respuesta_manual(
    docente_id: int,
    intento_id: int,
    pregunta_id: int,
    puntos: float,
    comentario: str | None = None,
) -> dict[str, Any]:
    """Grade an answer by hand and recompute the attempt.

    Points are clamped to [0, pregunta.puntos].
    """
    intento = evaluaciones_repository.get_intento(intento_id)
    if intento is None:
        raise NotFoundError(f"Intento {intento_id} no encontrado.")
    get_owned_evaluacion(docente_id, intento.evaluacion_id)
    if intento.estado == "en_progreso":
        raise ConflictError("El intento aún no ha sido enviado.")

    pregunta = next(
        (
            p
            for p in evaluaciones_repository.list_preguntas(intento.evaluacion_id)
            if p.id == pregunta_id
        ),
        None,
    )
    if pregunta is None:
        raise NotFoundError("La pregunta no pertenece a esta evaluación.")

    puntos = min(max(float(puntos), 0.0), pregunta.puntos)
    evaluaciones_repository.grade_respuesta(
        intento_id, pregunta_id, puntos, puntos >= pregunta.puntos, comentario
    )
    return calificar_intento(intento_id)


def sincronizar_evaluacion_sheets(
    docente_id: int, evaluacion_id: int, script: ScriptClient
) -> dict[str, Any]:
    """Write the final grades of graded attempts to the grades sheet."""
    evaluacion = get_owned_evaluacion(docente_id, evaluacion_id)
    materia = get_owned_materia(docente_id, evaluacion.materia_id)

    calificaciones = [
        {
            "matricula": i.matricula,
            "nombre": i.alumno_nombre,
            "calificacion_final": i.calificacion_final,
        }
        for i in evaluaciones_repository.list_intentos(evaluacion_id)
        if i.estado == "calificado" and i.calificacion_final is not None
    ]
    if not calificaciones:
        return {"message": "No hay calificaciones para sincronizar.", "sincronizadas": 0}
    if not materia.calificaciones_spreadsheet_id:
        raise ValidationError("La materia no tiene hoja de calificaciones.")
    if not script.is_configured:
        raise ExternalServiceError("El script remoto no está configurado.")

    try:
        script.call(
            "guardar_calificaciones_evaluacion",
            calificaciones_spreadsheet_id=materia.calificaciones_spreadsheet_id,
            evaluacion_id=evaluacion_id,
            titulo_evaluacion=evaluacion.titulo,
            unidad=evaluacion.unidad,
            calificaciones=calificaciones,
        )
    except ScriptError as e:
        raise ExternalServiceError(f"No se pudieron sincronizar las calificaciones: {e}") from e

    logger.info(
        "evaluaciones.synced", evaluacion_id=evaluacion_id, count=len(calificaciones)
    )
    return {
        "message": f"{len(calificaciones)} calificaciones sincronizadas.",
        "sincronizadas": len(calificaciones),
    }

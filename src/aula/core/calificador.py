"""Automatic grading of evaluacion answers.

Answer formats by question type:
- opcion_multiple_unica: the chosen opcion id
- opcion_multiple_multiple: list of chosen opcion ids
- abierta: free text (graded by hand)
- sopa_letras: list of words found
- crucigrama: {"<entry index>": "answer"} or a list aligned with the entries
- relacionar_columnas: list of [index_A, index_B] pairs, where index_A
  counts the group A items in order and index_B the group B items

Answers of the wrong shape score 0. Puzzle questions are graded over what
the alumno was shown: words the layout could not place do not count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from aula.db.evaluaciones_repository import PreguntaRecord
from aula.puzzles.crossword import (
    CrosswordLayout,
    CrosswordWord,
    generate_crossword,
    normalize_answer,
)
from aula.puzzles.word_search import WordSearchLayout, generate_word_search
from aula.utils.validators import round1

TIPOS_PREGUNTA = (
    "opcion_multiple_unica",
    "opcion_multiple_multiple",
    "abierta",
    "sopa_letras",
    "crucigrama",
    "relacionar_columnas",
)

WORD_SEARCH_SIZE = 12


@dataclass
class QuestionGrade:
    """Grade of one answer. puntos is None while it awaits manual review."""

    pregunta_id: int
    puntos: float | None
    es_correcta: bool | None

    @property
    def pending(self) -> bool:
        return self.puntos is None


# =============================================================================
# PUZZLE LAYOUTS
# =============================================================================


def word_search_layout(pregunta: PreguntaRecord) -> WordSearchLayout:
    """Grid shown to every alumno, seeded by the pregunta id so it is stable."""
    return generate_word_search(
        [str(p) for p in (pregunta.datos_extra or {}).get("palabras", [])],
        WORD_SEARCH_SIZE,
        WORD_SEARCH_SIZE,
        seed=pregunta.id,
    )


def crossword_layout(
    entradas: list[dict[str, Any]],
) -> tuple[CrosswordLayout, list[tuple[int, CrosswordWord]]]:
    """Layout of a crucigrama plus the entry index of every placed word."""
    claves = [
        (normalize_answer(str(e.get("palabra") or "")), str(e.get("pista") or "").strip())
        for e in entradas
    ]
    layout = generate_crossword([(pista, palabra) for palabra, pista in claves])

    pendientes = dict(enumerate(claves))
    colocadas = []
    for word in layout.words:
        indice = next(i for i, clave in pendientes.items() if clave == (word.answer, word.clue))
        del pendientes[indice]
        colocadas.append((indice, word))
    return layout, colocadas


# =============================================================================
# GRADERS
# =============================================================================


def _as_int_set(value: Any) -> set[int]:
    if value is None:
        return set()
    items = value if isinstance(value, (list, tuple, set)) else [value]
    result = set()
    for item in items:
        try:
            result.add(int(item))
        except (TypeError, ValueError):
            continue
    return result


def int_pairs(value: Any) -> set[tuple[int, int]]:
    """Well-formed [a, b] integer pairs of a list; anything else is dropped."""
    if not isinstance(value, list):
        return set()
    pares = set()
    for par in value:
        if not isinstance(par, (list, tuple)) or len(par) != 2:
            continue
        try:
            pares.add((int(par[0]), int(par[1])))
        except (TypeError, ValueError):
            continue
    return pares


def _fraction_single(pregunta: PreguntaRecord, respuesta: Any) -> float:
    correctas = {o.id for o in pregunta.opciones if o.es_correcta}
    elegidas = _as_int_set(respuesta)
    return 1.0 if len(elegidas) == 1 and elegidas <= correctas else 0.0


def _fraction_multiple(pregunta: PreguntaRecord, respuesta: Any) -> float:
    correctas = {o.id for o in pregunta.opciones if o.es_correcta}
    if not correctas:
        return 0.0
    elegidas = _as_int_set(respuesta)
    aciertos = len(elegidas & correctas)
    errores = len(elegidas - correctas)
    return max(0.0, (aciertos - errores) / len(correctas))


def _fraction_word_search(pregunta: PreguntaRecord, respuesta: Any) -> float:
    if not isinstance(respuesta, list):
        return 0.0
    esperadas = {w.word for w in word_search_layout(pregunta).words}
    if not esperadas:
        return 0.0
    encontradas = {normalize_answer(str(p)) for p in respuesta}
    return len(esperadas & encontradas) / len(esperadas)


def _fraction_crossword(pregunta: PreguntaRecord, respuesta: Any) -> float:
    _, colocadas = crossword_layout((pregunta.datos_extra or {}).get("entradas", []))
    if not colocadas:
        return 0.0
    if isinstance(respuesta, list):
        respuestas = {str(i): r for i, r in enumerate(respuesta)}
    elif isinstance(respuesta, dict):
        respuestas = {str(k): v for k, v in respuesta.items()}
    else:
        return 0.0

    aciertos = sum(
        1
        for indice, word in colocadas
        if normalize_answer(str(respuestas.get(str(indice)) or "")) == word.answer
    )
    return aciertos / len(colocadas)


def _fraction_matching(pregunta: PreguntaRecord, respuesta: Any) -> float:
    correctos = int_pairs((pregunta.datos_extra or {}).get("pares_correctos"))
    if not correctos:
        return 0.0
    return len(correctos & int_pairs(respuesta)) / len(correctos)


_GRADERS = {
    "opcion_multiple_unica": _fraction_single,
    "opcion_multiple_multiple": _fraction_multiple,
    "sopa_letras": _fraction_word_search,
    "crucigrama": _fraction_crossword,
    "relacionar_columnas": _fraction_matching,
}


def grade_question(pregunta: PreguntaRecord, respuesta: Any) -> QuestionGrade:
    """Grade one answer.

    Open questions are left pending. Unanswered questions score 0.
    """
    if pregunta.tipo_pregunta == "abierta":
        return QuestionGrade(pregunta_id=pregunta.id, puntos=None, es_correcta=None)

    grader = _GRADERS.get(pregunta.tipo_pregunta)
    fraction = grader(pregunta, respuesta) if grader and respuesta is not None else 0.0
    return QuestionGrade(
        pregunta_id=pregunta.id,
        puntos=round(fraction * pregunta.puntos, 2),
        es_correcta=fraction >= 1.0,
    )


def final_grade(preguntas: list[PreguntaRecord], puntos: dict[int, float | None]) -> float:
    """Obtained points over total points, scaled to 100 with one decimal.

    Pending answers count as 0 until graded.
    """
    total = sum(p.puntos for p in preguntas)
    if total <= 0:
        return 0.0
    obtenidos = sum(puntos.get(p.id) or 0.0 for p in preguntas)
    return round1(obtenidos / total * 100)

"""Crossword and word-search layout endpoints (no authentication)."""

from typing import Any

from fastapi import APIRouter

from aula.config import load_app_config
from aula.errors import ValidationError
from aula.puzzles import generate_crossword, generate_word_search
from aula.web.schemas import CrosswordRequest, WordSearchRequest

router = APIRouter(prefix="/api/puzzles", tags=["puzzles"])


@router.post("/crucigrama")
def crucigrama(request: CrosswordRequest) -> dict[str, Any]:
    """Lay out a crossword from clue/answer pairs."""
    if not request.palabras:
        raise ValidationError("Debes enviar al menos una palabra con su pista.")
    limits = load_app_config().puzzles
    layout = generate_crossword(
        [entry.model_dump() for entry in request.palabras],
        max_retries=limits.crossword_max_retries,
        max_passes=limits.crossword_max_passes,
        margin=limits.crossword_margin,
    )
    if not layout.words:
        raise ValidationError("No se pudo colocar ninguna palabra en el crucigrama.")
    return layout.to_dict()


@router.post("/sopa")
def sopa_de_letras(request: WordSearchRequest) -> dict[str, Any]:
    """Lay out a word search; words that do not fit are reported in 'error'."""
    limits = load_app_config().puzzles
    layout = generate_word_search(
        request.palabras,
        request.filas,
        request.columnas,
        backtrack_limit=limits.word_search_backtrack_limit,
        fill_random=request.relleno_aleatorio,
        max_retries=limits.word_search_max_retries,
    )
    return layout.to_dict()

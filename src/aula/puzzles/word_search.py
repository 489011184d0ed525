"""Word search (sopa de letras) layout generator.

Places words in a letter grid in any of eight directions using randomised
backtracking. The search is bounded by an attempt counter; when the
counter runs out the best partial layout found so far is returned. A
wrapper grows the grid one row and column at a time until every word
fits or the retry limit is reached.
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from typing import Any

import structlog

from aula.errors import ValidationError
from aula.puzzles.crossword import normalize_answer

logger = structlog.get_logger(__name__)

# Direction name -> (row step, column step)
DIRECTIONS: dict[str, tuple[int, int]] = {
    "horizontal": (0, 1),
    "horizontal-reverse": (0, -1),
    "vertical": (1, 0),
    "vertical-reverse": (-1, 0),
    "diagonal-down-right": (1, 1),
    "diagonal-down-left": (1, -1),
    "diagonal-up-right": (-1, 1),
    "diagonal-up-left": (-1, -1),
}

MIN_SIZE = 5
DEFAULT_BACKTRACK_LIMIT = 2000
INCOMPLETE_MESSAGE = "Layout incompleto tras reintentos."


@dataclass
class PlacedWord:
    """A word in the grid. startx is the column, starty the row."""

    word: str
    startx: int
    starty: int
    direction: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "startx": self.startx,
            "starty": self.starty,
            "direction": self.direction,
        }


@dataclass
class WordSearchLayout:
    """Result of a generation run."""

    grid: list[list[str]]
    words: list[PlacedWord]
    final_rows: int
    final_cols: int
    unplaced: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "grid": self.grid,
            "words": [w.to_dict() for w in self.words],
            "final_rows": self.final_rows,
            "final_cols": self.final_cols,
            "unplaced": list(self.unplaced),
            "error": self.error,
        }


class _Search:
    """One bounded backtracking search over a fixed-size grid."""

    def __init__(self, words: list[str], rows: int, cols: int, limit: int, rng: random.Random):
        self.words = words
        self.rows = rows
        self.cols = cols
        self.limit = limit
        self.rng = rng
        self.attempts = 0
        self.grid: list[list[str | None]] = [[None] * cols for _ in range(rows)]
        self.placed: list[PlacedWord] = []
        self.best: tuple[list[list[str | None]], list[PlacedWord]] = ([], [])

    def _fits(self, word: str, row: int, col: int, dr: int, dc: int) -> bool:
        end_row = row + (len(word) - 1) * dr
        end_col = col + (len(word) - 1) * dc
        if not (0 <= end_row < self.rows and 0 <= end_col < self.cols):
            return False
        new_cells = 0
        for i, letter in enumerate(word):
            existing = self.grid[row + i * dr][col + i * dc]
            if existing is None:
                new_cells += 1
            elif existing != letter:
                return False
        # A word hidden entirely inside other words does not count
        return new_cells > 0

    def _snapshot(self) -> None:
        if len(self.placed) > len(self.best[1]) or not self.best[0]:
            self.best = ([list(r) for r in self.grid], list(self.placed))

    def run(self, index: int = 0) -> bool:
        self._snapshot()
        if index == len(self.words):
            return True

        word = self.words[index]
        candidates = [
            (name, row, col)
            for name in DIRECTIONS
            for row in range(self.rows)
            for col in range(self.cols)
        ]
        self.rng.shuffle(candidates)

        for name, row, col in candidates:
            self.attempts += 1
            if self.attempts > self.limit:
                return False

            dr, dc = DIRECTIONS[name]
            if not self._fits(word, row, col, dr, dc):
                continue

            written = []
            for i, letter in enumerate(word):
                r, c = row + i * dr, col + i * dc
                if self.grid[r][c] is None:
                    self.grid[r][c] = letter
                    written.append((r, c))
            self.placed.append(PlacedWord(word=word, startx=col, starty=row, direction=name))

            if self.run(index + 1):
                return True

            self.placed.pop()
            for r, c in written:
                self.grid[r][c] = None

            if self.attempts > self.limit:
                return False

        return False


def _validate(words: Any, rows: Any, cols: Any) -> list[str]:
    if not isinstance(words, list) or not words:
        raise ValidationError("'palabras' debe ser una lista con al menos una palabra.")
    if not isinstance(rows, int) or isinstance(rows, bool) or rows <= 0:
        raise ValidationError("'filas' debe ser un entero positivo.")
    if not isinstance(cols, int) or isinstance(cols, bool) or cols <= 0:
        raise ValidationError("'columnas' debe ser un entero positivo.")

    normalized = [normalize_answer(str(w)) for w in words]
    normalized = [w for w in normalized if w]
    if not normalized:
        raise ValidationError("'palabras' no contiene palabras válidas.")
    return normalized


def _fill(grid: list[list[str | None]], fill_random: bool, rng: random.Random) -> list[list[str]]:
    return [
        [
            cell if cell is not None else (rng.choice(string.ascii_uppercase) if fill_random else "")
            for cell in row
        ]
        for row in grid
    ]


def generate_word_search(
    words: list[str],
    rows: int,
    cols: int,
    backtrack_limit: int = DEFAULT_BACKTRACK_LIMIT,
    fill_random: bool = True,
    max_retries: int = 5,
    seed: int | None = None,
) -> WordSearchLayout:
    """Generate a word search grid.

    The starting size is raised to fit the longest word (and at least
    MIN_SIZE). Each failed attempt grows rows and columns by one.

    Args:
        words: Words to hide
        rows: Requested rows
        cols: Requested columns
        backtrack_limit: Placement attempts allowed per search
        fill_random: Fill empty cells with random A-Z letters
        max_retries: Number of growth steps after the first attempt
        seed: Seed for reproducible layouts

    Returns:
        WordSearchLayout; ``error`` is set when some word could not be placed

    Raises:
        ValidationError: If words, rows or cols are invalid
    """
    normalized = _validate(words, rows, cols)
    rng = random.Random(seed)

    # Longest first makes the search fail fast
    ordered = sorted(normalized, key=len, reverse=True)
    longest = len(ordered[0])
    current_rows = max(rows, longest, MIN_SIZE)
    current_cols = max(cols, longest, MIN_SIZE)

    best = _Search(ordered, current_rows, current_cols, backtrack_limit, rng)
    complete = best.run()
    for retry in range(max_retries):
        if complete:
            break
        logger.debug(
            "word_search.retry",
            retry=retry,
            rows=current_rows,
            cols=current_cols,
            placed=len(best.best[1]),
        )
        current_rows += 1
        current_cols += 1
        search = _Search(ordered, current_rows, current_cols, backtrack_limit, rng)
        complete = search.run()
        if len(search.best[1]) > len(best.best[1]):
            best = search

    grid, placed = best.best
    placed_words = [p.word for p in placed]
    unplaced = list(ordered)
    for word in placed_words:
        unplaced.remove(word)

    layout = WordSearchLayout(
        grid=_fill(grid, fill_random, rng),
        words=placed,
        final_rows=best.rows,
        final_cols=best.cols,
        unplaced=unplaced,
        error=INCOMPLETE_MESSAGE if unplaced else None,
    )
    logger.info(
        "word_search.generated",
        rows=layout.final_rows,
        cols=layout.final_cols,
        placed=len(placed),
        unplaced=len(unplaced),
    )
    return layout

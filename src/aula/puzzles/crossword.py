"""Crossword layout generator.

Builds a compact crossword from (clue, answer) pairs with a greedy
intersection heuristic:

1. Answers are normalised (uppercase, no whitespace) and sorted longest first.
2. The longest answer is placed across, centred in a square working grid.
3. Every other answer is tried against each shared letter of the words
   already on the grid; the valid perpendicular placement with the most
   overlapping letters wins.
4. Answers that do not fit are requeued for a bounded number of passes.
   If some remain, the grid grows and the whole layout restarts, up to a
   retry ceiling. The attempt that placed most words is kept.
5. The grid is cropped to the occupied area plus a margin and words are
   numbered in row-major order of their first cell.

The generator never raises for unplaceable words: they are reported in
``CrosswordLayout.unplaced``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog

logger = structlog.get_logger(__name__)

ACROSS = "across"
DOWN = "down"

# (row step, column step)
STEPS = {ACROSS: (0, 1), DOWN: (1, 0)}

MIN_GRID_SIZE = 15
GRID_GROWTH = 5

_WHITESPACE = re.compile(r"\s+")


def normalize_answer(answer: Any) -> str:
    """Uppercase and remove every whitespace character.

    Non-string answers (numbers typed into a JSON field) use their text form.
    """
    if answer is None:
        return ""
    return _WHITESPACE.sub("", str(answer)).upper()


@dataclass
class CrosswordWord:
    """A placed word. startx is the column, starty the row."""

    answer: str
    clue: str
    startx: int
    starty: int
    orientation: str
    number: int = 0

    def cells(self) -> list[tuple[int, int]]:
        dr, dc = STEPS[self.orientation]
        return [(self.starty + i * dr, self.startx + i * dc) for i in range(len(self.answer))]

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "clue": self.clue,
            "answer": self.answer,
            "startx": self.startx,
            "starty": self.starty,
            "orientation": self.orientation,
        }


@dataclass
class CrosswordLayout:
    """Result of a generation run."""

    rows: int
    cols: int
    table: list[list[str | None]]
    words: list[CrosswordWord] = field(default_factory=list)
    unplaced: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.unplaced

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "table": self.table,
            "words": [w.to_dict() for w in self.words],
            "unplaced": list(self.unplaced),
        }


class _WorkingGrid:
    """Square scratch grid used during one layout attempt."""

    def __init__(self, size: int):
        self.size = size
        self.letters: dict[tuple[int, int], str] = {}
        # Orientations of the words passing through each cell
        self.orientations: dict[tuple[int, int], set[str]] = {}
        self.words: list[CrosswordWord] = []

    def _in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.size and 0 <= col < self.size

    def _is_empty(self, row: int, col: int) -> bool:
        return (row, col) not in self.letters

    def score(self, answer: str, row: int, col: int, orientation: str) -> int | None:
        """Number of overlapping letters, or None if the placement is invalid.

        Placements after the first must cross at least one existing word.
        """
        dr, dc = STEPS[orientation]
        end_row = row + (len(answer) - 1) * dr
        end_col = col + (len(answer) - 1) * dc
        if not (self._in_bounds(row, col) and self._in_bounds(end_row, end_col)):
            return None

        # Cells right before and after the word must stay empty
        if not self._is_empty(row - dr, col - dc):
            return None
        if not self._is_empty(end_row + dr, end_col + dc):
            return None

        overlaps = 0
        for i, letter in enumerate(answer):
            r, c = row + i * dr, col + i * dc
            existing = self.letters.get((r, c))
            if existing is not None:
                if existing != letter or orientation in self.orientations[(r, c)]:
                    return None
                overlaps += 1
                continue
            # A new letter must not touch a parallel neighbour
            if not self._is_empty(r + dc, c + dr) or not self._is_empty(r - dc, c - dr):
                return None

        if self.words and overlaps == 0:
            return None
        return overlaps

    def place(self, answer: str, clue: str, row: int, col: int, orientation: str) -> None:
        word = CrosswordWord(
            answer=answer, clue=clue, startx=col, starty=row, orientation=orientation
        )
        for cell, letter in zip(word.cells(), answer):
            self.letters[cell] = letter
            self.orientations.setdefault(cell, set()).add(orientation)
        self.words.append(word)

    def best_placement(self, answer: str) -> tuple[int, int, str] | None:
        """Highest scoring crossing placement; the first found wins ties."""
        best: tuple[int, int, str] | None = None
        best_score = 0
        for placed in self.words:
            orientation = DOWN if placed.orientation == ACROSS else ACROSS
            dr, dc = STEPS[orientation]
            for j, (cell_row, cell_col) in enumerate(placed.cells()):
                shared = placed.answer[j]
                for i, letter in enumerate(answer):
                    if letter != shared:
                        continue
                    row, col = cell_row - i * dr, cell_col - i * dc
                    score = self.score(answer, row, col, orientation)
                    if score is not None and score > best_score:
                        best, best_score = (row, col, orientation), score
        return best


def _attempt(
    entries: list[tuple[str, str]], size: int, max_passes: int
) -> tuple[_WorkingGrid, list[tuple[str, str]]]:
    grid = _WorkingGrid(size)
    first_answer, first_clue = entries[0]
    if len(first_answer) > size:
        return grid, list(entries)
    grid.place(first_answer, first_clue, size // 2, (size - len(first_answer)) // 2, ACROSS)

    pending = entries[1:]
    for _ in range(max_passes):
        if not pending:
            break
        requeued = []
        for answer, clue in pending:
            placement = grid.best_placement(answer)
            if placement is None:
                requeued.append((answer, clue))
                continue
            row, col, orientation = placement
            grid.place(answer, clue, row, col, orientation)
        if len(requeued) == len(pending):
            pending = requeued
            break
        pending = requeued

    return grid, pending


def _crop(grid: _WorkingGrid, margin: int) -> tuple[int, int, list[list[str | None]], list[CrosswordWord]]:
    rows_used = [r for r, _ in grid.letters]
    cols_used = [c for _, c in grid.letters]
    top = min(rows_used) - margin
    left = min(cols_used) - margin
    rows = max(rows_used) - min(rows_used) + 1 + 2 * margin
    cols = max(cols_used) - min(cols_used) + 1 + 2 * margin

    table: list[list[str | None]] = [[None] * cols for _ in range(rows)]
    for (r, c), letter in grid.letters.items():
        table[r - top][c - left] = letter

    words = [
        CrosswordWord(
            answer=w.answer,
            clue=w.clue,
            startx=w.startx - left,
            starty=w.starty - top,
            orientation=w.orientation,
        )
        for w in grid.words
    ]
    return rows, cols, table, words


def _number_words(words: list[CrosswordWord]) -> list[CrosswordWord]:
    """Number words by row-major order of their start cell.

    Words starting on the same cell share the number.
    """
    starts = sorted({(w.starty, w.startx) for w in words})
    numbers = {start: index for index, start in enumerate(starts, start=1)}
    for word in words:
        word.number = numbers[(word.starty, word.startx)]
    return sorted(words, key=lambda w: (w.number, w.orientation != ACROSS))


def generate_crossword(
    entries: Iterable[tuple[str, str]] | Iterable[dict[str, str]],
    max_retries: int = 5,
    max_passes: int = 3,
    margin: int = 1,
) -> CrosswordLayout:
    """Generate a crossword layout.

    Args:
        entries: (clue, answer) pairs, or dicts with 'clue' and 'answer'
        max_retries: Times the grid may grow and restart
        max_passes: Requeue passes per attempt
        margin: Empty cells kept around the cropped grid

    Returns:
        CrosswordLayout; ``unplaced`` lists answers that did not fit
    """
    normalized: list[tuple[str, str]] = []
    for entry in entries:
        if isinstance(entry, dict):
            clue, answer = entry.get("clue", ""), entry.get("answer", "")
        else:
            clue, answer = entry
        answer = normalize_answer(answer)
        if answer:
            normalized.append((answer, str(clue or "").strip()))

    if not normalized:
        return CrosswordLayout(rows=0, cols=0, table=[])

    # sorted() is stable, so equal lengths keep the input order
    normalized = sorted(normalized, key=lambda e: len(e[0]), reverse=True)
    longest = len(normalized[0][0])
    size = max(2 * longest + len(normalized), MIN_GRID_SIZE)

    best_grid, best_unplaced = _attempt(normalized, size, max_passes)
    unplaced = best_unplaced
    for retry in range(max_retries):
        if not unplaced:
            break
        logger.debug(
            "crossword.retry", retry=retry, size=size, unplaced=len(unplaced)
        )
        size += GRID_GROWTH
        grid, unplaced = _attempt(normalized, size, max_passes)
        if len(grid.words) > len(best_grid.words):
            best_grid, best_unplaced = grid, unplaced

    unplaced_answers = [answer for answer, _ in best_unplaced]
    if not best_grid.words:
        return CrosswordLayout(rows=0, cols=0, table=[], unplaced=unplaced_answers)

    rows, cols, table, words = _crop(best_grid, margin)
    layout = CrosswordLayout(
        rows=rows,
        cols=cols,
        table=table,
        words=_number_words(words),
        unplaced=unplaced_answers,
    )

    logger.info(
        "crossword.generated",
        rows=rows,
        cols=cols,
        placed=len(layout.words),
        unplaced=len(layout.unplaced),
    )
    return layout

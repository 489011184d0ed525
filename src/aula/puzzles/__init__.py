"""Puzzle layout generators (crossword and word search)."""

from aula.puzzles.crossword import CrosswordLayout, generate_crossword
from aula.puzzles.word_search import WordSearchLayout, generate_word_search

__all__ = [
    "CrosswordLayout",
    "WordSearchLayout",
    "generate_crossword",
    "generate_word_search",
]

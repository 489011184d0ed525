"""Tests for the crossword layout generator."""

from aula.puzzles import crossword
from aula.puzzles.crossword import ACROSS, DOWN, STEPS, generate_crossword, normalize_answer

ENTRIES = [
    ("Lenguaje de la serpiente", "python"),
    ("Estructura clave-valor", "diccionario"),
    ("Secuencia inmutable", "tupla"),
    ("Bloque reutilizable", "funcion"),
]


def _letters(layout):
    """Map (row, col) -> letter as written by every placed word."""
    cells = {}
    for word in layout.words:
        dr, dc = (0, 1) if word.orientation == ACROSS else (1, 0)
        for i, letter in enumerate(word.answer):
            cells.setdefault((word.starty + i * dr, word.startx + i * dc), set()).add(letter)
    return cells


def _cell_counts(layout):
    """Number of placed words passing through each cell."""
    counts = {}
    for word in layout.words:
        for cell in word.cells():
            counts[cell] = counts.get(cell, 0) + 1
    return counts


class TestNormalizeAnswer:
    def test_uppercases_and_strips_spaces(self):
        assert normalize_answer(" hola mundo ") == "HOLAMUNDO"

    def test_empty(self):
        assert normalize_answer("   ") == ""

    def test_non_string_answers(self):
        assert normalize_answer(1810) == "1810"
        assert normalize_answer(None) == ""


class TestGenerateCrossword:
    """Tests for generate_crossword."""

    def test_empty_input(self):
        layout = generate_crossword([])
        assert layout.rows == 0
        assert layout.words == []

    def test_blank_answers_are_dropped(self):
        layout = generate_crossword([("pista", "   ")])
        assert layout.words == []

    def test_single_word_is_across(self):
        layout = generate_crossword([("Saludo", "hola")], margin=1)
        assert len(layout.words) == 1
        word = layout.words[0]
        assert word.answer == "HOLA"
        assert word.orientation == ACROSS
        assert word.number == 1
        assert layout.rows == 3
        assert layout.cols == 6

    def test_longest_word_placed_first_across(self):
        layout = generate_crossword(ENTRIES)
        longest = next(w for w in layout.words if w.answer == "DICCIONARIO")
        assert longest.orientation == ACROSS

    def test_all_words_placed_and_consistent(self):
        layout = generate_crossword(ENTRIES)
        assert layout.complete
        assert {w.answer for w in layout.words} == {
            "PYTHON", "DICCIONARIO", "TUPLA", "FUNCION"
        }
        # No cell ever holds two different letters
        for letters in _letters(layout).values():
            assert len(letters) == 1

    def test_table_matches_words(self):
        layout = generate_crossword(ENTRIES)
        for (row, col), letters in _letters(layout).items():
            assert layout.table[row][col] == next(iter(letters))

    def test_words_cross_perpendicularly(self):
        layout = generate_crossword([("a", "casa"), ("b", "sol")], margin=0)
        orientations = {w.answer: w.orientation for w in layout.words}
        assert orientations == {"CASA": ACROSS, "SOL": DOWN}

    def test_numbering_is_row_major(self):
        layout = generate_crossword(ENTRIES)
        starts = [(w.starty, w.startx) for w in layout.words]
        assert starts == sorted(starts)
        assert layout.words[0].number == 1

    def test_unplaceable_word_is_reported(self):
        layout = generate_crossword([("a", "abc"), ("b", "xyz")])
        assert [w.answer for w in layout.words] == ["ABC"]
        assert layout.unplaced == ["XYZ"]
        assert not layout.complete

    def test_accepts_dict_entries(self):
        layout = generate_crossword([{"clue": "Saludo", "answer": "hola"}])
        assert layout.words[0].clue == "Saludo"

    def test_to_dict_shape(self):
        data = generate_crossword(ENTRIES).to_dict()
        assert set(data) == {"rows", "cols", "table", "words", "unplaced"}
        assert set(data["words"][0]) == {
            "number", "clue", "answer", "startx", "starty", "orientation"
        }

    def test_numeric_answer(self):
        layout = generate_crossword([("Inicio de la independencia", 1810)])
        assert layout.words[0].answer == "1810"


class TestLayoutRules:
    """Structural rules every generated layout keeps."""

    def test_new_letters_have_no_side_neighbours(self):
        layout = generate_crossword(ENTRIES)
        crossings = {cell for cell, n in _cell_counts(layout).items() if n > 1}
        for word in layout.words:
            dr, dc = STEPS[word.orientation]
            for row, col in word.cells():
                if (row, col) in crossings:
                    continue
                assert layout.table[row + dc][col + dr] is None
                assert layout.table[row - dc][col - dr] is None

    def test_cells_around_each_word_are_empty(self):
        layout = generate_crossword(ENTRIES)
        for word in layout.words:
            dr, dc = STEPS[word.orientation]
            (first_row, first_col), (last_row, last_col) = word.cells()[0], word.cells()[-1]
            assert layout.table[first_row - dr][first_col - dc] is None
            assert layout.table[last_row + dr][last_col + dc] is None

    def test_margin_leaves_an_empty_border(self):
        layout = generate_crossword(ENTRIES, margin=1)
        border = layout.table[0] + layout.table[-1] + [row[0] for row in layout.table] + [
            row[-1] for row in layout.table
        ]
        assert all(cell is None for cell in border)

    def test_words_starting_on_one_cell_share_a_number(self):
        layout = generate_crossword([("Firmamento", "cielo"), ("Hogar", "casa")])
        assert [(w.answer, w.orientation, w.number) for w in layout.words] == [
            ("CIELO", ACROSS, 1),
            ("CASA", DOWN, 1),
        ]

    def test_grid_grows_on_each_retry(self, monkeypatch):
        sizes = []
        real_attempt = crossword._attempt

        def recording_attempt(entries, size, max_passes):
            sizes.append(size)
            return real_attempt(entries, size, max_passes)

        monkeypatch.setattr(crossword, "_attempt", recording_attempt)

        layout = generate_crossword([("a", "abc"), ("b", "xyz")], max_retries=2)

        start = crossword.MIN_GRID_SIZE
        assert sizes == [start, start + crossword.GRID_GROWTH, start + 2 * crossword.GRID_GROWTH]
        assert layout.unplaced == ["XYZ"]

    def test_complete_layout_needs_no_retry(self, monkeypatch):
        sizes = []
        real_attempt = crossword._attempt

        def recording_attempt(entries, size, max_passes):
            sizes.append(size)
            return real_attempt(entries, size, max_passes)

        monkeypatch.setattr(crossword, "_attempt", recording_attempt)

        assert generate_crossword(ENTRIES, max_retries=4).complete
        assert len(sizes) == 1

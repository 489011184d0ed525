"""Tests for the prompt registry."""

import pytest

from aula.prompts.registry import clear_cache, get_prompt, list_prompts


class TestGetPrompt:
    def test_substitutes_variables(self):
        prompt = get_prompt(
            "cola/calificar_trabajo", texto_rubrica="RUBRICA_X", texto_trabajo="TRABAJO_Y"
        )
        assert "RUBRICA_X" in prompt
        assert "TRABAJO_Y" in prompt
        assert "{texto_rubrica}" not in prompt

    def test_missing_variable(self):
        with pytest.raises(KeyError, match="descripcion_actividad"):
            get_prompt("ia/generar_rubrica")

    def test_missing_template(self):
        with pytest.raises(FileNotFoundError):
            get_prompt("nonexistent/prompt")

    def test_cached(self):
        clear_cache()
        assert get_prompt("system/asistente_docente") == get_prompt("system/asistente_docente")


class TestListPrompts:
    def test_lists_every_template(self):
        prompts = list_prompts()
        assert "plagio/comparar_trabajos" in prompts
        assert "ia/sugerir_calificacion" in prompts
        assert prompts == sorted(prompts)

"""Tests for AI assistance: exam drafts, rubrics, grade suggestions."""

import pytest

from aula.core import ia
from aula.errors import ExternalServiceError, ValidationError


def _opcion_unica(correcta=1):
    return [{"texto_opcion": str(i), "es_correcta": i == correcta} for i in range(4)]


class TestGenerarEvaluacion:
    def test_assigns_temporary_ids(self, mock_llm):
        mock_llm.simple_json.return_value = {
            "preguntas": [
                {
                    "texto_pregunta": "¿Qué es una lista?",
                    "tipo_pregunta": "opcion_multiple_unica",
                    "puntos": 50,
                    "opciones": _opcion_unica(),
                },
                {"texto_pregunta": "Define tupla", "tipo_pregunta": "abierta", "puntos": 50},
            ]
        }

        preguntas = ia.generar_evaluacion(
            mock_llm, "Python", 2, ["opcion_multiple_unica", "abierta"]
        )["preguntas"]

        assert all(p["id"].startswith("temp-ia-") and p["is_new"] for p in preguntas)
        assert [p["orden"] for p in preguntas] == [0, 1]
        assert preguntas[0]["opciones"][1]["es_correcta"] is True
        assert preguntas[0]["opciones"][0]["id"].startswith("temp-opt-ia-")
        assert preguntas[1]["opciones"] == []

    @pytest.mark.parametrize(
        "tema, num, tipos",
        [
            ("", 3, ["abierta"]),
            ("Python", 0, ["abierta"]),
            ("Python", ia.MAX_PREGUNTAS + 1, ["abierta"]),
            ("Python", 3, []),
            ("Python", 3, ["ensayo"]),
        ],
    )
    def test_invalid_parameters(self, mock_llm, tema, num, tipos):
        with pytest.raises(ValidationError):
            ia.generar_evaluacion(mock_llm, tema, num, tipos)
        mock_llm.simple_json.assert_not_called()

    def test_rejects_unrequested_type(self, mock_llm):
        mock_llm.simple_json.return_value = {
            "preguntas": [{"texto_pregunta": "x", "tipo_pregunta": "abierta", "puntos": 100}]
        }
        with pytest.raises(ExternalServiceError, match="tipo no solicitado"):
            ia.generar_evaluacion(mock_llm, "Python", 1, ["opcion_multiple_unica"])

    def test_single_choice_needs_four_options(self, mock_llm):
        mock_llm.simple_json.return_value = {
            "preguntas": [
                {
                    "texto_pregunta": "x",
                    "tipo_pregunta": "opcion_multiple_unica",
                    "puntos": 100,
                    "opciones": _opcion_unica()[:3],
                }
            ]
        }
        with pytest.raises(ExternalServiceError, match="4 opciones"):
            ia.generar_evaluacion(mock_llm, "Python", 1, ["opcion_multiple_unica"])

    def test_missing_list(self, mock_llm):
        mock_llm.simple_json.return_value = {"preguntas": []}
        with pytest.raises(ExternalServiceError):
            ia.generar_evaluacion(mock_llm, "Python", 1, ["abierta"])


class TestGenerarRubrica:
    def test_total_points(self, mock_llm):
        mock_llm.simple_json.return_value = {
            "criterios": [
                {"descripcion": " Claridad ", "puntos": 30},
                {"descripcion": "Profundidad", "puntos": 70},
            ]
        }
        result = ia.generar_rubrica(mock_llm, "Ensayo sobre recursión")

        assert result["total_puntos"] == 100
        assert result["criterios"][0]["descripcion"] == "Claridad"

    def test_invalid_criterion(self, mock_llm):
        mock_llm.simple_json.return_value = {"criterios": [{"descripcion": "x", "puntos": "diez"}]}
        with pytest.raises(ExternalServiceError):
            ia.generar_rubrica(mock_llm, "Ensayo")

    def test_requires_description(self, mock_llm):
        with pytest.raises(ValidationError):
            ia.generar_rubrica(mock_llm, "  ")


class TestSugerirCalificacion:
    def test_clamped_to_max(self, mock_llm):
        mock_llm.simple_json.return_value = {"puntos_sugeridos": 14, "comentario_sugerido": "Bien"}
        result = ia.sugerir_calificacion(mock_llm, "Explica", "Respuesta", 10)
        assert result == {"puntos_sugeridos": 10.0, "comentario_sugerido": "Bien"}

    def test_empty_answer_is_sent_as_placeholder(self, mock_llm):
        mock_llm.simple_json.return_value = {"puntos_sugeridos": 0}
        ia.sugerir_calificacion(mock_llm, "Explica", "", 10)
        assert "(sin respuesta)" in mock_llm.simple_json.call_args.args[1]

    def test_invalid_reply(self, mock_llm):
        mock_llm.simple_json.return_value = {"comentario_sugerido": "?"}
        with pytest.raises(ExternalServiceError):
            ia.sugerir_calificacion(mock_llm, "Explica", "x", 10)

    def test_requires_max_points(self, mock_llm):
        with pytest.raises(ValidationError):
            ia.sugerir_calificacion(mock_llm, "Explica", "x", 0)

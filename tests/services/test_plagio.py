"""Tests for plagiarism checks."""

import pytest

from aula.core import plagio
from aula.db import jobs_repository
from aula.errors import ExternalServiceError, NotFoundError, ValidationError
from aula.scripts.client import ScriptError

CONTENIDOS = {
    "status": "success",
    "contenidos": [
        {"fileId": "f1", "texto": "La recursión es una técnica..."},
        {"fileId": "f2", "texto": "La recursión es una técnica..."},
        {"fileId": "f3", "texto": "", "error": "No se pudo leer"},
    ],
}

COMPARACIONES = [
    {
        "trabajo_A_id": "f1",
        "trabajo_B_id": "f2",
        "porcentaje_similitud": 92,
        "fragmentos_similares": ["La recursión es una técnica"],
    }
]


@pytest.fixture
def script(mock_script):
    mock_script.call.side_effect = lambda action, **payload: (
        CONTENIDOS if action == "get_multiple_file_contents" else {"status": "success"}
    )
    return mock_script


class TestEncolar:
    def test_queues_unique_ids(self, docente, materia):
        result = plagio.encolar_plagio(docente.id, materia.id, ["f1", " f2 ", "f1", ""])

        job = plagio.get_plagio_job(docente.id, result["job_id"])
        assert job.drive_file_ids == ["f1", "f2"]
        assert job.status == "pendiente"

    def test_needs_two_files(self, docente, materia):
        with pytest.raises(ValidationError):
            plagio.encolar_plagio(docente.id, materia.id, ["f1", "f1"])

    def test_job_hidden_from_other_docente(self, docente, otro_docente, materia):
        job_id = plagio.encolar_plagio(docente.id, materia.id, ["f1", "f2"])["job_id"]
        with pytest.raises(NotFoundError):
            plagio.get_plagio_job(otro_docente.id, job_id)


class TestProcesar:
    def test_nothing_pending(self, db, mock_llm, mock_script):
        assert "job_id" not in plagio.procesar_plagio(mock_llm, mock_script, pause_seconds=0)

    def test_completes_and_saves_report(self, docente, materia, script, mock_llm):
        job_id = plagio.encolar_plagio(docente.id, materia.id, ["f1", "f2", "f3"])["job_id"]
        mock_llm.simple_json.return_value = {"comparaciones": COMPARACIONES}

        plagio.procesar_plagio(mock_llm, script, pause_seconds=0)

        job = jobs_repository.get_plagio_job(job_id)
        assert job.status == "completado"
        assert job.resultado_plagio[0]["porcentaje_similitud"] == 92.0
        prompt = mock_llm.simple_json.call_args.args[1]
        assert "TRABAJO ID: f1" in prompt and "TRABAJO ID: f3" not in prompt
        assert script.call.call_args.args == ("guardar_reporte_plagio",)

    def test_not_enough_texts_fails_job(self, docente, materia, mock_script, mock_llm):
        mock_script.call.return_value = {"contenidos": [{"fileId": "f1", "texto": "x"}]}
        job_id = plagio.encolar_plagio(docente.id, materia.id, ["f1", "f2"])["job_id"]

        plagio.procesar_plagio(mock_llm, mock_script, pause_seconds=0)

        job = jobs_repository.get_plagio_job(job_id)
        assert job.status == "fallido"
        assert "al menos dos" in job.ultimo_error
        mock_llm.simple_json.assert_not_called()

    def test_script_error_fails_job(self, docente, materia, mock_script, mock_llm):
        mock_script.call.side_effect = ScriptError("Cuota excedida")
        job_id = plagio.encolar_plagio(docente.id, materia.id, ["f1", "f2"])["job_id"]

        result = plagio.procesar_plagio(mock_llm, mock_script, pause_seconds=0)

        assert result["job_id"] == job_id
        assert jobs_repository.get_plagio_job(job_id).ultimo_error == "Cuota excedida"


class TestComprobar:
    def test_returns_report(self, docente, materia, script, mock_llm):
        mock_llm.simple_json.return_value = COMPARACIONES
        reporte = plagio.comprobar_plagio(docente.id, materia.id, ["f1", "f2"], mock_llm, script)
        assert reporte[0]["trabajo_B_id"] == "f2"

    def test_script_not_configured(self, docente, materia, offline_script, mock_llm):
        with pytest.raises(ExternalServiceError):
            plagio.comprobar_plagio(docente.id, materia.id, ["f1", "f2"], mock_llm, offline_script)

    def test_non_list_reply(self, docente, materia, script, mock_llm):
        mock_llm.simple_json.return_value = {"error": "sin datos"}
        with pytest.raises(ExternalServiceError):
            plagio.comprobar_plagio(docente.id, materia.id, ["f1", "f2"], mock_llm, script)

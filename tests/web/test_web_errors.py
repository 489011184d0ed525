"""Tests for the uniform JSON error bodies."""

from fastapi.testclient import TestClient

from aula.core import materias


class TestErrorBodies:
    def test_unexpected_error_returns_json_500(self, app, auth, monkeypatch):
        def broken(docente_id):
            raise RuntimeError("disk I/O error")

        monkeypatch.setattr(materias, "list_materias", broken)
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/api/materias", headers=auth)

        assert response.status_code == 500
        assert response.json() == {"message": "Error interno del servidor."}

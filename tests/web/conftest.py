"""Fixtures for API tests: app with mocked integrations and auth helpers."""

import pytest
from fastapi.testclient import TestClient

from aula.web.api import create_app
from aula.web.deps import get_llm_client, get_script_client


@pytest.fixture
def app(db, mock_llm, mock_script):
    """App bound to the test database with mocked LLM and script clients."""
    app = create_app()
    app.dependency_overrides[get_llm_client] = lambda: mock_llm
    app.dependency_overrides[get_script_client] = lambda: mock_script
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def register_and_login(client):
    """Factory: register a docente and return its Authorization header."""

    def _register(email="profe@uni.mx", password="secreto123"):
        client.post(
            "/api/auth/registro",
            json={"email": email, "nombre": "Profesora Ruiz", "password": password},
        )
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _register


@pytest.fixture
def auth(register_and_login):
    """Authorization header of a logged-in docente."""
    return register_and_login()


@pytest.fixture
def materia_id(client, auth, mock_script):
    mock_script.call.return_value = {
        "status": "success",
        "calificaciones_spreadsheet_id": "sheet-calificaciones",
    }
    response = client.post(
        "/api/materias",
        json={"nombre": "Programación I", "semestre": "2024-2", "unidades": 2},
        headers=auth,
    )
    mock_script.call.return_value = {"status": "success"}
    return response.json()["id"]


@pytest.fixture
def alumno_ids(client, auth, materia_id):
    """Enrol A001 Ana and A002 Beto."""
    ids = []
    for matricula, nombre, correo in (("A001", "Ana", "ana@uni.mx"), ("A002", "Beto", None)):
        response = client.post(
            f"/api/materias/{materia_id}/alumnos",
            json={"matricula": matricula, "nombre": nombre, "correo": correo},
            headers=auth,
        )
        ids.append(response.json()["id"])
    return ids

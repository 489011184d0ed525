"""Tests for queue, plagiarism and Drive sync endpoints."""

import pytest

SERVICE = {"Authorization": "Bearer test-service-key"}


@pytest.fixture
def calificacion_ids(client, auth, materia_id, alumno_ids):
    """Ensayo 1 with a manually registered delivery per alumno."""
    from aula.db import actividades_repository

    actividad = client.post(
        f"/api/materias/{materia_id}/actividades",
        json={
            "nombre": "Ensayo 1",
            "unidad": 1,
            "criterios": [{"descripcion": "Contenido", "puntos": 100}],
        },
        headers=auth,
    ).json()
    return [
        actividades_repository.upsert_entrega(actividad["id"], alumno_id, f"file-{alumno_id}", None)
        for alumno_id in alumno_ids
    ]


class TestServiceKey:
    @pytest.mark.parametrize(
        "path",
        [
            "/api/cola/procesar/obtener-textos",
            "/api/cola/procesar/llamar-ia",
            "/api/cola/procesar/guardar",
            "/api/cola/reencolar",
            "/api/plagio/procesar",
            "/api/drive-sync/procesar",
        ],
    )
    def test_requires_service_key(self, client, auth, path):
        assert client.post(path).status_code == 401
        assert client.post(path, headers=auth).status_code == 401

    def test_empty_queue(self, client):
        response = client.post("/api/cola/procesar/obtener-textos", headers=SERVICE)
        assert response.status_code == 200
        assert "job_id" not in response.json()


class TestColaApi:
    def test_pipeline(self, client, auth, calificacion_ids, mock_script, mock_llm):
        encolar = client.post(
            "/api/cola/iniciar-evaluacion-masiva",
            json={"calificacion_ids": calificacion_ids},
            headers=auth,
        )
        assert encolar.json()["encolados"] == 2

        mock_script.call.return_value = {"status": "success", "texto_trabajo": "Mi ensayo"}
        mock_llm.simple_json.return_value = {"calificacion_total": 85, "justificacion_texto": "ok"}
        for stage in ("obtener-textos", "llamar-ia", "guardar"):
            for _ in calificacion_ids:
                assert "job_id" in client.post(
                    f"/api/cola/procesar/{stage}", headers=SERVICE
                ).json()

        assert client.get("/api/cola/estado", headers=auth).json() == {"completado": 2}

    def test_unknown_calificacion(self, client, auth):
        response = client.post(
            "/api/cola/iniciar-evaluacion-masiva", json={"calificacion_ids": [99]}, headers=auth
        )
        assert response.status_code == 404


class TestPlagioApi:
    def test_queue_and_process(self, client, auth, materia_id, mock_script, mock_llm, monkeypatch):
        from aula.core import plagio

        monkeypatch.setattr(plagio.time, "sleep", lambda seconds: None)
        encolado = client.post(
            "/api/plagio/encolar",
            json={"materia_id": materia_id, "drive_file_ids": ["f1", "f2"]},
            headers=auth,
        )
        assert encolado.status_code == 202
        job_id = encolado.json()["job_id"]

        mock_script.call.return_value = {
            "status": "success",
            "contenidos": [{"fileId": "f1", "texto": "a"}, {"fileId": "f2", "texto": "a"}],
        }
        mock_llm.simple_json.return_value = [
            {
                "trabajo_A_id": "f1",
                "trabajo_B_id": "f2",
                "porcentaje_similitud": 100,
                "fragmentos_similares": ["a"],
            }
        ]
        client.post("/api/plagio/procesar", headers=SERVICE)

        job = client.get(f"/api/plagio/jobs/{job_id}", headers=auth).json()
        assert job["status"] == "completado"
        assert job["resultado_plagio"][0]["porcentaje_similitud"] == 100.0

    def test_needs_two_files(self, client, auth, materia_id):
        response = client.post(
            "/api/plagio/encolar",
            json={"materia_id": materia_id, "drive_file_ids": ["f1"]},
            headers=auth,
        )
        assert response.status_code == 422


class TestDriveSyncApi:
    def test_queue_process_status(self, client, auth, materia_id, mock_script):
        assert client.post("/api/drive-sync", headers=auth).status_code == 202

        client.post("/api/drive-sync/procesar", headers=SERVICE)

        estado = client.get("/api/drive-sync/estado", headers=auth).json()
        assert estado["status"] == "completed"

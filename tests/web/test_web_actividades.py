"""Tests for Drive delivery and justification endpoints of actividades."""

import pytest

from aula.db import actividades_repository


@pytest.fixture
def actividad_id(client, auth, materia_id):
    response = client.post(
        f"/api/materias/{materia_id}/actividades",
        json={"nombre": "Ensayo 1", "unidad": 1},
        headers=auth,
    )
    return response.json()["id"]


class TestEntregasDriveApi:
    def test_without_delivery_folder(self, client, auth, actividad_id):
        response = client.get(f"/api/actividades/{actividad_id}/entregas-drive", headers=auth)
        assert response.status_code == 400

    def test_sync_registers_deliveries(
        self, client, auth, actividad_id, alumno_ids, mock_script
    ):
        actividades_repository.update_actividad(actividad_id, drive_folder_id="carpeta")
        mock_script.call.return_value = {
            "status": "success",
            "files": [{"id": "f-1", "name": "A001_ensayo.pdf"}],
        }

        response = client.post(
            f"/api/actividades/{actividad_id}/sincronizar-entregas", headers=auth
        )

        assert response.status_code == 200
        assert response.json()["nuevas"] == 1
        [registro] = actividades_repository.list_calificaciones(actividad_id)
        assert registro.alumno_id == alumno_ids[0]


class TestJustificacionApi:
    def test_reads_from_sheet(self, client, auth, actividad_id, alumno_ids, mock_script):
        calificacion_id = actividades_repository.upsert_entrega(
            actividad_id, alumno_ids[0], "f-1", None
        )
        actividades_repository.update_calificacion(
            calificacion_id, justificacion_sheet_cell="Justificaciones!C4"
        )
        mock_script.call.return_value = {
            "status": "success",
            "justificacion_texto": "Cumple la rúbrica.",
        }

        response = client.get(
            f"/api/calificaciones/{calificacion_id}/justificacion", headers=auth
        )

        assert response.json() == {"justificacion_texto": "Cumple la rúbrica.", "origen": "sheet"}

    def test_missing_justification(self, client, auth, actividad_id, alumno_ids):
        calificacion_id = actividades_repository.upsert_entrega(
            actividad_id, alumno_ids[0], "f-1", None
        )
        response = client.get(
            f"/api/calificaciones/{calificacion_id}/justificacion", headers=auth
        )
        assert response.status_code == 404

"""Tests for QR attendance endpoints."""


def _abrir(client, auth, materia_id, sesion=1):
    return client.post(
        f"/api/asistencia/materias/{materia_id}/sesiones",
        json={"unidad": 1, "sesion": sesion},
        headers=auth,
    )


class TestAsistenciaApi:
    def test_full_session(self, client, auth, materia_id, alumno_ids, mock_script):
        sesion = _abrir(client, auth, materia_id)
        assert sesion.status_code == 201
        token = sesion.json()["token"]

        registro = client.post(
            "/api/asistencia/registrar",
            json={
                "materia_id": materia_id,
                "unidad": 1,
                "sesion": 1,
                "token": token,
                "matricula": "a001",
            },
        )
        assert registro.status_code == 200
        assert registro.json()["alumno_id"] == alumno_ids[0]

        final = client.post(
            f"/api/asistencia/materias/{materia_id}/finalizar",
            json={"unidad": 1, "sesion": 1},
            headers=auth,
        )
        assert final.json()["ausentes_registrados"] == 1
        assert final.json()["total_registros"] == 2

        listado = client.get(
            f"/api/asistencia/materias/{materia_id}", params={"unidad": 1}, headers=auth
        ).json()
        presentes = {r["alumno_id"]: r["presente"] for r in listado}
        assert presentes == {alumno_ids[0]: True, alumno_ids[1]: False}

    def test_wrong_token(self, client, auth, materia_id, alumno_ids):
        _abrir(client, auth, materia_id)
        response = client.post(
            "/api/asistencia/registrar",
            json={"materia_id": materia_id, "unidad": 1, "sesion": 1, "token": "x", "matricula": "A001"},
        )
        assert response.status_code == 400

    def test_justify_absence(self, client, auth, materia_id, alumno_ids):
        _abrir(client, auth, materia_id)
        client.post(
            f"/api/asistencia/materias/{materia_id}/finalizar",
            json={"unidad": 1, "sesion": 1},
            headers=auth,
        )
        [registro] = [
            r
            for r in client.get(f"/api/asistencia/materias/{materia_id}", headers=auth).json()
            if r["alumno_id"] == alumno_ids[1]
        ]

        response = client.patch(
            f"/api/asistencia/{registro['id']}",
            json={"presente": True, "justificacion": "Cita médica"},
            headers=auth,
        )

        assert response.json()["presente"] is True
        assert response.json()["justificacion"] == "Cita médica"

    def test_closed_unit_rejects_sessions(self, client, auth, materia_id, alumno_ids):
        cerrar = client.post(
            f"/api/asistencia/materias/{materia_id}/cerrar-unidad",
            json={"unidad": 1},
            headers=auth,
        )
        assert cerrar.status_code == 200

        assert _abrir(client, auth, materia_id, sesion=2).status_code == 409
        cerradas = client.get(
            f"/api/asistencia/materias/{materia_id}/unidades-cerradas", headers=auth
        )
        assert cerradas.json() == {"unidades_cerradas": [1]}


class TestSincronizarDesdeSheetsApi:
    def test_imports_sheet_rows(self, client, auth, materia_id, alumno_ids, mock_script):
        mock_script.call.return_value = {
            "status": "success",
            "asistencias": [
                {"matricula": "A002", "fecha": "2024-09-02", "unidad": 1, "sesion": 1, "presente": 1}
            ],
        }

        response = client.post(
            f"/api/asistencia/materias/{materia_id}/sincronizar-desde-sheets", headers=auth
        )

        assert response.status_code == 200
        assert response.json()["actualizados"] == 1
        listado = client.get(f"/api/asistencia/materias/{materia_id}", headers=auth).json()
        assert [r["alumno_id"] for r in listado] == [alumno_ids[1]]

    def test_script_error_is_502(self, client, auth, materia_id, mock_script):
        response = client.post(
            f"/api/asistencia/materias/{materia_id}/sincronizar-desde-sheets", headers=auth
        )
        assert response.status_code == 502

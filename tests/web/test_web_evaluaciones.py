"""Tests for evaluacion endpoints: authoring and the alumno attempt flow."""

import pytest

PREGUNTAS = [
    {
        "texto_pregunta": "¿2 + 2?",
        "tipo_pregunta": "opcion_multiple_unica",
        "puntos": 50,
        "opciones": [
            {"texto_opcion": "3", "es_correcta": False},
            {"texto_opcion": "4", "es_correcta": True},
        ],
    },
    {"texto_pregunta": "Explica la recursión", "tipo_pregunta": "abierta", "puntos": 50},
]


@pytest.fixture
def evaluacion(client, auth, materia_id):
    response = client.post(
        f"/api/materias/{materia_id}/evaluaciones",
        json={"titulo": "Parcial 1", "unidad": 1, "preguntas": PREGUNTAS},
        headers=auth,
    )
    return response.json()


@pytest.fixture
def alumno_auth(client, auth, alumno_ids):
    client.post(
        f"/api/alumnos/{alumno_ids[0]}/cuenta",
        json={"email": "ana@uni.mx", "password": "clave123"},
        headers=auth,
    )
    login = client.post(
        "/api/auth/alumno/login", json={"email": "ana@uni.mx", "password": "clave123"}
    )
    return {"Authorization": f"Bearer {login.json()['access_token']}"}


class TestAuthoring:
    def test_create(self, evaluacion):
        assert evaluacion["evaluacion"]["estado"] == "borrador"
        assert evaluacion["total_puntos"] == 100
        assert evaluacion["preguntas"][0]["opciones"][1]["es_correcta"] is True

    def test_invalid_question_is_400(self, client, auth, materia_id):
        pregunta = {**PREGUNTAS[0], "opciones": PREGUNTAS[0]["opciones"][:1]}
        response = client.post(
            f"/api/materias/{materia_id}/evaluaciones",
            json={"titulo": "Malo", "preguntas": [pregunta]},
            headers=auth,
        )
        assert response.status_code == 400

    def test_publish_and_list(self, client, auth, materia_id, evaluacion):
        evaluacion_id = evaluacion["evaluacion"]["id"]
        response = client.patch(
            f"/api/evaluaciones/{evaluacion_id}", json={"estado": "publicado"}, headers=auth
        )
        assert response.json()["evaluacion"]["estado"] == "publicado"
        assert len(response.json()["preguntas"]) == 2

        listado = client.get(f"/api/materias/{materia_id}/evaluaciones", headers=auth).json()
        assert [e["titulo"] for e in listado] == ["Parcial 1"]

    def test_bank(self, client, auth, evaluacion):
        banco = client.post("/api/banco-preguntas", json=PREGUNTAS[1], headers=auth)
        assert banco.status_code == 201

        detalle = client.post(
            f"/api/evaluaciones/{evaluacion['evaluacion']['id']}/banco",
            json={"banco_ids": [banco.json()["id"]]},
            headers=auth,
        )
        assert len(detalle.json()["preguntas"]) == 3

        borrar = client.delete(f"/api/banco-preguntas/{banco.json()['id']}", headers=auth)
        assert borrar.status_code == 204
        assert client.get("/api/banco-preguntas", headers=auth).json() == []

    def test_delete(self, client, auth, evaluacion):
        evaluacion_id = evaluacion["evaluacion"]["id"]
        assert client.delete(f"/api/evaluaciones/{evaluacion_id}", headers=auth).status_code == 204
        assert client.get(f"/api/evaluaciones/{evaluacion_id}", headers=auth).status_code == 404


class TestAttemptFlow:
    def test_take_and_grade(self, client, auth, evaluacion, alumno_auth):
        evaluacion_id = evaluacion["evaluacion"]["id"]
        unica, abierta = evaluacion["preguntas"]
        correcta = unica["opciones"][1]["id"]
        client.patch(
            f"/api/evaluaciones/{evaluacion_id}", json={"estado": "publicado"}, headers=auth
        )

        disponibles = client.get("/api/alumno/evaluaciones", headers=alumno_auth).json()
        assert disponibles[0]["estado_intento"] is None

        inicio = client.post(
            f"/api/alumno/evaluaciones/{evaluacion_id}/iniciar", headers=alumno_auth
        ).json()
        intento_id = inicio["intento"]["id"]
        assert "es_correcta" not in inicio["preguntas"][0]["opciones"][0]

        guardado = client.put(
            f"/api/alumno/intentos/{intento_id}/respuestas",
            json={"pregunta_id": abierta["id"], "respuesta": "Una función que se llama a sí misma"},
            headers=alumno_auth,
        )
        assert guardado.json() == {"message": "Respuesta guardada."}

        foco = client.post(
            "/api/alumno/log-focus-change",
            json={"intento_id": intento_id, "tipo_evento": "blur"},
            headers=alumno_auth,
        )
        assert foco.status_code == 200

        final = client.post(
            f"/api/alumno/intentos/{intento_id}/finalizar",
            json={"respuestas": {str(unica["id"]): correcta}},
            headers=alumno_auth,
        ).json()
        assert final["estado"] == "completado"
        assert final["preguntas_pendientes"] == 1

        revision = client.post(
            f"/api/intentos/{intento_id}/calificar-respuesta",
            json={"pregunta_id": abierta["id"], "puntos": 40},
            headers=auth,
        ).json()
        assert revision["estado"] == "calificado"
        assert revision["calificacion_final"] == 90.0

        [fila] = client.get(f"/api/evaluaciones/{evaluacion_id}/intentos", headers=auth).json()
        assert fila["cambios_de_foco"] == 1

    def test_docente_token_cannot_take_exam(self, client, auth, evaluacion):
        response = client.post(
            f"/api/alumno/evaluaciones/{evaluacion['evaluacion']['id']}/iniciar", headers=auth
        )
        assert response.status_code == 401

    def test_draft_not_available(self, client, evaluacion, alumno_auth):
        response = client.post(
            f"/api/alumno/evaluaciones/{evaluacion['evaluacion']['id']}/iniciar",
            headers=alumno_auth,
        )
        assert response.status_code == 404

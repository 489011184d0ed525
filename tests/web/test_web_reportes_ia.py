"""Tests for report and AI helper endpoints."""

from aula.llm.client import LLMConnectionError


class TestReportesApi:
    def test_holistic_without_activity(self, client, auth, alumno_ids):
        reporte = client.get(
            f"/api/reportes/alumnos/{alumno_ids[0]}/holistico", headers=auth
        ).json()

        assert reporte["nombre_alumno"].startswith("Ana")
        assert reporte["asistencia"] == {"total_sesiones": 0, "asistidas": 0, "porcentaje": 0.0}
        assert reporte["actividades"] == []

    def test_nobody_at_risk_without_data(self, client, auth, materia_id, alumno_ids):
        response = client.get(f"/api/reportes/materias/{materia_id}/en-riesgo", headers=auth)
        assert response.json() == []

    def test_component_counts(self, client, auth, materia_id):
        response = client.get(
            f"/api/reportes/materias/{materia_id}/unidades/1/conteo", headers=auth
        )
        assert response.json() == {"counts": {"actividades": 0, "evaluaciones": 0}}

    def test_unit_and_course_grades(self, client, auth, materia_id, alumno_ids, mock_script):
        unidad = client.post(
            f"/api/reportes/materias/{materia_id}/unidades/1/calificacion-final",
            json={"asistencia": 100, "actividades": 0, "evaluaciones": 0},
            headers=auth,
        ).json()

        assert unidad["sincronizado"] is True
        assert {c["calificacion_final"] for c in unidad["calificaciones"]} == {100.0}
        assert mock_script.call.call_args.args[0] == "calculate_and_save_final_grade"

        final = client.get(
            f"/api/reportes/materias/{materia_id}/calificacion-final", headers=auth
        ).json()
        assert final[0]["unidades"] == {"1": 100.0, "2": None}
        assert final[0]["calificacion_final"] == 50.0

    def test_weights_must_add_up(self, client, auth, materia_id):
        response = client.post(
            f"/api/reportes/materias/{materia_id}/unidades/1/calificacion-final",
            json={"asistencia": 50, "actividades": 0, "evaluaciones": 0},
            headers=auth,
        )
        assert response.status_code == 400
        assert response.json() == {"message": "Los pesos deben sumar 100."}

    def test_ai_summary(self, client, auth, alumno_ids, mock_llm):
        mock_llm.simple_chat.return_value = "<think>pensando</think>\n- Asiste poco"

        response = client.get(
            f"/api/reportes/alumnos/{alumno_ids[0]}/resumen-ia", headers=auth
        )

        assert response.json() == {"resumen": "- Asiste poco"}


class TestIaApi:
    def test_rubric(self, client, auth, mock_llm):
        mock_llm.simple_json.return_value = {
            "criterios": [
                {"descripcion": "Claridad", "puntos": 60},
                {"descripcion": "Fuentes", "puntos": 40},
            ]
        }

        response = client.post(
            "/api/ia/generar-rubrica",
            json={"descripcion_actividad": "Ensayo sobre recursión"},
            headers=auth,
        )

        assert response.json()["total_puntos"] == 100

    def test_suggestion_is_clamped(self, client, auth, mock_llm):
        mock_llm.simple_json.return_value = {
            "puntos_sugeridos": 12,
            "comentario_sugerido": "Completa",
        }

        response = client.post(
            "/api/ia/sugerir-calificacion",
            json={"texto_pregunta": "¿Qué es un árbol?", "respuesta_alumno": "...", "puntos_maximos": 10},
            headers=auth,
        )

        assert response.json() == {"puntos_sugeridos": 10.0, "comentario_sugerido": "Completa"}

    def test_llm_down_is_502(self, client, auth, mock_llm):
        mock_llm.simple_json.side_effect = LLMConnectionError("No se pudo conectar a lmstudio")

        response = client.post(
            "/api/ia/generar-rubrica",
            json={"descripcion_actividad": "Ensayo"},
            headers=auth,
        )

        assert response.status_code == 502
        assert "lmstudio" in response.json()["message"]

    def test_requires_docente(self, client):
        response = client.post("/api/ia/generar-rubrica", json={"descripcion_actividad": "x"})
        assert response.status_code == 401

    def test_course_statistics(self, client, auth, materia_id, mock_script):
        mock_script.call.return_value = {"status": "success", "grades": [100, 60]}

        response = client.get(f"/api/reportes/materias/{materia_id}/estadisticas", headers=auth)

        stats = response.json()
        assert stats["total"] == 2
        assert stats["promedio"] == 80.0
        assert (stats["aprobados"], stats["reprobados"]) == (1, 1)

"""Tests for the public puzzle endpoints."""


class TestCrucigramaApi:
    def test_layout(self, client):
        response = client.post(
            "/api/puzzles/crucigrama",
            json={
                "palabras": [
                    {"clue": "Hogar", "answer": "casa"},
                    {"clue": "Estrella", "answer": "sol"},
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert {w["answer"] for w in data["words"]} == {"CASA", "SOL"}
        assert data["unplaced"] == []

    def test_empty(self, client):
        response = client.post("/api/puzzles/crucigrama", json={"palabras": []})
        assert response.status_code == 400


class TestSopaApi:
    def test_layout(self, client):
        response = client.post(
            "/api/puzzles/sopa",
            json={"palabras": ["lista", "tupla"], "filas": 8, "columnas": 8},
        )

        data = response.json()
        assert len(data["grid"]) == 8
        assert sorted(w["word"] for w in data["words"]) == ["LISTA", "TUPLA"]

    def test_bad_values_are_400(self, client):
        response = client.post("/api/puzzles/sopa", json={"palabras": "lista", "filas": -1})
        assert response.status_code == 400
        assert "palabras" in response.json()["message"]

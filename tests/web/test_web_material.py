"""Tests for the course material endpoints."""

import base64

FOLDER_ID = "1MaTeRiAlFoLdEr0123456789abcdefg"


class TestMaterialApi:
    def test_list_folder(self, client, auth, materia_id, mock_script):
        mock_script.call.return_value = {
            "status": "success",
            "folders": [{"id": "sub", "name": "Unidad 1", "type": "folder"}],
            "files": [],
        }

        response = client.get(
            f"/api/materias/{materia_id}/material", params={"folder_id": FOLDER_ID}, headers=auth
        )

        assert response.status_code == 200
        assert response.json()["folders"][0]["name"] == "Unidad 1"

    def test_without_material_folder(self, client, auth, materia_id):
        response = client.get(f"/api/materias/{materia_id}/material", headers=auth)
        assert response.status_code == 400
        assert response.json() == {"message": "La materia no tiene carpeta de material en Drive."}

    def test_create_folder(self, client, auth, materia_id, mock_script):
        mock_script.call.return_value = {"status": "success", "folder_id": "nueva"}

        response = client.post(
            f"/api/materias/{materia_id}/material/carpetas",
            json={"nombre": "Unidad 2", "parent_folder_id": FOLDER_ID},
            headers=auth,
        )

        assert response.status_code == 201
        assert response.json()["folder_id"] == "nueva"

    def test_upload_file(self, client, auth, materia_id, mock_script):
        mock_script.call.return_value = {"status": "success", "fileId": "arch", "fileUrl": None}

        response = client.post(
            f"/api/materias/{materia_id}/material/archivos",
            json={
                "fileName": "temario.txt",
                "mimeType": "text/plain",
                "base64Data": base64.b64encode(b"temario").decode(),
                "folder_id": FOLDER_ID,
            },
            headers=auth,
        )

        assert response.status_code == 201
        assert response.json()["file_id"] == "arch"

    def test_requires_login(self, client, materia_id):
        response = client.get(f"/api/materias/{materia_id}/material")
        assert response.status_code == 401

"""Tests for actividades: rubrics, manual grades, deliveries and deletion."""

import base64

import pytest

from aula.core import actividades
from aula.db import actividades_repository, alumnos_repository, materias_repository
from aula.errors import (
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from aula.scripts.client import ScriptError

CRITERIOS = [
    {"descripcion": "Código", "puntos": 70},
    {"descripcion": "Documentación", "puntos": 30},
]

PDF = base64.b64encode(b"%PDF-1.4 entrega").decode()


class TestValidateCriterios:
    def test_total(self):
        assert actividades.validate_criterios(CRITERIOS) == 100

    def test_must_sum_100(self):
        with pytest.raises(ValidationError, match="suman 90"):
            actividades.validate_criterios([{"descripcion": "a", "puntos": 90}])

    def test_missing_description(self):
        with pytest.raises(ValidationError, match="descripción"):
            actividades.validate_criterios([{"descripcion": " ", "puntos": 100}])


class TestCreateActividad:
    def test_creates_drive_folder(self, docente, materia, mock_script):
        mock_script.call.return_value = {"status": "success", "drive_folder_id": "carpeta-1"}

        actividad = actividades.create_actividad(
            docente.id, materia.id, " Práctica 1 ", 1, mock_script, criterios=CRITERIOS
        )

        assert actividad.nombre == "Práctica 1"
        assert actividad.drive_folder_id == "carpeta-1"
        assert mock_script.call.call_args.args == ("create_activity_folder",)

    def test_folder_failure_keeps_actividad(self, docente, materia, mock_script):
        mock_script.call.side_effect = ScriptError("Drive no responde")
        actividad = actividades.create_actividad(docente.id, materia.id, "Práctica", 1, mock_script)
        assert actividad.drive_folder_id is None

    def test_invalid_tipo_entrega(self, docente, materia, offline_script):
        with pytest.raises(ValidationError):
            actividades.create_actividad(
                docente.id, materia.id, "Práctica", 1, offline_script, tipo_entrega="grupal"
            )


class TestUpdateActividad:
    def test_new_rubric_is_synced(self, docente, actividad, mock_script):
        mock_script.call.return_value = {"rubrica_sheet_range": "Rubricas!A1:B3"}

        result = actividades.update_actividad(
            docente.id, actividad.id, mock_script, criterios=CRITERIOS
        )

        assert result["rubrica_sincronizada"] is True
        assert result["actividad"].criterios == CRITERIOS
        assert result["actividad"].rubrica_sheet_range == "Rubricas!A1:B3"

    def test_fields_only_do_not_sync(self, docente, actividad, mock_script):
        result = actividades.update_actividad(docente.id, actividad.id, mock_script, nombre="Ensayo final")
        assert result["actividad"].nombre == "Ensayo final"
        assert result["rubrica_sincronizada"] is False
        mock_script.call.assert_not_called()

    def test_other_docente_rejected(self, otro_docente, actividad, mock_script):
        with pytest.raises(PermissionDeniedError):
            actividades.update_actividad(otro_docente.id, actividad.id, mock_script, nombre="x")


class TestCalificarManual:
    def test_grades_delivery(self, docente, entregas):
        record = actividades.calificar_manual(docente.id, entregas[0], 87.5, "Muy bien")
        assert record.estado == "calificado"
        assert record.calificacion_obtenida == 87.5
        assert record.justificacion == "Muy bien"

    def test_out_of_range(self, docente, entregas):
        with pytest.raises(ValidationError):
            actividades.calificar_manual(docente.id, entregas[0], 101)


class TestEntregarActividad:
    def test_uploads_and_records(self, actividad, alumnos, mock_script):
        mock_script.call.return_value = {
            "fileId": "nuevo-archivo",
            "fileUrl": "https://drive.google.com/file/d/nuevo-archivo/view",
        }

        record = actividades.entregar_actividad(
            alumnos[0].id, actividad.id, "ensayo.pdf", "application/pdf", PDF, mock_script
        )

        assert record.estado == "entregado"
        assert record.drive_file_id == "nuevo-archivo"
        assert mock_script.call.call_args.kwargs["matricula"] == "A001"

    def test_redelivery_keeps_grade(self, docente, actividad, alumnos, entregas, mock_script):
        actividades.calificar_manual(docente.id, entregas[0], 80)
        mock_script.call.return_value = {"fileId": "v2", "fileUrl": None}

        record = actividades.entregar_actividad(
            alumnos[0].id, actividad.id, "v2.pdf", "application/pdf", PDF, mock_script
        )

        assert record.estado == "calificado"
        assert record.drive_file_id == "v2"

    def test_invalid_base64(self, actividad, alumnos, mock_script):
        with pytest.raises(ValidationError, match="base64"):
            actividades.entregar_actividad(
                alumnos[0].id, actividad.id, "a.pdf", "application/pdf", "no*base64", mock_script
            )

    def test_script_unavailable(self, actividad, alumnos, offline_script):
        with pytest.raises(ExternalServiceError):
            actividades.entregar_actividad(
                alumnos[0].id, actividad.id, "a.pdf", "application/pdf", PDF, offline_script
            )

    def test_student_view(self, actividad, alumnos, entregas):
        [vista] = actividades.list_actividades_alumno(alumnos[0].id)
        assert vista["estado"] == "entregado"
        assert vista["nombre"] == "Ensayo 1"


class TestEliminarRecurso:
    def test_actividad_with_folder(self, docente, actividad, mock_script):
        actividades_repository.update_actividad(actividad.id, drive_folder_id="carpeta-9")

        message = actividades.eliminar_recurso(docente.id, "actividad", actividad.id, mock_script)

        assert message == "Actividad eliminada correctamente."
        actions = [c.args[0] for c in mock_script.call.call_args_list]
        assert actions == ["eliminar_recurso_drive", "eliminar_rubrica"]
        assert actividades_repository.get_actividad(actividad.id) is None

    def test_drive_failure_deletes_nothing(self, docente, materia, mock_script):
        mock_script.call.side_effect = ScriptError("sin permisos")

        with pytest.raises(ExternalServiceError):
            actividades.eliminar_recurso(docente.id, "materia", materia.id, mock_script)
        assert materias_repository.get_materia(materia.id) is not None

    def test_materia(self, docente, materia, mock_script):
        actividades.eliminar_recurso(docente.id, "materia", materia.id, mock_script)
        assert materia.drive_url.endswith(mock_script.call.call_args.kwargs["drive_id"])
        assert materias_repository.get_materia(materia.id) is None

    def test_unknown_type(self, docente, materia, mock_script):
        with pytest.raises(ValidationError):
            actividades.eliminar_recurso(docente.id, "grupo", materia.id, mock_script)


@pytest.fixture
def carpeta_entregas(actividad):
    actividades_repository.update_actividad(actividad.id, drive_folder_id="carpeta-entregas")
    return "carpeta-entregas"


class TestEntregasDrive:
    def test_lists_delivery_folder(self, docente, actividad, carpeta_entregas, mock_script):
        mock_script.call.return_value = {
            "folders": [],
            "files": [{"id": "f1", "name": "A001.pdf"}],
        }

        result = actividades.listar_entregas_drive(docente.id, actividad.id, mock_script)

        assert result["folder_id"] == "carpeta-entregas"
        assert result["archivos"] == [{"id": "f1", "name": "A001.pdf"}]
        mock_script.call.assert_called_once_with(
            "get_folder_contents", drive_folder_id="carpeta-entregas"
        )

    def test_needs_delivery_folder(self, docente, actividad, mock_script):
        with pytest.raises(ValidationError, match="carpeta de entregas"):
            actividades.listar_entregas_drive(docente.id, actividad.id, mock_script)

    def test_other_docente(self, otro_docente, actividad, carpeta_entregas, mock_script):
        with pytest.raises(PermissionDeniedError):
            actividades.listar_entregas_drive(otro_docente.id, actividad.id, mock_script)

    def test_sync_matches_files_by_matricula(
        self, docente, actividad, alumnos, entregas, carpeta_entregas, mock_script
    ):
        mock_script.call.return_value = {
            "files": [
                {"id": "file-A001", "name": "Ensayo_A001.pdf"},
                {"id": "nuevo-A002", "name": "a002_ensayo.docx", "webViewLink": "https://drive/v2"},
                {"id": "x", "name": "sin_nombre.pdf"},
                {"name": "A003.pdf"},
            ]
        }

        result = actividades.sincronizar_entregas_drive(docente.id, actividad.id, mock_script)

        assert result["archivos_encontrados"] == 4
        assert result["nuevas"] == 1
        assert result["sin_alumno"] == ["sin_nombre.pdf"]
        archivos = {
            c.alumno_id: (c.drive_file_id, c.archivo_url)
            for c in actividades_repository.list_calificaciones(actividad.id)
        }
        assert archivos[alumnos[0].id] == ("file-A001", "https://drive/A001")
        assert archivos[alumnos[1].id] == ("nuevo-A002", "https://drive/v2")

    def test_sync_prefers_longest_matricula(
        self, docente, materia, actividad, alumnos, carpeta_entregas, mock_script
    ):
        largo = alumnos_repository.insert_alumno(materia.id, "A0010", "Iván", "Mora", None)
        mock_script.call.return_value = {"files": [{"id": "f", "name": "tarea-A0010.pdf"}]}

        actividades.sincronizar_entregas_drive(docente.id, actividad.id, mock_script)

        [registro] = actividades_repository.list_calificaciones(actividad.id)
        assert registro.alumno_id == largo

    def test_script_failure(self, docente, actividad, carpeta_entregas, mock_script):
        mock_script.call.side_effect = ScriptError("carpeta borrada")
        with pytest.raises(ExternalServiceError, match="carpeta borrada"):
            actividades.sincronizar_entregas_drive(docente.id, actividad.id, mock_script)


class TestObtenerJustificacion:
    def test_reads_sheet_cell(self, docente, entregas, mock_script):
        actividades_repository.update_calificacion(
            entregas[0], justificacion="local", justificacion_sheet_cell="Justificaciones!B2"
        )
        mock_script.call.return_value = {"justificacion_texto": "Buen análisis."}

        result = actividades.obtener_justificacion(docente.id, entregas[0], mock_script)

        assert result == {"justificacion_texto": "Buen análisis.", "origen": "sheet"}
        mock_script.call.assert_called_once_with(
            "get_justification_text",
            spreadsheet_id="sheet-calificaciones",
            justificacion_sheet_cell="Justificaciones!B2",
        )

    def test_local_text_without_cell(self, docente, entregas, mock_script):
        actividades_repository.update_calificacion(entregas[0], justificacion="Muy bien")

        result = actividades.obtener_justificacion(docente.id, entregas[0], mock_script)

        assert result == {"justificacion_texto": "Muy bien", "origen": "local"}
        mock_script.call.assert_not_called()

    def test_local_text_when_offline(self, docente, entregas, offline_script):
        actividades_repository.update_calificacion(
            entregas[0], justificacion="Muy bien", justificacion_sheet_cell="Justificaciones!B2"
        )
        result = actividades.obtener_justificacion(docente.id, entregas[0], offline_script)
        assert result["origen"] == "local"

    def test_nothing_to_show(self, docente, entregas, mock_script):
        with pytest.raises(NotFoundError):
            actividades.obtener_justificacion(docente.id, entregas[0], mock_script)

    def test_unknown_calificacion(self, docente, db, mock_script):
        with pytest.raises(NotFoundError):
            actividades.obtener_justificacion(docente.id, 999, mock_script)

    def test_other_docente(self, otro_docente, entregas, mock_script):
        with pytest.raises(PermissionDeniedError):
            actividades.obtener_justificacion(otro_docente.id, entregas[0], mock_script)

"""Tests for QR attendance sessions and unit closing."""

import pytest

from aula.core import asistencia
from aula.db import asistencia_repository, materias_repository
from aula.errors import (
    ConflictError,
    ExternalServiceError,
    PermissionDeniedError,
    ValidationError,
)
from aula.scripts.client import ScriptError

FECHA = "2024-09-02"


@pytest.fixture
def sesion(docente, materia, alumnos):
    return asistencia.abrir_sesion(docente.id, materia.id, unidad=1, sesion=1)


class TestAbrirSesion:
    def test_returns_token_and_expiry(self, sesion, materia):
        assert sesion.materia_id == materia.id
        assert len(sesion.token) >= 16
        assert sesion.expires_at

    def test_other_docente_rejected(self, otro_docente, materia):
        with pytest.raises(PermissionDeniedError):
            asistencia.abrir_sesion(otro_docente.id, materia.id, 1, 1)

    def test_unit_out_of_range(self, docente, materia):
        with pytest.raises(ValidationError):
            asistencia.abrir_sesion(docente.id, materia.id, 5, 1)

    def test_closed_unit_rejected(self, docente, materia, offline_script):
        asistencia.cerrar_unidad(docente.id, materia.id, 1, offline_script)
        with pytest.raises(ConflictError):
            asistencia.abrir_sesion(docente.id, materia.id, 1, 1)


class TestRegistrarAsistencia:
    def test_registers_present(self, sesion, materia, alumnos):
        result = asistencia.registrar_asistencia(
            materia.id, 1, 1, sesion.token, "a001", fecha=FECHA
        )
        assert result["alumno_id"] == alumnos[0].id
        registros = asistencia_repository.list_asistencias(materia.id, fecha=FECHA)
        assert [(r.alumno_id, r.presente) for r in registros] == [(alumnos[0].id, True)]

    def test_wrong_token(self, sesion, materia):
        with pytest.raises(ValidationError, match="no es válida"):
            asistencia.registrar_asistencia(materia.id, 1, 1, "otro-token", "A001")

    def test_unknown_matricula(self, sesion, materia):
        with pytest.raises(ValidationError, match="matrícula"):
            asistencia.registrar_asistencia(materia.id, 1, 1, sesion.token, "Z999")

    def test_duplicate_registration(self, sesion, materia):
        asistencia.registrar_asistencia(materia.id, 1, 1, sesion.token, "A001", fecha=FECHA)
        with pytest.raises(ValidationError, match="ya registrada"):
            asistencia.registrar_asistencia(
                materia.id, 1, 1, sesion.token, "A001", fecha=FECHA
            )

    def test_expired_session(self, sesion, docente, materia, offline_script):
        asistencia.finalizar_sesion(docente.id, materia.id, 1, 1, offline_script, fecha=FECHA)
        with pytest.raises(ValidationError):
            asistencia.registrar_asistencia(materia.id, 1, 1, sesion.token, "A002")


class TestFinalizarSesion:
    def test_marks_absentees_and_syncs(self, sesion, docente, materia, alumnos, mock_script):
        asistencia.registrar_asistencia(materia.id, 1, 1, sesion.token, "A001", fecha=FECHA)

        result = asistencia.finalizar_sesion(
            docente.id, materia.id, 1, 1, mock_script, fecha=FECHA
        )

        assert result["ausentes_registrados"] == 2
        assert result["total_registros"] == 3
        assert result["sincronizado"] is True
        action, = mock_script.call.call_args.args
        assert action == "log_asistencia"
        enviados = mock_script.call.call_args.kwargs["asistencias"]
        assert sorted((a["matricula"], a["presente"]) for a in enviados) == [
            ("A001", True),
            ("A002", False),
            ("A003", False),
        ]

    def test_sync_skipped_without_script(self, sesion, docente, materia, offline_script):
        result = asistencia.finalizar_sesion(
            docente.id, materia.id, 1, 1, offline_script, fecha=FECHA
        )
        assert result["sincronizado"] is False
        assert result["ausentes_registrados"] == 3

    def test_sync_failure_keeps_records(self, sesion, docente, materia, mock_script):
        mock_script.call.side_effect = ScriptError("caído")
        result = asistencia.finalizar_sesion(
            docente.id, materia.id, 1, 1, mock_script, fecha=FECHA
        )
        assert result["sincronizado"] is False
        assert "falló" in result["message"]
        assert len(asistencia_repository.list_asistencias(materia.id, fecha=FECHA)) == 3


class TestCerrarUnidad:
    def test_closes_and_syncs(self, docente, materia, alumnos, mock_script):
        result = asistencia.cerrar_unidad(docente.id, materia.id, 1, mock_script)
        assert result["sincronizado"] is True
        assert asistencia.unidades_cerradas(docente.id, materia.id) == [1]
        kwargs = mock_script.call.call_args.kwargs
        assert kwargs["drive_url"] == materia.drive_url
        assert len(kwargs["alumnos"]) == 3

    def test_already_closed(self, docente, materia, offline_script):
        asistencia.cerrar_unidad(docente.id, materia.id, 1, offline_script)
        with pytest.raises(ConflictError):
            asistencia.cerrar_unidad(docente.id, materia.id, 1, offline_script)


class TestActualizarAsistencia:
    def test_justify_absence(self, sesion, docente, materia, offline_script):
        asistencia.finalizar_sesion(docente.id, materia.id, 1, 1, offline_script, fecha=FECHA)
        registro = asistencia.list_asistencias(docente.id, materia.id, fecha=FECHA)[0]

        actualizado = asistencia.actualizar_asistencia(
            docente.id, registro.id, True, "Justificante médico"
        )

        assert actualizado.presente is True
        assert actualizado.justificacion == "Justificante médico"


class TestSincronizarDesdeSheets:
    def _reply(self, mock_script, registros):
        mock_script.call.return_value = {"status": "success", "asistencias": registros}

    def test_inserts_and_overwrites(self, docente, materia, alumnos, mock_script):
        asistencia_repository.insert_asistencia(materia.id, alumnos[0].id, FECHA, 1, 1, False)
        self._reply(
            mock_script,
            [
                {"matricula": "a001", "fecha": FECHA, "unidad": 1, "sesion": 1, "presente": 1},
                {"matricula": "A002", "fecha": FECHA, "unidad": 1, "sesion": 1, "presente": 0},
            ],
        )

        result = asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)

        assert result["leidos"] == 2
        assert result["actualizados"] == 2
        assert result["omitidos"] == 0
        mock_script.call.assert_called_once_with(
            "leer_datos_asistencia", calificaciones_spreadsheet_id="sheet-calificaciones"
        )
        presentes = {
            r.matricula: r.presente for r in asistencia_repository.list_asistencias(materia.id)
        }
        assert presentes == {"A001": True, "A002": False}

    def test_unchanged_rows_are_not_counted(self, docente, materia, alumnos, mock_script):
        asistencia_repository.insert_asistencia(materia.id, alumnos[0].id, FECHA, 1, 1, True)
        self._reply(
            mock_script,
            [{"matricula": "A001", "fecha": FECHA, "unidad": 1, "sesion": 1, "presente": 1}],
        )

        result = asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)

        assert result["actualizados"] == 0
        assert len(asistencia_repository.list_asistencias(materia.id)) == 1

    def test_bad_rows_are_skipped(self, docente, materia, alumnos, mock_script):
        self._reply(
            mock_script,
            [
                {"matricula": "Z999", "fecha": FECHA, "unidad": 1, "sesion": 1, "presente": 1},
                {"matricula": "A001", "fecha": "ayer", "unidad": 1, "sesion": 1, "presente": 1},
                {"matricula": "A001", "fecha": FECHA, "unidad": 9, "sesion": 1, "presente": 1},
                {"matricula": "A001", "fecha": FECHA, "unidad": 1, "sesion": 1, "presente": "sí"},
                {"matricula": "A001"},
                "no es un registro",
            ],
        )

        result = asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)

        assert result["omitidos"] == 6
        assert result["actualizados"] == 0
        assert asistencia_repository.list_asistencias(materia.id) == []

    def test_empty_sheet(self, docente, materia, mock_script):
        self._reply(mock_script, [])

        result = asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)

        assert result["message"] == "No se encontraron datos de asistencia en la hoja."

    def test_reply_without_list(self, docente, materia, mock_script):
        with pytest.raises(ExternalServiceError):
            asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)

    def test_script_failure(self, docente, materia, mock_script):
        mock_script.call.side_effect = ScriptError("hoja no encontrada")
        with pytest.raises(ExternalServiceError, match="hoja no encontrada"):
            asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)

    def test_offline_script(self, docente, materia, offline_script):
        with pytest.raises(ExternalServiceError):
            asistencia.sincronizar_desde_sheets(docente.id, materia.id, offline_script)

    def test_needs_grades_sheet(self, docente, materia, mock_script):
        materias_repository.update_materia(materia.id, calificaciones_spreadsheet_id="")
        with pytest.raises(ValidationError):
            asistencia.sincronizar_desde_sheets(docente.id, materia.id, mock_script)
        mock_script.call.assert_not_called()

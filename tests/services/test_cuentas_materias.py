"""Tests for docente accounts and materia management."""

import pytest

from aula.auth.security import decode_token
from aula.core import cuentas, materias
from aula.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from aula.scripts.client import ScriptError


class TestCuentasDocente:
    def test_register_and_login(self, db):
        cuentas.register_docente(" Profe@Uni.MX ", "Profesora Ruiz", "secreto123")

        token, docente = cuentas.login_docente("profe@uni.mx", "secreto123")

        assert docente.email == "profe@uni.mx"
        principal = decode_token(token)
        assert (principal.id, principal.role) == (docente.id, "docente")

    def test_duplicate_email(self, docente):
        with pytest.raises(ConflictError):
            cuentas.register_docente("PROFE@uni.mx", "Otra", "secreto123")

    def test_short_password(self, db):
        with pytest.raises(ValidationError, match="al menos"):
            cuentas.register_docente("nuevo@uni.mx", "Nuevo", "123")

    def test_wrong_password(self, docente):
        with pytest.raises(AuthenticationError):
            cuentas.login_docente("profe@uni.mx", "incorrecta")

    def test_alumno_without_account_cannot_login(self, alumnos):
        with pytest.raises(AuthenticationError):
            cuentas.login_alumno("ana@uni.mx", "A001")


class TestMaterias:
    def test_create_provisions_drive(self, docente, mock_script):
        mock_script.call.return_value = {
            "drive_url": "https://drive.google.com/drive/folders/x",
            "calificaciones_spreadsheet_id": "c-9",
        }

        materia = materias.create_materia(docente.id, "Redes", "2025-1", 3, mock_script)

        assert materia.calificaciones_spreadsheet_id == "c-9"
        assert mock_script.call.call_args.kwargs["docente_email"] == "profe@uni.mx"

    def test_create_survives_drive_failure(self, docente, mock_script):
        mock_script.call.side_effect = ScriptError("timeout")
        materia = materias.create_materia(docente.id, "Redes", None, 1, mock_script)
        assert materia.drive_url is None

    def test_create_offline(self, docente, offline_script):
        materias.create_materia(docente.id, "Redes", None, 1, offline_script)
        offline_script.call.assert_not_called()

    def test_requires_units(self, docente, offline_script):
        with pytest.raises(ValidationError):
            materias.create_materia(docente.id, "Redes", None, 0, offline_script)

    def test_list_only_own(self, docente, otro_docente, materia):
        assert [m.id for m in materias.list_materias(docente.id)] == [materia.id]
        assert materias.list_materias(otro_docente.id) == []

    def test_update(self, docente, materia):
        updated = materias.update_materia(docente.id, materia.id, unidades=4)
        assert updated.unidades == 4
        assert updated.nombre == "Programación I"

    def test_ownership(self, otro_docente, materia):
        with pytest.raises(PermissionDeniedError):
            materias.get_owned_materia(otro_docente.id, materia.id)
        with pytest.raises(NotFoundError):
            materias.get_owned_materia(otro_docente.id, 9999)

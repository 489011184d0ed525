"""Tests for roster management and student accounts."""

import pytest

from aula.core import alumnos as alumnos_service
from aula.core import cuentas
from aula.db import alumnos_repository
from aula.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError

CSV = """\ufeffMatricula,Nombre,Apellido,Correo
b100,Diego,Ramos,Diego@Uni.MX
,Sin,Matricula,
A001,Ana,Duplicada,ana2@uni.mx
B101,Elena,,
"""


class TestRoster:
    def test_create_normalizes(self, docente, materia):
        alumno = alumnos_service.create_alumno(
            docente.id, materia.id, " x900 ", "Fer", "Ortiz", "Fer@Uni.mx"
        )
        assert alumno.matricula == "X900"
        assert alumno.correo == "fer@uni.mx"

    def test_duplicate_matricula(self, docente, materia, alumnos):
        with pytest.raises(ConflictError):
            alumnos_service.create_alumno(docente.id, materia.id, "a001", "Otra")

    def test_invalid_email(self, docente, materia):
        with pytest.raises(ValidationError):
            alumnos_service.create_alumno(docente.id, materia.id, "X1", "Fer", correo="no-es-correo")

    def test_other_docente_cannot_list(self, otro_docente, materia):
        with pytest.raises(PermissionDeniedError):
            alumnos_service.list_alumnos(otro_docente.id, materia.id)

    def test_update_and_delete(self, docente, alumnos):
        updated = alumnos_service.update_alumno(docente.id, alumnos[2].id, correo="Carla@Uni.mx")
        assert updated.correo == "carla@uni.mx"

        alumnos_service.delete_alumno(docente.id, alumnos[2].id)
        assert alumnos_repository.get_alumno(alumnos[2].id) is None


class TestImportCsv:
    def test_imports_valid_rows_and_reports_errors(self, docente, materia, alumnos):
        result = alumnos_service.import_alumnos_csv(docente.id, materia.id, CSV)

        assert result["insertados"] == 2
        assert result["omitidos"] == 2
        assert result["errores"][0].startswith("Línea 3")
        assert "A001" in result["errores"][1]
        matriculas = [a.matricula for a in alumnos_repository.list_alumnos(materia.id)]
        assert "B100" in matriculas and "B101" in matriculas

    def test_extra_fields_are_ignored(self, docente, materia):
        content = "matricula,nombre,apellido,correo\nA009,Ana,Lopez,ana@uni.mx,extra\n"

        result = alumnos_service.import_alumnos_csv(docente.id, materia.id, content)

        assert result == {"insertados": 1, "omitidos": 0, "errores": []}
        [alumno] = alumnos_repository.list_alumnos(materia.id)
        assert (alumno.matricula, alumno.correo) == ("A009", "ana@uni.mx")

    def test_requires_header(self, docente, materia):
        with pytest.raises(ValidationError, match="matricula y nombre"):
            alumnos_service.import_alumnos_csv(docente.id, materia.id, "id,apellido\n1,López\n")


class TestValidarAlumno:
    def test_found(self, alumnos):
        assert alumnos_service.validar_alumno(" a001 ", "ANA@uni.mx") == alumnos[0].id

    def test_not_found(self, alumnos):
        with pytest.raises(NotFoundError):
            alumnos_service.validar_alumno("A001", "otra@uni.mx")

    def test_missing_values(self, db):
        with pytest.raises(ValidationError):
            alumnos_service.validar_alumno("", "ana@uni.mx")


class TestCuentas:
    def test_create_account_and_login(self, docente, alumnos):
        alumnos_service.crear_cuenta_alumno(docente.id, alumnos[0].id, "ana@uni.mx", "clave123")

        token, alumno = cuentas.login_alumno("ANA@uni.mx", "clave123")

        assert token
        assert alumno.id == alumnos[0].id

    def test_account_only_once(self, docente, alumnos):
        alumnos_service.crear_cuenta_alumno(docente.id, alumnos[0].id, "ana@uni.mx", "clave123")
        with pytest.raises(ConflictError):
            alumnos_service.crear_cuenta_alumno(docente.id, alumnos[0].id, "nueva@uni.mx", "clave123")

    def test_email_taken(self, docente, alumnos):
        alumnos_service.crear_cuenta_alumno(docente.id, alumnos[0].id, "ana@uni.mx", "clave123")
        with pytest.raises(ConflictError, match="registrado"):
            alumnos_service.crear_cuenta_alumno(docente.id, alumnos[1].id, "ana@uni.mx", "clave123")

    def test_batch_uses_matricula_as_password(self, docente, materia, alumnos):
        largo = alumnos_service.create_alumno(
            docente.id, materia.id, "2024123456", "Hugo", "Vela", "hugo@uni.mx"
        )

        result = alumnos_service.crear_cuentas_masivo(docente.id, materia.id)

        assert result["total_procesados"] == 4
        assert result["exitosos"] == 1
        por_matricula = {r["matricula"]: r for r in result["resultados"]}
        assert por_matricula["A003"]["message"] == "El alumno no tiene correo."
        assert "contraseña" in por_matricula["A001"]["message"]
        _, alumno = cuentas.login_alumno("hugo@uni.mx", "2024123456")
        assert alumno.id == largo.id

    def test_batch_subset(self, docente, materia, alumnos):
        result = alumnos_service.crear_cuentas_masivo(docente.id, materia.id, [alumnos[2].id])
        assert [r["alumno_id"] for r in result["resultados"]] == [alumnos[2].id]

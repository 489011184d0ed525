"""Fixtures for service-layer tests: a docente with one materia and roster."""

import pytest

from aula.core import cuentas
from aula.db import actividades_repository, alumnos_repository, materias_repository

DRIVE_FOLDER_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz012345"


@pytest.fixture
def docente(db):
    return cuentas.register_docente("profe@uni.mx", "Profesora Ruiz", "secreto123")


@pytest.fixture
def otro_docente(db):
    return cuentas.register_docente("otro@uni.mx", "Profesor Díaz", "secreto123")


@pytest.fixture
def materia(docente):
    materia_id = materias_repository.insert_materia(docente.id, "Programación I", "2024-2", 2)
    materias_repository.update_materia(
        materia_id,
        drive_url=f"https://drive.google.com/drive/folders/{DRIVE_FOLDER_ID}",
        rubricas_spreadsheet_id="sheet-rubricas",
        calificaciones_spreadsheet_id="sheet-calificaciones",
        plagio_spreadsheet_id="sheet-plagio",
    )
    return materias_repository.get_materia(materia_id)


@pytest.fixture
def alumnos(materia):
    """Three enrolled alumnos."""
    ids = [
        alumnos_repository.insert_alumno(materia.id, "A001", "Ana", "López", "ana@uni.mx"),
        alumnos_repository.insert_alumno(materia.id, "A002", "Beto", "Pérez", "beto@uni.mx"),
        alumnos_repository.insert_alumno(materia.id, "A003", "Carla", "Gómez", None),
    ]
    return [alumnos_repository.get_alumno(i) for i in ids]


@pytest.fixture
def actividad(docente, materia):
    actividad_id = actividades_repository.insert_actividad(
        materia.id,
        docente.id,
        "Ensayo 1",
        1,
        criterios=[
            {"descripcion": "Contenido", "puntos": 60},
            {"descripcion": "Redacción", "puntos": 40},
        ],
    )
    return actividades_repository.get_actividad(actividad_id)


@pytest.fixture
def entregas(actividad, alumnos):
    """Delivered files for every alumno; returns the calificacion ids."""
    return [
        actividades_repository.upsert_entrega(
            actividad.id, alumno.id, f"file-{alumno.matricula}", f"https://drive/{alumno.matricula}"
        )
        for alumno in alumnos
    ]

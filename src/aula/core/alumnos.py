"""Alumno roster management and student accounts."""

from __future__ import annotations

import csv
import io
import sqlite3
from typing import Any

import structlog

from aula.auth.security import hash_password
from aula.core.cuentas import validate_password
from aula.core.materias import get_owned_materia
from aula.db import alumnos_repository
from aula.db.alumnos_repository import AlumnoRecord
from aula.errors import ConflictError, NotFoundError, ValidationError
from aula.utils.validators import normalize_email, normalize_matricula, validate_email

logger = structlog.get_logger(__name__)


def get_owned_alumno(docente_id: int, alumno_id: int) -> AlumnoRecord:
    """Load an alumno whose materia belongs to the docente."""
    alumno = alumnos_repository.get_alumno(alumno_id)
    if alumno is None:
        raise NotFoundError(f"Alumno {alumno_id} no encontrado.")
    get_owned_materia(docente_id, alumno.materia_id)
    return alumno


def create_alumno(
    docente_id: int,
    materia_id: int,
    matricula: str,
    nombre: str,
    apellido: str = "",
    correo: str | None = None,
) -> AlumnoRecord:
    """Enrol an alumno in a materia.

    Raises:
        ValidationError: Missing matricula or nombre, or invalid correo
        ConflictError: Matricula already enrolled in the materia
    """
    get_owned_materia(docente_id, materia_id)
    if not normalize_matricula(matricula):
        raise ValidationError("La matrícula es obligatoria.")
    if not nombre or not nombre.strip():
        raise ValidationError("El nombre del alumno es obligatorio.")
    if correo:
        correo = validate_email(correo)

    try:
        alumno_id = alumnos_repository.insert_alumno(
            materia_id, matricula, nombre, apellido or "", correo
        )
    except sqlite3.IntegrityError as e:
        raise ConflictError(
            f"La matrícula {normalize_matricula(matricula)} ya está inscrita en la materia."
        ) from e

    return alumnos_repository.get_alumno(alumno_id)


def list_alumnos(docente_id: int, materia_id: int) -> list[AlumnoRecord]:
    get_owned_materia(docente_id, materia_id)
    return alumnos_repository.list_alumnos(materia_id)


def update_alumno(docente_id: int, alumno_id: int, **fields: Any) -> AlumnoRecord:
    get_owned_alumno(docente_id, alumno_id)
    if fields.get("correo"):
        fields["correo"] = validate_email(fields["correo"])
    try:
        alumnos_repository.update_alumno(alumno_id, **fields)
    except sqlite3.IntegrityError as e:
        raise ConflictError("La matrícula ya está inscrita en la materia.") from e
    return alumnos_repository.get_alumno(alumno_id)


def delete_alumno(docente_id: int, alumno_id: int) -> None:
    get_owned_alumno(docente_id, alumno_id)
    alumnos_repository.delete_alumno(alumno_id)
    logger.info("alumnos.deleted", alumno_id=alumno_id)


def import_alumnos_csv(docente_id: int, materia_id: int, content: str) -> dict[str, Any]:
    """Import a roster from CSV text.

    The header must include matricula and nombre; apellido and correo are
    optional. Rows with errors or duplicate matriculas are skipped and
    reported, the rest are inserted.

    Returns:
        {"insertados": int, "omitidos": int, "errores": [str]}
    """
    get_owned_materia(docente_id, materia_id)

    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    header = {(name or "").strip().lower() for name in reader.fieldnames or []}
    if not {"matricula", "nombre"} <= header:
        raise ValidationError("El CSV debe incluir las columnas matricula y nombre.")

    insertados = 0
    errores: list[str] = []
    for line_number, raw in enumerate(reader, start=2):
        # Values beyond the header land under the None key and are ignored
        row = {
            k.strip().lower(): (v or "").strip() for k, v in raw.items() if k is not None
        }
        matricula = normalize_matricula(row.get("matricula", ""))
        if not matricula or not row.get("nombre"):
            errores.append(f"Línea {line_number}: faltan matrícula o nombre.")
            continue
        correo = normalize_email(row.get("correo", "")) or None
        try:
            alumnos_repository.insert_alumno(
                materia_id, matricula, row["nombre"], row.get("apellido", ""), correo
            )
        except sqlite3.IntegrityError:
            errores.append(f"Línea {line_number}: la matrícula {matricula} ya existe.")
            continue
        insertados += 1

    logger.info(
        "alumnos.csv_imported",
        materia_id=materia_id,
        inserted=insertados,
        skipped=len(errores),
    )
    return {"insertados": insertados, "omitidos": len(errores), "errores": errores}


def validar_alumno(matricula: str, correo: str) -> int:
    """Find the alumno id for a matricula and correo pair.

    Raises:
        ValidationError: If either value is missing
        NotFoundError: If no alumno matches
    """
    if not matricula or not correo:
        raise ValidationError("Matrícula y correo son obligatorios.")
    alumno = alumnos_repository.find_alumno(matricula, correo)
    if alumno is None:
        raise NotFoundError("No se encontró un alumno con esa matrícula y correo.")
    return alumno.id


def crear_cuenta_alumno(
    docente_id: int, alumno_id: int, email: str, password: str
) -> AlumnoRecord:
    """Give an alumno login credentials.

    Raises:
        ValidationError: Invalid email or short password
        ConflictError: The alumno already has an account, or the email is taken
    """
    email = validate_email(email)
    validate_password(password)
    alumno = get_owned_alumno(docente_id, alumno_id)

    if alumno.tiene_cuenta:
        raise ConflictError("El alumno ya tiene una cuenta vinculada.")
    if alumnos_repository.get_alumno_by_cuenta_email(email) is not None:
        raise ConflictError("El correo ya está registrado.")

    try:
        linked = alumnos_repository.link_account(alumno_id, email, hash_password(password))
    except sqlite3.IntegrityError as e:
        raise ConflictError("El correo ya está registrado.") from e
    if not linked:
        raise ConflictError("El alumno ya tiene una cuenta vinculada.")

    return alumnos_repository.get_alumno(alumno_id)


def crear_cuentas_masivo(
    docente_id: int, materia_id: int, alumno_ids: list[int] | None = None
) -> dict[str, Any]:
    """Create accounts for many alumnos using their correo and matricula.

    The matricula is the initial password, so it must meet the minimum
    length. Each alumno is processed independently.

    Returns:
        {"total_procesados", "exitosos", "resultados": [...]}
    """
    get_owned_materia(docente_id, materia_id)
    alumnos = alumnos_repository.list_alumnos(materia_id)
    if alumno_ids is not None:
        wanted = set(alumno_ids)
        alumnos = [a for a in alumnos if a.id in wanted]

    resultados = []
    for alumno in alumnos:
        resultado = {"alumno_id": alumno.id, "matricula": alumno.matricula}
        if not alumno.correo:
            resultados.append({**resultado, "ok": False, "message": "El alumno no tiene correo."})
            continue
        try:
            crear_cuenta_alumno(docente_id, alumno.id, alumno.correo, alumno.matricula)
        except (ValidationError, ConflictError) as e:
            resultados.append({**resultado, "ok": False, "message": e.message})
            continue
        resultados.append({**resultado, "ok": True, "message": "Cuenta creada."})

    exitosos = sum(1 for r in resultados if r["ok"])
    logger.info(
        "alumnos.accounts_batch", materia_id=materia_id, total=len(resultados), ok=exitosos
    )
    return {
        "total_procesados": len(resultados),
        "exitosos": exitosos,
        "resultados": resultados,
    }

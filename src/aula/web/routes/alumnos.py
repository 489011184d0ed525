"""Alumno roster and account endpoints."""

from fastapi import APIRouter, Depends, status

from aula.core import alumnos
from aula.web.deps import current_docente
from aula.web.schemas import (
    AlumnoCreate,
    AlumnoResponse,
    AlumnoUpdate,
    CsvImportRequest,
    CsvImportResponse,
    CuentaAlumnoRequest,
    CuentasMasivoRequest,
    CuentasMasivoResponse,
    ValidarAlumnoRequest,
)

router = APIRouter(prefix="/api", tags=["alumnos"])


@router.get("/materias/{materia_id}/alumnos", response_model=list[AlumnoResponse])
def list_alumnos(materia_id: int, docente_id: int = Depends(current_docente)):
    return alumnos.list_alumnos(docente_id, materia_id)


@router.post(
    "/materias/{materia_id}/alumnos",
    response_model=AlumnoResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_alumno(
    materia_id: int,
    request: AlumnoCreate,
    docente_id: int = Depends(current_docente),
):
    return alumnos.create_alumno(
        docente_id,
        materia_id,
        request.matricula,
        request.nombre,
        request.apellido,
        request.correo,
    )


@router.post("/materias/{materia_id}/alumnos/importar", response_model=CsvImportResponse)
def import_csv(
    materia_id: int,
    request: CsvImportRequest,
    docente_id: int = Depends(current_docente),
):
    """Bulk enrol alumnos from CSV text."""
    return alumnos.import_alumnos_csv(docente_id, materia_id, request.contenido)


@router.post("/materias/{materia_id}/alumnos/cuentas", response_model=CuentasMasivoResponse)
def create_accounts_batch(
    materia_id: int,
    request: CuentasMasivoRequest,
    docente_id: int = Depends(current_docente),
):
    """Create accounts for many alumnos (matricula as initial password)."""
    return alumnos.crear_cuentas_masivo(docente_id, materia_id, request.alumno_ids)


@router.patch("/alumnos/{alumno_id}", response_model=AlumnoResponse)
def update_alumno(
    alumno_id: int,
    request: AlumnoUpdate,
    docente_id: int = Depends(current_docente),
):
    return alumnos.update_alumno(docente_id, alumno_id, **request.model_dump())


@router.delete("/alumnos/{alumno_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_alumno(alumno_id: int, docente_id: int = Depends(current_docente)) -> None:
    alumnos.delete_alumno(docente_id, alumno_id)


@router.post("/alumnos/{alumno_id}/cuenta", response_model=AlumnoResponse)
def create_account(
    alumno_id: int,
    request: CuentaAlumnoRequest,
    docente_id: int = Depends(current_docente),
):
    return alumnos.crear_cuenta_alumno(docente_id, alumno_id, request.email, request.password)


@router.post("/alumnos/validar")
def validar_alumno(request: ValidarAlumnoRequest) -> dict[str, int]:
    """Public lookup of an alumno id by matricula and correo."""
    return {"alumno_id": alumnos.validar_alumno(request.matricula, request.correo)}

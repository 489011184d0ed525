"""Registration and login endpoints."""

from fastapi import APIRouter, Depends, status

from aula.core import cuentas
from aula.db import docentes_repository
from aula.errors import NotFoundError
from aula.web.deps import current_docente
from aula.web.schemas import (
    DocenteResponse,
    LoginRequest,
    RegistroDocenteRequest,
    TokenResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/registro", response_model=DocenteResponse, status_code=status.HTTP_201_CREATED)
def registro(request: RegistroDocenteRequest):
    """Register a new docente."""
    return cuentas.register_docente(request.email, request.nombre, request.password)


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest) -> TokenResponse:
    token, docente = cuentas.login_docente(request.email, request.password)
    return TokenResponse(
        access_token=token, role="docente", user_id=docente.id, nombre=docente.nombre
    )


@router.post("/alumno/login", response_model=TokenResponse)
def login_alumno(request: LoginRequest) -> TokenResponse:
    token, alumno = cuentas.login_alumno(request.email, request.password)
    return TokenResponse(
        access_token=token,
        role="alumno",
        user_id=alumno.id,
        nombre=alumno.nombre_completo,
    )


@router.get("/me", response_model=DocenteResponse)
def me(docente_id: int = Depends(current_docente)):
    """Profile of the authenticated docente."""
    docente = docentes_repository.get_docente_by_id(docente_id)
    if docente is None:
        raise NotFoundError("Docente no encontrado.")
    return docente

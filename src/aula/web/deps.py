"""FastAPI dependencies: authenticated callers and integration clients.

Tests replace ``get_llm_client`` and ``get_script_client`` through
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from aula.auth.security import Principal, check_service_key, decode_token
from aula.errors import AuthenticationError
from aula.llm.client import LLMClient
from aula.scripts.client import ScriptClient

bearer_scheme = HTTPBearer(auto_error=False)


def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise AuthenticationError("Falta el token de autorización.")
    return decode_token(credentials.credentials)


def current_docente(principal: Principal = Depends(get_principal)) -> int:
    """Id of the authenticated docente."""
    if principal.role != "docente":
        raise AuthenticationError("Se requiere una sesión de docente.")
    return principal.id


def current_alumno(principal: Principal = Depends(get_principal)) -> int:
    """Id of the authenticated alumno."""
    if principal.role != "alumno":
        raise AuthenticationError("Se requiere una sesión de alumno.")
    return principal.id


def require_service_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """Guard for queue endpoints called by schedulers."""
    check_service_key(credentials.credentials if credentials else None)


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    return LLMClient()


def get_script_client() -> ScriptClient:
    return ScriptClient.from_config()

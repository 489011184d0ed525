"""Course material endpoints (Drive folder of the materia)."""

from typing import Any

from fastapi import APIRouter, Depends, status

from aula.core import material
from aula.scripts.client import ScriptClient
from aula.web.deps import current_docente, get_script_client
from aula.web.schemas import ArchivoMaterialUpload, CarpetaMaterialCreate

router = APIRouter(prefix="/api/materias", tags=["material"])


@router.get("/{materia_id}/material")
def listar_material(
    materia_id: int,
    folder_id: str | None = None,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    """Folders and files; defaults to the materia's material folder."""
    return material.listar_material(docente_id, materia_id, script, folder_id)


@router.post("/{materia_id}/material/carpetas", status_code=status.HTTP_201_CREATED)
def crear_carpeta(
    materia_id: int,
    request: CarpetaMaterialCreate,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    return material.crear_carpeta(
        docente_id, materia_id, request.nombre, script, request.parent_folder_id
    )


@router.post("/{materia_id}/material/archivos", status_code=status.HTTP_201_CREATED)
def subir_archivo(
    materia_id: int,
    request: ArchivoMaterialUpload,
    docente_id: int = Depends(current_docente),
    script: ScriptClient = Depends(get_script_client),
) -> dict[str, Any]:
    return material.subir_archivo(
        docente_id,
        materia_id,
        request.fileName,
        request.mimeType,
        request.base64Data,
        script,
        request.folder_id,
    )

"""Drive structure sync endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, status

from aula.core import drive_sync
from aula.scripts.client import ScriptClient
from aula.web.deps import current_docente, get_script_client, require_service_key
from aula.web.schemas import DriveSyncStatusResponse, JobQueuedResponse

router = APIRouter(prefix="/api/drive-sync", tags=["drive-sync"])


@router.post("", response_model=JobQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def queue_sync(docente_id: int = Depends(current_docente)):
    return drive_sync.queue_drive_sync(docente_id)


@router.post("/procesar", dependencies=[Depends(require_service_key)])
def process_sync(script: ScriptClient = Depends(get_script_client)) -> dict[str, Any]:
    return drive_sync.process_drive_sync(script)


@router.get("/estado", response_model=DriveSyncStatusResponse)
def sync_status(docente_id: int = Depends(current_docente)):
    return drive_sync.drive_sync_status(docente_id)

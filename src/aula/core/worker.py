"""Drain every queue stage in one process (the cron replacement)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from aula.core import cola, drive_sync, plagio
from aula.llm.client import LLMClient
from aula.scripts.client import ScriptClient

logger = structlog.get_logger(__name__)

# Safety stop per stage and run
MAX_JOBS_PER_STAGE = 200


def _drain(name: str, stage: Callable[[], dict[str, Any]], limit: int) -> int:
    processed = 0
    while processed < limit:
        result = stage()
        if "job_id" not in result:
            break
        processed += 1
    if processed:
        logger.info("worker.stage_done", stage=name, processed=processed)
    return processed


def run_once(
    llm: LLMClient,
    script: ScriptClient,
    limit: int = MAX_JOBS_PER_STAGE,
    requeue_failed: bool = True,
) -> dict[str, int]:
    """Run every stage until it has no more work.

    Grading stages run in pipeline order so a job can go from 'pendiente'
    to 'completado' within a single run.

    Returns:
        Jobs processed per stage
    """
    if requeue_failed:
        cola.reencolar_fallidos()

    stages: list[tuple[str, Callable[[], dict[str, Any]]]] = [
        ("cola.textos", lambda: cola.procesar_obtener_textos(script)),
        ("cola.ia", lambda: cola.procesar_llamar_ia(llm)),
        ("cola.guardar", lambda: cola.procesar_guardar(script)),
        ("plagio", lambda: plagio.procesar_plagio(llm, script)),
        ("drive_sync", lambda: drive_sync.process_drive_sync(script)),
    ]
    return {name: _drain(name, stage, limit) for name, stage in stages}

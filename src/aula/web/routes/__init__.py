"""API route modules."""

from aula.web.routes.actividades import router as actividades_router
from aula.web.routes.alumnos import router as alumnos_router
from aula.web.routes.asistencia import router as asistencia_router
from aula.web.routes.auth import router as auth_router
from aula.web.routes.cola import router as cola_router
from aula.web.routes.drive_sync import router as drive_sync_router
from aula.web.routes.evaluaciones import router as evaluaciones_router
from aula.web.routes.health import router as health_router
from aula.web.routes.ia import router as ia_router
from aula.web.routes.material import router as material_router
from aula.web.routes.materias import router as materias_router
from aula.web.routes.plagio import router as plagio_router
from aula.web.routes.puzzles import router as puzzles_router
from aula.web.routes.reportes import router as reportes_router

__all__ = [
    "actividades_router",
    "alumnos_router",
    "asistencia_router",
    "auth_router",
    "cola_router",
    "drive_sync_router",
    "evaluaciones_router",
    "health_router",
    "ia_router",
    "material_router",
    "materias_router",
    "plagio_router",
    "puzzles_router",
    "reportes_router",
]

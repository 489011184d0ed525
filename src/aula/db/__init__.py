"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions per aggregate (materias, alumnos, actividades,
  asistencia, evaluaciones, job queues)
"""

from aula.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]

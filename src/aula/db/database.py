"""SQLite database connection and schema management.

Provides connection management and schema initialization for aula.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/aula.db")

# Current database path (module-level, set by init_db)
_db_path: Path | None = None

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> str:
    """Current UTC time in the same format as SQLite's datetime('now')."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/aula.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Path of the database currently in use."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success, rolls back on any exception.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM materias").fetchall()
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- Cuentas de docentes
        CREATE TABLE IF NOT EXISTS docentes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            nombre TEXT NOT NULL,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Materias (cursos) de cada docente, con los ids de Drive/Sheets
        CREATE TABLE IF NOT EXISTS materias (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            nombre TEXT NOT NULL,
            semestre TEXT,
            unidades INTEGER NOT NULL DEFAULT 1 CHECK(unidades >= 1),
            drive_url TEXT,
            drive_folder_material_id TEXT,
            rubricas_spreadsheet_id TEXT,
            plagio_spreadsheet_id TEXT,
            calificaciones_spreadsheet_id TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Alumnos inscritos; cuenta_email/password_hash cuando tienen acceso
        CREATE TABLE IF NOT EXISTS alumnos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            matricula TEXT NOT NULL,
            nombre TEXT NOT NULL,
            apellido TEXT NOT NULL DEFAULT '',
            correo TEXT,
            cuenta_email TEXT UNIQUE,
            password_hash TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(materia_id, matricula)
        );

        CREATE TABLE IF NOT EXISTS actividades (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            nombre TEXT NOT NULL,
            unidad INTEGER NOT NULL,
            tipo_entrega TEXT NOT NULL DEFAULT 'individual',
            descripcion TEXT,
            fecha_limite TEXT,
            criterios TEXT NOT NULL DEFAULT '[]',
            drive_folder_id TEXT,
            rubrica_sheet_range TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Entregas y calificaciones de actividades (una por alumno y actividad)
        CREATE TABLE IF NOT EXISTS calificaciones (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            actividad_id INTEGER NOT NULL REFERENCES actividades(id) ON DELETE CASCADE,
            alumno_id INTEGER NOT NULL REFERENCES alumnos(id) ON DELETE CASCADE,
            estado TEXT NOT NULL DEFAULT 'pendiente' CHECK(estado IN
                ('pendiente', 'entregado', 'procesando', 'calificado', 'fallido')),
            calificacion_obtenida REAL,
            justificacion TEXT,
            justificacion_sheet_cell TEXT,
            progreso_evaluacion TEXT,
            drive_file_id TEXT,
            archivo_url TEXT,
            fecha_entrega TEXT,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(actividad_id, alumno_id)
        );

        -- Sesiones de pase de lista con token QR
        CREATE TABLE IF NOT EXISTS sesiones_activas (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            unidad INTEGER NOT NULL,
            sesion INTEGER NOT NULL,
            token TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS asistencias (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            alumno_id INTEGER NOT NULL REFERENCES alumnos(id) ON DELETE CASCADE,
            fecha TEXT NOT NULL,
            unidad INTEGER NOT NULL,
            sesion INTEGER NOT NULL,
            presente INTEGER NOT NULL,
            justificacion TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(alumno_id, fecha, unidad, sesion)
        );

        CREATE TABLE IF NOT EXISTS unidades_cerradas (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            unidad INTEGER NOT NULL,
            cerrada_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(materia_id, unidad)
        );

        CREATE TABLE IF NOT EXISTS evaluaciones (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            titulo TEXT NOT NULL,
            descripcion TEXT,
            unidad INTEGER NOT NULL DEFAULT 1,
            tiempo_limite_minutos INTEGER,
            estado TEXT NOT NULL DEFAULT 'borrador' CHECK(estado IN
                ('borrador', 'publicado', 'cerrado')),
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS preguntas (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            evaluacion_id INTEGER NOT NULL REFERENCES evaluaciones(id) ON DELETE CASCADE,
            texto_pregunta TEXT NOT NULL,
            tipo_pregunta TEXT NOT NULL,
            puntos REAL NOT NULL DEFAULT 0,
            orden INTEGER NOT NULL DEFAULT 0,
            datos_extra TEXT
        );

        CREATE TABLE IF NOT EXISTS opciones (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            pregunta_id INTEGER NOT NULL REFERENCES preguntas(id) ON DELETE CASCADE,
            texto_opcion TEXT NOT NULL,
            es_correcta INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS intentos_evaluacion (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            evaluacion_id INTEGER NOT NULL REFERENCES evaluaciones(id) ON DELETE CASCADE,
            alumno_id INTEGER NOT NULL REFERENCES alumnos(id) ON DELETE CASCADE,
            estado TEXT NOT NULL DEFAULT 'en_progreso' CHECK(estado IN
                ('en_progreso', 'completado', 'calificado')),
            fecha_inicio TEXT NOT NULL DEFAULT (datetime('now')),
            fecha_fin TEXT,
            calificacion_final REAL,
            UNIQUE(evaluacion_id, alumno_id)
        );

        CREATE TABLE IF NOT EXISTS respuestas_alumno (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            intento_id INTEGER NOT NULL REFERENCES intentos_evaluacion(id) ON DELETE CASCADE,
            pregunta_id INTEGER NOT NULL REFERENCES preguntas(id) ON DELETE CASCADE,
            respuesta TEXT NOT NULL DEFAULT 'null',
            puntos_obtenidos REAL,
            es_correcta INTEGER,
            comentario TEXT,
            UNIQUE(intento_id, pregunta_id)
        );

        -- Cambios de foco (pestaña) durante un intento
        CREATE TABLE IF NOT EXISTS registros_actividad_intento (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            intento_id INTEGER NOT NULL REFERENCES intentos_evaluacion(id) ON DELETE CASCADE,
            tipo_evento TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS banco_preguntas (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            texto_pregunta TEXT NOT NULL,
            tipo_pregunta TEXT NOT NULL,
            puntos REAL NOT NULL DEFAULT 0,
            datos_extra TEXT,
            opciones TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Cola de calificación con IA: pendiente -> ... -> completado
        CREATE TABLE IF NOT EXISTS cola_de_trabajos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            calificacion_id INTEGER NOT NULL REFERENCES calificaciones(id) ON DELETE CASCADE,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            estado TEXT NOT NULL DEFAULT 'pendiente',
            intentos INTEGER NOT NULL DEFAULT 0,
            texto_rubrica TEXT,
            texto_trabajo TEXT,
            respuesta_ia_json TEXT,
            ultimo_error TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS plagio_jobs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            drive_file_ids TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pendiente',
            resultado_plagio TEXT,
            ultimo_error TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS drive_sync_jobs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            docente_id INTEGER NOT NULL REFERENCES docentes(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'pending',
            ultimo_error TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Calificación final por unidad (calculada)
        CREATE TABLE IF NOT EXISTS calificaciones_unidad (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            materia_id INTEGER NOT NULL REFERENCES materias(id) ON DELETE CASCADE,
            alumno_id INTEGER NOT NULL REFERENCES alumnos(id) ON DELETE CASCADE,
            unidad INTEGER NOT NULL,
            asistencia REAL NOT NULL,
            actividades REAL NOT NULL,
            evaluaciones REAL NOT NULL,
            calificacion_final REAL NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(materia_id, alumno_id, unidad)
        );

        -- Índices
        CREATE INDEX IF NOT EXISTS idx_cola_estado ON cola_de_trabajos(estado, created_at);
        CREATE INDEX IF NOT EXISTS idx_plagio_status ON plagio_jobs(status, created_at);
        CREATE INDEX IF NOT EXISTS idx_drive_sync_status ON drive_sync_jobs(status, created_at);
        CREATE INDEX IF NOT EXISTS idx_asistencias_materia ON asistencias(materia_id, unidad);
        """
    )

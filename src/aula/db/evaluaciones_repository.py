"""Repository functions for evaluaciones (quizzes/exams).

Covers evaluaciones, their preguntas and opciones, student attempts and
answers, focus-change logs and the docente's question bank.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from aula.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

EVALUACION_FIELDS = {
    "titulo",
    "descripcion",
    "unidad",
    "tiempo_limite_minutos",
    "estado",
}


@dataclass
class EvaluacionRecord:
    """Evaluacion record from database."""

    id: int
    materia_id: int
    docente_id: int
    titulo: str
    descripcion: str | None
    unidad: int
    tiempo_limite_minutos: int | None
    estado: str
    created_at: str


@dataclass
class OpcionRecord:
    """Answer option of a multiple choice pregunta."""

    id: int
    pregunta_id: int
    texto_opcion: str
    es_correcta: bool


@dataclass
class PreguntaRecord:
    """Pregunta with its opciones."""

    id: int
    evaluacion_id: int
    texto_pregunta: str
    tipo_pregunta: str
    puntos: float
    orden: int
    datos_extra: dict[str, Any] | None
    opciones: list[OpcionRecord] = field(default_factory=list)


@dataclass
class IntentoRecord:
    """Attempt of one alumno at one evaluacion."""

    id: int
    evaluacion_id: int
    alumno_id: int
    estado: str
    fecha_inicio: str
    fecha_fin: str | None
    calificacion_final: float | None
    alumno_nombre: str = ""
    matricula: str = ""


@dataclass
class RespuestaRecord:
    """Stored answer to one pregunta within an attempt."""

    id: int
    intento_id: int
    pregunta_id: int
    respuesta: Any
    puntos_obtenidos: float | None
    es_correcta: bool | None
    comentario: str | None


@dataclass
class BancoPreguntaRecord:
    """Reusable pregunta in a docente's bank."""

    id: int
    docente_id: int
    texto_pregunta: str
    tipo_pregunta: str
    puntos: float
    datos_extra: dict[str, Any] | None
    opciones: list[dict[str, Any]]
    created_at: str


# =============================================================================
# EVALUACIONES
# =============================================================================


def insert_evaluacion(
    materia_id: int,
    docente_id: int,
    titulo: str,
    descripcion: str | None = None,
    unidad: int = 1,
    tiempo_limite_minutos: int | None = None,
) -> int:
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO evaluaciones (
                materia_id, docente_id, titulo, descripcion, unidad, tiempo_limite_minutos
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (materia_id, docente_id, titulo, descripcion, unidad, tiempo_limite_minutos),
        )
        evaluacion_id = cursor.lastrowid

    logger.debug("evaluaciones.inserted", evaluacion_id=evaluacion_id)
    return evaluacion_id


def get_evaluacion(evaluacion_id: int) -> EvaluacionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM evaluaciones WHERE id = ?", (evaluacion_id,)
        ).fetchone()
    return _row_to_evaluacion(row) if row else None


def list_evaluaciones(
    materia_id: int, unidad: int | None = None, estado: str | None = None
) -> list[EvaluacionRecord]:
    query = "SELECT * FROM evaluaciones WHERE materia_id = ?"
    params: list[Any] = [materia_id]
    if unidad is not None:
        query += " AND unidad = ?"
        params.append(unidad)
    if estado is not None:
        query += " AND estado = ?"
        params.append(estado)
    query += " ORDER BY unidad, id"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_evaluacion(row) for row in rows]


def update_evaluacion(evaluacion_id: int, **fields: Any) -> bool:
    values = {
        k: v for k, v in fields.items() if k in EVALUACION_FIELDS and v is not None
    }
    if not values:
        return False

    assignments = ", ".join(f"{column} = ?" for column in values)
    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE evaluaciones SET {assignments} WHERE id = ?",
            (*values.values(), evaluacion_id),
        )
        return cursor.rowcount > 0


def delete_evaluacion(evaluacion_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM evaluaciones WHERE id = ?", (evaluacion_id,))
        return cursor.rowcount > 0


def count_evaluaciones(materia_id: int, unidad: int) -> int:
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM evaluaciones WHERE materia_id = ? AND unidad = ?",
            (materia_id, unidad),
        ).fetchone()
    return row["n"]


# =============================================================================
# PREGUNTAS / OPCIONES
# =============================================================================


def _insert_pregunta(
    conn: sqlite3.Connection, evaluacion_id: int, pregunta: dict[str, Any], orden: int
) -> int:
    datos_extra = pregunta.get("datos_extra")
    cursor = conn.execute(
        """
        INSERT INTO preguntas (
            evaluacion_id, texto_pregunta, tipo_pregunta, puntos, orden, datos_extra
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            evaluacion_id,
            pregunta["texto_pregunta"],
            pregunta["tipo_pregunta"],
            float(pregunta.get("puntos") or 0),
            pregunta.get("orden", orden),
            json.dumps(datos_extra, ensure_ascii=False) if datos_extra is not None else None,
        ),
    )
    pregunta_id = cursor.lastrowid
    for opcion in pregunta.get("opciones") or []:
        conn.execute(
            "INSERT INTO opciones (pregunta_id, texto_opcion, es_correcta) VALUES (?, ?, ?)",
            (pregunta_id, opcion["texto_opcion"], int(bool(opcion.get("es_correcta")))),
        )
    return pregunta_id


def insert_pregunta(evaluacion_id: int, pregunta: dict[str, Any], orden: int = 0) -> int:
    """Insert one pregunta (with its opciones) into an evaluacion.

    Args:
        evaluacion_id: Target evaluacion
        pregunta: Dict with texto_pregunta, tipo_pregunta, puntos,
            optional datos_extra and opciones [{texto_opcion, es_correcta}]
        orden: Position used when the dict carries no 'orden'

    Returns:
        New pregunta id
    """
    with get_db() as conn:
        return _insert_pregunta(conn, evaluacion_id, pregunta, orden)


def replace_preguntas(evaluacion_id: int, preguntas: list[dict[str, Any]]) -> list[int]:
    """Replace all preguntas of an evaluacion in one transaction.

    Returns:
        Ids of the inserted preguntas, in order
    """
    with get_db() as conn:
        conn.execute("DELETE FROM preguntas WHERE evaluacion_id = ?", (evaluacion_id,))
        ids = [
            _insert_pregunta(conn, evaluacion_id, pregunta, index)
            for index, pregunta in enumerate(preguntas)
        ]

    logger.debug("preguntas.replaced", evaluacion_id=evaluacion_id, count=len(ids))
    return ids


def list_preguntas(evaluacion_id: int) -> list[PreguntaRecord]:
    """List preguntas of an evaluacion, with opciones, in display order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM preguntas WHERE evaluacion_id = ? ORDER BY orden, id",
            (evaluacion_id,),
        ).fetchall()
        opcion_rows = conn.execute(
            """
            SELECT o.* FROM opciones o
            JOIN preguntas p ON p.id = o.pregunta_id
            WHERE p.evaluacion_id = ?
            ORDER BY o.id
            """,
            (evaluacion_id,),
        ).fetchall()

    opciones: dict[int, list[OpcionRecord]] = {}
    for row in opcion_rows:
        opciones.setdefault(row["pregunta_id"], []).append(
            OpcionRecord(
                id=row["id"],
                pregunta_id=row["pregunta_id"],
                texto_opcion=row["texto_opcion"],
                es_correcta=bool(row["es_correcta"]),
            )
        )

    return [
        PreguntaRecord(
            id=row["id"],
            evaluacion_id=row["evaluacion_id"],
            texto_pregunta=row["texto_pregunta"],
            tipo_pregunta=row["tipo_pregunta"],
            puntos=row["puntos"],
            orden=row["orden"],
            datos_extra=json.loads(row["datos_extra"]) if row["datos_extra"] else None,
            opciones=opciones.get(row["id"], []),
        )
        for row in rows
    ]


# =============================================================================
# INTENTOS / RESPUESTAS
# =============================================================================

_INTENTO_SELECT = """
    SELECT i.*, a.nombre || ' ' || a.apellido AS alumno_nombre, a.matricula
    FROM intentos_evaluacion i
    JOIN alumnos a ON a.id = i.alumno_id
"""


def insert_intento(evaluacion_id: int, alumno_id: int) -> int:
    """Start an attempt.

    Raises:
        sqlite3.IntegrityError: If the alumno already has an attempt
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO intentos_evaluacion (evaluacion_id, alumno_id, fecha_inicio) "
            "VALUES (?, ?, ?)",
            (evaluacion_id, alumno_id, utc_now()),
        )
        return cursor.lastrowid


def get_intento(intento_id: int) -> IntentoRecord | None:
    with get_db() as conn:
        row = conn.execute(_INTENTO_SELECT + " WHERE i.id = ?", (intento_id,)).fetchone()
    return _row_to_intento(row) if row else None


def get_intento_alumno(evaluacion_id: int, alumno_id: int) -> IntentoRecord | None:
    with get_db() as conn:
        row = conn.execute(
            _INTENTO_SELECT + " WHERE i.evaluacion_id = ? AND i.alumno_id = ?",
            (evaluacion_id, alumno_id),
        ).fetchone()
    return _row_to_intento(row) if row else None


def list_intentos(evaluacion_id: int) -> list[IntentoRecord]:
    with get_db() as conn:
        rows = conn.execute(
            _INTENTO_SELECT + " WHERE i.evaluacion_id = ? ORDER BY a.apellido, a.nombre",
            (evaluacion_id,),
        ).fetchall()
    return [_row_to_intento(row) for row in rows]


def list_intentos_alumno(alumno_id: int, unidad: int | None = None) -> list[dict[str, Any]]:
    """List an alumno's attempts joined with evaluacion titulo and unidad."""
    query = """
        SELECT i.id, i.evaluacion_id, i.estado, i.calificacion_final,
               e.titulo, e.unidad
        FROM intentos_evaluacion i
        JOIN evaluaciones e ON e.id = i.evaluacion_id
        WHERE i.alumno_id = ?
    """
    params: list[Any] = [alumno_id]
    if unidad is not None:
        query += " AND e.unidad = ?"
        params.append(unidad)
    query += " ORDER BY e.unidad, e.id"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [dict(row) for row in rows]


def update_intento(
    intento_id: int,
    estado: str,
    calificacion_final: float | None = None,
    finished: bool = False,
) -> bool:
    with get_db() as conn:
        if finished:
            cursor = conn.execute(
                "UPDATE intentos_evaluacion SET estado = ?, calificacion_final = ?, "
                "fecha_fin = COALESCE(fecha_fin, ?) WHERE id = ?",
                (estado, calificacion_final, utc_now(), intento_id),
            )
        else:
            cursor = conn.execute(
                "UPDATE intentos_evaluacion SET estado = ?, calificacion_final = ? WHERE id = ?",
                (estado, calificacion_final, intento_id),
            )
        return cursor.rowcount > 0


def upsert_respuesta(intento_id: int, pregunta_id: int, respuesta: Any) -> None:
    """Save (or overwrite) an answer. Any previous grading is cleared."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO respuestas_alumno (intento_id, pregunta_id, respuesta)
            VALUES (?, ?, ?)
            ON CONFLICT(intento_id, pregunta_id) DO UPDATE SET
                respuesta = excluded.respuesta,
                puntos_obtenidos = NULL,
                es_correcta = NULL,
                comentario = NULL
            """,
            (intento_id, pregunta_id, json.dumps(respuesta, ensure_ascii=False)),
        )


def list_respuestas(intento_id: int) -> list[RespuestaRecord]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM respuestas_alumno WHERE intento_id = ? ORDER BY pregunta_id",
            (intento_id,),
        ).fetchall()
    return [_row_to_respuesta(row) for row in rows]


def grade_respuesta(
    intento_id: int,
    pregunta_id: int,
    puntos_obtenidos: float | None,
    es_correcta: bool | None,
    comentario: str | None = None,
) -> None:
    """Store the grade of an answer, creating an empty answer if missing."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO respuestas_alumno (
                intento_id, pregunta_id, respuesta, puntos_obtenidos, es_correcta, comentario
            ) VALUES (?, ?, 'null', ?, ?, ?)
            ON CONFLICT(intento_id, pregunta_id) DO UPDATE SET
                puntos_obtenidos = excluded.puntos_obtenidos,
                es_correcta = excluded.es_correcta,
                comentario = COALESCE(excluded.comentario, respuestas_alumno.comentario)
            """,
            (
                intento_id,
                pregunta_id,
                puntos_obtenidos,
                None if es_correcta is None else int(es_correcta),
                comentario,
            ),
        )


def insert_registro_actividad(intento_id: int, tipo_evento: str) -> int:
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT INTO registros_actividad_intento (intento_id, tipo_evento) VALUES (?, ?)",
            (intento_id, tipo_evento),
        )
        return cursor.lastrowid


def list_registros_actividad(intento_id: int) -> list[dict[str, Any]]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT tipo_evento, created_at FROM registros_actividad_intento "
            "WHERE intento_id = ? ORDER BY id",
            (intento_id,),
        ).fetchall()
    return [dict(row) for row in rows]


# =============================================================================
# BANCO DE PREGUNTAS
# =============================================================================


def insert_banco_pregunta(docente_id: int, pregunta: dict[str, Any]) -> int:
    datos_extra = pregunta.get("datos_extra")
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO banco_preguntas (
                docente_id, texto_pregunta, tipo_pregunta, puntos, datos_extra, opciones
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                docente_id,
                pregunta["texto_pregunta"],
                pregunta["tipo_pregunta"],
                float(pregunta.get("puntos") or 0),
                json.dumps(datos_extra, ensure_ascii=False) if datos_extra is not None else None,
                json.dumps(pregunta.get("opciones") or [], ensure_ascii=False),
            ),
        )
        return cursor.lastrowid


def get_banco_pregunta(pregunta_id: int) -> BancoPreguntaRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM banco_preguntas WHERE id = ?", (pregunta_id,)
        ).fetchone()
    return _row_to_banco(row) if row else None


def list_banco_preguntas(docente_id: int, tipo_pregunta: str | None = None) -> list[BancoPreguntaRecord]:
    query = "SELECT * FROM banco_preguntas WHERE docente_id = ?"
    params: list[Any] = [docente_id]
    if tipo_pregunta:
        query += " AND tipo_pregunta = ?"
        params.append(tipo_pregunta)
    query += " ORDER BY id DESC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_banco(row) for row in rows]


def delete_banco_pregunta(pregunta_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM banco_preguntas WHERE id = ?", (pregunta_id,))
        return cursor.rowcount > 0


def _row_to_evaluacion(row: sqlite3.Row) -> EvaluacionRecord:
    return EvaluacionRecord(
        id=row["id"],
        materia_id=row["materia_id"],
        docente_id=row["docente_id"],
        titulo=row["titulo"],
        descripcion=row["descripcion"],
        unidad=row["unidad"],
        tiempo_limite_minutos=row["tiempo_limite_minutos"],
        estado=row["estado"],
        created_at=row["created_at"],
    )


def _row_to_intento(row: sqlite3.Row) -> IntentoRecord:
    return IntentoRecord(
        id=row["id"],
        evaluacion_id=row["evaluacion_id"],
        alumno_id=row["alumno_id"],
        estado=row["estado"],
        fecha_inicio=row["fecha_inicio"],
        fecha_fin=row["fecha_fin"],
        calificacion_final=row["calificacion_final"],
        alumno_nombre=row["alumno_nombre"].strip(),
        matricula=row["matricula"],
    )


def _row_to_respuesta(row: sqlite3.Row) -> RespuestaRecord:
    es_correcta = row["es_correcta"]
    return RespuestaRecord(
        id=row["id"],
        intento_id=row["intento_id"],
        pregunta_id=row["pregunta_id"],
        respuesta=json.loads(row["respuesta"]),
        puntos_obtenidos=row["puntos_obtenidos"],
        es_correcta=None if es_correcta is None else bool(es_correcta),
        comentario=row["comentario"],
    )


def _row_to_banco(row: sqlite3.Row) -> BancoPreguntaRecord:
    return BancoPreguntaRecord(
        id=row["id"],
        docente_id=row["docente_id"],
        texto_pregunta=row["texto_pregunta"],
        tipo_pregunta=row["tipo_pregunta"],
        puntos=row["puntos"],
        datos_extra=json.loads(row["datos_extra"]) if row["datos_extra"] else None,
        opciones=json.loads(row["opciones"] or "[]"),
        created_at=row["created_at"],
    )

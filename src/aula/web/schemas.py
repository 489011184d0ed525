"""Pydantic schemas for the Web API.

Request bodies are validated here; responses are built from the
repository dataclasses (``from_attributes``) or plain dicts.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# COMMON
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class MessageResponse(BaseModel):
    """Plain message, also used for every error body."""

    message: str


class JobQueuedResponse(BaseModel):
    message: str
    job_id: int


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class RegistroDocenteRequest(BaseModel):
    """Request body for docente registration."""

    email: str = Field(..., min_length=3, max_length=200)
    nombre: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=1, max_length=200)


class DocenteResponse(BaseModel):
    id: int
    email: str
    nombre: str
    created_at: str

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """Bearer token issued on login."""

    access_token: str
    token_type: str = "bearer"
    role: Literal["docente", "alumno"]
    user_id: int
    nombre: str


# =============================================================================
# MATERIA SCHEMAS
# =============================================================================


class MateriaCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=200)
    semestre: str | None = Field(default=None, max_length=50)
    unidades: int = Field(default=1, ge=1, le=20)


class MateriaUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=1, max_length=200)
    semestre: str | None = Field(default=None, max_length=50)
    unidades: int | None = Field(default=None, ge=1, le=20)


class MateriaResponse(BaseModel):
    """Response for a materia, including its Drive/Sheets ids."""

    id: int
    docente_id: int
    nombre: str
    semestre: str | None
    unidades: int
    drive_url: str | None
    drive_folder_material_id: str | None
    rubricas_spreadsheet_id: str | None
    plagio_spreadsheet_id: str | None
    calificaciones_spreadsheet_id: str | None
    created_at: str

    model_config = {"from_attributes": True}


class EliminarRecursoRequest(BaseModel):
    tipo_recurso: Literal["materia", "actividad"]
    recurso_id: int


# =============================================================================
# MATERIAL SCHEMAS
# =============================================================================


class CarpetaMaterialCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=200)
    parent_folder_id: str | None = None


class ArchivoMaterialUpload(BaseModel):
    """Material upload; file fields follow the remote script contract."""

    fileName: str = Field(..., min_length=1)
    mimeType: str = "application/octet-stream"
    base64Data: str = Field(..., min_length=1)
    folder_id: str | None = None


# =============================================================================
# ALUMNO SCHEMAS
# =============================================================================


class AlumnoCreate(BaseModel):
    matricula: str = Field(..., min_length=1, max_length=50)
    nombre: str = Field(..., min_length=1, max_length=100)
    apellido: str = Field(default="", max_length=100)
    correo: str | None = Field(default=None, max_length=200)


class AlumnoUpdate(BaseModel):
    matricula: str | None = Field(default=None, min_length=1, max_length=50)
    nombre: str | None = Field(default=None, min_length=1, max_length=100)
    apellido: str | None = Field(default=None, max_length=100)
    correo: str | None = Field(default=None, max_length=200)


class AlumnoResponse(BaseModel):
    id: int
    materia_id: int
    matricula: str
    nombre: str
    apellido: str
    correo: str | None
    cuenta_email: str | None
    created_at: str

    model_config = {"from_attributes": True}


class CsvImportRequest(BaseModel):
    """CSV text with header matricula,nombre[,apellido][,correo]."""

    contenido: str = Field(..., min_length=1)


class CsvImportResponse(BaseModel):
    insertados: int
    omitidos: int
    errores: list[str]


class ValidarAlumnoRequest(BaseModel):
    matricula: str
    correo: str


class CuentaAlumnoRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=1, max_length=200)


class CuentasMasivoRequest(BaseModel):
    alumno_ids: list[int] | None = None


class CuentaResultado(BaseModel):
    alumno_id: int
    matricula: str
    ok: bool
    message: str


class CuentasMasivoResponse(BaseModel):
    total_procesados: int
    exitosos: int
    resultados: list[CuentaResultado]


# =============================================================================
# ACTIVIDAD SCHEMAS
# =============================================================================


class Criterio(BaseModel):
    descripcion: str = Field(..., min_length=1)
    puntos: float = Field(..., ge=0)


class ActividadCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=200)
    unidad: int = Field(..., ge=1)
    tipo_entrega: str = "individual"
    descripcion: str | None = None
    fecha_limite: str | None = None
    criterios: list[Criterio] | None = None


class ActividadUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=1, max_length=200)
    unidad: int | None = Field(default=None, ge=1)
    tipo_entrega: str | None = None
    descripcion: str | None = None
    fecha_limite: str | None = None
    criterios: list[Criterio] | None = None


class ActividadResponse(BaseModel):
    id: int
    materia_id: int
    docente_id: int
    nombre: str
    unidad: int
    tipo_entrega: str
    descripcion: str | None
    fecha_limite: str | None
    criterios: list[dict[str, Any]]
    drive_folder_id: str | None
    rubrica_sheet_range: str | None
    created_at: str

    model_config = {"from_attributes": True}


class ActividadUpdateResponse(BaseModel):
    actividad: ActividadResponse
    rubrica_sincronizada: bool


class CalificacionResponse(BaseModel):
    """A delivery and its grade."""

    id: int
    actividad_id: int
    alumno_id: int
    estado: str
    calificacion_obtenida: float | None
    justificacion: str | None
    justificacion_sheet_cell: str | None
    progreso_evaluacion: str | None
    drive_file_id: str | None
    archivo_url: str | None
    fecha_entrega: str | None
    updated_at: str
    matricula: str = ""
    alumno_nombre: str = ""
    actividad_nombre: str = ""
    unidad: int = 0

    model_config = {"from_attributes": True}


class ActividadDetalleResponse(BaseModel):
    actividad: ActividadResponse
    calificaciones: list[CalificacionResponse]


class CalificacionManualRequest(BaseModel):
    calificacion: float = Field(..., ge=0, le=100)
    justificacion: str | None = None


class EntregaRequest(BaseModel):
    """Delivery upload; field names follow the remote script contract."""

    actividad_id: int
    fileName: str = Field(..., min_length=1)
    mimeType: str = "application/octet-stream"
    base64Data: str = Field(..., min_length=1)


# =============================================================================
# ASISTENCIA SCHEMAS
# =============================================================================


class SesionCreate(BaseModel):
    unidad: int = Field(..., ge=1)
    sesion: int = Field(..., ge=1)
    minutos: int | None = Field(default=None, ge=1, le=240)


class SesionResponse(BaseModel):
    id: int
    materia_id: int
    unidad: int
    sesion: int
    token: str
    expires_at: str

    model_config = {"from_attributes": True}


class RegistrarAsistenciaRequest(BaseModel):
    """Body sent by the alumno after scanning the QR code."""

    materia_id: int
    unidad: int
    sesion: int
    token: str
    matricula: str


class FinalizarSesionRequest(BaseModel):
    unidad: int = Field(..., ge=1)
    sesion: int = Field(..., ge=1)
    fecha: str | None = None


class FinalizarSesionResponse(BaseModel):
    ausentes_registrados: int
    total_registros: int
    sincronizado: bool
    message: str


class CerrarUnidadRequest(BaseModel):
    unidad: int = Field(..., ge=1)


class SyncMessageResponse(BaseModel):
    message: str
    sincronizado: bool


class AsistenciaResponse(BaseModel):
    id: int
    materia_id: int
    alumno_id: int
    fecha: str
    unidad: int
    sesion: int
    presente: bool
    justificacion: str | None
    matricula: str = ""
    nombre_completo: str = ""

    model_config = {"from_attributes": True}


class AsistenciaUpdate(BaseModel):
    presente: bool
    justificacion: str | None = None


# =============================================================================
# EVALUACION SCHEMAS
# =============================================================================


class OpcionIn(BaseModel):
    texto_opcion: str = Field(..., min_length=1)
    es_correcta: bool = False


class PreguntaIn(BaseModel):
    """Question as sent by the editor or the AI draft."""

    texto_pregunta: str = Field(..., min_length=1)
    tipo_pregunta: str
    puntos: float = Field(..., ge=0)
    opciones: list[OpcionIn] = Field(default_factory=list)
    datos_extra: dict[str, Any] | None = None


class EvaluacionCreate(BaseModel):
    titulo: str = Field(..., min_length=1, max_length=200)
    unidad: int = Field(default=1, ge=1)
    descripcion: str | None = None
    tiempo_limite_minutos: int | None = Field(default=None, ge=1)
    preguntas: list[PreguntaIn] = Field(default_factory=list)


class EvaluacionUpdate(BaseModel):
    titulo: str | None = Field(default=None, min_length=1, max_length=200)
    unidad: int | None = Field(default=None, ge=1)
    descripcion: str | None = None
    tiempo_limite_minutos: int | None = Field(default=None, ge=1)
    estado: Literal["borrador", "publicado", "cerrado"] | None = None
    preguntas: list[PreguntaIn] | None = None


class EvaluacionResponse(BaseModel):
    id: int
    materia_id: int
    docente_id: int
    titulo: str
    descripcion: str | None
    unidad: int
    tiempo_limite_minutos: int | None
    estado: str
    created_at: str

    model_config = {"from_attributes": True}


class OpcionResponse(BaseModel):
    id: int
    texto_opcion: str
    es_correcta: bool

    model_config = {"from_attributes": True}


class PreguntaResponse(BaseModel):
    id: int
    texto_pregunta: str
    tipo_pregunta: str
    puntos: float
    orden: int
    datos_extra: dict[str, Any] | None
    opciones: list[OpcionResponse]

    model_config = {"from_attributes": True}


class EvaluacionDetalleResponse(BaseModel):
    evaluacion: EvaluacionResponse
    preguntas: list[PreguntaResponse]
    total_puntos: float


class BancoPreguntaResponse(BaseModel):
    id: int
    texto_pregunta: str
    tipo_pregunta: str
    puntos: float
    datos_extra: dict[str, Any] | None
    opciones: list[dict[str, Any]]
    created_at: str

    model_config = {"from_attributes": True}


class CopiarBancoRequest(BaseModel):
    banco_ids: list[int] = Field(..., min_length=1)


class IntentoResponse(BaseModel):
    id: int
    evaluacion_id: int
    alumno_id: int
    estado: str
    fecha_inicio: str
    fecha_fin: str | None
    calificacion_final: float | None
    alumno_nombre: str = ""
    matricula: str = ""

    model_config = {"from_attributes": True}


class IntentoResumenResponse(BaseModel):
    intento: IntentoResponse
    cambios_de_foco: int


class RespuestaRequest(BaseModel):
    pregunta_id: int
    respuesta: Any = None


class FocusChangeRequest(BaseModel):
    intento_id: int
    tipo_evento: str


class FinalizarIntentoRequest(BaseModel):
    """Optional last answers, keyed by pregunta id."""

    respuestas: dict[int, Any] = Field(default_factory=dict)


class CalificacionIntentoResponse(BaseModel):
    intento_id: int
    estado: str
    calificacion_final: float
    preguntas_pendientes: int


class CalificarRespuestaRequest(BaseModel):
    pregunta_id: int
    puntos: float
    comentario: str | None = None


# =============================================================================
# IA SCHEMAS
# =============================================================================


class GenerarEvaluacionRequest(BaseModel):
    tema: str = Field(..., min_length=1)
    num_preguntas: int = Field(..., gt=0)
    tipos_preguntas: list[str] = Field(..., min_length=1)
    instrucciones_adicionales: str | None = None


class GenerarRubricaRequest(BaseModel):
    descripcion_actividad: str = Field(..., min_length=1)


class RubricaResponse(BaseModel):
    criterios: list[Criterio]
    total_puntos: float


class SugerirCalificacionRequest(BaseModel):
    texto_pregunta: str = Field(..., min_length=1)
    respuesta_alumno: str = ""
    puntos_maximos: float = Field(..., gt=0)


class SugerenciaResponse(BaseModel):
    puntos_sugeridos: float
    comentario_sugerido: str


# =============================================================================
# COLA / PLAGIO / DRIVE SCHEMAS
# =============================================================================


class EvaluacionMasivaRequest(BaseModel):
    calificacion_ids: list[int] = Field(..., min_length=1)


class PlagioRequest(BaseModel):
    materia_id: int
    drive_file_ids: list[str] = Field(..., min_length=2)


class ComparacionPlagio(BaseModel):
    trabajo_A_id: str
    trabajo_B_id: str
    porcentaje_similitud: float
    fragmentos_similares: list[str]


class PlagioJobResponse(BaseModel):
    id: int
    materia_id: int
    drive_file_ids: list[str]
    status: str
    resultado_plagio: list[ComparacionPlagio] | None
    ultimo_error: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class DriveSyncStatusResponse(BaseModel):
    id: int
    status: str
    ultimo_error: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# REPORTES SCHEMAS
# =============================================================================


class PesosUnidadRequest(BaseModel):
    """Component weights; must add up to 100."""

    asistencia: float = Field(..., ge=0)
    actividades: float = Field(..., ge=0)
    evaluaciones: float = Field(..., ge=0)


# =============================================================================
# PUZZLE SCHEMAS
# =============================================================================


class CrosswordEntry(BaseModel):
    clue: str
    answer: str


class CrosswordRequest(BaseModel):
    palabras: list[CrosswordEntry] = Field(default_factory=list)


class WordSearchRequest(BaseModel):
    """Word list plus requested size; bad values answer 400, not 422."""

    palabras: Any = None
    filas: Any = 10
    columnas: Any = 10
    relleno_aleatorio: bool = True

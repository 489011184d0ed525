"""aula-docente: course management backend for university teachers."""

__version__ = "0.1.0"

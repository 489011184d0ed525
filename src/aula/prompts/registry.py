"""Prompt registry.

Prompts live as Markdown files under ``templates/`` and are addressed by
their relative path without extension, e.g. ``"ia/generar_rubrica"``.
Placeholders use ``{variable}`` syntax; JSON examples inside a template
are safe because their keys are quoted.

Usage:
    from aula.prompts.registry import get_prompt

    prompt = get_prompt("ia/generar_rubrica", descripcion_actividad="Ensayo")
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

# Prompt templates ship inside the package
PROMPTS_DIR = Path(__file__).parent / "templates"

PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


@lru_cache(maxsize=32)
def _load_template(key: str) -> str:
    path = PROMPTS_DIR / f"{key}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt not found: {key} (looked at {path})")
    return path.read_text(encoding="utf-8")


def get_prompt(key: str, **variables: object) -> str:
    """Load a prompt and substitute its placeholders.

    Args:
        key: Template key, e.g. "cola/calificar_trabajo"
        **variables: Values for the template placeholders

    Returns:
        Rendered prompt

    Raises:
        FileNotFoundError: If the template does not exist
        KeyError: If a placeholder has no value
    """
    template = _load_template(key)

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            raise KeyError(f"Prompt '{key}' requires variable '{name}'")
        return str(variables[name])

    return PLACEHOLDER.sub(_substitute, template)


def list_prompts() -> list[str]:
    """List available template keys, sorted."""
    if not PROMPTS_DIR.exists():
        logger.warning("prompts_dir_not_found", path=str(PROMPTS_DIR))
        return []
    return sorted(
        path.relative_to(PROMPTS_DIR).with_suffix("").as_posix()
        for path in PROMPTS_DIR.rglob("*.md")
    )


def clear_cache() -> None:
    """Forget loaded templates (tests edit them at runtime)."""
    _load_template.cache_clear()

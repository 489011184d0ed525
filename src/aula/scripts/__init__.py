"""Remote script (Drive/Sheets) integration."""

from aula.scripts.client import ScriptClient, ScriptError, ScriptNotConfiguredError

__all__ = ["ScriptClient", "ScriptError", "ScriptNotConfiguredError"]

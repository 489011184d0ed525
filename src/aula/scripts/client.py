"""HTTP client for the remote script endpoint.

The remote script performs Drive/Sheets operations outside this service.
Every call is a JSON POST carrying an ``action`` field plus the action's
parameters; a successful reply is a JSON object with
``status == "success"`` and action-specific fields.

Usage:
    client = ScriptClient.from_config()
    if client.is_configured:
        result = client.call("create_activity_folder", drive_url=url, ...)
"""

from __future__ import annotations

import time
from typing import Any

import requests
import structlog

from aula.config.app_config import ScriptConfig, load_app_config

logger = structlog.get_logger(__name__)

# Actions that only read remote data and can safely be retried
READ_ACTIONS = {
    "get_rubric_text",
    "get_student_work_text",
    "get_multiple_file_contents",
    "get_folder_contents",
    "get_final_course_grades",
    "get_justification_text",
    "leer_datos_asistencia",
}


class ScriptError(Exception):
    """The remote script failed or answered with an error status."""

    pass


class ScriptNotConfiguredError(ScriptError):
    """No endpoint URL is configured."""

    pass


class ScriptClient:
    """Minimal client for the action-based script endpoint."""

    def __init__(
        self,
        url: str | None,
        token: str | None = None,
        timeout: float = 60.0,
        retries: int = 1,
        retry_delay_seconds: float = 2.0,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout
        self.retries = retries
        self.retry_delay_seconds = retry_delay_seconds
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: ScriptConfig | None = None) -> ScriptClient:
        """Build a client from the application configuration."""
        if config is None:
            config = load_app_config().script
        return cls(
            url=config.get_url(),
            token=config.get_token(),
            timeout=config.timeout,
            retries=config.retries,
            retry_delay_seconds=config.retry_delay_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    def call(self, action: str, **payload: Any) -> dict[str, Any]:
        """Run an action on the remote script.

        Read actions are retried after a fixed delay when they fail.

        Args:
            action: Remote action name
            **payload: Action parameters, sent as JSON fields

        Returns:
            The decoded JSON reply

        Raises:
            ScriptNotConfiguredError: If no URL is configured
            ScriptError: On transport failure, non-2xx status, a non-JSON
                body or a reply whose status is not "success"
        """
        if not self.url:
            raise ScriptNotConfiguredError(
                "La URL del script remoto no está configurada."
            )

        retries = self.retries if action in READ_ACTIONS else 0

        for attempt in range(1, retries + 1):
            try:
                return self._post(action, payload)
            except ScriptError as exc:
                logger.warning(
                    "script.retrying",
                    action=action,
                    attempt=attempt,
                    error=str(exc),
                )
                time.sleep(self.retry_delay_seconds)

        return self._post(action, payload)

    def _post(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        body = {"action": action, **payload}
        try:
            response = self._session.post(
                self.url, json=body, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ScriptError(f"Error de comunicación con el script ({action}): {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ScriptError(
                f"Respuesta no válida del script ({action}): {response.text[:200]}"
            ) from exc

        if not isinstance(data, dict) or data.get("status") != "success":
            message = data.get("message") if isinstance(data, dict) else None
            raise ScriptError(
                f"El script respondió con error ({action}): {message or 'sin detalle'}"
            )

        logger.debug("script.call_ok", action=action)
        return data

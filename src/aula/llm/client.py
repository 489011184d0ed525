"""LLM client for the AI features.

Exam drafts, rubrics, grade suggestions, queued grading and plagiarism
comparison all go through ``LLMClient``. Every provider is reached through
the OpenAI-compatible chat completions API:

- lmstudio: local LM Studio server (no real key, no JSON mode)
- openai: OpenAI API
- gemini: Google Gemini through its OpenAI-compatible endpoint

Most callers want JSON back. Models wrap it in reasoning tags, code
fences or prose, so ``extract_json`` digs it out and ``chat_json`` asks
the model once to repair output that still does not parse.
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from openai import OpenAI

from aula.config.app_config import LLMSettings, load_app_config

logger = structlog.get_logger(__name__)

Provider = Literal["lmstudio", "openai", "gemini"]
JsonValue = dict[str, Any] | list[Any]


@dataclass(frozen=True)
class ProviderProfile:
    """Endpoint and capabilities of a provider."""

    base_url: str
    api_key_env: str | None = None
    fixed_api_key: str | None = None
    supports_json_object: bool = False


PROVIDERS: dict[str, ProviderProfile] = {
    "lmstudio": ProviderProfile(
        base_url="http://localhost:1234/v1", fixed_api_key="lm-studio"
    ),
    "openai": ProviderProfile(
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        supports_json_object=True,
    ),
    "gemini": ProviderProfile(
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        api_key_env="GEMINI_API_KEY",
        supports_json_object=True,
    ),
}

REPAIR_PROMPT = """Corrige y devuelve SOLO JSON válido a partir de este texto:
<<<
{salida}
>>>

Responde ÚNICAMENTE con el JSON corregido, sin explicaciones ni markdown."""

REASONING_BLOCK = re.compile(
    r"<(think|analysis|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE
)
FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class LLMError(Exception):
    """Error during LLM interaction."""


class LLMConnectionError(LLMError):
    """The provider could not be reached."""


class LLMResponseError(LLMError):
    """The provider answered with something unusable."""


def extract_json(text: str) -> JsonValue | None:
    """Find the JSON value in a model answer.

    Tries the whole answer, then a fenced block, then the span between
    the first opening bracket and its last matching closer. Returns None
    when nothing parses.
    """
    text = REASONING_BLOCK.sub("", text or "").strip()
    candidates = [text]

    fenced = FENCED_BLOCK.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())

    # Whichever bracket opens first is the outermost value
    openers = sorted(
        (text.find(opener), closer)
        for opener, closer in (("{", "}"), ("[", "]"))
        if opener in text
    )
    for start, closer in openers:
        end = text.rfind(closer) + 1
        if end > start:
            candidates.append(text[start:end])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


@dataclass
class LLMConfig:
    """Resolved connection settings for one provider."""

    provider: Provider = "lmstudio"
    base_url: str = "http://localhost:1234/v1"
    model: str = "default"
    temperature: float = 0.4
    max_tokens: int = 4096
    timeout: int = 120
    api_key: str | None = None
    supports_json_object: bool | None = None

    @classmethod
    def from_settings(cls, settings: LLMSettings | None = None) -> LLMConfig:
        """Resolve the ``llm`` config section against the provider profile.

        The key comes from ``api_key_env`` when set, else from the
        provider's usual environment variable.
        """
        settings = settings or load_app_config().llm
        profile = PROVIDERS.get(settings.provider, PROVIDERS["lmstudio"])

        api_key = settings.get_api_key()
        if api_key is None:
            api_key = (
                os.environ.get(profile.api_key_env)
                if profile.api_key_env
                else profile.fixed_api_key
            )

        return cls(
            provider=settings.provider,
            base_url=settings.base_url or profile.base_url,
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.timeout,
            api_key=api_key,
            supports_json_object=settings.supports_json_object,
        )

    @property
    def json_mode_available(self) -> bool:
        if self.supports_json_object is not None:
            return self.supports_json_object
        profile = PROVIDERS.get(self.provider)
        return profile.supports_json_object if profile else False


@dataclass
class Message:
    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    content: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


def _conversation(system_prompt: str, user_message: str) -> list[Message]:
    return [
        Message(role="system", content=system_prompt),
        Message(role="user", content=user_message),
    ]


class LLMClient:
    """Chat client shared by every AI feature."""

    def __init__(self, config: LLMConfig | None = None, model: str | None = None):
        self.config = config or LLMConfig.from_settings()
        if model is not None:
            self.config.model = model

        self._client = OpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
        )
        logger.info(
            "llm.client_ready",
            provider=self.config.provider,
            model=self.config.model,
            base_url=self.config.base_url,
        )

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send a chat completion request.

        ``json_mode`` asks for ``response_format=json_object`` only when
        the provider supports it.

        Raises:
            LLMConnectionError: The server could not be reached
            LLMError: Any other provider failure
            LLMResponseError: The answer had no choices
        """
        request: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if json_mode and self.config.json_mode_available:
            request["response_format"] = {"type": "json_object"}

        started = time.time()
        try:
            completion = self._client.chat.completions.create(**request)
        except Exception as e:
            if "connect" in str(e).lower():
                raise LLMConnectionError(
                    f"No se pudo conectar a {self.config.provider} en {self.config.base_url}: {e}"
                ) from e
            raise LLMError(f"Error en llamada LLM: {e}") from e

        if not completion.choices:
            raise LLMResponseError("Respuesta vacía del LLM")

        usage = {}
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }
        response = LLMResponse(
            content=completion.choices[0].message.content or "",
            model=completion.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=int((time.time() - started) * 1000),
        )
        logger.debug(
            "llm.response",
            model=response.model,
            tokens=response.total_tokens,
            latency_ms=response.latency_ms,
        )
        return response

    def chat_json(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_retries: int = 1,
    ) -> JsonValue:
        """Chat expecting a JSON object or array.

        Output that does not parse is sent back with a repair request,
        up to ``max_retries`` times.

        Raises:
            LLMResponseError: No valid JSON after the retries
        """
        response = self.chat(messages, temperature, max_tokens, json_mode=True)
        parsed = extract_json(response.content)

        attempts = 0
        conversation = list(messages)
        last = response
        while parsed is None and attempts < max_retries:
            attempts += 1
            logger.warning(
                "llm.json_repair", provider=self.config.provider, content=last.content[:100]
            )
            conversation += [
                Message(role="assistant", content=last.content),
                Message(role="user", content=REPAIR_PROMPT.format(salida=last.content[:1000])),
            ]
            last = self.chat(conversation, temperature, max_tokens, json_mode=True)
            parsed = extract_json(last.content)

        if parsed is None:
            raise LLMResponseError(
                f"No se pudo obtener JSON válido: {response.content[:200]}..."
            )
        return parsed

    def simple_chat(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Single-turn chat returning the answer text."""
        return self.chat(
            _conversation(system_prompt, user_message), temperature, max_tokens
        ).content

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> JsonValue:
        """Single-turn chat returning parsed JSON."""
        return self.chat_json(
            _conversation(system_prompt, user_message), temperature, max_tokens
        )

    def is_available(self) -> bool:
        """Whether the provider answers a model listing."""
        try:
            self._client.models.list()
        except Exception as e:
            logger.debug("llm.unavailable", error=str(e))
            return False
        return True

"""Adaptador del proveedor IA (Gemini vía endpoint compatible OpenAI).

Responsabilidad:
- Construir el cliente `AsyncOpenAI` a partir de `AppSettings` (sin singleton
  global: la clave API es un argumento explícito).
- Traducir `GenerationConfig` a parámetros de `chat.completions.create`.
- Devolver `RawModelResponse` con texto, uso de tokens y fuentes citadas.

Una llamada a `generate` = una petición HTTP (`max_retries=0`); reintentar es
decisión del llamador.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from core.config import AppSettings
from core.domain.errors import ClassifiedError, ErrorKind
from core.domain.models import Source, TokenUsage
from core.interfaces.text_generator import GenerationRequest, RawModelResponse

logger = logging.getLogger(__name__)

# Motores que aceptan el ajuste `thinking_budget`.
THINKING_BUDGET_MODELS = frozenset({"gemini-3-flash-preview"})

UNTITLED_SOURCE = "Fuente sin título"


def build_ai_client(settings: AppSettings) -> AsyncOpenAI:
    api_key = (settings.ai_api_key or "").strip()
    if not api_key:
        raise ClassifiedError(
            ErrorKind.AUTHENTICATION,
            "La clave API del proveedor IA no ha sido configurada. "
            "Por favor, configúrala con `inversia doctor setup-ai`.",
            engine=settings.ai_model,
        )
    return AsyncOpenAI(
        api_key=api_key,
        base_url=settings.ai_base_url,
        timeout=settings.ai_timeout_seconds,
        max_retries=0,
    )


def supports_thinking_budget(model: str) -> bool:
    return model in THINKING_BUDGET_MODELS


def _usage_from(raw_usage: Any) -> TokenUsage:
    if raw_usage is None:
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=getattr(raw_usage, "prompt_tokens", None) or 0,
        candidate_tokens=getattr(raw_usage, "completion_tokens", None) or 0,
        total_tokens=getattr(raw_usage, "total_tokens", None) or 0,
    )


def _grounding_chunks(dump: dict[str, Any]) -> list[dict[str, Any]]:
    """Localiza `groundingChunks` en la respuesta (top-level o por choice)."""

    containers: list[Any] = [dump]
    choices = dump.get("choices")
    if isinstance(choices, list) and choices:
        containers.append(choices[0])
    for container in containers:
        if not isinstance(container, dict):
            continue
        meta = container.get("grounding_metadata") or container.get("groundingMetadata")
        if isinstance(meta, dict):
            chunks = meta.get("grounding_chunks") or meta.get("groundingChunks")
            if isinstance(chunks, list):
                return [c for c in chunks if isinstance(c, dict)]
    return []


def extract_sources(response: Any) -> list[Source]:
    """Fuentes citadas por la búsqueda web (best-effort).

    Soporta el bloque `groundingMetadata` de Gemini y las anotaciones
    `url_citation` del formato OpenAI. Las fuentes sin URI se descartan.
    """

    try:
        dump = response.model_dump()
    except AttributeError:
        return []

    sources: list[Source] = []
    for chunk in _grounding_chunks(dump):
        web = chunk.get("web") if isinstance(chunk.get("web"), dict) else {}
        uri = (web.get("uri") or "").strip()
        if uri:
            sources.append(Source(uri=uri, title=web.get("title") or UNTITLED_SOURCE))

    choices = dump.get("choices") or []
    message = choices[0].get("message") if choices and isinstance(choices[0], dict) else None
    annotations = message.get("annotations") if isinstance(message, dict) else None
    for annotation in annotations or []:
        citation = annotation.get("url_citation") if isinstance(annotation, dict) else None
        if isinstance(citation, dict) and (citation.get("url") or "").strip():
            sources.append(Source(uri=citation["url"].strip(), title=citation.get("title") or UNTITLED_SOURCE))

    return sources


def build_completion_kwargs(request: GenerationRequest) -> dict[str, Any]:
    """Traduce la petición al payload de `chat.completions.create`."""

    config = request.config
    messages: list[dict[str, str]] = []
    if config.system_instruction:
        messages.append({"role": "system", "content": config.system_instruction})
    messages.append({"role": "user", "content": request.prompt})

    kwargs: dict[str, Any] = {
        "model": request.model,
        "messages": messages,
        "temperature": config.temperature,
    }
    if config.max_output_tokens is not None:
        kwargs["max_tokens"] = config.max_output_tokens
    if config.response_schema is not None:
        kwargs["response_format"] = {
            "type": "json_schema",
            "json_schema": {"name": request.operation, "schema": config.response_schema},
        }

    # Opciones propias de Gemini: viajan en el bloque `extra_body.google`.
    google: dict[str, Any] = {}
    if config.web_search:
        google["tools"] = [{"google_search": {}}]
    if config.thinking_budget is not None and supports_thinking_budget(request.model):
        google["thinking_config"] = {"thinking_budget": config.thinking_budget}
    if google:
        kwargs["extra_body"] = {"extra_body": {"google": google}}

    return kwargs


class OpenAICompatibleGenerator:
    """Implementación de `TextGenerator` sobre el SDK `openai`."""

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "OpenAICompatibleGenerator":
        return cls(build_ai_client(settings))

    async def generate(self, request: GenerationRequest) -> RawModelResponse:
        kwargs = build_completion_kwargs(request)
        logger.debug(
            "AI call %s model=%s web_search=%s schema=%s",
            request.operation,
            request.model,
            request.config.web_search,
            request.config.response_schema is not None,
        )

        response = await self._client.chat.completions.create(**kwargs)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        return RawModelResponse(
            text=content,
            model=request.model,
            usage=_usage_from(response.usage),
            sources=tuple(extract_sources(response)),
        )

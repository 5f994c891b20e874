"""Contrato del proveedor de texto generativo.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Permite sustituir el SDK real por un fake en tests y ejecutar varias
  llamadas concurrentes sin estado compartido entre ellas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from core.domain.models import Source, TokenUsage


@dataclass(frozen=True)
class GenerationConfig:
    """Opciones reconocidas por una llamada de generación.

    Defaults:
    - `temperature`: 0.4.
    - `response_schema`: None (sin esquema estricto). Si se indica, se pide
      salida JSON validada por el proveedor.
    - `web_search`: False (sin búsqueda web / grounding).
    - `system_instruction`: None.
    - `max_output_tokens`: None (límite del proveedor).
    - `thinking_budget`: None. Solo se envía a motores que lo soportan.
    """

    temperature: float = 0.4
    response_schema: dict[str, Any] | None = None
    web_search: bool = False
    system_instruction: str | None = None
    max_output_tokens: int | None = None
    thinking_budget: int | None = None


@dataclass(frozen=True)
class GenerationRequest:
    model: str
    prompt: str
    config: GenerationConfig = field(default_factory=GenerationConfig)
    operation: str = "generate"


@dataclass(frozen=True)
class RawModelResponse:
    """Texto opaco devuelto por el proveedor, aún sin parsear."""

    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    sources: tuple[Source, ...] = ()


@runtime_checkable
class TextGenerator(Protocol):
    """Contrato mínimo de un proveedor.

    Reglas de diseño:
    - `generate` es asíncrono: es el único punto de suspensión del flujo.
    - Una invocación = exactamente una llamada al servicio remoto (sin reintentos).
    """

    async def generate(self, request: GenerationRequest) -> RawModelResponse:
        ...

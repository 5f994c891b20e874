"""Recuperación tolerante de JSON a partir de respuestas de modelos generativos.

El modelo "debería" devolver JSON, pero en la práctica llega:
- envuelto en fences de Markdown (```json ... ```),
- precedido/seguido de comentarios ("¡Claro! Aquí tienes: {...}"),
- con comillas o saltos de línea sin escapar dentro de los strings.

Flujo de `parse_strict`:
1) `extract_json_payload` aísla el span `{...}` / `[...]` más externo.
2) `json.loads` directo (caso común: JSON limpio).
3) Si falla, `repair_json_text` y segundo intento.
4) Si vuelve a fallar, `ClassifiedError(MALFORMED_PAYLOAD)` con la operación.

Ni el extractor ni el reparador lanzan errores propios: el único punto que
puede fallar es el parse final.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from core.domain.errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```$")

# Caracteres que, tras una comilla dentro de un string, indican que la
# comilla cierra el literal en lugar de ser parte de su contenido.
_STRING_TERMINATORS = frozenset(":,}]")

_RAW_TEXT_PREVIEW_CHARS = 500


def _truncate(text: str, max_chars: int = _RAW_TEXT_PREVIEW_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1] + "…"


def extract_json_payload(text: str) -> str:
    """Devuelve el mejor candidato a JSON dentro de `text`.

    Si tras quitar fences el texto no empieza por `{` o `[`, se toma desde la
    primera llave/corchete de apertura hasta el último de cierre. Sin ninguno,
    el texto recortado pasa tal cual y el parse posterior fallará de forma
    explícita.
    """

    json_text = text.strip()
    json_text = _LEADING_FENCE_RE.sub("", json_text)
    json_text = _TRAILING_FENCE_RE.sub("", json_text).strip()

    if json_text.startswith(("{", "[")):
        return json_text

    starts = [i for i in (json_text.find("{"), json_text.find("[")) if i != -1]
    if not starts:
        return json_text

    start = min(starts)
    end = max(json_text.rfind("}"), json_text.rfind("]"))
    if end > start:
        return json_text[start : end + 1]
    return json_text


def _next_meaningful_char(text: str, index: int) -> str:
    for ch in text[index:]:
        if not ch.isspace():
            return ch
    return ""


def repair_json_text(text: str) -> str:
    """Repara comillas internas y saltos de línea crudos dentro de strings.

    Heurística de una sola pasada (no es una gramática completa):
    - `\\` sin escapar marca el siguiente carácter como escapado; ambos pasan.
    - `"` fuera de string abre un string.
    - `"` dentro de string cierra solo si el siguiente carácter no blanco es
      `:`, `,`, `}` o `]`; si no, se reescribe como `\\"`.
    - `\\n` / `\\r` crudos dentro de un string se escriben escapados.

    Los casos ambiguos se resuelven a favor de "parece un delimitador".
    """

    out: list[str] = []
    in_string = False
    is_escaped = False

    for i, ch in enumerate(text):
        if is_escaped:
            out.append(ch)
            is_escaped = False
            continue

        if ch == "\\":
            is_escaped = True
            out.append(ch)
            continue

        if ch == '"':
            if not in_string:
                in_string = True
                out.append(ch)
            elif _next_meaningful_char(text, i + 1) in _STRING_TERMINATORS:
                in_string = False
                out.append(ch)
            else:
                out.append('\\"')
        elif in_string and ch == "\n":
            out.append("\\n")
        elif in_string and ch == "\r":
            out.append("\\r")
        else:
            out.append(ch)

    return "".join(out)


def _malformed(operation: str, raw_text: str) -> ClassifiedError:
    return ClassifiedError(
        ErrorKind.MALFORMED_PAYLOAD,
        f"La API devolvió un formato de datos inesperado ({operation}). Por favor, inténtalo de nuevo.",
        operation=operation,
        raw_text=_truncate(raw_text),
    )


def parse_strict(text: str, operation: str, *, schema: Any = None) -> Any:
    """Parsea la respuesta del modelo o lanza `MALFORMED_PAYLOAD`.

    `schema` (opcional) es cualquier tipo aceptado por `pydantic.TypeAdapter`
    (un modelo, `list[Modelo]`...). Si se indica, el resultado se valida y se
    devuelve ya tipado; una forma incompleta también es `MALFORMED_PAYLOAD`.
    """

    json_text = extract_json_payload(text)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as initial_error:
        logger.warning(
            "Initial JSON parsing failed in %s (%s). Attempting to repair...",
            operation,
            initial_error,
        )
        try:
            data = json.loads(repair_json_text(json_text))
        except json.JSONDecodeError as repair_error:
            logger.error(
                "Error parsing JSON in %s even after repair attempt: %s. Raw string: %r",
                operation,
                repair_error,
                _truncate(text),
            )
            raise _malformed(operation, text) from repair_error

    if schema is None:
        return data
    return validate_payload(data, operation, schema, raw_text=text)


def validate_payload(data: Any, operation: str, schema: Any, *, raw_text: str = "") -> Any:
    """Valida `data` contra `schema`; una forma incompleta es `MALFORMED_PAYLOAD`."""

    try:
        return TypeAdapter(schema).validate_python(data)
    except ValidationError as exc:
        logger.error("Response for %s is missing required fields: %s", operation, exc)
        raise _malformed(operation, raw_text or repr(data)) from exc

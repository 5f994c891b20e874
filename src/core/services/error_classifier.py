"""Clasificación de fallos del proveedor IA.

`classify_error` recibe cualquier cosa capturada en un `except` y devuelve
siempre un `ClassifiedError` (nunca lanza), de modo que los call sites pueden
hacer uniformemente `raise classify_error(...) from exc`.

Orden (gana la primera coincidencia):
1. `ClassifiedError` previo -> se devuelve igual (solo se añade debug).
2. Red -> NETWORK.
3. "resource_exhausted" / "quota" -> QUOTA_EXCEEDED (con el motor).
4. "api key not valid" / "permission_denied" -> AUTHENTICATION.
5. "not_found" / "404" -> MODEL_UNAVAILABLE.
6. "invalid argument" -> INVALID_REQUEST.
7. Otra excepción cuyo mensaje no parezca JSON/interno -> UPSTREAM.
8. Resto -> mensaje por defecto del llamador como UNKNOWN.
"""

from __future__ import annotations

import logging
import sysconfig
import traceback
from pathlib import Path

from core.domain.errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

_SRC_ROOT = Path(__file__).resolve().parents[2]

# Frames de la propia capa IA: no aportan información sobre quién llamó.
_AI_LAYER_FILES = frozenset(
    {
        str(_SRC_ROOT / "core" / "services" / "error_classifier.py"),
        str(_SRC_ROOT / "core" / "services" / "json_recovery.py"),
        str(_SRC_ROOT / "adapters" / "ai_analyst.py"),
        str(_SRC_ROOT / "adapters" / "gemini_client.py"),
    }
)
_LIBRARY_MARKERS = ("site-packages", "dist-packages", "<frozen")
_STDLIB_DIR = Path(sysconfig.get_paths()["stdlib"]).resolve()

_NETWORK_MARKERS = (
    "fetch",
    "load failed",
    "networkerror",
    "network error",
    "connection error",
    "timed out",
)


def _is_library_frame(filename: str) -> bool:
    if any(m in filename for m in _LIBRARY_MARKERS):
        return True
    resolved = Path(filename).resolve()
    # asyncio, unittest.mock...: nunca son el sitio que hizo la llamada.
    if resolved.is_relative_to(_STDLIB_DIR):
        return True
    return str(resolved) in _AI_LAYER_FILES


def _status_code(exc: BaseException) -> int | None:
    # Errores HTTP del SDK (openai.APIStatusError) exponen `status_code`.
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def caller_debug_info(exc: BaseException) -> str:
    """Sufijo "(Error en <función> en <fichero>:<línea>)" best-effort.

    Busca, desde el frame más interno, el primero que no pertenezca a la capa
    IA ni a librerías. El traceback solo llega hasta el frame que capturó; si
    todo él es SDK/capa IA (fallo real del proveedor) se sigue por la pila de
    quien llamó a ese frame. Sin traceback devuelve "".
    """

    tb = exc.__traceback__
    frames = traceback.extract_tb(tb) if tb else []
    # El último frame de la pila externa es el propio frame que capturó.
    outer = traceback.extract_stack(tb.tb_frame)[:-1] if tb else []
    for frame in reversed(outer + frames):
        if _is_library_frame(frame.filename):
            continue
        location = f"{Path(frame.filename).name}:{frame.lineno}"
        if frame.name and not frame.name.startswith("<"):
            return f"\n(Error en {frame.name} en {location})"
        return f"\n(Error en {location})"
    if frames:
        # Todo el traceback es de la capa IA/librerías: mostrar el frame crudo.
        raw = frames[-1]
        return f"\n(Detalles: {raw.filename}:{raw.lineno} in {raw.name})"
    return ""


def _is_network_failure(exc: BaseException, message: str) -> bool:
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    return any(marker in message for marker in _NETWORK_MARKERS)


def classify_error(caught: object, default_message: str, model: str) -> ClassifiedError:
    """Mapea un fallo capturado a la taxonomía cerrada de `ErrorKind`."""

    logger.error("AI provider error in call using model %r: %r", model, caught)

    if not isinstance(caught, BaseException):
        return ClassifiedError(ErrorKind.UNKNOWN, default_message, engine=model)

    debug_info = caller_debug_info(caught)

    if isinstance(caught, ClassifiedError):
        return caught.with_debug_info(debug_info)

    message = str(caught)
    lowered = message.lower()
    status = _status_code(caught)

    if _is_network_failure(caught, lowered):
        return ClassifiedError(
            ErrorKind.NETWORK,
            "Error de red. Por favor, comprueba tu conexión a internet e inténtalo de nuevo.",
            debug_info=debug_info,
            engine=model,
        )

    if status == 429 or "resource_exhausted" in lowered or "quota" in lowered:
        return ClassifiedError(
            ErrorKind.QUOTA_EXCEEDED,
            f"Se ha excedido la cuota de uso para el motor de IA '{model}'. "
            "Por favor, revisa tu plan y los detalles de facturación de tu cuenta para poder continuar.",
            debug_info=debug_info,
            engine=model,
        )

    if (
        status in (401, 403)
        or "api key not valid" in lowered
        or "permission_denied" in lowered
    ):
        return ClassifiedError(
            ErrorKind.AUTHENTICATION,
            "La clave API proporcionada no es válida o no tiene los permisos necesarios. "
            "Por favor, revísala con `inversia doctor setup-ai`.",
            debug_info=debug_info,
            engine=model,
        )

    if status == 404 or "not_found" in lowered or "404" in lowered:
        return ClassifiedError(
            ErrorKind.MODEL_UNAVAILABLE,
            f"El motor de IA '{model}' no fue encontrado o no está disponible. "
            "Por favor, selecciona otro motor si es posible.",
            debug_info=debug_info,
            engine=model,
        )

    if "invalid argument" in lowered:
        return ClassifiedError(
            ErrorKind.INVALID_REQUEST,
            "La solicitud a la API contenía un argumento no válido. Esto puede ser un error interno. "
            f"Por favor, intenta reformular tu petición. Detalles: {message}",
            debug_info=debug_info,
            engine=model,
        )

    if isinstance(caught, Exception) and "json" not in lowered and "internal" not in lowered:
        return ClassifiedError(
            ErrorKind.UPSTREAM,
            f"La API ha devuelto un error: {message}",
            debug_info=debug_info,
            engine=model,
        )

    return ClassifiedError(ErrorKind.UNKNOWN, default_message, debug_info=debug_info, engine=model)

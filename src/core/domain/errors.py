"""Taxonomía cerrada de errores de la capa IA.

Por qué una única excepción con `kind`:
- Los consumidores (CLI, vistas) hacen `match err.kind` de forma exhaustiva en
  lugar de encadenar `isinstance` sobre subclases.
- Los campos extra (`engine`, `price`) viajan en la misma estructura.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NETWORK = "network_error"
    AUTHENTICATION = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    MODEL_UNAVAILABLE = "model_unavailable"
    INVALID_REQUEST = "invalid_request"
    MALFORMED_PAYLOAD = "malformed_payload"
    ANOMALOUS_PRICE = "anomalous_price"
    UPSTREAM = "upstream_error"
    UNKNOWN = "unknown_error"

    def title(self) -> str:
        """Encabezado corto para mostrar al usuario."""

        return _TITLES[self]


_TITLES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Error de red",
    ErrorKind.AUTHENTICATION: "Clave API no válida",
    ErrorKind.QUOTA_EXCEEDED: "Cuota excedida",
    ErrorKind.MODEL_UNAVAILABLE: "Motor no disponible",
    ErrorKind.INVALID_REQUEST: "Solicitud no válida",
    ErrorKind.MALFORMED_PAYLOAD: "Respuesta inesperada",
    ErrorKind.ANOMALOUS_PRICE: "Precio anómalo",
    ErrorKind.UPSTREAM: "Error del servicio de IA",
    ErrorKind.UNKNOWN: "Error",
}


class ClassifiedError(Exception):
    """Fallo ya clasificado, listo para propagarse hasta la UI.

    Campos opcionales según el tipo:
    - `engine`: motor IA implicado (siempre presente en `QUOTA_EXCEEDED`).
    - `price`: valor rechazado (`ANOMALOUS_PRICE`).
    - `operation`: operación del façade que falló (diagnóstico).
    - `raw_text`: copia truncada de la respuesta que no se pudo parsear.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        debug_info: str = "",
        engine: str | None = None,
        price: float | None = None,
        operation: str | None = None,
        raw_text: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.debug_info = debug_info
        self.engine = engine
        self.price = price
        self.operation = operation
        self.raw_text = raw_text

    def __str__(self) -> str:
        return self.message + self.debug_info

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self.kind.value!r}, message={self.message!r})"

    @property
    def title(self) -> str:
        return self.kind.title()

    @property
    def disables_ai(self) -> bool:
        """La cuota agotada desactiva la IA en toda la aplicación."""

        return self.kind is ErrorKind.QUOTA_EXCEEDED

    @property
    def requires_credentials(self) -> bool:
        return self.kind is ErrorKind.AUTHENTICATION

    def with_debug_info(self, debug_info: str) -> "ClassifiedError":
        """Copia con el sufijo de depuración; el original no se modifica."""

        return ClassifiedError(
            self.kind,
            self.message,
            debug_info=self.debug_info or debug_info,
            engine=self.engine,
            price=self.price,
            operation=self.operation,
            raw_text=self.raw_text,
        )

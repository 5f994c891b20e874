"""Guarda de precios históricos implausibles.

Un histórico 20 veces mayor (o 20 veces menor) que la cotización actual suele
ser un error de unidades o un split no detectado; en ese caso se rechaza con
`ANOMALOUS_PRICE` en lugar de presentarlo como un dato.
"""

from __future__ import annotations

from core.domain.errors import ClassifiedError, ErrorKind

MAX_HISTORICAL_RATIO = 20.0
MIN_HISTORICAL_RATIO = 0.05


def check_historical_price(
    *,
    historical_price: float | None,
    current_price: float | None,
    currency: str,
    date: str,
) -> None:
    """Lanza `ClassifiedError(ANOMALOUS_PRICE)` si el ratio histórico/actual es implausible.

    No aplica (retorna sin más) cuando no hay precio histórico, o cuando no hay
    una cotización actual fiable (ausente o <= 1).
    """

    if not historical_price or current_price is None or current_price <= 1:
        return

    ratio = historical_price / current_price
    if ratio > MAX_HISTORICAL_RATIO or ratio < MIN_HISTORICAL_RATIO:
        raise ClassifiedError(
            ErrorKind.ANOMALOUS_PRICE,
            f"Precio histórico ({historical_price} {currency}) del {date} anómalo frente al actual "
            f"({current_price}). Posible split/contrasplit.",
            price=historical_price,
        )

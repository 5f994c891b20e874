"""Monedas y tipos de activo soportados.

Viven en el dominio para que CLI, prompts y modelos compartan una única
fuente de verdad sin importar adaptadores.
"""

from __future__ import annotations

from enum import Enum


class Currency(str, Enum):
    """Monedas en las que se pueden pedir precios."""

    EUR = "EUR"
    USD = "USD"
    GBP = "GBP"
    JPY = "JPY"
    BTC = "BTC"

    @classmethod
    def parse(cls, value: str) -> "Currency":
        """Acepta el código en cualquier capitalización (`usd`, `Usd`...)."""

        return cls(value.strip().upper())


class AssetType(str, Enum):
    STOCK = "stock"
    CRYPTO = "crypto"

    def label(self) -> str:
        return "criptoactivo" if self is AssetType.CRYPTO else "acción"

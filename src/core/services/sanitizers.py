"""Normalización de campos numéricos "sueltos" tras el parse.

El texto generado a veces trae unidades inline ("12.5%", "24.3x", "$1.20").
Estos helpers convierten esos valores a números antes de validar el modelo.
"""

from __future__ import annotations

import re
from typing import Any

_SIGNED_DECIMAL_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")

_ASSET_NUMERIC_FIELDS = ("peRatio", "eps", "dividendYield")
_SECTOR_NUMERIC_FIELDS = ("averagePeRatio", "averageEps", "averageDividendYield")
_QUOTE_CHANGE_FIELDS = ("changeValue", "changePercentage")


def sanitize_number(value: Any) -> float:
    """Devuelve un número: tal cual si ya lo es, el primer decimal de un string, o 0."""

    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = _SIGNED_DECIMAL_RE.search(value)
        return float(match.group(0)) if match else 0.0
    return 0.0


def sanitize_market_payload(payload: Any) -> dict[str, Any]:
    """Aplica `sanitize_number` a las métricas de un análisis de sector.

    Devuelve un dict nuevo; el payload original no se modifica. Si falta
    `sectorAverage` se usan promedios a cero.
    """

    if not isinstance(payload, dict):
        return {}

    assets = payload.get("assets")
    sanitized_assets: list[Any] = []
    for asset in assets if isinstance(assets, list) else []:
        if isinstance(asset, dict):
            asset = {**asset, **{k: sanitize_number(asset.get(k)) for k in _ASSET_NUMERIC_FIELDS}}
        sanitized_assets.append(asset)

    average = payload.get("sectorAverage")
    if isinstance(average, dict):
        sanitized_average = {
            **average,
            **{k: sanitize_number(average.get(k)) for k in _SECTOR_NUMERIC_FIELDS},
        }
    else:
        sanitized_average = {
            "marketCap": "0",
            "averagePeRatio": 0.0,
            "averageEps": 0.0,
            "averageDividendYield": 0.0,
        }

    return {**payload, "assets": sanitized_assets, "sectorAverage": sanitized_average}


def sanitize_quote_payload(payload: Any) -> Any:
    """Normaliza `changeValue`/`changePercentage` de una cotización ("0.64%" -> 0.64).

    `price` no se toca: una cotización sin precio numérico sigue siendo inválida.
    """

    if not isinstance(payload, dict):
        return payload
    return {
        **payload,
        **{k: sanitize_number(payload[k]) for k in _QUOTE_CHANGE_FIELDS if k in payload},
    }

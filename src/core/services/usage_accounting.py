"""Contabilidad de tokens y coste estimado.

Las llamadas concurrentes no comparten acumuladores: cada una devuelve su
`TokenUsage` y la suma se hace al final, sobre la lista ya completada.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable

from core.domain.models import TokenUsage

# USD por millón de tokens.
TOKEN_PRICING_USD: dict[str, dict[str, float]] = {
    "gemini-3-flash-preview": {"input": 0.10, "output": 0.40},
    "gemini-3-pro-preview": {"input": 3.50, "output": 10.50},
    "default": {"input": 0.10, "output": 0.40},
}


def estimate_cost_usd(usage: TokenUsage, model: str) -> float:
    pricing = TOKEN_PRICING_USD.get(model) or TOKEN_PRICING_USD["default"]
    return (usage.prompt_tokens / 1_000_000) * pricing["input"] + (
        usage.candidate_tokens / 1_000_000
    ) * pricing["output"]


@dataclass(frozen=True)
class UsageRecord:
    model: str
    operation: str
    usage: TokenUsage
    cost_usd: float
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def build(cls, *, model: str, operation: str, usage: TokenUsage) -> "UsageRecord":
        return cls(
            model=model,
            operation=operation,
            usage=usage,
            cost_usd=estimate_cost_usd(usage, model),
        )


@dataclass(frozen=True)
class UsageSummary:
    calls: int
    usage: TokenUsage
    cost_usd: float


def summarize_usage(records: Iterable[UsageRecord]) -> dict[str, UsageSummary]:
    """Agrupa por motor. Los registros sin tokens (p.ej. fallos) se ignoran."""

    grouped: dict[str, list[UsageRecord]] = {}
    for record in records:
        if record.usage.total_tokens == 0:
            continue
        grouped.setdefault(record.model, []).append(record)

    return {
        model: UsageSummary(
            calls=len(items),
            usage=TokenUsage.combine(r.usage for r in items),
            cost_usd=sum(r.cost_usd for r in items),
        )
        for model, items in grouped.items()
    }

"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta de lo que devuelve el modelo generativo: o la forma
  completa es correcta o la operación falla, nunca resultados a medias.
- Los alias camelCase coinciden con las claves JSON que se piden en los
  prompts (`fullText`, `limitBuyPrice`...), mientras el código usa snake_case.

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se obtiene.
"""

from __future__ import annotations

from typing import Generic, Iterable, Literal, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from core.domain.currency import AssetType

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TokenUsage(_CamelModel):
    """Contabilidad de tokens de una llamada al proveedor."""

    prompt_tokens: int = Field(default=0, ge=0, alias="promptTokens")
    candidate_tokens: int = Field(default=0, ge=0, alias="candidateTokens")
    total_tokens: int = Field(default=0, ge=0, alias="totalTokens")

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            candidate_tokens=self.candidate_tokens + other.candidate_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def combine(cls, usages: Iterable["TokenUsage"]) -> "TokenUsage":
        """Suma un conjunto ya completado de usos (nunca un acumulador compartido)."""

        total = cls()
        for usage in usages:
            total = total + usage
        return total


class AiResponse(BaseModel, Generic[T]):
    """Resultado tipado de una operación del façade: `{data, usage}`."""

    data: T
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = Field(..., min_length=1, description="Motor IA que generó la respuesta.")


class Source(_CamelModel):
    uri: str = Field(..., min_length=1)
    title: str = Field(default="Fuente sin título")


class Asset(_CamelModel):
    """Activo financiero identificado (acción o criptoactivo)."""

    name: str = Field(..., min_length=1)
    ticker: str = Field(..., min_length=1)
    type: AssetType = Field(default=AssetType.STOCK)
    description: str = Field(default="")
    current_price: float | None = Field(default=None, alias="currentPrice")
    change: float | None = Field(default=None)
    investing_url: str = Field(default="", alias="investingUrl")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: object) -> object:
        # El modelo a veces devuelve "Crypto", "cripto" o tipos no contemplados (ETF...).
        if isinstance(value, str):
            v = value.strip().lower()
            return AssetType.CRYPTO if v.startswith(("crypt", "cript")) else AssetType.STOCK
        return value

    def display_name(self) -> str:
        return f"{self.name} ({self.ticker})"


class AnalysisContent(_CamelModel):
    summary: str = Field(..., min_length=1)
    full_text: str = Field(..., min_length=1, alias="fullText")
    sentiment: float = Field(..., description="Sentimiento de -10 a +10.")
    limit_buy_price: float | None = Field(default=None, alias="limitBuyPrice")
    currency: str | None = Field(default=None)


class AnalysisResult(_CamelModel):
    content: AnalysisContent
    sources: list[Source] = Field(default_factory=list)


class AiAnswer(_CamelModel):
    summary: str = Field(..., min_length=1)
    full_text: str = Field(..., alias="fullText")
    sources: list[Source] = Field(default_factory=list)


class ContextAnswer(AiAnswer):
    """Respuesta de Q&A restringida al contexto del análisis."""

    answer_found: bool = Field(..., alias="answerFound")


class ChatMessage(_CamelModel):
    role: Literal["user", "assistant"]
    text: str

    def transcript_line(self) -> str:
        speaker = "Usuario" if self.role == "user" else "Asistente"
        return f"{speaker}: {self.text}"


class PriceQuote(_CamelModel):
    price: float
    change_value: float = Field(default=0.0, alias="changeValue")
    change_percentage: float = Field(default=0.0, alias="changePercentage")
    currency: str = Field(..., min_length=1)


class PricePoint(_CamelModel):
    """Precio histórico o previsto para una fecha. `price` puede faltar (null)."""

    price: float | None
    currency: str = Field(..., min_length=1)


class LimitBuyPrice(_CamelModel):
    price: float


class MarketAssetMetric(_CamelModel):
    # El modelo a veces devuelve `marketCap` como número (3000000000000).
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    ticker: str
    market_cap: str = Field(default="", alias="marketCap")
    sentiment: str = Field(default="Neutral", description="Bullish, Bearish o Neutral.")
    pe_ratio: float = Field(default=0.0, alias="peRatio")
    eps: float = Field(default=0.0)
    dividend_yield: float = Field(default=0.0, alias="dividendYield", description="Porcentaje.")


class SectorAverage(_CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    market_cap: str = Field(default="0", alias="marketCap")
    average_pe_ratio: float = Field(default=0.0, alias="averagePeRatio")
    average_eps: float = Field(default=0.0, alias="averageEps")
    average_dividend_yield: float = Field(default=0.0, alias="averageDividendYield")


class MarketAnalysisResult(_CamelModel):
    title: str = Field(..., min_length=1)
    assets: list[MarketAssetMetric] = Field(default_factory=list)
    sector_average: SectorAverage = Field(default_factory=SectorAverage, alias="sectorAverage")


class SectorScreenItem(BaseModel):
    """Resultado de un par (sector, criterio) dentro de un screening."""

    sector: str
    criterion: str
    result: MarketAnalysisResult


class SectorScreenFailure(BaseModel):
    sector: str
    criterion: str
    kind: str
    message: str


class SectorScreenResult(BaseModel):
    """Agregado de un screening concurrente: éxitos, fallos y uso total."""

    items: list[SectorScreenItem] = Field(default_factory=list)
    failures: list[SectorScreenFailure] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str

    @property
    def ai_disabled(self) -> bool:
        """True si algún miembro falló por cuota agotada."""

        return any(f.kind == "quota_exceeded" for f in self.failures)

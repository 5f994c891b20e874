"""Façade de operaciones de análisis de inversión sobre el proveedor IA.

Responsabilidad (igual para todas las operaciones):
- Construir un prompt con los parámetros y el formato de salida exigido.
- Hacer exactamente una llamada al proveedor (`TextGenerator`).
- Pasar el texto crudo por `parse_strict` etiquetado con la operación.
- Aplicar saneado numérico / guarda de anomalías cuando corresponde.
- Devolver `AiResponse(data, usage)` o lanzar un `ClassifiedError`.

No hay reintentos aquí: volver a invocar es decisión del llamador.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Sequence

from pydantic import BaseModel, Field

from adapters import prompts
from core.config import AppSettings
from core.domain.currency import Currency
from core.domain.errors import ClassifiedError, ErrorKind
from core.domain.models import (
    AiAnswer,
    AiResponse,
    AnalysisContent,
    AnalysisResult,
    Asset,
    ChatMessage,
    ContextAnswer,
    LimitBuyPrice,
    MarketAnalysisResult,
    PricePoint,
    PriceQuote,
    SectorScreenFailure,
    SectorScreenItem,
    SectorScreenResult,
    TokenUsage,
)
from core.interfaces.text_generator import (
    GenerationConfig,
    GenerationRequest,
    RawModelResponse,
    TextGenerator,
)
from core.services.anomaly_guard import check_historical_price
from core.services.error_classifier import classify_error
from core.services.json_recovery import parse_strict, validate_payload
from core.services.sanitizers import sanitize_market_payload, sanitize_quote_payload

logger = logging.getLogger(__name__)

# Presupuestos de "thinking" por tipo de operación (solo motores compatibles).
_ANALYSIS_THINKING_BUDGET = 256
_CONTEXT_QA_THINKING_BUDGET = 0
_WEB_QA_THINKING_BUDGET = 128


class _AssetsPayload(BaseModel):
    assets: list[Asset] = Field(default_factory=list)


class _VectorsPayload(BaseModel):
    vectors: list[str] | None = None


class _AlternativesPayload(BaseModel):
    alternatives: list[dict[str, Any]] | None = None


class _AnswerPayload(BaseModel):
    summary: str = Field(..., min_length=1)
    full_text: str = Field(..., alias="fullText")


def get_available_text_models(settings: AppSettings | None = None) -> list[str]:
    """Motores IA que se ofrecen al usuario."""

    settings = settings or AppSettings()
    return list(settings.ai_available_models)


async def _generate(
    generator: TextGenerator,
    *,
    engine: str,
    operation: str,
    prompt: str,
    config: GenerationConfig,
) -> RawModelResponse:
    request = GenerationRequest(model=engine, prompt=prompt, config=config, operation=operation)
    return await generator.generate(request)


def _malformed(operation: str, message: str) -> ClassifiedError:
    return ClassifiedError(ErrorKind.MALFORMED_PAYLOAD, message, operation=operation)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


async def identify_assets(*, generator: TextGenerator, query: str, engine: str) -> AiResponse[list[Asset]]:
    """Identifica los activos que pueden corresponder a una consulta libre."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="identify_assets",
            prompt=prompts.identify_assets_prompt(query),
            config=GenerationConfig(temperature=0.3, response_schema=prompts.ASSETS_SCHEMA),
        )
        payload = parse_strict(raw.text.strip(), "identify_assets", schema=_AssetsPayload)
        return AiResponse[list[Asset]](data=payload.assets, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudo conectar con el servicio de IA para buscar activos.", engine) from exc


async def get_analysis_vectors(
    *, generator: TextGenerator, asset: Asset, engine: str
) -> AiResponse[list[str] | None]:
    """Lista de vectores de análisis sugeridos. `None` si el modelo no devuelve ninguno."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="get_analysis_vectors",
            prompt=prompts.analysis_vectors_prompt(asset),
            config=GenerationConfig(temperature=0.4, response_schema=prompts.VECTORS_SCHEMA),
        )
        payload = parse_strict(raw.text.strip(), "get_analysis_vectors", schema=_VectorsPayload)
        return AiResponse[list[str] | None](data=payload.vectors or None, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudieron obtener los vectores de análisis para este activo.", engine) from exc


async def analyze_vector(
    *, generator: TextGenerator, asset: Asset, vector: str, engine: str
) -> AiResponse[AnalysisResult]:
    """Análisis de un vector concreto con búsqueda web y fuentes citadas."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="analyze_vector",
            prompt=prompts.vector_analysis_prompt(asset, vector),
            config=GenerationConfig(
                temperature=0.5,
                web_search=True,
                system_instruction="Analista financiero experto. Salida JSON estricta.",
                max_output_tokens=4096,
                thinking_budget=_ANALYSIS_THINKING_BUDGET,
            ),
        )
        content = parse_strict(raw.text, "analyze_vector", schema=AnalysisContent)
        result = AnalysisResult(content=content, sources=list(raw.sources))
        return AiResponse[AnalysisResult](data=result, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, f'No se pudo generar el análisis para "{vector}".', engine) from exc


async def synthesize_global_analysis(
    *, generator: TextGenerator, asset: Asset, existing_analyses: str, engine: str
) -> AiResponse[AnalysisResult]:
    """Tesis de inversión global a partir de los análisis por vector ya hechos."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="synthesize_global_analysis",
            prompt=prompts.global_analysis_prompt(asset, existing_analyses),
            config=GenerationConfig(
                temperature=0.6,
                web_search=True,
                system_instruction="CIO experto. Salida JSON estricta.",
                max_output_tokens=4096,
                thinking_budget=_ANALYSIS_THINKING_BUDGET,
            ),
        )
        content = parse_strict(raw.text, "synthesize_global_analysis", schema=AnalysisContent)
        result = AnalysisResult(content=content, sources=list(raw.sources))
        return AiResponse[AnalysisResult](data=result, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudo generar la Visión Global del activo.", engine) from exc


async def ask_about_analysis(
    *,
    generator: TextGenerator,
    asset_name: str,
    analysis_context: str,
    question: str,
    history: Sequence[ChatMessage] = (),
    engine: str,
) -> AiResponse[ContextAnswer]:
    """Responde usando solo el contexto del análisis y el historial de chat."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="ask_about_analysis",
            prompt=prompts.context_question_prompt(asset_name, analysis_context, question, history),
            config=GenerationConfig(
                temperature=0.2,
                response_schema=prompts.CONTEXT_ANSWER_SCHEMA,
                system_instruction="Asistente Q&A estricto con el contexto. Salida JSON.",
                thinking_budget=_CONTEXT_QA_THINKING_BUDGET,
            ),
        )
        answer = parse_strict(raw.text, "ask_about_analysis", schema=ContextAnswer)
        return AiResponse[ContextAnswer](data=answer, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudo procesar la pregunta.", engine) from exc


async def ask_with_web_search(
    *,
    generator: TextGenerator,
    asset_name: str,
    question: str,
    history: Sequence[ChatMessage] = (),
    engine: str,
) -> AiResponse[AiAnswer]:
    """Responde con búsqueda web abierta; adjunta las fuentes citadas."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="ask_with_web_search",
            prompt=prompts.web_question_prompt(asset_name, question, history),
            config=GenerationConfig(
                temperature=0.4,
                web_search=True,
                system_instruction="Investigador financiero web. Salida JSON.",
                thinking_budget=_WEB_QA_THINKING_BUDGET,
            ),
        )
        payload = parse_strict(raw.text.strip(), "ask_with_web_search", schema=_AnswerPayload)
        answer = AiAnswer(summary=payload.summary, full_text=payload.full_text, sources=list(raw.sources))
        return AiResponse[AiAnswer](data=answer, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudo procesar la pregunta con búsqueda web.", engine) from exc


async def get_alternative_assets(
    *, generator: TextGenerator, asset: Asset, engine: str, currency: Currency
) -> AiResponse[list[Asset] | None]:
    """Cuatro alternativas del mismo tipo que `asset`, con precio si es numérico."""

    operation = "get_alternative_assets"
    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation=operation,
            prompt=prompts.alternatives_prompt(asset, currency),
            config=GenerationConfig(temperature=0.1, web_search=True),
        )
        payload = parse_strict(raw.text, operation, schema=_AlternativesPayload)
        if not payload.alternatives:
            return AiResponse[list[Asset] | None](data=None, usage=raw.usage, model=engine)

        candidates = [
            {
                "name": alt.get("name"),
                "ticker": alt.get("ticker"),
                "type": asset.type,
                "description": "",
                "currentPrice": _as_number(alt.get("currentPrice")),
                "change": _as_number(alt.get("change")),
            }
            for alt in payload.alternatives
        ]
        alternatives = validate_payload(candidates, operation, list[Asset], raw_text=raw.text)
        return AiResponse[list[Asset] | None](data=alternatives, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudieron obtener activos alternativos.", engine) from exc


async def get_asset_quote(
    *, generator: TextGenerator, asset: Asset, engine: str, currency: Currency
) -> AiResponse[PriceQuote]:
    """Cotización más reciente del activo en `currency`."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="get_asset_quote",
            prompt=prompts.quote_prompt(asset, currency, datetime.now(timezone.utc).isoformat()),
            config=GenerationConfig(
                temperature=0.0,
                web_search=True,
                system_instruction="API cotizaciones tiempo real. JSON estricto.",
            ),
        )
        data = sanitize_quote_payload(parse_strict(raw.text.strip(), "get_asset_quote"))
        quote = validate_payload(data, "get_asset_quote", PriceQuote, raw_text=raw.text)
        return AiResponse[PriceQuote](data=quote, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudo obtener la cotización.", engine) from exc


async def _get_asset_price(
    generator: TextGenerator,
    *,
    asset: Asset,
    date: str,
    engine: str,
    currency: Currency,
    future: bool,
    current_price: float | None,
) -> AiResponse[PricePoint]:
    operation = "get_asset_future_price" if future else "get_asset_price_on_date"
    kind = "futuro" if future else "histórico"
    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation=operation,
            prompt=prompts.price_on_date_prompt(asset, date, currency, future=future),
            config=GenerationConfig(
                temperature=0.4 if future else 0.0,
                web_search=True,
                system_instruction=prompts.price_system_instruction(future=future),
            ),
        )
        text = raw.text.strip()
        if not text:
            raise _malformed(operation, "La API no devolvió un precio.")

        point = parse_strict(text, operation, schema=PricePoint)
        if future:
            if point.price is None:
                raise _malformed(operation, "Predicción de precio inválida.")
        else:
            check_historical_price(
                historical_price=point.price,
                current_price=current_price,
                currency=point.currency,
                date=date,
            )
        return AiResponse[PricePoint](data=point, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, f"Error obteniendo precio {kind} para {date}.", engine) from exc


async def get_asset_price_on_date(
    *,
    generator: TextGenerator,
    asset: Asset,
    date: str,
    engine: str,
    current_price: float | None,
    currency: Currency,
) -> AiResponse[PricePoint]:
    """Precio histórico en `date`; rechaza ratios implausibles frente a `current_price`."""

    return await _get_asset_price(
        generator,
        asset=asset,
        date=date,
        engine=engine,
        currency=currency,
        future=False,
        current_price=current_price,
    )


async def get_future_price_prediction(
    *, generator: TextGenerator, asset: Asset, date: str, engine: str, currency: Currency
) -> AiResponse[PricePoint]:
    """Predicción de precio para una fecha futura (sin guarda de anomalías)."""

    return await _get_asset_price(
        generator,
        asset=asset,
        date=date,
        engine=engine,
        currency=currency,
        future=True,
        current_price=None,
    )


async def get_limit_buy_price(
    *, generator: TextGenerator, asset: Asset, engine: str, currency: Currency
) -> AiResponse[LimitBuyPrice]:
    """Precio límite de compra táctico según soportes recientes."""

    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation="get_limit_buy_price",
            prompt=prompts.limit_buy_prompt(asset, currency),
            config=GenerationConfig(
                temperature=0.2,
                web_search=True,
                system_instruction="API análisis técnico. JSON estricto.",
            ),
        )
        price = parse_strict(raw.text.strip(), "get_limit_buy_price", schema=LimitBuyPrice)
        return AiResponse[LimitBuyPrice](data=price, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "Error calculando precio límite.", engine) from exc


async def analyze_market_sector(
    *, generator: TextGenerator, sector: str, criteria: str, engine: str, currency: Currency
) -> AiResponse[MarketAnalysisResult]:
    """Screening de un sector según un criterio; métricas saneadas a números."""

    operation = "analyze_market_sector"
    try:
        raw = await _generate(
            generator,
            engine=engine,
            operation=operation,
            prompt=prompts.market_sector_prompt(sector, criteria, currency),
            config=GenerationConfig(temperature=0.2, web_search=True),
        )
        data = sanitize_market_payload(parse_strict(raw.text, operation))
        result = validate_payload(data, operation, MarketAnalysisResult, raw_text=raw.text)
        return AiResponse[MarketAnalysisResult](data=result, usage=raw.usage, model=engine)
    except Exception as exc:
        raise classify_error(exc, "No se pudo generar el análisis de mercado.", engine) from exc


async def screen_sectors(
    *,
    generator: TextGenerator,
    sectors: Sequence[str],
    criteria: Sequence[str],
    engine: str,
    currency: Currency,
) -> SectorScreenResult:
    """Lanza `analyze_market_sector` para cada (sector, criterio) en paralelo.

    Un fallo no cancela al resto: los éxitos y los fallos se separan tras el
    join y el uso de tokens se suma sobre la lista ya completada.
    """

    pairs = [(sector, criterion) for sector in sectors for criterion in criteria]
    outcomes = await asyncio.gather(
        *(
            analyze_market_sector(
                generator=generator,
                sector=sector,
                criteria=criterion,
                engine=engine,
                currency=currency,
            )
            for sector, criterion in pairs
        ),
        return_exceptions=True,
    )

    items: list[SectorScreenItem] = []
    failures: list[SectorScreenFailure] = []
    usages: list[TokenUsage] = []
    for (sector, criterion), outcome in zip(pairs, outcomes):
        if isinstance(outcome, ClassifiedError):
            failures.append(
                SectorScreenFailure(
                    sector=sector,
                    criterion=criterion,
                    kind=outcome.kind.value,
                    message=str(outcome),
                )
            )
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            items.append(SectorScreenItem(sector=sector, criterion=criterion, result=outcome.data))
            usages.append(outcome.usage)

    if failures:
        logger.info("Sector screening finished with %d/%d failures", len(failures), len(pairs))

    return SectorScreenResult(
        items=items,
        failures=failures,
        usage=TokenUsage.combine(usages),
        model=engine,
    )

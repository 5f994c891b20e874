"""Prompts y esquemas de salida por operación.

Cada builder devuelve solo texto; la configuración de la llamada (temperatura,
búsqueda web, esquema) se decide en `adapters.ai_analyst`.
"""

from __future__ import annotations

from typing import Any, Sequence

from core.domain.currency import AssetType, Currency
from core.domain.models import Asset, ChatMessage

_NO_HISTORY = "No hay mensajes anteriores."

STOCK_REQUIRED_VECTORS = (
    "Análisis Socioeconómico Global",
    "Sentimiento de los Mercados",
    "Ranking respecto a sus competidores",
    "Reparto de dividendos",
    "Opinión de los expertos",
    "Análisis del sector",
)
CRYPTO_REQUIRED_VECTORS = (
    "Análisis Socioeconómico Global",
    "Sentimiento de los Mercados",
    "Ranking respecto a sus competidores",
    "Opinión de los expertos",
    "Análisis del sector",
    "Análisis de Recompensas y Staking",
)

ASSETS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "assets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "ticker": {"type": "string"},
                    "type": {"type": "string"},
                    "description": {"type": "string"},
                    "investingUrl": {"type": "string"},
                },
                "required": ["name", "ticker", "type", "description", "investingUrl"],
            },
        }
    },
    "required": ["assets"],
}

VECTORS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"vectors": {"type": "array", "items": {"type": "string"}}},
    "required": ["vectors"],
}

CONTEXT_ANSWER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "answerFound": {"type": "boolean"},
        "summary": {"type": "string"},
        "fullText": {"type": "string"},
    },
    "required": ["answerFound", "summary", "fullText"],
}


def format_history(history: Sequence[ChatMessage]) -> str:
    if not history:
        return _NO_HISTORY
    return "\n".join(message.transcript_line() for message in history)


def identify_assets_prompt(query: str) -> str:
    return (
        f'Un usuario ha introducido la siguiente consulta para identificar un activo financiero: "{query}". '
        "Tu tarea como analista experto es identificar todas las posibles coincidencias relevantes a nivel mundial. "
        "Para cada activo, proporciona su nombre, ticker, tipo ('stock' o 'crypto'), una breve descripción y la URL "
        "directa a su página en la versión en español de Investing.com (debe empezar con https://es.investing.com/...). "
        "Si no encuentras una URL directa, déjala vacía."
    )


def analysis_vectors_prompt(asset: Asset) -> str:
    if asset.type is AssetType.CRYPTO:
        required = ", ".join(f'"{v}"' for v in CRYPTO_REQUIRED_VECTORS)
        return (
            f'Como analista estratégico senior, para el criptoactivo "{asset.name}" ({asset.ticker}), '
            f"sugiere una lista de 8 vectores clave. Incluye: {required} (si aplica)."
        )
    required = ", ".join(f'"{v}"' for v in STOCK_REQUIRED_VECTORS)
    return (
        "Como analista estratégico senior, genera una lista de 8 vectores de análisis clave para la acción "
        f'"{asset.name}" ({asset.ticker}). Incluye obligatoriamente: {required}.'
    )


def vector_analysis_prompt(asset: Asset, vector: str) -> str:
    return (
        "**Tarea Crítica**: Actúa como API JSON.\n"
        f'**Contexto**: Análisis estratégico sobre "{vector}" para "{asset.name}" ({asset.ticker}).\n'
        "**Instrucciones**:\n"
        "1. Busca información actualizada.\n"
        "2. Redacta análisis detallado en `fullText`.\n"
        "3. Resumen conciso en `summary`.\n"
        "4. Evalúa sentimiento (-10 a +10) en `sentiment`.\n"
        "5. Si aplica, calcula Precio Límite de Compra Táctico en `limitBuyPrice` (número) y especifica la "
        "moneda en `currency` (ej: 'USD', 'EUR').\n"
        "6. Formato JSON estricto."
    )


def global_analysis_prompt(asset: Asset, existing_analyses: str) -> str:
    return (
        "**Tarea Crítica**: Actúa como API JSON.\n"
        f'**Contexto**: CIO formulando Tesis de Inversión Global para "{asset.name}" ({asset.ticker}).\n'
        f"**Input**:\n{existing_analyses}\n"
        "**Instrucciones**:\n"
        "1. Sintetiza información y busca contexto de mercado actual.\n"
        "2. `fullText`: Visión global, riesgos y veredicto.\n"
        "3. `summary`: Resumen ejecutivo (1-2 frases).\n"
        "4. `limitBuyPrice`: Precio límite de compra técnico (número).\n"
        "5. `currency`: Moneda del precio límite (ej: 'USD', 'EUR').\n"
        "6. `sentiment`: Confianza global (-10 a +10).\n"
        "7. Formato JSON estricto."
    )


def context_question_prompt(
    asset_name: str,
    analysis_context: str,
    question: str,
    history: Sequence[ChatMessage],
) -> str:
    return (
        "**Tarea Crítica**: Actúa como API JSON.\n"
        f'**Contexto**: Q&A sobre "{asset_name}" basado en contexto proporcionado.\n'
        f"**Contexto Análisis**:\n{analysis_context}\n"
        f"**Historial**:\n{format_history(history)}\n"
        f'**Pregunta**: "{question}"\n'
        "**Instrucciones**:\n"
        "1. Busca respuesta SOLO en contexto/historial.\n"
        "2. JSON: `answerFound` (bool), `summary` (1 frase), `fullText` (detalle).\n"
        '3. Si no encuentras, summary: "No encontrado en contexto actual...".'
    )


def web_question_prompt(asset_name: str, question: str, history: Sequence[ChatMessage]) -> str:
    return (
        "**Tarea Crítica**: Actúa como API JSON.\n"
        f'**Contexto**: Investigador financiero para "{asset_name}".\n'
        f"**Historial**:\n{format_history(history)}\n"
        f'**Pregunta**: "{question}"\n'
        "**Instrucciones**:\n"
        "1. Usa búsqueda web.\n"
        "2. JSON: `summary` (1-2 frases), `fullText` (detalle)."
    )


def alternatives_prompt(asset: Asset, currency: Currency) -> str:
    return (
        "**Tarea Crítica**: Actúa como API JSON.\n"
        f"**Contexto**: Buscar 4 alternativas a \"{asset.name}\" ({asset.ticker}) tipo '{asset.type.value}'.\n"
        "**Instrucciones**:\n"
        "1. Identifica nicho.\n"
        "2. Encuentra 4 competidores.\n"
        f"3. Obtén precio actual (**OBLIGATORIO en {currency.value}**) y cambio 24h.\n"
        "4. JSON: lista 'alternatives' con 'name', 'ticker', 'currentPrice' (number), 'change' (number)."
    )


def quote_prompt(asset: Asset, currency: Currency, now_iso: str) -> str:
    return (
        "**Tarea Crítica**: Actúa como API JSON.\n"
        f'**Activo**: "{asset.name}" ({asset.ticker})\n'
        f"**Tiempo**: {now_iso}\n"
        "**Instrucciones**:\n"
        "1. Busca cotización MÁS RECIENTE.\n"
        "2. JSON: 'price' (number), 'changeValue' (number), 'changePercentage' (number), "
        f"'currency' (**OBLIGATORIO \"{currency.value}\"**)."
    )


def price_on_date_prompt(asset: Asset, date: str, currency: Currency, *, future: bool) -> str:
    kind = "futuros" if future else "históricos"
    instructions = (
        "Analiza expertos y tendencias para predecir."
        if future
        else "Prioridad: Fecha Exacta > Día hábil anterior > IPO."
    )
    return (
        f"**Tarea Crítica**: API JSON de precios {kind}.\n"
        f'**Activo**: "{asset.name}" ({asset.ticker})\n'
        f"**Fecha**: {date}\n"
        "**Instrucciones**:\n"
        f"1. {instructions}\n"
        f"2. Devuelve JSON: 'price' (number/null), 'currency' (**OBLIGATORIO \"{currency.value}\"**)."
    )


def price_system_instruction(*, future: bool) -> str:
    return f"API de precios {'futuros' if future else 'históricos'}. Salida JSON."


def limit_buy_prompt(asset: Asset, currency: Currency) -> str:
    return (
        "**Tarea Crítica**: API JSON Análisis Técnico.\n"
        f'**Contexto**: Calcular "Precio Límite de Compra" para "{asset.name}" ({asset.ticker}).\n'
        "**Instrucciones**:\n"
        "1. Analiza gráfico/soportes recientes.\n"
        "2. Determina precio entrada táctico.\n"
        f"3. JSON: 'price' (number en {currency.value})."
    )


def market_sector_prompt(sector: str, criteria: str, currency: Currency) -> str:
    return (
        "**Tarea Crítica**: API JSON Análisis Mercado.\n"
        f'**Sector**: "{sector}". **Criterio**: "{criteria}".\n'
        "**Instrucciones**:\n"
        "1. `title`: Título descriptivo.\n"
        f"2. `assets`: 5-8 activos. Métricas en **{currency.value}**.\n"
        "    - name, ticker, marketCap, sentiment, peRatio, eps, dividendYield.\n"
        f"3. `sectorAverage`: Promedios ponderados en **{currency.value}**.\n"
        "4. JSON estricto con keys 'title', 'assets', 'sectorAverage'."
    )

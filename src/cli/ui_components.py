"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.errors import ClassifiedError
from core.domain.models import (
    AiAnswer,
    AnalysisResult,
    Asset,
    MarketAnalysisResult,
    Source,
    TokenUsage,
)
from core.services.usage_accounting import UsageSummary


def print_banner(console: Console) -> None:
    title = Text("inversia", style="bold cyan")
    subtitle = Text("Análisis de inversión asistido por IA", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def sentiment_style(sentiment: float) -> str:
    if sentiment >= 3:
        return "green"
    if sentiment <= -3:
        return "red"
    return "yellow"


def build_assets_table(assets: Iterable[Asset], *, title: str = "Activos") -> Table:
    table = Table(title=title)
    table.add_column("Ticker", style="cyan", no_wrap=True)
    table.add_column("Nombre", style="white")
    table.add_column("Tipo", style="magenta")
    table.add_column("Precio", justify="right")
    table.add_column("Cambio", justify="right")
    table.add_column("Descripción", style="dim")
    for asset in assets:
        price = "" if asset.current_price is None else f"{asset.current_price:,.2f}"
        change = "" if asset.change is None else f"{asset.change:+.2f}"
        table.add_row(asset.ticker, asset.name, asset.type.value, price, change, asset.description)
    return table


def build_sources_text(sources: Iterable[Source]) -> Text:
    text = Text()
    for source in sources:
        text.append(f"- {source.title}: ", style="bold")
        text.append(f"{source.uri}\n", style="blue underline")
    return text


def build_analysis_panel(result: AnalysisResult, *, title: str) -> Panel:
    """Panel para presentar un análisis (vector o visión global)."""

    content = result.content
    body = Text()
    body.append(content.summary.strip() + "\n\n", style="bold")
    body.append(content.full_text.strip() + "\n")
    body.append("\nSentimiento: ")
    body.append(f"{content.sentiment:+.1f}", style=sentiment_style(content.sentiment))
    if content.limit_buy_price is not None:
        body.append(f"\nPrecio límite de compra: {content.limit_buy_price:,.2f} {content.currency or ''}")
    if result.sources:
        body.append("\n\nFuentes:\n", style="bold")
        body.append_text(build_sources_text(result.sources))
    return Panel(body, title=Text(title, style="bold yellow"), border_style="yellow")


def build_answer_panel(answer: AiAnswer, *, title: str = "Respuesta") -> Panel:
    body = Text()
    body.append(answer.summary.strip() + "\n\n", style="bold")
    body.append(answer.full_text.strip())
    if answer.sources:
        body.append("\n\nFuentes:\n", style="bold")
        body.append_text(build_sources_text(answer.sources))
    return Panel(body, title=Text(title, style="bold green"), border_style="green")


def build_market_table(result: MarketAnalysisResult, *, subtitle: str = "") -> Table:
    table = Table(title=result.title, caption=subtitle or None)
    table.add_column("Ticker", style="cyan", no_wrap=True)
    table.add_column("Nombre")
    table.add_column("Cap.", justify="right")
    table.add_column("Sentimiento")
    table.add_column("PER", justify="right")
    table.add_column("BPA", justify="right")
    table.add_column("Div. %", justify="right")
    for metric in result.assets:
        table.add_row(
            metric.ticker,
            metric.name,
            metric.market_cap,
            metric.sentiment,
            f"{metric.pe_ratio:.2f}",
            f"{metric.eps:.2f}",
            f"{metric.dividend_yield:.2f}",
        )
    avg = result.sector_average
    table.add_row(
        "-",
        "Media del sector",
        avg.market_cap,
        "",
        f"{avg.average_pe_ratio:.2f}",
        f"{avg.average_eps:.2f}",
        f"{avg.average_dividend_yield:.2f}",
        style="bold",
    )
    return table


def build_usage_table(summaries: Mapping[str, UsageSummary]) -> Table:
    table = Table(title="Consumo de tokens")
    table.add_column("Motor", style="cyan")
    table.add_column("Llamadas", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Coste (USD)", justify="right")
    for model, summary in summaries.items():
        table.add_row(model, str(summary.calls), f"{summary.usage.total_tokens:,}", f"{summary.cost_usd:.6f}")
    return table


def format_usage(usage: TokenUsage) -> str:
    return (
        f"tokens: {usage.total_tokens:,} "
        f"(prompt {usage.prompt_tokens:,} / respuesta {usage.candidate_tokens:,})"
    )


def build_error_panel(error: ClassifiedError) -> Panel:
    body = Text(str(error).strip())
    if error.disables_ai:
        body.append("\n\nLas funciones de IA quedan desactivadas hasta que se restablezca la cuota.", style="bold")
    elif error.requires_credentials:
        body.append("\n\nConfigura la clave con: inversia doctor setup-ai", style="bold")
    return Panel(body, title=Text(error.title, style="bold red"), border_style="red")

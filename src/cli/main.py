"""CLI principal (`inversia`).

Cada comando construye explícitamente el proveedor IA a partir de
`AppSettings`, ejecuta una o varias operaciones del façade y presenta el
resultado con Rich. Los `ClassifiedError` se muestran como panel y terminan
con código 1 (2 si la cuota está agotada).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from adapters import ai_analyst
from adapters.gemini_client import OpenAICompatibleGenerator
from adapters.json_exporter import export_result_json
from cli import doctor
from cli.ui_components import (
    build_analysis_panel,
    build_answer_panel,
    build_assets_table,
    build_error_panel,
    build_market_table,
    build_usage_table,
    format_usage,
    print_banner,
)
from core.config import AppSettings
from core.domain.currency import AssetType, Currency
from core.domain.errors import ClassifiedError
from core.domain.models import AiResponse, AnalysisResult, Asset, ChatMessage, PricePoint
from core.interfaces.text_generator import TextGenerator
from core.services.usage_accounting import UsageRecord, summarize_usage

app = typer.Typer(no_args_is_help=True, help="Análisis de inversión asistido por IA.")
app.add_typer(doctor.app, name="doctor")

_console = Console()

_ENGINE_HELP = "Motor IA (por defecto INVERSIA_AI_MODEL)."
_CURRENCY_HELP = "Moneda de precios y métricas (por defecto INVERSIA_DEFAULT_CURRENCY)."


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No mostrar el banner."),
) -> None:
    settings = AppSettings()
    _configure_logging(settings.log_level)
    if not quiet:
        print_banner(_console)


def _run(
    action: Callable[[AppSettings, TextGenerator, str, Currency], Awaitable[Any]],
    *,
    engine: Optional[str],
    currency: Optional[Currency],
) -> Any:
    settings = AppSettings()
    try:
        generator = OpenAICompatibleGenerator.from_settings(settings)
        return asyncio.run(
            action(settings, generator, settings.resolve_engine(engine), currency or settings.default_currency)
        )
    except ClassifiedError as err:
        _console.print(build_error_panel(err))
        raise typer.Exit(code=2 if err.disables_ai else 1) from err


def _finish(response: AiResponse[Any], *, operation: str, output: Optional[Path]) -> None:
    record = UsageRecord.build(model=response.model, operation=operation, usage=response.usage)
    _console.print(f"[dim]{format_usage(response.usage)} · ~{record.cost_usd:.6f} USD[/dim]")
    if output:
        path = export_result_json(result=response, output_path=output)
        _console.print(f"[green]Guardado en:[/green] {path}")


def _asset(name: str, ticker: str, asset_type: AssetType) -> Asset:
    return Asset(name=name, ticker=ticker, type=asset_type)


def _load_history(path: Path) -> list[ChatMessage]:
    try:
        return TypeAdapter(list[ChatMessage]).validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise typer.BadParameter(f"Historial no válido en {path}: {exc}", param_hint="--history") from exc


@app.command()
def models() -> None:
    """Lista los motores IA disponibles."""

    settings = AppSettings()
    for engine in ai_analyst.get_available_text_models(settings):
        marker = " (por defecto)" if engine == settings.ai_model else ""
        _console.print(f"- {engine}{marker}")


@app.command()
def identify(
    query: str = typer.Argument(..., help="Nombre, ticker o descripción libre del activo."),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Guardar resultado en JSON."),
) -> None:
    """Identifica activos a partir de una consulta."""

    async def action(settings, generator, engine_id, currency):
        return await ai_analyst.identify_assets(generator=generator, query=query, engine=engine_id)

    response = _run(action, engine=engine, currency=None)
    if not response.data:
        _console.print("[yellow]No se encontraron activos para la consulta.[/yellow]")
    else:
        _console.print(build_assets_table(response.data))
    _finish(response, operation="identify_assets", output=output)


@app.command()
def vectors(
    name: str,
    ticker: str,
    asset_type: AssetType = typer.Option(AssetType.STOCK, "--type", "-t"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
) -> None:
    """Sugiere vectores de análisis para un activo."""

    async def action(settings, generator, engine_id, currency):
        return await ai_analyst.get_analysis_vectors(
            generator=generator, asset=_asset(name, ticker, asset_type), engine=engine_id
        )

    response = _run(action, engine=engine, currency=None)
    for vector in response.data or []:
        _console.print(f"- {vector}")
    _finish(response, operation="get_analysis_vectors", output=None)


@app.command()
def analyze(
    name: str,
    ticker: str,
    vector: str = typer.Argument(..., help="Vector de análisis, p.ej. 'Opinión de los expertos'."),
    asset_type: AssetType = typer.Option(AssetType.STOCK, "--type", "-t"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Guardar resultado en JSON."),
) -> None:
    """Analiza un activo según un vector concreto."""

    async def action(settings, generator, engine_id, currency):
        return await ai_analyst.analyze_vector(
            generator=generator, asset=_asset(name, ticker, asset_type), vector=vector, engine=engine_id
        )

    response = _run(action, engine=engine, currency=None)
    _console.print(build_analysis_panel(response.data, title=vector))
    _finish(response, operation="analyze_vector", output=output)


@app.command()
def synthesis(
    name: str,
    ticker: str,
    vector: List[str] = typer.Option(..., "--vector", "-v", help="Vectores a analizar (repetible)."),
    asset_type: AssetType = typer.Option(AssetType.STOCK, "--type", "-t"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Guardar resultado en JSON."),
) -> None:
    """Analiza varios vectores en paralelo y genera la Visión Global."""

    asset = _asset(name, ticker, asset_type)

    async def action(settings, generator, engine_id, currency):
        outcomes = await asyncio.gather(
            *(ai_analyst.analyze_vector(generator=generator, asset=asset, vector=v, engine=engine_id) for v in vector),
            return_exceptions=True,
        )
        done: list[tuple[str, AiResponse[AnalysisResult]]] = []
        for title, outcome in zip(vector, outcomes):
            if isinstance(outcome, ClassifiedError):
                _console.print(build_error_panel(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                done.append((title, outcome))
        if not done:
            raise typer.Exit(code=1)

        existing = "\n\n".join(
            f"### {title}\n{r.data.content.summary}\n{r.data.content.full_text}" for title, r in done
        )
        synthesis_response = await ai_analyst.synthesize_global_analysis(
            generator=generator, asset=asset, existing_analyses=existing, engine=engine_id
        )
        return done, synthesis_response

    done, response = _run(action, engine=engine, currency=None)
    for title, vector_response in done:
        _console.print(build_analysis_panel(vector_response.data, title=title))
    _console.print(build_analysis_panel(response.data, title="Visión Global"))

    records = [
        UsageRecord.build(model=r.model, operation="analyze_vector", usage=r.usage) for _, r in done
    ] + [UsageRecord.build(model=response.model, operation="synthesize_global_analysis", usage=response.usage)]
    _console.print(build_usage_table(summarize_usage(records)))
    if output:
        export_result_json(result=response, output_path=output)


@app.command()
def ask(
    name: str = typer.Argument(..., help="Nombre del activo."),
    question: str = typer.Argument(..., help="Pregunta."),
    context_file: Optional[Path] = typer.Option(
        None, "--context", "-c", exists=True, dir_okay=False, help="Fichero con el análisis previo."
    ),
    web: bool = typer.Option(False, "--web", help="Responder con búsqueda web abierta."),
    history_file: Optional[Path] = typer.Option(
        None,
        "--history",
        exists=True,
        dir_okay=False,
        help="JSON con la conversación previa: [{\"role\": \"user\", \"text\": \"...\"}, ...].",
    ),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
) -> None:
    """Pregunta sobre un análisis (contexto) o con búsqueda web."""

    if not web and context_file is None:
        raise typer.BadParameter("Indica --context <fichero> o usa --web.")
    history = _load_history(history_file) if history_file else []

    async def action(settings, generator, engine_id, currency):
        if web:
            return await ai_analyst.ask_with_web_search(
                generator=generator, asset_name=name, question=question, history=history, engine=engine_id
            )
        return await ai_analyst.ask_about_analysis(
            generator=generator,
            asset_name=name,
            analysis_context=context_file.read_text(encoding="utf-8"),
            question=question,
            history=history,
            engine=engine_id,
        )

    response = _run(action, engine=engine, currency=None)
    _console.print(build_answer_panel(response.data))
    if getattr(response.data, "answer_found", True) is False:
        _console.print("[yellow]No está en el contexto. Prueba de nuevo con --web.[/yellow]")
    _finish(response, operation="ask", output=None)


@app.command()
def alternatives(
    name: str,
    ticker: str,
    asset_type: AssetType = typer.Option(AssetType.STOCK, "--type", "-t"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    currency: Optional[Currency] = typer.Option(None, "--currency", help=_CURRENCY_HELP),
) -> None:
    """Busca activos alternativos del mismo nicho."""

    async def action(settings, generator, engine_id, currency_value):
        return await ai_analyst.get_alternative_assets(
            generator=generator, asset=_asset(name, ticker, asset_type), engine=engine_id, currency=currency_value
        )

    response = _run(action, engine=engine, currency=currency)
    if response.data:
        _console.print(build_assets_table(response.data, title="Alternativas"))
    else:
        _console.print("[yellow]El modelo no devolvió alternativas.[/yellow]")
    _finish(response, operation="get_alternative_assets", output=None)


@app.command()
def quote(
    name: str,
    ticker: str,
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    currency: Optional[Currency] = typer.Option(None, "--currency", help=_CURRENCY_HELP),
) -> None:
    """Cotización más reciente."""

    async def action(settings, generator, engine_id, currency_value):
        return await ai_analyst.get_asset_quote(
            generator=generator, asset=_asset(name, ticker, AssetType.STOCK), engine=engine_id, currency=currency_value
        )

    response = _run(action, engine=engine, currency=currency)
    q = response.data
    _console.print(f"{ticker}: {q.price:,.2f} {q.currency} ({q.change_value:+.2f} / {q.change_percentage:+.2f}%)")
    _finish(response, operation="get_asset_quote", output=None)


def _print_price_point(ticker: str, date: str, point: PricePoint) -> None:
    if point.price is None:
        _console.print(f"[yellow]{ticker}: sin precio para {date}.[/yellow]")
    else:
        _console.print(f"{ticker} @ {date}: {point.price:,.2f} {point.currency}")


@app.command()
def price(
    name: str,
    ticker: str,
    date: str = typer.Argument(..., help="Fecha ISO (YYYY-MM-DD)."),
    current_price: Optional[float] = typer.Option(
        None, "--current-price", help="Cotización actual para detectar precios anómalos."
    ),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    currency: Optional[Currency] = typer.Option(None, "--currency", help=_CURRENCY_HELP),
) -> None:
    """Precio histórico en una fecha."""

    async def action(settings, generator, engine_id, currency_value):
        return await ai_analyst.get_asset_price_on_date(
            generator=generator,
            asset=_asset(name, ticker, AssetType.STOCK),
            date=date,
            engine=engine_id,
            current_price=current_price,
            currency=currency_value,
        )

    response = _run(action, engine=engine, currency=currency)
    _print_price_point(ticker, date, response.data)
    _finish(response, operation="get_asset_price_on_date", output=None)


@app.command()
def predict(
    name: str,
    ticker: str,
    date: str = typer.Argument(..., help="Fecha futura ISO (YYYY-MM-DD)."),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    currency: Optional[Currency] = typer.Option(None, "--currency", help=_CURRENCY_HELP),
) -> None:
    """Predicción de precio para una fecha futura."""

    async def action(settings, generator, engine_id, currency_value):
        return await ai_analyst.get_future_price_prediction(
            generator=generator,
            asset=_asset(name, ticker, AssetType.STOCK),
            date=date,
            engine=engine_id,
            currency=currency_value,
        )

    response = _run(action, engine=engine, currency=currency)
    _print_price_point(ticker, date, response.data)
    _finish(response, operation="get_asset_future_price", output=None)


@app.command()
def limit(
    name: str,
    ticker: str,
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    currency: Optional[Currency] = typer.Option(None, "--currency", help=_CURRENCY_HELP),
) -> None:
    """Precio límite de compra táctico."""

    async def action(settings, generator, engine_id, currency_value):
        return await ai_analyst.get_limit_buy_price(
            generator=generator, asset=_asset(name, ticker, AssetType.STOCK), engine=engine_id, currency=currency_value
        )

    response = _run(action, engine=engine, currency=currency)
    resolved = currency or AppSettings().default_currency
    _console.print(f"Precio límite de compra para {ticker}: {response.data.price:,.2f} {resolved.value}")
    _finish(response, operation="get_limit_buy_price", output=None)


@app.command()
def sector(
    sectors: List[str] = typer.Option(..., "--sector", "-s", help="Sector (repetible)."),
    criteria: List[str] = typer.Option(..., "--criterion", "-c", help="Criterio (repetible)."),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help=_ENGINE_HELP),
    currency: Optional[Currency] = typer.Option(None, "--currency", help=_CURRENCY_HELP),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Guardar resultado en JSON."),
) -> None:
    """Screening de sectores: cada (sector, criterio) se analiza en paralelo."""

    async def action(settings, generator, engine_id, currency_value):
        return await ai_analyst.screen_sectors(
            generator=generator, sectors=sectors, criteria=criteria, engine=engine_id, currency=currency_value
        )

    result = _run(action, engine=engine, currency=currency)
    for item in result.items:
        _console.print(build_market_table(item.result, subtitle=f"{item.sector} · {item.criterion}"))
    for failure in result.failures:
        _console.print(f"[red]{failure.sector} · {failure.criterion}:[/red] {escape(failure.message)}")
    _console.print(f"[dim]{format_usage(result.usage)}[/dim]")
    if output:
        export_result_json(result=result, output_path=output)
    if result.ai_disabled:
        _console.print("[bold red]Cuota agotada: las funciones de IA quedan desactivadas.[/bold red]")
        raise typer.Exit(code=2)


def run() -> None:
    app()


if __name__ == "__main__":
    run()

"""Comando doctor: diagnóstico del entorno y configuración del proveedor IA."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import probe_endpoint
from core.config import GEMINI_OPENAI_BASE_URL, AppSettings, get_user_env_file, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Diagnóstico del entorno y configuración de la IA.")

_console = Console()

PRESETS: dict[str, dict[str, str]] = {
    "gemini": {"INVERSIA_AI_BASE_URL": GEMINI_OPENAI_BASE_URL, "INVERSIA_AI_MODEL": "gemini-3-flash-preview"},
    # Calidad (más lento, mejor para la Visión Global):
    "gemini-pro": {"INVERSIA_AI_BASE_URL": GEMINI_OPENAI_BASE_URL, "INVERSIA_AI_MODEL": "gemini-3-pro-preview"},
}


@app.command()
def run() -> None:
    """Ejecuta las comprobaciones básicas y muestra cómo corregir fallos."""

    settings = AppSettings()

    table = Table(title="inversia doctor")
    table.add_column("Comprobación", style="bright_green", no_wrap=True)
    table.add_column("Estado", style="white")
    table.add_column("Detalles", style="dim")

    has_key = bool(settings.ai_api_key)
    if has_key:
        table.add_row("Clave IA", "OK", "Proveedor IA habilitado")
    else:
        table.add_row("Clave IA", "FALTA", "Sin clave: las operaciones de IA fallarán")
    table.add_row("Base URL IA", "OK", settings.ai_base_url)
    table.add_row("Motor IA", "OK", settings.ai_model)
    table.add_row("Moneda", "OK", settings.default_currency.value)
    table.add_row("Config usuario", "OK" if get_user_env_file().exists() else "-", str(get_user_env_file()))

    ok_http, detail_http = asyncio.run(probe_endpoint(settings.ai_base_url, settings=settings))
    table.add_row("Conectividad IA", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)

    if not has_key:
        _console.print("\n[yellow]Nota:[/yellow] configura la clave con `inversia doctor setup-ai`.")


@app.command(name="setup-ai")
def setup_ai() -> None:
    """Configuración interactiva de la IA (se guarda en el .env de usuario)."""

    provider = typer.prompt("Proveedor IA", default="gemini", show_default=True).strip().lower()

    values = PRESETS.get(provider, {}).copy()
    if not values:
        _console.print("[yellow]Preset desconocido. Puedes introducir valores personalizados.[/yellow]")

    base_url = typer.prompt(
        "Base URL IA", default=values.get("INVERSIA_AI_BASE_URL", ""), show_default=True
    ).strip()
    model = typer.prompt("Motor IA", default=values.get("INVERSIA_AI_MODEL", ""), show_default=True).strip()
    api_key = typer.prompt("API key IA", hide_input=True, confirmation_prompt=False).strip()

    if not base_url or not model:
        raise typer.BadParameter("base_url y model son obligatorios")

    env_path = write_user_env_vars(
        {
            "INVERSIA_AI_BASE_URL": base_url,
            "INVERSIA_AI_MODEL": model,
            "INVERSIA_AI_API_KEY": api_key,
        }
    )

    _console.print(f"[green]Configuración IA guardada en:[/green] {env_path}")

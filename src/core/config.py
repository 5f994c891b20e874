"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- La clave API viaja en `AppSettings` hasta quien construye el cliente del
  proveedor; no hay estado global de módulo.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.currency import Currency

APP_DIR_NAME = "inversia"
GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_ENGINE = "gemini-3-flash-preview"

_ENV_HEADER = "# inversia: configuración de usuario (generada por `inversia doctor setup-ai`)"


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario según la plataforma."""

    if sys.platform.startswith("win"):
        return Path(os.environ.get("APPDATA") or Path.home()) / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    return Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config") / APP_DIR_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def read_env_file(env_path: Path) -> dict[str, str]:
    """Lee pares `CLAVE=valor` ignorando comentarios y líneas vacías."""

    if not env_path.exists():
        return {}
    values: dict[str, str] = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        if not sep or key.startswith("#") or not key.strip():
            continue
        values[key.strip()] = value.strip().strip("\"'")
    return values


def write_user_env_vars(values: dict[str, str | None], *, env_path: Path | None = None) -> Path:
    """Fusiona `values` en el .env de usuario; los valores `None` no se escriben."""

    target = env_path or get_user_env_file()
    merged = read_env_file(target)
    merged.update({key: value for key, value in values.items() if value is not None})

    target.parent.mkdir(parents=True, exist_ok=True)
    body = "\n".join(f"{key}={merged[key]}" for key in sorted(merged))
    target.write_text(f"{_ENV_HEADER}\n{body}\n", encoding="utf-8")
    return target


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Fuentes, de menor a mayor prioridad: .env de usuario, .env del proyecto,
    variables de entorno `INVERSIA_*` y argumentos explícitos.
    """

    model_config = SettingsConfigDict(
        env_prefix="INVERSIA_",
        extra="ignore",
        case_sensitive=False,
        # El último fichero gana: el .env del proyecto (dev) pisa al de usuario.
        env_file=(str(get_user_env_file()), ".env"),
        env_file_encoding="utf-8",
    )

    ai_api_key: str | None = Field(
        default=None,
        description="API key del proveedor IA (Gemini vía endpoint compatible OpenAI).",
    )
    ai_base_url: str = Field(
        default=GEMINI_OPENAI_BASE_URL,
        min_length=8,
        description="Base URL compatible OpenAI.",
    )
    ai_model: str = Field(
        default=DEFAULT_ENGINE,
        min_length=1,
        description="Motor por defecto para todas las operaciones.",
    )
    ai_available_models: list[str] = Field(
        default_factory=lambda: [DEFAULT_ENGINE, "gemini-3-pro-preview"],
        description="Motores que se ofrecen al usuario (JSON en la variable de entorno).",
    )
    ai_timeout_seconds: float = Field(default=90.0, gt=0, description="Timeout por llamada IA (s).")

    http_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout para comprobaciones HTTP auxiliares (doctor).",
    )
    user_agent: str = Field(default="inversia/0.1", min_length=1)

    default_currency: Currency = Field(
        default=Currency.EUR,
        description="Moneda en la que se piden precios y métricas.",
    )
    log_level: str = Field(default="WARNING", description="Nivel de logging de la CLI.")

    @field_validator("default_currency", mode="before")
    @classmethod
    def _parse_currency(cls, value: object) -> object:
        return Currency.parse(value) if isinstance(value, str) else value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    def resolve_engine(self, engine: str | None) -> str:
        """Motor a usar: el pedido explícitamente o el configurado por defecto."""

        return (engine or "").strip() or self.ai_model

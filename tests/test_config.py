from core.config import AppSettings, GEMINI_OPENAI_BASE_URL, get_user_config_dir, write_user_env_vars
from core.domain.currency import Currency


def test_defaults(monkeypatch):
    monkeypatch.delenv("INVERSIA_AI_API_KEY", raising=False)
    monkeypatch.delenv("INVERSIA_AI_MODEL", raising=False)
    settings = AppSettings(_env_file=None)

    assert settings.ai_api_key is None
    assert settings.ai_base_url == GEMINI_OPENAI_BASE_URL
    assert settings.ai_model == "gemini-3-flash-preview"
    assert settings.default_currency is Currency.EUR


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("INVERSIA_AI_MODEL", "gemini-3-pro-preview")
    monkeypatch.setenv("INVERSIA_DEFAULT_CURRENCY", "USD")
    settings = AppSettings(_env_file=None)

    assert settings.ai_model == "gemini-3-pro-preview"
    assert settings.default_currency is Currency.USD


def test_user_config_dir_honours_xdg(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert get_user_config_dir() == tmp_path / "inversia"


def test_write_user_env_vars_merges_existing(tmp_path):
    env_path = tmp_path / "cfg" / ".env"
    write_user_env_vars({"INVERSIA_AI_MODEL": "a", "INVERSIA_AI_API_KEY": "k1"}, env_path=env_path)
    write_user_env_vars({"INVERSIA_AI_API_KEY": "k2"}, env_path=env_path)

    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("#")
    assert "INVERSIA_AI_MODEL=a" in lines
    assert "INVERSIA_AI_API_KEY=k2" in lines
    assert "INVERSIA_AI_API_KEY=k1" not in lines


def test_currency_parse():
    assert Currency.parse(" usd ") is Currency.USD


def test_lowercase_currency_and_log_level(monkeypatch):
    monkeypatch.setenv("INVERSIA_DEFAULT_CURRENCY", "gbp")
    settings = AppSettings(_env_file=None, log_level="debug")

    assert settings.default_currency is Currency.GBP
    assert settings.log_level == "DEBUG"


def test_resolve_engine_falls_back_to_default():
    settings = AppSettings(_env_file=None, ai_model="gemini-3-pro-preview")

    assert settings.resolve_engine(None) == "gemini-3-pro-preview"
    assert settings.resolve_engine("  ") == "gemini-3-pro-preview"
    assert settings.resolve_engine("otro") == "otro"

from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from cli import main as cli_main

runner = CliRunner()


@pytest.fixture
def use_generator(monkeypatch):
    def install(generator):
        monkeypatch.setattr(
            cli_main, "OpenAICompatibleGenerator", SimpleNamespace(from_settings=lambda settings: generator)
        )
        return generator

    return install


def test_identify_prints_assets(use_generator, fake_generator):
    use_generator(
        fake_generator('{"assets": [{"name": "Apple Inc.", "ticker": "AAPL", "type": "stock", "description": "Tech"}]}')
    )

    result = runner.invoke(cli_main.app, ["--quiet", "identify", "apple", "--engine", "gemini-3-flash-preview"])

    assert result.exit_code == 0, result.output
    assert "AAPL" in result.output


def test_identify_exports_json(use_generator, fake_generator, tmp_path):
    use_generator(fake_generator('{"assets": []}'))
    output = tmp_path / "out" / "assets.json"

    result = runner.invoke(cli_main.app, ["--quiet", "identify", "nada", "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert '"data": []' in output.read_text(encoding="utf-8")


def test_quota_error_exits_with_code_2(use_generator, fake_generator, status_error):
    use_generator(fake_generator(status_error("quota exceeded", 429)))

    result = runner.invoke(cli_main.app, ["--quiet", "quote", "Apple", "AAPL"])

    assert result.exit_code == 2
    assert "Cuota excedida" in result.output


def test_malformed_payload_exits_with_code_1(use_generator, fake_generator):
    use_generator(fake_generator("no es json"))

    result = runner.invoke(cli_main.app, ["--quiet", "limit", "Apple", "AAPL"])

    assert result.exit_code == 1
    assert "Respuesta inesperada" in result.output


def test_sector_screen_reports_partial_failures(use_generator, fake_generator, status_error):
    def reply(request):
        if '"Energía"' in request.prompt:
            return status_error("quota exceeded", 429)
        return '{"title": "Banca europea", "assets": []}'

    use_generator(fake_generator(reply))

    result = runner.invoke(
        cli_main.app,
        ["--quiet", "sector", "-s", "Banca", "-s", "Energía", "-c", "Dividendos"],
    )

    assert result.exit_code == 2
    assert "Banca europea" in result.output
    assert "Energía" in result.output


def test_ask_sends_history_file(use_generator, fake_generator, tmp_path):
    gen = use_generator(fake_generator('{"answerFound": true, "summary": "Sí", "fullText": "Deuda baja."}'))
    context = tmp_path / "analisis.md"
    context.write_text("La deuda neta es baja.", encoding="utf-8")
    history = tmp_path / "historial.json"
    history.write_text(
        '[{"role": "user", "text": "¿Qué tal el PER?"}, {"role": "assistant", "text": "Unos 24."}]',
        encoding="utf-8",
    )

    result = runner.invoke(
        cli_main.app,
        ["--quiet", "ask", "Apple", "¿Y la deuda?", "--context", str(context), "--history", str(history)],
    )

    assert result.exit_code == 0, result.output
    prompt = gen.requests[0].prompt
    assert "Usuario: ¿Qué tal el PER?" in prompt
    assert "Asistente: Unos 24." in prompt


def test_ask_rejects_invalid_history(use_generator, fake_generator, tmp_path):
    gen = use_generator(fake_generator('{"summary": "x", "fullText": "y"}'))
    history = tmp_path / "historial.json"
    history.write_text('[{"role": "system", "text": "hola"}]', encoding="utf-8")

    result = runner.invoke(cli_main.app, ["--quiet", "ask", "Apple", "¿Dividendo?", "--web", "--history", str(history)])

    assert result.exit_code == 2
    assert gen.requests == []

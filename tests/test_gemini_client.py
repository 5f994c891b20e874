import asyncio
from types import SimpleNamespace

import pytest
from openai.types.chat import ChatCompletion

from adapters.gemini_client import (
    OpenAICompatibleGenerator,
    build_ai_client,
    build_completion_kwargs,
    extract_sources,
)
from core.config import AppSettings
from core.domain.errors import ClassifiedError, ErrorKind
from core.interfaces.text_generator import GenerationConfig, GenerationRequest

COMPLETION = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gemini-3-flash-preview",
    "choices": [
        {
            "index": 0,
            "finish_reason": "stop",
            "message": {
                "role": "assistant",
                "content": '{"price": 10, "currency": "EUR"}',
                "annotations": [
                    {"type": "url_citation", "url_citation": {"url": "https://b.example", "title": "", "start_index": 0, "end_index": 1}}
                ],
            },
        }
    ],
    "usage": {"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20},
    "groundingMetadata": {
        "groundingChunks": [
            {"web": {"uri": "https://a.example", "title": "A"}},
            {"web": {"uri": "", "title": "Sin URI"}},
        ]
    },
}


class _FakeCompletions:
    def __init__(self):
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return ChatCompletion.model_validate(COMPLETION)


def test_missing_api_key_is_authentication_error():
    settings = AppSettings(_env_file=None, ai_api_key="  ")
    with pytest.raises(ClassifiedError) as exc_info:
        build_ai_client(settings)
    assert exc_info.value.kind is ErrorKind.AUTHENTICATION


def test_client_never_retries():
    client = build_ai_client(AppSettings(_env_file=None, ai_api_key="k"))
    assert client.max_retries == 0


def test_completion_kwargs_with_schema_and_web_search():
    request = GenerationRequest(
        model="gemini-3-flash-preview",
        prompt="hola",
        operation="identify_assets",
        config=GenerationConfig(
            temperature=0.3,
            response_schema={"type": "object"},
            web_search=True,
            system_instruction="Sistema",
            max_output_tokens=100,
            thinking_budget=256,
        ),
    )

    kwargs = build_completion_kwargs(request)

    assert kwargs["messages"] == [
        {"role": "system", "content": "Sistema"},
        {"role": "user", "content": "hola"},
    ]
    assert kwargs["max_tokens"] == 100
    assert kwargs["response_format"]["json_schema"]["name"] == "identify_assets"
    google = kwargs["extra_body"]["extra_body"]["google"]
    assert google["tools"] == [{"google_search": {}}]
    assert google["thinking_config"] == {"thinking_budget": 256}


def test_thinking_budget_only_for_supported_models():
    request = GenerationRequest(
        model="gemini-3-pro-preview",
        prompt="hola",
        config=GenerationConfig(thinking_budget=0),
    )
    kwargs = build_completion_kwargs(request)
    assert "extra_body" not in kwargs
    assert "response_format" not in kwargs


def test_extract_sources_from_grounding_and_annotations():
    sources = extract_sources(ChatCompletion.model_validate(COMPLETION))
    assert [(s.uri, s.title) for s in sources] == [
        ("https://a.example", "A"),
        ("https://b.example", "Fuente sin título"),
    ]


def test_generate_returns_raw_response():
    completions = _FakeCompletions()
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    generator = OpenAICompatibleGenerator(client)

    raw = asyncio.run(
        generator.generate(GenerationRequest(model="gemini-3-flash-preview", prompt="precio", operation="quote"))
    )

    assert raw.text == '{"price": 10, "currency": "EUR"}'
    assert raw.usage.prompt_tokens == 12
    assert raw.usage.candidate_tokens == 8
    assert len(raw.sources) == 2
    assert completions.calls[0]["model"] == "gemini-3-flash-preview"

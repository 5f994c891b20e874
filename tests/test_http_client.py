import asyncio

import httpx

from adapters.http_client import probe_endpoint
from core.config import AppSettings


def test_probe_reports_status_and_user_agent():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["User-Agent"]
        return httpx.Response(404)

    settings = AppSettings(_env_file=None, user_agent="inversia-test")
    ok, detail = asyncio.run(
        probe_endpoint("https://ai.example/v1", settings=settings, transport=httpx.MockTransport(handler))
    )

    assert ok is True
    assert detail == "HTTP 404"
    assert seen["ua"] == "inversia-test"


def test_probe_reports_transport_failures():
    def handler(request):
        raise httpx.ConnectError("sin red", request=request)

    ok, detail = asyncio.run(
        probe_endpoint(
            "https://ai.example/v1",
            settings=AppSettings(_env_file=None),
            transport=httpx.MockTransport(handler),
        )
    )

    assert ok is False
    assert "sin red" in detail

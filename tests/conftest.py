import asyncio

import pytest

from core.domain.models import TokenUsage
from core.interfaces.text_generator import RawModelResponse


class FakeGenerator:
    """`TextGenerator` en memoria: responde con texto fijo o calculado por petición."""

    def __init__(self, reply, *, usage=None):
        self._reply = reply
        self._usage = usage or TokenUsage(prompt_tokens=10, candidate_tokens=5, total_tokens=15)
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        # Cede el control para que las llamadas concurrentes se entrelacen.
        await asyncio.sleep(0)
        reply = self._reply(request) if callable(self._reply) else self._reply
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, RawModelResponse):
            return reply
        return RawModelResponse(text=reply, model=request.model, usage=self._usage)


class StatusError(Exception):
    """Imita un error HTTP del SDK (expone `status_code`)."""

    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture
def fake_generator():
    return FakeGenerator


@pytest.fixture
def status_error():
    return StatusError

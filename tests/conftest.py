import sys
from pathlib import Path

import pytest

from launcher_search.backend.client import BackendClient
from launcher_search.backend.codec import DelimitedTextCodec, JsonLineCodec

FAKE_BACKENDS = Path(__file__).parent / "fake_backends"


@pytest.fixture
def json_client():
    """Factory for clients talking to the fake JSON-line backend."""

    def make(*args: str, **kwargs) -> BackendClient:
        return BackendClient(
            sys.executable,
            JsonLineCodec(),
            args=[str(FAKE_BACKENDS / "json_backend.py"), *args],
            **kwargs,
        )

    return make


@pytest.fixture
def text_client():
    """Factory for clients talking to the fake delimited-text backend."""

    def make(*args: str, **kwargs) -> BackendClient:
        return BackendClient(
            sys.executable,
            DelimitedTextCodec(),
            args=[str(FAKE_BACKENDS / "text_backend.py"), *args],
            **kwargs,
        )

    return make

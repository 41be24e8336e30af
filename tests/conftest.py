"""
Shared fixtures. Environment is pinned before any app module is imported:
no LLM key, no Redis, rate limiting off.
"""
import io
import os
import sys
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ["OPENROUTER_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["HISTORY_ENABLED"] = "1"
os.environ["AUTO_RECOMMEND"] = "1"


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(40, 140, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_data_uri(png_bytes):
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("utf-8")


@pytest.fixture
def make_completion():
    """Builds the shape of an openai chat completion, enough for generate_json"""
    def _make(content):
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])
    return _make


@pytest.fixture
def fake_llm_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client

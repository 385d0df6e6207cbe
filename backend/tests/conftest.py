import sys
from pathlib import Path

import pytest

backend_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_root))

from helpers import FakeCapabilities  # noqa: E402


@pytest.fixture
def fake_capabilities() -> FakeCapabilities:
    return FakeCapabilities()

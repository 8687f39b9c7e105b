import sys
from pathlib import Path

import pytest

# Ensure local package is imported before any installed version
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vqa_weave.vqa_weave import Session  # noqa: E402


@pytest.fixture
def seeded():
    """Scope a fixed seed to a single test."""
    with Session(seed=1234) as cfg:
        yield cfg

"""
Pytest configuration and fixtures for mindspread.
"""

import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mindspread.engine import MindMapEngine
from mindspread.storage import MemoryStore

VIEWPORT = (1000.0, 800.0)


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.local/share."""
    monkeypatch.setenv("MINDSPREAD_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def engine(store) -> MindMapEngine:
    """Engine with a fixed viewport and a seeded random source."""
    return MindMapEngine(store=store, viewport=lambda: VIEWPORT, rng=random.Random(42))


@pytest.fixture
def root_id(engine) -> str:
    return engine.root.id


@pytest.fixture
def chain(engine, root_id):
    """root -> a -> b"""
    a = engine.add_child(root_id)
    b = engine.add_child(a.id)
    return root_id, a.id, b.id

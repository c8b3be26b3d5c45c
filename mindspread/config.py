"""Engine settings for mindspread."""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

SETTINGS_KEY = "mindmapSettings"


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get("MINDSPREAD_DATA_DIR")
    data_dir = Path(override).expanduser() if override else Path.home() / ".local" / "share" / "mindspread"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "exports").mkdir(exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "mindspread.db"


@dataclass
class EngineSettings:
    """Tunables for placement, history and auto-spread."""
    history_limit: int = 50

    # Child/sibling placement
    child_distance: float = 120.0
    directional_offset: float = 120.0
    directional_jitter: float = 160.0
    sibling_gap: float = 60.0
    sibling_jitter: float = 10.0

    # Auto-spread
    base_radius: float = 250.0
    min_arc_length: float = 130.0
    spread_iterations: int = 15
    radius_growth: float = 1.25

    # Fallback viewport when no provider is injected
    viewport_width: float = 1280.0
    viewport_height: float = 800.0

    random_seed: Optional[int] = None

    @property
    def viewport(self) -> Tuple[float, float]:
        return self.viewport_width, self.viewport_height

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "EngineSettings":
        if not data:
            return cls()
        try:
            d = json.loads(data)
            # Filter to only known fields to handle schema evolution
            known = {f.name for f in cls.__dataclass_fields__.values()}
            return cls(**{k: v for k, v in d.items() if k in known})
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring malformed settings: {e}")
            return cls()


def load_settings(store) -> EngineSettings:
    """Read settings from a key-value store, falling back to defaults."""
    return EngineSettings.from_json(store.get(SETTINGS_KEY))


def save_settings(store, settings: EngineSettings):
    store.set(SETTINGS_KEY, settings.to_json())

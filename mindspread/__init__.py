"""mindspread: mind-map state and auto-spread layout engine."""

from mindspread.config import EngineSettings
from mindspread.engine import MindMapEngine
from mindspread.errors import FormatError, MindMapError, StorageError
from mindspread.model import Node, NodeStyle
from mindspread.navigation import Direction
from mindspread.storage import MemoryStore, SqliteStore
from mindspread.undo import ActionType

__version__ = "1.0.0"

__all__ = [
    "ActionType",
    "Direction",
    "EngineSettings",
    "FormatError",
    "MemoryStore",
    "MindMapEngine",
    "MindMapError",
    "Node",
    "NodeStyle",
    "SqliteStore",
    "StorageError",
]

"""Exception types raised at the mindspread boundary."""


class MindMapError(Exception):
    """Base class for mindspread errors."""


class FormatError(MindMapError, ValueError):
    """An imported document or stored payload could not be understood."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.args[0]}"
        return str(self.args[0])


class StorageError(MindMapError):
    """The key-value store could not be read or written."""

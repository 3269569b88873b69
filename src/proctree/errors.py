"""Exceptions raised by proctree."""


class ProctreeError(Exception):
    """Base class for proctree errors."""


class EnumerationError(ProctreeError):
    """An OS process or service enumeration failed as a whole."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"{source}: {message}")

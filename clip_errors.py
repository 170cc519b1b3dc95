"""
clip_errors.py - Exception types shared by the clipchef modules.
"""


class ClipChefError(Exception):
    """Base class for every error clipchef raises on purpose."""


class ClipboardError(ClipChefError):
    """The system clipboard could not be read or written."""


class RecipeStoreError(ClipChefError):
    """Loading or saving the recipe file failed."""


class RecipeNotFoundError(ClipChefError, KeyError):
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Recipe not found: {self.key}"


class UnknownTransformError(ClipChefError, KeyError):
    def __init__(self, kind: str):
        super().__init__(kind)
        self.kind = kind

    def __str__(self) -> str:
        return f"Unknown transformation: {self.kind}"


class AlreadyRunningError(ClipChefError):
    """Another clipchef service holds the pid file lock."""

    def __init__(self, path):
        super().__init__(str(path))
        self.path = path

    def __str__(self) -> str:
        return f"clipchef is already running (pid file {self.path} is locked)"

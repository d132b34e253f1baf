"""Exceptions raised by mapbridge.

Configuration errors are fatal and raised synchronously at the call site.
Gesture and click synthesis never raises.
"""


class MapConfigurationError(ValueError):
    """Base class for invalid map or layer configuration."""


class LayerNameError(MapConfigurationError):
    """An explicit layer name collides with an already registered name."""

    def __init__(self, name: str) -> None:
        super().__init__(f'All layer names must be unique. "{name}" is used more than once.')
        self.name = name


class MissingLayerTypeError(MapConfigurationError):
    """A layer has no "type", or its type has no registered handler."""


class MissingDimensionError(MapConfigurationError):
    """An image-based layer is missing its height or width."""

    def __init__(self, field: str) -> None:
        super().__init__(f'"{field}" is required.')
        self.field = field


class UnsupportedOperationError(NotImplementedError):
    """The operation cannot be ported to the active provider."""

    def __init__(self, operation: str, provider: str) -> None:
        super().__init__(f"{operation} is not supported by the {provider} provider")
        self.operation = operation
        self.provider = provider


class ImageDimensionTimeout(TimeoutError):
    """A marker icon never reported nonzero dimensions."""

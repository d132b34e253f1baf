"""Layer configuration records.

LayerConfig describes an overlay layer; BaseLayerConfig one entry of the
base-layer collection. Both are mutable: the registry fills in generated
names and resolved styles, and providers attach their native handle.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from mapbridge.model.vector_style import ResolvedStyle, VectorStyle


@dataclass
class LayerConfig:
    """An overlay layer.

    Attributes:
        type: Handler kind, a key of LayerHandlerConfig.HANDLERS
        name: Unique name (generated on add when missing)
        style: Caller style; replaced by ResolvedStyle for vector layers
        visible: None means "visible"
        z_index: Stacking order; 0 is a real value
        provider_handle: Opaque native object owned by the provider adapter
    """

    type: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None
    style: Union[VectorStyle, ResolvedStyle, None] = None
    visible: Optional[bool] = None
    z_index: Optional[int] = None
    url: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None
    opacity: Optional[float] = None
    attribution: Optional[str] = None
    provider_handle: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_visible(self) -> bool:
        return self.visible is None or self.visible is True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LayerConfig":
        known = {"type", "name", "id", "style", "visible", "zIndex", "url", "height", "width", "opacity", "attribution"}
        style = data.get("style")
        return cls(
            type=data.get("type"),
            name=data.get("name"),
            id=data.get("id"),
            style=VectorStyle.from_dict(style) if isinstance(style, dict) else style,
            visible=data.get("visible"),
            z_index=data.get("zIndex"),
            url=data.get("url"),
            height=data.get("height"),
            width=data.get("width"),
            opacity=data.get("opacity"),
            attribution=data.get("attribution"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class BaseLayerConfig:
    """A base (background) layer.

    The code selects a provider default base map ("road", "light", ...) or a
    custom tiled base layer described by url.
    """

    code: str
    name: Optional[str] = None
    type: Optional[str] = None
    visible: Optional[bool] = None
    z_index: Optional[int] = None
    url: Optional[str] = None

    @property
    def is_visible(self) -> bool:
        return self.visible is None or self.visible is True

    @property
    def registered_name(self) -> str:
        """Name reserved in the layer-name registry (code when unnamed)."""
        return self.name if self.name is not None else self.code

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BaseLayerConfig":
        return cls(
            code=data["code"],
            name=data.get("name"),
            type=data.get("type"),
            visible=data.get("visible"),
            z_index=data.get("zIndex"),
            url=data.get("url"),
        )

"""Provider adapters.

- base.py: ProviderAdapter, CoordinateAdapter, StyleTranslator, MarkerOptions
- viewport.py: Viewport (headless provider map), RawSignal, ViewCommand
- pydeck_adapter.py: deck.gl via pydeck
- folium_adapter.py: Leaflet via folium
"""

from typing import Optional

from mapbridge.providers.base import CoordinateAdapter, MarkerOptions, ProviderAdapter, StyleTranslator
from mapbridge.providers.folium_adapter import FoliumAdapter, FoliumCoordinateAdapter, FoliumStyleTranslator
from mapbridge.providers.pydeck_adapter import PydeckAdapter, PydeckCoordinateAdapter, PydeckStyleTranslator
from mapbridge.providers.viewport import RawSignal, ViewCommand, Viewport

PROVIDERS: dict[str, tuple[type[ProviderAdapter], type[StyleTranslator]]] = {
    PydeckAdapter.NAME: (PydeckAdapter, PydeckStyleTranslator),
    FoliumAdapter.NAME: (FoliumAdapter, FoliumStyleTranslator),
}


def get_provider(name: str, styles_kwargs: Optional[dict] = None) -> ProviderAdapter:
    """Build the adapter registered under name.

    Args:
        name: "pydeck" or "folium"
        styles_kwargs: Passed to the provider's StyleTranslator (scheduler,
            image_loader, probe_timeout_ms)

    Raises:
        ValueError: If no provider has that name.
    """
    if name not in PROVIDERS:
        raise ValueError(f"Unknown provider '{name}'; expected one of {sorted(PROVIDERS)}")
    adapter_cls, styles_cls = PROVIDERS[name]
    return adapter_cls(styles=styles_cls(**(styles_kwargs or {})))


__all__ = [
    "ProviderAdapter",
    "CoordinateAdapter",
    "StyleTranslator",
    "MarkerOptions",
    "Viewport",
    "RawSignal",
    "ViewCommand",
    "PydeckAdapter",
    "PydeckCoordinateAdapter",
    "PydeckStyleTranslator",
    "FoliumAdapter",
    "FoliumCoordinateAdapter",
    "FoliumStyleTranslator",
    "PROVIDERS",
    "get_provider",
]

__all__ = ["LibriVoxSource", "CatalogConfig", "CatalogState"]


def __getattr__(name: str):
    if name == "LibriVoxSource":
        from .source import LibriVoxSource

        return LibriVoxSource
    if name == "CatalogConfig":
        from .config import CatalogConfig

        return CatalogConfig
    if name == "CatalogState":
        from .cache import CatalogState

        return CatalogState
    raise AttributeError(name)

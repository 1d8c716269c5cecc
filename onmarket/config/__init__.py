from .sources import SOURCE_REGISTRY, SourceConfig, ParserKey, get_all_sources
from .settings import settings

__all__ = ["SOURCE_REGISTRY", "SourceConfig", "ParserKey", "settings", "get_all_sources"]

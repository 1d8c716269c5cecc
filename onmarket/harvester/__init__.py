from .base_parser import BaseParser, ListingParseError
from .parsers import (
    PARSER_REGISTRY,
    UnknownParserError,
    get_parser,
    BrokerHTMLParser,
    RSSGenericParser,
    SitemapGenericParser,
)
from .orchestrator import (
    IngestionError,
    IngestionResult,
    process_source,
    run_ingestion,
    run_ingestion_cli,
)

__all__ = [
    "BaseParser",
    "ListingParseError",
    "PARSER_REGISTRY",
    "UnknownParserError",
    "get_parser",
    "BrokerHTMLParser",
    "RSSGenericParser",
    "SitemapGenericParser",
    "IngestionError",
    "IngestionResult",
    "process_source",
    "run_ingestion",
    "run_ingestion_cli",
]

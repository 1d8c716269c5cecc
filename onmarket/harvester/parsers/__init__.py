"""
Parser registry.

PARSER_REGISTRY maps every ParserKey to its implementation; get_parser()
fails immediately on keys outside the enum.
"""

from typing import Dict, Type, Union

from ..base_parser import BaseParser
from .broker_html import BrokerHTMLParser
from .rss_generic import RSSGenericParser
from .sitemap_generic import SitemapGenericParser
from ...config.sources import ParserKey


class UnknownParserError(KeyError):
    """Raised when a source names a parser key with no implementation."""


PARSER_REGISTRY: Dict[ParserKey, Type[BaseParser]] = {
    ParserKey.BROKER_HTML: BrokerHTMLParser,
    ParserKey.RSS: RSSGenericParser,
    ParserKey.SITEMAP: SitemapGenericParser,
}


def get_parser(key: Union[ParserKey, str]) -> BaseParser:
    """
    Instantiate the parser for a key.

    Raises:
        UnknownParserError: if the key is not a registered ParserKey
    """
    try:
        parser_key = ParserKey(key)
    except ValueError:
        raise UnknownParserError(f"Unknown parser key: {key}") from None

    parser_cls = PARSER_REGISTRY.get(parser_key)
    if parser_cls is None:
        raise UnknownParserError(f"No parser registered for key: {parser_key.value}")
    return parser_cls()


__all__ = [
    "PARSER_REGISTRY",
    "UnknownParserError",
    "get_parser",
    "BrokerHTMLParser",
    "RSSGenericParser",
    "SitemapGenericParser",
]

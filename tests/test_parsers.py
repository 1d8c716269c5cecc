"""
Tests for listing parsers and the parser registry.

Parsers are pure, so every test feeds a fixed page and checks the
stubs / extracted fields.
"""

import pytest

from onmarket.analyst.schemas import ParserInput
from onmarket.config.sources import ParserKey
from onmarket.harvester.base_parser import ListingParseError
from onmarket.harvester.parsers import (
    PARSER_REGISTRY,
    BrokerHTMLParser,
    RSSGenericParser,
    SitemapGenericParser,
    UnknownParserError,
    get_parser,
)
from tests.test_helpers import (
    RSS_FEED,
    SITEMAP_XML,
    SYNERGY_INDEX_URL,
    broker_detail_html,
    broker_index_html,
)


# =============================================================================
# Registry
# =============================================================================
class TestParserRegistry:
    def test_every_key_registered(self):
        assert set(PARSER_REGISTRY) == set(ParserKey)

    @pytest.mark.parametrize("key,cls", [
        ("synergy_html", BrokerHTMLParser),
        ("rss_generic", RSSGenericParser),
        ("sitemap_generic", SitemapGenericParser),
        (ParserKey.RSS, RSSGenericParser),
    ])
    def test_get_parser(self, key, cls):
        assert isinstance(get_parser(key), cls)

    def test_unknown_key_fails(self):
        with pytest.raises(UnknownParserError):
            get_parser("bizbuysell_html")


# =============================================================================
# Broker HTML
# =============================================================================
class TestBrokerIndex:
    def test_harvests_listing_links_only(self):
        html = broker_index_html(
            ["/listings/hvac-dallas/", "/listings/hvac-austin/"],
            ["HVAC Service Company - Dallas", "Commercial HVAC Contractor - Austin"],
        )
        stubs = BrokerHTMLParser().parse_index(ParserInput(url=SYNERGY_INDEX_URL, text=html))

        assert [s.listing_url for s in stubs] == [
            "https://www.synergybb.com/listings/hvac-dallas/",
            "https://www.synergybb.com/listings/hvac-austin/",
        ]

    def test_titled_link_fills_image_link_stub(self):
        html = broker_index_html(["/listings/hvac-dallas/"], ["HVAC Service Company - Dallas"])
        stubs = BrokerHTMLParser().parse_index(ParserInput(url=SYNERGY_INDEX_URL, text=html))

        assert len(stubs) == 1
        assert stubs[0].title == "HVAC Service Company - Dallas"

    def test_generic_link_text_is_not_a_title(self):
        html = '<a href="/listings/abc/">View Listing</a>'
        stubs = BrokerHTMLParser().parse_index(ParserInput(url=SYNERGY_INDEX_URL, text=html))
        assert stubs[0].title is None

    def test_fragments_collapse_to_one_stub(self):
        html = (
            '<a href="/listings/abc/#photos">Established plumbing company</a>'
            '<a href="/listings/abc/">Established plumbing company</a>'
        )
        stubs = BrokerHTMLParser().parse_index(ParserInput(url=SYNERGY_INDEX_URL, text=html))
        assert [s.listing_url for s in stubs] == ["https://www.synergybb.com/listings/abc/"]

    def test_empty_page(self):
        assert BrokerHTMLParser().parse_index(ParserInput(url=SYNERGY_INDEX_URL, text="")) == []


class TestBrokerDetail:
    URL = "https://www.synergybb.com/listings/hvac-dallas/"

    def _parse(self, html):
        return BrokerHTMLParser().parse_detail(ParserInput(url=self.URL, text=html))

    def test_full_detail_page(self):
        fields = self._parse(broker_detail_html())

        assert fields.headline == "Profitable HVAC Service Company"
        assert fields.city == "Dallas"
        assert fields.state == "TX"
        assert fields.company_name is None
        assert fields.asking_price == 1_200_000
        assert fields.teaser_pdf_url == "https://www.synergybb.com/wp-content/uploads/teaser-hvac.pdf"
        assert fields.financial_strings == [
            "Annual Revenue: $2,400,000",
            "Cash Flow: $480,000",
            "Asking Price: $1,200,000",
        ]
        assert "hvac" in fields.industry_terms
        assert "air conditioning" in fields.industry_terms
        assert fields.deal_type_terms == ["asset sale"]
        assert fields.raw["location_text"] == "Dallas, TX"

    def test_script_text_is_ignored(self):
        fields = self._parse(broker_detail_html())
        assert "99,000,000" not in fields.text_sample

    def test_headline_falls_back_to_meta_description(self):
        html = '<html><head><meta name="description" content="Plumbing business for sale"></head><body><p>Hi</p></body></html>'
        assert self._parse(html).headline == "Plumbing business for sale"

    def test_city_state_pattern_without_label(self):
        html = "<h1>Electrical Contractor</h1><p>Business is based in Tampa, FL and serves the region.</p>"
        fields = self._parse(html)
        assert (fields.city, fields.state) == ("Tampa", "FL")

    def test_state_only_location(self):
        fields = self._parse("<p>Location: Colorado</p>")
        assert fields.city is None
        assert fields.state == "Colorado"

    def test_company_only_from_explicit_label(self):
        fields = self._parse("<h1>Acme Heating</h1><p>Company Name: Acme Heating &amp; Air LLC</p>")
        assert fields.company_name == "Acme Heating & Air LLC"

    def test_no_price_without_explicit_label(self):
        fields = self._parse("<p>Price: $500,000</p>")
        assert fields.asking_price is None

    def test_no_teaser(self):
        fields = self._parse(broker_detail_html(teaser_href=None))
        assert fields.teaser_pdf_url is None


# =============================================================================
# RSS
# =============================================================================
class TestRSSParser:
    FEED_URL = "https://brokerfeed.example.com/feed/"

    def test_parse_index(self):
        stubs = RSSGenericParser().parse_index(ParserInput(url=self.FEED_URL, text=RSS_FEED))

        assert [s.listing_url for s in stubs] == [
            "https://brokerfeed.example.com/listing/plumbing-phoenix",
            "https://brokerfeed.example.com/listing/electrical-tampa",
        ]
        assert stubs[0].title == "Plumbing Contractor - Phoenix, AZ"
        assert stubs[0].maybe_date == "2026-03-02T09:30:00+00:00"
        assert stubs[1].maybe_date is None

    def test_unreadable_feed_raises(self):
        with pytest.raises(ListingParseError):
            RSSGenericParser().parse_index(ParserInput(url=self.FEED_URL, text="Service unavailable <br> <<<"))

    def test_parse_detail(self):
        html = "<p>Plumbing contractor. Asking Price: $750,000. Stock sale.</p>"
        fields = RSSGenericParser().parse_detail(ParserInput(url=self.FEED_URL, text=html))
        assert fields.asking_price == 750_000
        assert "plumbing" in fields.industry_terms
        assert fields.deal_type_terms == ["stock sale"]
        assert fields.company_name is None


# =============================================================================
# Sitemap
# =============================================================================
class TestSitemapParser:
    SITEMAP_URL = "https://brokersite.example.com/sitemap.xml"

    def test_parse_index(self):
        stubs = SitemapGenericParser().parse_index(ParserInput(url=self.SITEMAP_URL, text=SITEMAP_XML))

        assert [s.listing_url for s in stubs] == [
            "https://brokersite.example.com/listing/hvac-denver",
            "https://brokersite.example.com/listing/plumbing-austin",
        ]
        assert stubs[0].maybe_date == "2026-02-27T00:00:00+00:00"
        assert stubs[1].maybe_date is None
        assert stubs[0].title is None

    def test_sitemap_index_children_skipped(self):
        xml = (
            '<?xml version="1.0"?><sitemapindex>'
            "<sitemap><loc>https://brokersite.example.com/sitemap-1.xml</loc></sitemap>"
            "</sitemapindex>"
        )
        assert SitemapGenericParser().parse_index(ParserInput(url=self.SITEMAP_URL, text=xml)) == []

    def test_not_a_sitemap_raises(self):
        with pytest.raises(ListingParseError):
            SitemapGenericParser().parse_index(ParserInput(url=self.SITEMAP_URL, text="<html><body>hi</body></html>"))

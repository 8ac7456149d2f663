from datetime import date
from xml.etree import ElementTree as ET

from backend.toolsuite.sitemap import (
    BASE_URL,
    SITEMAP_NAMESPACE,
    STATIC_PAGES,
    TOOL_PATHS,
    generate_robots,
    generate_sitemap,
)

NS = {"sm": SITEMAP_NAMESPACE}


def test_sitemap_lists_every_page_once():
    document = generate_sitemap(today=date(2026, 10, 17))
    root = ET.fromstring(document.encode("utf-8"))

    assert root.tag == f"{{{SITEMAP_NAMESPACE}}}urlset"
    urls = root.findall("sm:url", NS)
    assert len(urls) == len(STATIC_PAGES) + len(TOOL_PATHS)

    locs = [url.findtext("sm:loc", namespaces=NS) for url in urls]
    assert len(set(locs)) == len(locs)
    assert all(loc.startswith(BASE_URL) for loc in locs)
    assert locs[0] == BASE_URL
    assert f"{BASE_URL}/tools/qr-generator" in locs


def test_sitemap_entries_carry_date_frequency_and_priority():
    root = ET.fromstring(generate_sitemap(today=date(2026, 10, 17)).encode("utf-8"))
    entries = {
        url.findtext("sm:loc", namespaces=NS): url for url in root.findall("sm:url", NS)
    }

    home = entries[BASE_URL]
    assert home.findtext("sm:lastmod", namespaces=NS) == "2026-10-17"
    assert home.findtext("sm:changefreq", namespaces=NS) == "weekly"
    assert home.findtext("sm:priority", namespaces=NS) == "1.0"

    tool = entries[f"{BASE_URL}/tools/merge-pdf"]
    assert tool.findtext("sm:changefreq", namespaces=NS) == "monthly"
    assert tool.findtext("sm:priority", namespaces=NS) == "0.8"


def test_sitemap_is_deterministic_for_a_given_date():
    day = date(2026, 1, 2)
    assert generate_sitemap(today=day) == generate_sitemap(today=day)
    assert generate_sitemap(today=day).startswith('<?xml version="1.0" encoding="UTF-8"?>')


def test_sitemap_honours_base_url():
    document = generate_sitemap(today=date(2026, 1, 2), base_url="https://staging.example.com")
    assert "https://staging.example.com/about" in document
    assert BASE_URL not in document


def test_robots_points_at_sitemap():
    robots = generate_robots("https://toolsuitepro.com/api/seo/sitemap.xml")
    assert "Disallow: /admin" in robots
    assert "Disallow: /api" in robots
    assert robots.rstrip().endswith("Sitemap: https://toolsuitepro.com/api/seo/sitemap.xml")

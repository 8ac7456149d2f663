"""Sitemap and robots.txt generation for the public site."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple
from xml.etree import ElementTree as ET

BASE_URL = "https://toolsuitepro.com"
SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"


@dataclass(frozen=True)
class SitemapPage:
    path: str
    priority: str
    changefreq: str


STATIC_PAGES: Tuple[SitemapPage, ...] = (
    SitemapPage("", "1.0", "weekly"),
    SitemapPage("/pdf-tools", "0.9", "weekly"),
    SitemapPage("/image-tools", "0.9", "weekly"),
    SitemapPage("/audio-tools", "0.9", "weekly"),
    SitemapPage("/text-tools", "0.9", "weekly"),
    SitemapPage("/productivity-tools", "0.9", "weekly"),
    SitemapPage("/about", "0.7", "monthly"),
    SitemapPage("/contact", "0.7", "monthly"),
    SitemapPage("/privacy-policy", "0.5", "yearly"),
    SitemapPage("/terms-of-service", "0.5", "yearly"),
)

TOOL_PATHS: Tuple[str, ...] = (
    "/tools/pdf-to-word",
    "/tools/merge-pdf",
    "/tools/compress-pdf",
    "/tools/image-compressor",
    "/tools/background-remover",
    "/tools/image-resizer",
    "/tools/audio-converter",
    "/tools/audio-compressor",
    "/tools/word-counter",
    "/tools/grammar-checker",
    "/tools/calculator",
    "/tools/qr-generator",
)
TOOL_PRIORITY = "0.8"
TOOL_CHANGEFREQ = "monthly"


def sitemap_pages() -> List[SitemapPage]:
    pages = list(STATIC_PAGES)
    pages.extend(SitemapPage(path, TOOL_PRIORITY, TOOL_CHANGEFREQ) for path in TOOL_PATHS)
    return pages


def generate_sitemap(today: Optional[date] = None, base_url: str = BASE_URL) -> str:
    """Render the sitemap for every static and tool page.

    The output depends only on ``today`` (defaults to the current date) and
    ``base_url``.
    """

    lastmod = (today or date.today()).isoformat()
    urlset = ET.Element("urlset", xmlns=SITEMAP_NAMESPACE)
    for page in sitemap_pages():
        url = ET.SubElement(urlset, "url")
        ET.SubElement(url, "loc").text = f"{base_url}{page.path}"
        ET.SubElement(url, "lastmod").text = lastmod
        ET.SubElement(url, "changefreq").text = page.changefreq
        ET.SubElement(url, "priority").text = page.priority
    ET.indent(urlset, space="  ")
    body = ET.tostring(urlset, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def generate_robots(sitemap_url: str) -> str:
    return (
        "User-agent: *\n"
        "Allow: /\n"
        "Disallow: /admin\n"
        "Disallow: /api\n"
        "\n"
        f"Sitemap: {sitemap_url}\n"
    )

import asyncio
import logging
import re
from dataclasses import dataclass, field, asdict
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup

from config import Config
from hlsrelay.utils.m3u8_utils import parse_variants, pick_best
from hlsrelay.utils.proxy_utils import PLAYLIST_SUFFIX, make_proxy_path, to_absolute_url

HTML_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

HLS_CONFIG_RE = re.compile(r'sources\s*:\s*\[[\s\S]*?\{[\s\S]*?"src"\s*:\s*"([^"]+\.m3u8[^"]*)"[\s\S]*?\}', re.I)
HLS_LABEL_RE = re.compile(r'sources\s*:\s*\[[\s\S]*?\{[\s\S]*?"label"\s*:\s*"([^"]+)"[\s\S]*?\}', re.I)


@dataclass
class Source:
    sources: list = field(default_factory=list)   # [{'url': ..., 'quality': ...}]
    tracks: list = field(default_factory=list)
    audio: list = field(default_factory=list)
    intro: dict = field(default_factory=lambda: {'start': 0, 'end': 0})
    outro: dict = field(default_factory=lambda: {'start': 0, 'end': 0})
    headers: dict = field(default_factory=dict)

    def to_dict(self):
        return asdict(self)


def origin_of(url: str) -> str:
    """https://host/path -> https://host/"""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/"


def html_headers(referer: str) -> dict:
    return {'User-Agent': Config.USER_AGENT, **HTML_HEADERS, 'Referer': referer}


async def fetch_text(session: aiohttp.ClientSession, url: str, headers: dict) -> tuple:
    """Fetch a page, returning its text and the final url after redirects."""
    async with session.get(url, headers=headers, timeout=aiohttp.ClientTimeout(total=Config.PROVIDER_TIMEOUT)) as response:
        response.raise_for_status()
        return await response.text(), str(response.url)


def extract_iframe_src(html: str, base: str) -> str | None:
    soup = BeautifulSoup(html, 'html.parser')
    iframe = soup.find('iframe', src=True)
    if not iframe or not iframe['src'].strip():
        return None
    return to_absolute_url(iframe['src'].strip(), base)


def extract_hls_from_config(html: str, base: str) -> tuple:
    """Find a player config ``sources: [{"src": "...m3u8", "label": ...}]``. Returns (url, label)."""
    src_match = HLS_CONFIG_RE.search(html)
    if not src_match:
        return None, None
    label_match = HLS_LABEL_RE.search(html)
    return to_absolute_url(src_match.group(1), base), label_match.group(1) if label_match else None


async def resolve_best_variant(session: aiohttp.ClientSession, m3u8_url: str, headers: dict,
                               multivariant_only: bool = False) -> str:
    """
    Follow m3u8_url and, when it is a playlist with renditions, return the best one.
    Falls back to m3u8_url when the playlist can't be fetched.
    """
    try:
        content, final_url = await fetch_text(session, m3u8_url, headers)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logging.warning(f"Could not fetch playlist {m3u8_url}: {e}")
        return m3u8_url

    if '#EXTM3U' not in content.upper():
        return final_url
    if multivariant_only and '#EXT-X-STREAM-INF:' not in content.upper():
        return m3u8_url

    best = pick_best(parse_variants(content, final_url))
    return best.url if best else final_url


def proxied_source(stream_url: str, quality: str, referer: str) -> Source:
    """Wrap a resolved stream into a relay path carrying the Referer and User-Agent it needs."""
    headers = {'Referer': referer, 'User-Agent': Config.USER_AGENT}
    return Source(
        sources=[{'url': make_proxy_path(stream_url, headers, suffix=PLAYLIST_SUFFIX), 'quality': quality or 'auto'}],
        headers=dict(headers),
    )

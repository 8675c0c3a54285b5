"""
HLS playlist helpers: attribute lists, variant selection and relay rewriting.
"""

import re
from dataclasses import dataclass
from typing import Optional

from hlsrelay.utils.proxy_utils import make_proxy_path, to_absolute_url

STREAM_INF_TAG = '#EXT-X-STREAM-INF:'

ATTRIBUTE_RE = re.compile(r'([A-Z0-9-]+)=("[^"]*"|[^,]*)', re.IGNORECASE)
URI_ATTRIBUTE_RE = re.compile(r'URI="([^"]+)"')
RESOLUTION_RE = re.compile(r'^(\d+)x(\d+)$', re.IGNORECASE)
PLAYLIST_URL_RE = re.compile(r'\.m3u8(\?|$)', re.IGNORECASE)
LINE_SEPARATOR_RE = re.compile(r'(\r\n|\n)')


@dataclass(frozen=True)
class Variant:
    url: str
    bandwidth: Optional[int] = None
    resolution: Optional[tuple[int, int]] = None  # (width, height)

    @property
    def area(self) -> int:
        if not self.resolution:
            return 0
        width, height = self.resolution
        return width * height


def parse_attribute_list(line: str) -> dict:
    """
    Parse the attribute list of a tag line, e.g. ``#EXT-X-STREAM-INF:BANDWIDTH=1,CODECS="a,b"``.
    Attribute names are upper-cased and quoted values are returned without quotes.
    """
    _, _, attributes = line.partition(':')
    parsed = {}
    for name, value in ATTRIBUTE_RE.findall(attributes):
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        parsed[name.upper()] = value.strip()
    return parsed


def is_playlist_url(url: str) -> bool:
    return bool(PLAYLIST_URL_RE.search(url))


def _variant_from_stream_inf(line: str, url: str) -> Variant:
    attributes = parse_attribute_list(line)

    bandwidth = attributes.get('BANDWIDTH')
    bandwidth = int(bandwidth) if bandwidth and bandwidth.isdigit() else None

    resolution = None
    resolution_match = RESOLUTION_RE.match(attributes.get('RESOLUTION', ''))
    if resolution_match:
        resolution = (int(resolution_match.group(1)), int(resolution_match.group(2)))

    return Variant(url=url, bandwidth=bandwidth, resolution=resolution)


def _next_uri_line(lines: list, start: int) -> Optional[str]:
    for line in lines[start:]:
        line = line.strip()
        if not line:
            continue
        if line.upper().startswith(STREAM_INF_TAG):
            return None
        if not line.startswith('#'):
            return line
    return None


def parse_variants(playlist: str, playlist_url: str) -> list:
    """List the renditions of a multivariant playlist, resolved against playlist_url."""
    lines = playlist.splitlines()
    variants = []

    for i, line in enumerate(lines):
        if not line.upper().startswith(STREAM_INF_TAG):
            continue
        uri = _next_uri_line(lines, i + 1)
        if uri is None:
            continue
        variants.append(_variant_from_stream_inf(line, to_absolute_url(uri, playlist_url)))

    if not variants:
        for line in lines:
            line = line.strip()
            if line and not line.startswith('#') and is_playlist_url(line):
                variants.append(Variant(url=to_absolute_url(line, playlist_url)))

    return variants


def pick_best(variants: list) -> Optional[Variant]:
    """Largest resolution, then highest bandwidth; the first one wins any remaining tie."""
    best = None
    for variant in variants:
        if best is None:
            best = variant
        elif variant.area > best.area:
            best = variant
        elif variant.area == best.area and (variant.bandwidth or 0) > (best.bandwidth or 0):
            best = variant
    return best


def rewrite_playlist(playlist: str, base_url: str, headers: dict) -> str:
    """
    Point every uri of a playlist back at the relay.

    Segment and sub-playlist lines are replaced whole; ``URI="..."`` attributes of tags
    (EXT-X-KEY, EXT-X-MAP, EXT-X-MEDIA, ...) are replaced in place. Line order, line count
    and line separators are kept.
    """
    def proxify(uri):
        return make_proxy_path(to_absolute_url(uri.strip(), base_url), headers)

    def replace_uri(match):
        return f'URI="{proxify(match.group(1))}"'

    parts = LINE_SEPARATOR_RE.split(playlist)
    # split() with a capture group alternates line, separator, line, ...
    for i in range(0, len(parts), 2):
        line = parts[i]
        if line.startswith('#'):
            if 'URI=' in line:
                parts[i] = URI_ATTRIBUTE_RE.sub(replace_uri, line)
        elif line.strip():
            parts[i] = proxify(line)

    return ''.join(parts)

import re
import aiohttp

from hlsrelay.players.utils import Source, fetch_text, html_headers, origin_of, resolve_best_variant, proxied_source
from hlsrelay.utils import jsunpack
from hlsrelay.utils.errors import ExtractionError
from hlsrelay.utils.m3u8_utils import is_playlist_url
from hlsrelay.utils.proxy_utils import to_absolute_url
from config import Config

NAMES = ['vk', 'vkspeed', 'vkprime']

JWPLAYER_SOURCE_RE = re.compile(r'''\{[^{}]*?file\s*:\s*["']([^"']+)["'][^{}]*\}''', re.I)
JWPLAYER_LABEL_RE = re.compile(r'''label\s*:\s*["']([^"']+)["']''', re.I)
MEDIA_URL_RE = re.compile(r'\.(m3u8|mp4)(\?|$)', re.I)


def parse_jwplayer_sources(js: str, base: str) -> list:
    """[(url, label), ...] from jwplayer setup blocks like {file:"...",label:"720p"}"""
    sources = []
    for match in JWPLAYER_SOURCE_RE.finditer(js):
        url = to_absolute_url(match.group(1), base)
        if MEDIA_URL_RE.search(url):
            label_match = JWPLAYER_LABEL_RE.search(match.group(0))
            sources.append((url, label_match.group(1) if label_match else None))
    return sources


async def get_video_from_vkspeed_player(session: aiohttp.ClientSession, embed_id: str) -> Source:
    if embed_id.startswith(('http://', 'https://', '//')):
        iframe_url = to_absolute_url(embed_id, 'https://')
    else:
        iframe_url = Config.VK_EMBED_URL.format(id=embed_id)
    iframe_origin = origin_of(iframe_url)

    iframe_html, _ = await fetch_text(session, iframe_url, html_headers(iframe_origin))
    unpacked = jsunpack.unpack_or_plain(iframe_html)

    jw_sources = parse_jwplayer_sources(unpacked, iframe_origin)
    if not jw_sources:
        raise ExtractionError('VK: No media sources found')

    final_url, label = next(((url, label) for url, label in jw_sources if is_playlist_url(url)), jw_sources[0])
    if is_playlist_url(final_url):
        stream_headers = {'Referer': iframe_origin, 'User-Agent': Config.USER_AGENT}
        final_url = await resolve_best_variant(session, final_url, stream_headers)

    return proxied_source(final_url, (label or '').strip(), iframe_origin)


if __name__ == '__main__':
    from hlsrelay.players.test import run_tests

    run_tests(get_video_from_vkspeed_player, ['abcdefgh1234'])

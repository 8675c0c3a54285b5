import base64
import binascii
import re
import aiohttp
from urllib.parse import quote

from hlsrelay.players.utils import (
    Source, fetch_text, extract_iframe_src, extract_hls_from_config, html_headers, origin_of,
    resolve_best_variant, proxied_source,
)
from hlsrelay.utils import jsunpack
from hlsrelay.utils.errors import ExtractionError
from hlsrelay.utils.proxy_utils import to_absolute_url
from config import Config

NAMES = ['fp', 'flashplayer']

JUICY_RUN_RE = re.compile(r'''JuicyCodes\.Run\(\s*((?:"[^"]*"|'[^']*')(?:\s*\+\s*(?:"[^"]*"|'[^']*'))*)\s*\)''', re.I)
STRING_PART_RE = re.compile(r'"([^"]*)"' + r"|'([^']*)'")
DICTIONARY_RE = re.compile(r"'([^']*)'\.split\('\|'\)")
GENERIC_M3U8_RE = re.compile(r'''["']([^"']*\.m3u8[^"']*)["']''', re.I)


def decode_juicy_codes(html: str) -> str | None:
    """JuicyCodes.Run("ab" + "cd" + ...) holds a base64url encoded script split in pieces."""
    run_match = JUICY_RUN_RE.search(html)
    if not run_match:
        return None

    combined = ''.join(double or single for double, single in STRING_PART_RE.findall(run_match.group(1)))
    if not combined:
        return None

    padded = combined.replace('-', '+').replace('_', '/')
    padded += '=' * (-len(padded) % 4)
    try:
        return base64.b64decode(padded).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        return None


def extract_dictionary(script: str) -> list | None:
    dict_match = DICTIONARY_RE.search(script)
    return dict_match.group(1).split('|') if dict_match else None


def denormalize_numeric_tokens(url: str, dictionary: list | None) -> str:
    """Map the numeric tokens left in a half-unpacked url back to their dictionary words."""
    if not dictionary:
        return url

    def lookup(match):
        index = int(match.group(1))
        return dictionary[index] if index < len(dictionary) and dictionary[index] else match.group(0)

    return re.sub(r'\b(\d+)\b', lookup, url)


async def get_video_from_flashplayer_player(session: aiohttp.ClientSession, video_id: str) -> Source:
    landing_domain = Config.LANDING_DOMAIN
    landing_url = f"{landing_domain}post.php?id={quote(video_id, safe='')}"

    landing_html, _ = await fetch_text(session, landing_url, html_headers(Config.LANDING_REFERER))

    iframe_url = extract_iframe_src(landing_html, landing_domain)
    if not iframe_url:
        raise ExtractionError('DESI-FLASH: iframe src not found')
    iframe_origin = origin_of(iframe_url)

    iframe_html, _ = await fetch_text(session, iframe_url, html_headers(landing_domain))

    juicy_decoded = decode_juicy_codes(iframe_html)
    if not juicy_decoded:
        raise ExtractionError('DESI-FLASH: JuicyCodes payload not found')

    unpacked = jsunpack.unpack_or_plain(juicy_decoded)

    hls_url, label = extract_hls_from_config(unpacked, iframe_origin)
    if not hls_url:
        generic_match = GENERIC_M3U8_RE.search(unpacked)
        if generic_match:
            rebuilt = denormalize_numeric_tokens(generic_match.group(1), extract_dictionary(unpacked))
            hls_url, label = to_absolute_url(rebuilt, iframe_origin), 'auto'
    if not hls_url:
        raise ExtractionError('DESI-FLASH: HLS source not found after unpacking')

    stream_headers = {'Referer': iframe_origin, 'User-Agent': Config.USER_AGENT, 'Accept': '*/*'}
    hls_url = await resolve_best_variant(session, hls_url, stream_headers, multivariant_only=True)

    return proxied_source(hls_url, (label or '').strip(), iframe_origin)


if __name__ == '__main__':
    from hlsrelay.players.test import run_tests

    run_tests(get_video_from_flashplayer_player, ['123456'])

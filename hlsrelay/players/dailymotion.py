import aiohttp
from urllib.parse import quote

from hlsrelay.players.utils import (
    Source, fetch_text, extract_iframe_src, extract_hls_from_config, html_headers, origin_of,
    resolve_best_variant, proxied_source,
)
from hlsrelay.utils.errors import ExtractionError
from config import Config

NAMES = ['dm', 'dailymotion']


async def get_video_from_dailymotion_player(session: aiohttp.ClientSession, video_id: str) -> Source:
    landing_domain = Config.LANDING_DOMAIN
    landing_url = f"{landing_domain}post.php?id={quote(video_id, safe='')}"

    landing_html, _ = await fetch_text(session, landing_url, html_headers(Config.LANDING_REFERER))

    iframe_url = extract_iframe_src(landing_html, landing_domain)
    if not iframe_url:
        raise ExtractionError('DAILY: iframe src not found')
    iframe_origin = origin_of(iframe_url)

    iframe_html, _ = await fetch_text(session, iframe_url, html_headers(landing_domain))

    hls_url, label = extract_hls_from_config(iframe_html, iframe_origin)
    if not hls_url:
        raise ExtractionError('DAILY: HLS source not found in config')

    stream_headers = {'Referer': iframe_origin, 'User-Agent': Config.USER_AGENT}
    hls_url = await resolve_best_variant(session, hls_url, stream_headers)

    return proxied_source(hls_url, (label or '').strip(), iframe_origin)


if __name__ == '__main__':
    from hlsrelay.players.test import run_tests

    run_tests(get_video_from_dailymotion_player, ['x8abcd1'])

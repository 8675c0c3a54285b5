"""
Same-origin HLS relay.

Every proxied url carries an opaque token with the upstream url and the headers
(Referer, User-Agent, ...) the CDN expects. Playlists are fetched, rewritten so
their segments, keys and sub-playlists come back through this endpoint, and
returned. Everything else is streamed through untouched, with range support.
"""

import logging
import os
from urllib.parse import urlparse

import requests
from flask import Blueprint, Response, request

from config import Config
from hlsrelay.routes.utils import canonical_header, cors_headers, error_response, preflight
from hlsrelay.utils.errors import InvalidTokenError, MissingUrlError
from hlsrelay.utils.m3u8_utils import is_playlist_url, rewrite_playlist
from hlsrelay.utils.proxy_utils import ProxyToken, decode_token

relay_bp = Blueprint('relay', __name__)

HLS_PREFIX = Config.HLS_PREFIX
PLAYLIST_CONTENT_TYPE = 'application/vnd.apple.mpegurl'
FORWARDED_HEADERS = ('content-length', 'content-range', 'content-type', 'accept-ranges')
PROGRESSIVE_TYPES = {
    '.mp4': 'video/mp4',
    '.m4v': 'video/x-m4v',
    '.webm': 'video/webm',
}


def parse_relay_path(path: str) -> str:
    """Return the token segment of /<prefix>/<token>"""
    parts = path.split('/')
    if len(parts) < 3 or parts[1] != HLS_PREFIX:
        raise InvalidTokenError('Invalid HLS proxy path')
    if not parts[2]:
        raise InvalidTokenError('Missing base64 payload')
    return parts[2]


def is_playlist_response(content_type: str, url: str) -> bool:
    content_type = content_type.lower()
    return 'mpegurl' in content_type or 'm3u8' in content_type or is_playlist_url(url)


def progressive_type(content_type: str, url: str) -> str | None:
    """Content type of progressive (range-served) media, or None for anything else"""
    content_type = content_type.lower()
    for media_type in PROGRESSIVE_TYPES.values():
        if media_type in content_type:
            return media_type
    extension = os.path.splitext(urlparse(url).path)[1].lower()
    return PROGRESSIVE_TYPES.get(extension)


def fetch_upstream(token: ProxyToken, range_header: str = None) -> requests.Response:
    # Identity encoding keeps the forwarded Content-Length in line with the forwarded bytes
    headers = {'Accept-Encoding': 'identity'}
    headers.update(token.headers)
    if range_header:
        headers['Range'] = range_header

    return requests.get(
        token.url,
        headers=headers,
        stream=True,
        allow_redirects=True,
        timeout=(Config.UPSTREAM_CONNECT_TIMEOUT, Config.UPSTREAM_READ_TIMEOUT),
    )


def playlist_response(upstream: requests.Response, token: ProxyToken) -> Response:
    with upstream:
        upstream.raise_for_status()
        content = upstream.content.decode('utf-8', errors='replace')
        base_url = upstream.url or token.url

    rewritten = rewrite_playlist(content, base_url, token.headers)
    return Response(rewritten, status=200, headers=cors_headers({
        'Content-Type': PLAYLIST_CONTENT_TYPE,
        'Cache-Control': f'public, max-age={Config.PLAYLIST_MAX_AGE}',
    }))


def media_response(upstream: requests.Response, token: ProxyToken, range_header: str = None) -> Response:
    headers = cors_headers({'Cache-Control': f'public, max-age={Config.MEDIA_MAX_AGE}'})
    for name in FORWARDED_HEADERS:
        value = upstream.headers.get(name)
        if value:
            headers[canonical_header(name)] = value

    status = upstream.status_code
    media_type = progressive_type(upstream.headers.get('Content-Type', ''), token.url)
    if media_type:
        headers.setdefault('Content-Type', media_type)
        headers.setdefault('Accept-Ranges', 'bytes')
        # Players seeking in mp4 insist on 206 even when the CDN answers 200 with a Content-Range
        if status == 200 and range_header and 'Content-Range' in headers:
            status = 206
    headers.setdefault('Content-Type', 'application/octet-stream')

    resp = Response(upstream.iter_content(chunk_size=Config.CHUNK_SIZE), status=status, headers=headers)
    resp.call_on_close(upstream.close)
    return resp


@relay_bp.route(f'/{HLS_PREFIX}', methods=['GET', 'HEAD', 'OPTIONS'])
@relay_bp.route(f'/{HLS_PREFIX}/', methods=['GET', 'HEAD', 'OPTIONS'])
@relay_bp.route(f'/{HLS_PREFIX}/<path:token>', methods=['GET', 'HEAD', 'OPTIONS'])
def hls_relay(token: str = None):
    """
    Relay a playlist, key or media segment described by a proxy token.
    Accepts /hls/<token> and /hls/<token>.m3u8
    """
    if request.method == 'OPTIONS':
        return preflight('GET, HEAD, OPTIONS', 'Range, Content-Type')

    try:
        proxy_token = decode_token(parse_relay_path(request.path))
        if not proxy_token.url:
            raise MissingUrlError('Invalid payload: missing URL')
    except InvalidTokenError as e:
        return error_response(str(e), 400)

    range_header = request.headers.get('Range')
    try:
        upstream = fetch_upstream(proxy_token, range_header)
        content_type = upstream.headers.get('Content-Type', '')
        if is_playlist_response(content_type, proxy_token.url):
            return playlist_response(upstream, proxy_token)
        return media_response(upstream, proxy_token, range_header)
    except Exception as e:
        logging.error(f"Relay error for {proxy_token.url}: {e}")
        return error_response(str(e) or 'Proxy request failed', 500)

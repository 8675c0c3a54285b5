"""
Opaque proxy tokens.

A token is the url-safe base64 form of ``{"u": url, "h": headers}`` and is the only
state the relay needs: there is no signing, expiry or server-side lookup.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

from config import Config
from hlsrelay.utils.errors import InvalidTokenError

PLAYLIST_SUFFIX = '.m3u8'


@dataclass(frozen=True)
class ProxyToken:
    url: str
    headers: dict[str, str] = field(default_factory=dict)


def encode_token(url: str, headers: dict = None) -> str:
    """Encode target url and header overrides into a url-safe token."""
    payload = json.dumps({'u': url, 'h': headers or {}}, separators=(',', ':'), ensure_ascii=False)
    encoded = base64.b64encode(payload.encode('utf-8')).decode('ascii')
    return encoded.replace('+', '-').replace('/', '_').rstrip('=')


def decode_token(token: str) -> ProxyToken:
    """
    Decode a token produced by encode_token.

    A trailing ``.m3u8`` (added for players that sniff the extension) is ignored.
    :raises InvalidTokenError: on any malformed token
    """
    if token.endswith(PLAYLIST_SUFFIX):
        token = token[:-len(PLAYLIST_SUFFIX)]

    padded = token.replace('-', '+').replace('_', '/')
    padded += '=' * (-len(padded) % 4)

    try:
        payload = json.loads(base64.b64decode(padded, validate=True).decode('utf-8'))
    except (binascii.Error, ValueError) as e:
        raise InvalidTokenError(f'Invalid base64 payload: {e}')

    if not isinstance(payload, dict):
        raise InvalidTokenError('Invalid payload: not an object')

    url = payload.get('u')
    if not isinstance(url, str):
        raise InvalidTokenError('Invalid payload: missing URL')

    headers = payload.get('h') or {}
    if not isinstance(headers, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in headers.items()):
        raise InvalidTokenError('Invalid payload: headers must map strings to strings')

    return ProxyToken(url=url, headers=headers)


def make_proxy_path(url: str, headers: dict = None, suffix: str = '') -> str:
    """Relative relay path serving url with the given headers."""
    return f'/{Config.HLS_PREFIX}/{encode_token(url, headers)}{suffix}'


def to_absolute_url(url: str, base: str) -> str:
    """Resolve a playlist or page reference against the document it came from."""
    if not url:
        return url
    if url.lower().startswith(('http://', 'https://')):
        return url
    if url.startswith('//'):
        scheme = urlparse(base).scheme or 'https'
        return f'{scheme}:{url}'
    return urljoin(base, url)

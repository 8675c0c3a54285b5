import pytest
import requests
from requests.structures import CaseInsensitiveDict

from hlsrelay.routes import relay
from hlsrelay.utils.proxy_utils import decode_token, encode_token
from run import app

client = app.test_client()

REFERER = {'Referer': 'https://player.example/', 'User-Agent': 'TestAgent'}


class FakeUpstream:
    def __init__(self, url, content=b'', status=200, headers=None):
        self.url = url
        self.content = content
        self.status_code = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.closed = False

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} Error for url: {self.url}')

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


@pytest.fixture
def upstream(monkeypatch):
    """Replace the upstream fetch; tests set .response and read .calls"""
    class Recorder:
        response = None
        calls = []

    def fake_get(url, **kwargs):
        Recorder.calls.append((url, kwargs))
        if isinstance(Recorder.response, Exception):
            raise Recorder.response
        return Recorder.response

    Recorder.calls = []
    monkeypatch.setattr(relay.requests, 'get', fake_get)
    return Recorder


def test_preflight():
    response = client.options('/hls/anything')
    assert response.status_code == 200
    assert response.headers['Access-Control-Allow-Origin'] == '*'
    assert response.headers['Access-Control-Allow-Methods'] == 'GET, HEAD, OPTIONS'
    assert response.headers['Access-Control-Allow-Headers'] == 'Range, Content-Type'


def test_invalid_token_is_bad_request():
    response = client.get('/hls/not-base64!!')
    assert response.status_code == 400
    assert 'error' in response.get_json()
    assert response.headers['Access-Control-Allow-Origin'] == '*'


def test_missing_token_is_bad_request():
    response = client.get('/hls/')
    assert response.status_code == 400
    assert response.get_json()['error']


def test_empty_url_is_bad_request(upstream):
    response = client.get(f"/hls/{encode_token('', {})}")
    assert response.status_code == 400
    assert 'error' in response.get_json()
    assert upstream.calls == []


def test_playlist_is_rewritten_against_final_url(upstream):
    upstream.response = FakeUpstream(
        'https://cdn2.example/live/index.m3u8',
        content=b'#EXTM3U\n#EXT-X-KEY:METHOD=AES-128,URI="key.bin"\n#EXTINF:4,\nseg1.ts\n',
        headers={'Content-Type': 'application/vnd.apple.mpegurl'},
    )
    token = encode_token('https://cdn.example/live/index.m3u8', REFERER)
    response = client.get(f'/hls/{token}.m3u8')

    assert response.status_code == 200
    assert response.headers['Content-Type'] == 'application/vnd.apple.mpegurl'
    assert response.headers['Cache-Control'] == 'public, max-age=30'
    assert response.headers['Access-Control-Allow-Origin'] == '*'

    lines = response.get_data(as_text=True).split('\n')
    assert lines[0] == '#EXTM3U'
    key_token = decode_token(lines[1].split('"')[1][len('/hls/'):])
    assert key_token.url == 'https://cdn2.example/live/key.bin'
    assert key_token.headers == REFERER
    assert lines[2] == '#EXTINF:4,'
    assert decode_token(lines[3][len('/hls/'):]).url == 'https://cdn2.example/live/seg1.ts'
    assert lines[4] == ''
    assert upstream.response.closed


def test_playlist_detected_by_url(upstream):
    upstream.response = FakeUpstream(
        'https://cdn.example/index.m3u8?sig=1', content=b'#EXTM3U\nseg.ts', headers={'Content-Type': 'text/plain'})
    response = client.get(f"/hls/{encode_token('https://cdn.example/index.m3u8?sig=1', {})}")
    assert response.headers['Content-Type'] == 'application/vnd.apple.mpegurl'
    assert response.get_data(as_text=True).split('\n')[1].startswith('/hls/')


def test_upstream_request_headers(upstream):
    upstream.response = FakeUpstream('https://cdn.example/seg.ts', content=b'\x00' * 10,
                                     headers={'Content-Type': 'video/mp2t'})
    client.get(f"/hls/{encode_token('https://cdn.example/seg.ts', REFERER)}", headers={'Range': 'bytes=0-9'})

    url, kwargs = upstream.calls[0]
    assert url == 'https://cdn.example/seg.ts'
    assert kwargs['headers']['Referer'] == 'https://player.example/'
    assert kwargs['headers']['User-Agent'] == 'TestAgent'
    assert kwargs['headers']['Range'] == 'bytes=0-9'
    assert kwargs['stream'] is True


def test_media_is_streamed_with_forwarded_headers(upstream):
    body = bytes(range(256)) * 4
    upstream.response = FakeUpstream('https://cdn.example/seg1.ts', content=body, headers={
        'content-type': 'video/mp2t',
        'content-length': str(len(body)),
        'accept-ranges': 'bytes',
        'set-cookie': 'secret=1',
    })
    response = client.get(f"/hls/{encode_token('https://cdn.example/seg1.ts', REFERER)}")

    assert response.status_code == 200
    assert response.data == body
    assert response.headers['Content-Type'] == 'video/mp2t'
    assert response.headers['Content-Length'] == str(len(body))
    assert response.headers['Accept-Ranges'] == 'bytes'
    assert response.headers['Cache-Control'] == 'public, max-age=600'
    assert response.headers['Access-Control-Allow-Origin'] == '*'
    assert response.headers['Access-Control-Expose-Headers'] == 'Content-Length, Content-Range, Content-Type'
    assert 'Set-Cookie' not in response.headers


def test_progressive_range_upgraded_to_partial_content(upstream):
    upstream.response = FakeUpstream('https://cdn.example/movie.mp4', content=b'x' * 100, headers={
        'Content-Range': 'bytes 0-99/1000',
        'Content-Length': '100',
    })
    response = client.get(f"/hls/{encode_token('https://cdn.example/movie.mp4', {})}",
                          headers={'Range': 'bytes=0-99'})

    assert response.status_code == 206
    assert response.headers['Content-Range'] == 'bytes 0-99/1000'
    assert response.headers['Content-Type'] == 'video/mp4'
    assert response.headers['Accept-Ranges'] == 'bytes'


def test_progressive_without_range_keeps_status(upstream):
    upstream.response = FakeUpstream('https://cdn.example/movie.mp4', content=b'x' * 10,
                                     headers={'Content-Type': 'video/mp4', 'Content-Range': 'bytes 0-9/10'})
    response = client.get(f"/hls/{encode_token('https://cdn.example/movie.mp4', {})}")
    assert response.status_code == 200


def test_segment_range_status_is_mirrored(upstream):
    upstream.response = FakeUpstream('https://cdn.example/seg.ts', content=b'x' * 10, status=200,
                                     headers={'Content-Type': 'video/mp2t', 'Content-Range': 'bytes 0-9/10'})
    response = client.get(f"/hls/{encode_token('https://cdn.example/seg.ts', {})}",
                          headers={'Range': 'bytes=0-9'})
    assert response.status_code == 200


def test_upstream_failure_is_server_error(upstream):
    upstream.response = requests.ConnectionError('connection refused')
    response = client.get(f"/hls/{encode_token('https://cdn.example/seg.ts', {})}")
    assert response.status_code == 500
    assert response.get_json() == {'error': 'connection refused'}
    assert response.headers['Access-Control-Allow-Origin'] == '*'


def test_playlist_upstream_error_is_server_error(upstream):
    upstream.response = FakeUpstream('https://cdn.example/index.m3u8', content=b'<html>denied</html>', status=403,
                                     headers={'Content-Type': 'text/html'})
    response = client.get(f"/hls/{encode_token('https://cdn.example/index.m3u8', {})}")
    assert response.status_code == 500
    assert '403' in response.get_json()['error']


def test_head_forwards_headers_without_body(upstream):
    upstream.response = FakeUpstream('https://cdn.example/movie.mp4', content=b'', headers={
        'Content-Type': 'video/mp4',
        'Content-Length': '1000',
        'Accept-Ranges': 'bytes',
    })
    response = client.head(f"/hls/{encode_token('https://cdn.example/movie.mp4', REFERER)}")

    assert response.status_code == 200
    assert response.data == b''
    assert response.headers['Content-Type'] == 'video/mp4'
    assert response.headers['Content-Length'] == '1000'
    assert response.headers['Accept-Ranges'] == 'bytes'
    assert response.headers['Access-Control-Allow-Origin'] == '*'
    url, kwargs = upstream.calls[0]
    assert url == 'https://cdn.example/movie.mp4'
    assert kwargs['headers']['Referer'] == 'https://player.example/'

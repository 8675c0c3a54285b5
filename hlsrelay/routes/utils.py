from flask import jsonify, Response

CORS_EXPOSE_HEADERS = 'Content-Length, Content-Range, Content-Type'
PREFLIGHT_MAX_AGE = '86400'


def cors_headers(extra: dict = None) -> dict:
    """CORS allow-all headers, optionally merged with extra headers"""
    headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Expose-Headers': CORS_EXPOSE_HEADERS,
    }
    if extra:
        headers.update(extra)
    return headers


def preflight(methods: str, allow_headers: str, status: int = 200) -> Response:
    """Answer a CORS preflight request"""
    return Response(status=status, headers={
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Methods': methods,
        'Access-Control-Allow-Headers': allow_headers,
        'Access-Control-Max-Age': PREFLIGHT_MAX_AGE,
    })


def respond_with(data: dict, status: int = 200, cache_time: int = None) -> Response:
    """Respond with CORS headers to the client"""
    resp = jsonify(data)
    resp.status_code = status
    if cache_time:
        resp.headers['Cache-Control'] = f'public, max-age={cache_time}'
    resp.headers['Access-Control-Allow-Origin'] = "*"
    return resp


def error_response(message: str, status: int) -> Response:
    """JSON error body with CORS headers"""
    return respond_with({'error': message}, status=status)


def canonical_header(name: str) -> str:
    """content-range -> Content-Range"""
    return '-'.join(part.capitalize() for part in name.split('-'))

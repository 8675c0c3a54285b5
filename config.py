import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """
    Configuration class
    """
    FLASK_HOST = os.getenv('FLASK_RUN_HOST', "0.0.0.0")
    FLASK_PORT = int(os.getenv('FLASK_RUN_PORT', "5000"))
    DEBUG = os.getenv('FLASK_DEBUG', False)
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Relay
    HLS_PREFIX = os.getenv('HLS_PREFIX', 'hls')  # first path segment of proxied urls
    PLAYLIST_MAX_AGE = int(os.getenv('PLAYLIST_MAX_AGE', 30))
    MEDIA_MAX_AGE = int(os.getenv('MEDIA_MAX_AGE', 600))
    UPSTREAM_CONNECT_TIMEOUT = float(os.getenv('UPSTREAM_CONNECT_TIMEOUT', 5))
    UPSTREAM_READ_TIMEOUT = float(os.getenv('UPSTREAM_READ_TIMEOUT', 20))
    CHUNK_SIZE = int(os.getenv('CHUNK_SIZE', 64 * 1024))

    # Providers
    PROVIDER_TIMEOUT = float(os.getenv('PROVIDER_TIMEOUT', 15))
    USER_AGENT = os.getenv('USER_AGENT', 'Mozilla/5.0 (X11; Linux x86_64; rv:141.0) Gecko/20100101 Firefox/141.0')
    LANDING_DOMAIN = os.getenv('LANDING_DOMAIN', 'https://starscopsinsider.com/')
    LANDING_REFERER = os.getenv('LANDING_REFERER', 'https://playdesi.info/')
    VK_EMBED_URL = os.getenv('VK_EMBED_URL', 'https://vkprime.com/embed-{id}-600x360.html')

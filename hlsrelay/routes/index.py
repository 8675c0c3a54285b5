from flask import Blueprint

from config import Config
from hlsrelay.routes.utils import respond_with
from version import __version__

index_bp = Blueprint('index', __name__)


@index_bp.route('/')
def index():
    """
    Describe the service
    """
    return respond_with({
        'name': 'hls-relay',
        'version': __version__,
        'endpoints': {
            'sources': '/sources?id=<id>&host=<dm|fp|vk>',
            'relay': f'/{Config.HLS_PREFIX}/<token>',
        },
    })

import logging
import sys

from flask import Flask
from flask_compress import Compress
from hlsrelay.routes.index import index_bp
from hlsrelay.routes.relay import relay_bp
from hlsrelay.routes.sources import sources_bp
from config import Config
from version import __version__

app = Flask(__name__)
app.config.from_object('config.Config')

app.register_blueprint(index_bp)
app.register_blueprint(sources_bp)
app.register_blueprint(relay_bp)

Compress(app)


if __name__ == '__main__':
    from waitress import serve

    # Configure logging to stdout
    logging.basicConfig(
        format='%(asctime)s %(levelname)s: %(message)s',
        level=Config.LOG_LEVEL,
        stream=sys.stdout,
        force=True
    )

    logging.info(f"Starting hls-relay v{__version__} on http://{Config.FLASK_HOST}:{Config.FLASK_PORT}")
    serve(app, host=Config.FLASK_HOST, port=Config.FLASK_PORT)

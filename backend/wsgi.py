import logging

from promptquiz.config import Config
from promptquiz.server import create_app

logging.basicConfig(level=Config.LOG_LEVEL)

app, socketio = create_app()

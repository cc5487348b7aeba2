import os
import sys
import time

import pytest

# Ensure the backend root (containing the `promptquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from promptquiz.config import Config
from promptquiz.game.errors import ImageGenerationFailed
from promptquiz.game.models import GeneratedImage
from promptquiz.game.service import RoomRegistry
from promptquiz.server import create_app


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SOCKETIO_ASYNC_MODE = 'threading'
    TRUST_PROXY_HEADERS = False
    STABILITY_API_KEY = ''
    COUNTDOWN_TICK_SEC = 0.05


class FakeImageProvider:
    """Records prompts; fails while ``fail`` is set."""

    def __init__(self):
        self.prompts = []
        self.fail = False

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.fail:
            raise ImageGenerationFailed('provider down')
        return GeneratedImage(data=b'\x89PNG fake', mime_type='image/png')


@pytest.fixture()
def registry():
    return RoomRegistry(TestConfig)


@pytest.fixture()
def image_provider():
    return FakeImageProvider()


@pytest.fixture()
def app_and_socketio(image_provider):
    return create_app(TestConfig, image_provider=image_provider)


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(app_and_socketio):
    flask_app, socketio = app_and_socketio
    clients = []

    def _connect():
        test_client = socketio.test_client(flask_app)
        clients.append(test_client)
        return test_client

    yield _connect

    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


def _buffer(sio_client):
    buffered = sio_client.__dict__.setdefault('_buffered', [])
    buffered.extend(sio_client.get_received())
    return buffered


def received(sio_client):
    """All packets not yet consumed, oldest first."""
    buffered = _buffer(sio_client)
    out = list(buffered)
    buffered.clear()
    return out


def names(packets):
    return [pkt['name'] for pkt in packets]


def wait_for(sio_client, name, timeout=3.0):
    """Poll until an event called ``name`` arrives; returns its first arg.

    Packets up to and including the match are consumed.
    """
    deadline = time.time() + timeout
    while True:
        buffered = _buffer(sio_client)
        for i, pkt in enumerate(buffered):
            if pkt['name'] == name:
                del buffered[:i + 1]
                return pkt['args'][0] if pkt['args'] else None
        if time.time() >= deadline:
            raise AssertionError(f'timed out waiting for {name!r}')
        time.sleep(0.02)

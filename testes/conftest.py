import json
import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from src.migrators.endpoints import EndpointResolver
from src.migrators.uniform_api import UniformApi

API_ROOT = "https://uniform.app/api"
API_HOST = "https://uniform.app"
PROJECT_ID = "proj-1"


def make_response(status=200, body=None, url=""):
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.encoding = "utf-8"
    if body is None:
        resp._content = b""
    elif isinstance(body, (dict, list)):
        resp._content = json.dumps(body).encode("utf-8")
    else:
        resp._content = str(body).encode("utf-8")
    return resp


class FakeSession:
    """Stands in for ``requests.Session``; ``handler(method, url, kwargs)`` returns
    ``(status, body)`` or an exception instance to raise."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.handler(method, url, kwargs)
        if isinstance(result, Exception):
            raise result
        status, body = result
        return make_response(status, body, url)

    def urls(self, method=None):
        return [url for m, url, _ in self.calls if method is None or m == method]


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_api():
    def factory(handler):
        session = FakeSession(handler)
        resolver = EndpointResolver(session, max_attempts=1, sleep_fn=lambda s: None)
        api = UniformApi("uf_key", PROJECT_ID, api_root=API_ROOT, api_host=API_HOST, resolver=resolver)
        return api, session

    return factory


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path

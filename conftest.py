# Ensure tests import modules from this service directory first,
# so `import cors_proxy.*` resolves to the working tree and not an installed copy.
import os
import sys
from types import SimpleNamespace

import httpx
import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)


@pytest.fixture
def upstream(monkeypatch):
    """
    Route outbound proxy requests to an in-process handler.

    Set ``upstream.handler`` to a function taking an ``httpx.Request`` and
    returning an ``httpx.Response``. Every outbound request and every client
    the forwarder created are recorded.
    """
    state = SimpleNamespace(handler=None, requests=[], clients=[])

    def dispatch(request: httpx.Request) -> httpx.Response:
        state.requests.append(request)
        return state.handler(request)

    def create_client() -> httpx.AsyncClient:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(dispatch), follow_redirects=True
        )
        state.clients.append(client)
        return client

    monkeypatch.setattr(
        "cors_proxy.proxy.forwarder.create_upstream_client", create_client
    )
    return state

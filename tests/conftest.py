"""Shared pytest fixtures for all test modules."""

import json
import os
import subprocess
import sys

import httpx
import pytest

from cloudlaunch.provisioning.orchestrate import IP_WAIT, Timings
from cloudlaunch.storage import ServerStore

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


class FakeVendor:
    """MockTransport handler routing (method, path) to canned (status, body) replies.

    A route value may be a tuple, a list of tuples (consumed in order, the
    last one repeats) or a callable taking the httpx.Request.
    """

    def __init__(self, routes):
        self.routes = dict(routes)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        reply = self.routes.get((request.method, request.url.path))
        if reply is None:
            return httpx.Response(404, json={"message": f"no route for {request.method} {request.url.path}"})
        if callable(reply):
            reply = reply(request)
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        status, body = reply
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=body or b"")

    def sent(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def body(self, method, path, index=-1):
        return json.loads(self.sent(method, path)[index].content)


@pytest.fixture
def vendor():
    """Return a factory: routes -> (FakeVendor, httpx.AsyncClient over it)."""

    def _make(routes):
        fake = FakeVendor(routes)
        return fake, httpx.AsyncClient(transport=httpx.MockTransport(fake))

    return _make


@pytest.fixture
def store(tmp_path):
    return ServerStore(tmp_path / "state")


@pytest.fixture
def fast_timings():
    """Orchestrator timings with every sleep set to zero."""
    return Timings(
        boot_interval=0,
        ip_wait={provider: (attempts, 0) for provider, (attempts, _) in IP_WAIT.items()},
        ready_min_wait=dict.fromkeys(IP_WAIT, 0),
    )


@pytest.fixture(scope="session")
def run_cli():
    """Return a callable that invokes the cloudlaunch CLI as a subprocess."""

    def _run(*args, env=None):
        result = subprocess.run(
            [sys.executable, "-m", "cloudlaunch.cloudlaunch", *args],
            capture_output=True,
            text=True,
            cwd=PROJECT_ROOT,
            env={**os.environ, **(env or {})},
        )
        return result.returncode, result.stdout, result.stderr

    return _run

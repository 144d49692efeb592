"""Shared fakes for HTTP and sample sources."""
from typing import List, Optional

import pytest
import requests

from bwmon.errors import MeasurementError, SourceInitError
from bwmon.sources import SampleSource


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, text="", reason="OK", json_data=None, chunks=None, text_error=None):
        self.status_code = status_code
        self.reason = reason
        self._text = text
        self._json = json_data
        self._chunks = chunks or []
        self._text_error = text_error

    @property
    def text(self):
        if self._text_error:
            raise self._text_error
        return self._text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} {self.reason}")

    def iter_content(self, chunk_size=1):
        yield from self._chunks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Records requests and answers them from a list or a callable."""

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []
        self.closed = False

    def _answer(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.handler:
            return self.handler(method, url, **kwargs)
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)

    def close(self):
        self.closed = True


class ListSampleSource(SampleSource):
    """Emits a fixed list of samples, optionally failing at a given step."""

    def __init__(self, samples: List[float], fail_init: bool = False, fail_after: Optional[int] = None,
                 close_sink: bool = True, crash: bool = False):
        self.samples = samples
        self.fail_init = fail_init
        self.fail_after = fail_after
        self.close_sink = close_sink
        self.crash = crash
        self.closed = False

    def init(self):
        if self.fail_init:
            raise SourceInitError("fake init failure")

    def list_endpoints(self):
        return ["https://example.invalid/a"]

    def measure(self, endpoints, sink):
        if self.crash:
            raise RuntimeError("fake crash")
        for i, sample in enumerate(self.samples):
            if self.fail_after is not None and i >= self.fail_after:
                error = MeasurementError("fake measurement failure")
                sink.close(error)
                raise error
            sink.put(sample)
        if self.close_sink:
            sink.close()

    def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()

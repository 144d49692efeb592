"""Tests for the HTTP delivery client."""
import logging

import pytest
import requests

from bwmon.delivery import CONTENT_TYPE, UNREADABLE_BODY, DeliveryClient, is_success
from bwmon.errors import DeliveryError

from conftest import FakeResponse, FakeSession

URL = "http://127.0.0.1:8086/write?db=bwmon"
LINE = "bandwidth,Hostname=h1 mean=20 1000"


@pytest.mark.parametrize("status", [200, 201, 204, 299])
def test_success_statuses(status):
    assert is_success(status)


@pytest.mark.parametrize("status", [199, 300, 404, 500])
def test_failure_statuses(status):
    assert not is_success(status)


def test_write_posts_line_as_octet_stream():
    session = FakeSession([FakeResponse(204, reason="No Content")])
    DeliveryClient(URL, timeout_s=5, session=session).write(LINE)

    (method, url, kwargs), = session.calls
    assert method == "POST"
    assert url == URL
    assert kwargs["data"] == LINE.encode("utf-8")
    assert kwargs["headers"] == {"Content-Type": CONTENT_TYPE}
    assert kwargs["timeout"] == 5


def test_non_2xx_error_carries_status_and_body():
    session = FakeSession([FakeResponse(503, text="overloaded", reason="Service Unavailable")])

    with pytest.raises(DeliveryError) as excinfo:
        DeliveryClient(URL, session=session).write(LINE)

    message = str(excinfo.value)
    assert "503" in message
    assert "overloaded" in message
    assert excinfo.value.status_code == 503
    assert excinfo.value.body == "overloaded"


def test_unreadable_body_uses_placeholder():
    response = FakeResponse(500, reason="Internal Server Error",
                            text_error=requests.exceptions.ChunkedEncodingError("cut"))
    session = FakeSession([response])

    with pytest.raises(DeliveryError) as excinfo:
        DeliveryClient(URL, session=session).write(LINE)

    assert UNREADABLE_BODY in str(excinfo.value)
    assert "500" in str(excinfo.value)


def test_transport_failure_is_delivery_error():
    session = FakeSession([requests.ConnectionError("connection refused")])

    with pytest.raises(DeliveryError, match="connection refused") as excinfo:
        DeliveryClient(URL, session=session).write(LINE)
    assert excinfo.value.status_code is None


def test_debug_logs_status_and_line(caplog):
    session = FakeSession([FakeResponse(204, reason="No Content")])

    with caplog.at_level(logging.DEBUG, logger="bwmon.delivery"):
        DeliveryClient(URL, debug=True, session=session).write(LINE)

    assert f"204 No Content: {LINE}" in caplog.text


def test_success_is_silent_without_debug(caplog):
    session = FakeSession([FakeResponse(200)])

    with caplog.at_level(logging.DEBUG, logger="bwmon.delivery"):
        DeliveryClient(URL, session=session).write(LINE)

    assert caplog.text == ""

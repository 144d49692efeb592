"""HTTP delivery of encoded lines to an InfluxDB write endpoint."""
from typing import Optional
import logging

import requests

from bwmon.errors import DeliveryError

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"
UNREADABLE_BODY = "Unable to read body."


def is_success(status_code: int) -> bool:
    """Only 2xx responses count as a successful write."""
    return 200 <= status_code < 300


class DeliveryClient:
    """POSTs line protocol to a fixed URL and checks the response status."""

    def __init__(
        self,
        url: str,
        timeout_s: Optional[float] = 30.0,
        debug: bool = False,
        session: Optional[requests.Session] = None
    ):
        self.url = url
        self.timeout_s = timeout_s
        self.debug = debug
        self.session = session or requests.Session()

    def write(self, line: str):
        """Send one line. Raises DeliveryError on transport failure or non-2xx status."""
        try:
            response = self.session.post(
                self.url,
                data=line.encode("utf-8"),
                headers={"Content-Type": CONTENT_TYPE},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise DeliveryError(f"POST {self.url} failed: {e}") from e

        status = f"{response.status_code} {response.reason or ''}".strip()

        if not is_success(response.status_code):
            body = self._read_body(response)
            raise DeliveryError(
                f"InfluxDB returned {status}: {body!r}",
                status_code=response.status_code,
                body=body,
            )

        if self.debug:
            logger.debug(f"{status}: {line}")

    @staticmethod
    def _read_body(response: requests.Response) -> str:
        try:
            return response.text
        except (requests.RequestException, UnicodeDecodeError):
            return UNREADABLE_BODY

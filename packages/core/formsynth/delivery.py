"""
HTTP delivery of compiled payloads to a Google Form.

Implements the delivery contract used by the scheduler:
    await deliver(endpoint_url, payload) -> DeliveryOutcome

Blocking ``requests`` calls run in the event loop's default executor so a
whole group of deliveries is in flight at once.
"""

import asyncio
import logging
import re
import time
from typing import List, Optional, Tuple

import requests

from .exceptions import DeliveryFailure
from .models import DeliveryOutcome, RowPayload
from .settings import EngineSettings


logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

CONFIRM_INDICATORS = [
    "freebirdFormviewerViewResponseConfirmationMessage",
    "Your response has been recorded",
    "Thanks for your response",
]

_ENTRY_ID = re.compile(r"^\d+$")


def form_response_url(url: str) -> str:
    """Turn a form's view URL into its submission URL."""
    base = url.split("?")[0].split("#")[0].rstrip("/")
    if base.endswith("/viewform"):
        return base[: -len("/viewform")] + "/formResponse"
    if base.endswith("/formResponse"):
        return base
    return base + "/formResponse"


def _field_name(key: str) -> str:
    return f"entry.{key}" if _ENTRY_ID.match(key) else key


def build_form_data(payload: RowPayload) -> List[Tuple[str, str]]:
    """
    Flatten a payload into form-encoded pairs.

    Numeric entry ids become ``entry.<id>``; multi-select answers emit one
    pair per selected option.
    """
    data: List[Tuple[str, str]] = []
    for key, value in payload.as_mapping().items():
        name = _field_name(key)
        if isinstance(value, list):
            data.extend((name, str(v)) for v in value)
        else:
            data.append((name, str(value)))
    return data


def check_confirmed(html: str) -> bool:
    """True when the response page carries a Google Forms confirmation."""
    return any(indicator in html for indicator in CONFIRM_INDICATORS)


class FormDelivery:
    """
    Submits payloads with ``requests`` and classifies the outcome.

    Timeouts, connection errors, HTTP 429 and 5xx are retried with
    exponential backoff; other client errors fail immediately.

    Example:
        delivery = FormDelivery(settings=EngineSettings(delivery_timeout=5))
        outcome = await delivery(form_url, payload)
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        session: Optional[requests.Session] = None,
        require_confirmation: bool = False,
    ):
        self.settings = settings or EngineSettings()
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.require_confirmation = require_confirmation

    def _post_once(self, url: str, data: List[Tuple[str, str]]) -> int:
        """
        Single POST attempt.

        Returns:
            HTTP status code

        Raises:
            DeliveryFailure: With ``retryable`` set for transient errors
        """
        try:
            response = self.session.post(url, data=data, timeout=self.settings.delivery_timeout)
        except requests.exceptions.Timeout as e:
            raise DeliveryFailure(f"timeout after {self.settings.delivery_timeout}s", retryable=True) from e
        except requests.exceptions.ConnectionError as e:
            raise DeliveryFailure(f"connection error: {e}", retryable=True) from e
        except requests.RequestException as e:
            raise DeliveryFailure(f"request error: {e}") from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise DeliveryFailure(f"HTTP {status}", status_code=status, retryable=True)
        if status >= 400:
            raise DeliveryFailure(f"HTTP {status}", status_code=status)
        if self.require_confirmation and not check_confirmed(response.text):
            raise DeliveryFailure("rejected: no confirmation in response", status_code=status)
        return status

    def submit(self, endpoint_url: str, payload: RowPayload) -> DeliveryOutcome:
        """Blocking delivery with retries; never raises for delivery errors."""
        url = form_response_url(endpoint_url)
        data = build_form_data(payload)
        start = time.time()
        attempts = 0
        max_attempts = self.settings.delivery_retries

        while True:
            attempts += 1
            try:
                status = self._post_once(url, data)
                return DeliveryOutcome(
                    row_index=payload.row_index,
                    success=True,
                    status_code=status,
                    latency_ms=(time.time() - start) * 1000,
                    attempts=attempts,
                )
            except DeliveryFailure as e:
                if not e.retryable or attempts >= max_attempts:
                    logger.debug(f"Row {payload.row_index} failed after {attempts} attempt(s): {e.reason}")
                    return DeliveryOutcome(
                        row_index=payload.row_index,
                        success=False,
                        reason=e.reason,
                        status_code=e.status_code,
                        latency_ms=(time.time() - start) * 1000,
                        attempts=attempts,
                    )
                sleep_time = self.settings.retry_backoff * (2 ** (attempts - 1))
                logger.warning(
                    f"Delivery of row {payload.row_index} failed (attempt {attempts}/{max_attempts}): "
                    f"{e.reason}. Retrying in {sleep_time:.1f}s..."
                )
                time.sleep(sleep_time)

    async def __call__(self, endpoint_url: str, payload: RowPayload) -> DeliveryOutcome:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.submit, endpoint_url, payload)

    def close(self) -> None:
        self.session.close()

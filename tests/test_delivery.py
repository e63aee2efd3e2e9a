"""Tests for HTTP form delivery."""

import asyncio
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from formsynth.delivery import (
    FormDelivery,
    build_form_data,
    check_confirmed,
    form_response_url,
)
from formsynth.models import RowPayload
from formsynth.settings import EngineSettings


VIEW_URL = "https://docs.google.com/forms/d/e/abc123/viewform?usp=sf_link"
RESPONSE_URL = "https://docs.google.com/forms/d/e/abc123/formResponse"


def _payload():
    return RowPayload(
        row_index=2,
        answers={"111": "Yes", "222": ["Email", "Chat"], "emailAddress": "a.b1@gmail.com"},
        hidden_fields={"fvv": "1", "fbzx": "-42"},
        page_history="0,1",
    )


def _response(status, text=""):
    return Mock(status_code=status, text=text)


def _delivery(*responses, **kwargs):
    session = MagicMock()
    session.post.side_effect = list(responses)
    settings = kwargs.pop("settings", EngineSettings(retry_backoff=0))
    return FormDelivery(settings=settings, session=session, **kwargs), session


class TestFormData:
    """Tests for URL and body construction."""

    @pytest.mark.parametrize("url", [
        VIEW_URL,
        "https://docs.google.com/forms/d/e/abc123/viewform",
        "https://docs.google.com/forms/d/e/abc123/formResponse",
        "https://docs.google.com/forms/d/e/abc123/",
    ])
    def test_form_response_url(self, url):
        assert form_response_url(url) == RESPONSE_URL

    def test_build_form_data(self):
        """Test entry ids are prefixed and multi-select answers repeat the key."""
        data = build_form_data(_payload())
        assert ("entry.111", "Yes") in data
        assert ("entry.222", "Email") in data
        assert ("entry.222", "Chat") in data
        assert ("emailAddress", "a.b1@gmail.com") in data
        assert ("fvv", "1") in data
        assert ("fbzx", "-42") in data
        assert ("pageHistory", "0,1") in data

    def test_check_confirmed(self):
        assert check_confirmed("<div>Your response has been recorded.</div>")
        assert not check_confirmed("<html>Sign in</html>")


class TestFormDelivery:
    """Tests for FormDelivery.submit."""

    def test_success(self):
        delivery, session = _delivery(_response(200))
        outcome = delivery.submit(VIEW_URL, _payload())

        assert outcome.success
        assert outcome.row_index == 2
        assert outcome.status_code == 200
        assert outcome.attempts == 1
        args, kwargs = session.post.call_args
        assert args[0] == RESPONSE_URL
        assert kwargs["timeout"] == delivery.settings.delivery_timeout

    @patch("formsynth.delivery.time.sleep")
    def test_retry_on_server_error(self, mock_sleep):
        """Test a 503 is retried and the retry can succeed."""
        delivery, session = _delivery(_response(503), _response(200))
        outcome = delivery.submit(VIEW_URL, _payload())

        assert outcome.success
        assert outcome.attempts == 2
        assert session.post.call_count == 2

    @patch("formsynth.delivery.time.sleep")
    def test_retries_exhausted(self, mock_sleep):
        delivery, session = _delivery(_response(429), _response(429))
        outcome = delivery.submit(VIEW_URL, _payload())

        assert not outcome.success
        assert outcome.status_code == 429
        assert outcome.attempts == 2
        assert mock_sleep.call_count == 1

    def test_client_error_not_retried(self):
        delivery, session = _delivery(_response(400))
        outcome = delivery.submit(VIEW_URL, _payload())

        assert not outcome.success
        assert outcome.reason == "HTTP 400"
        assert session.post.call_count == 1

    @patch("formsynth.delivery.time.sleep")
    def test_timeout_is_failure(self, mock_sleep):
        """Test a delivery that times out on every attempt fails without raising."""
        delivery, _ = _delivery(requests.exceptions.Timeout(), requests.exceptions.Timeout())
        outcome = delivery.submit(VIEW_URL, _payload())

        assert not outcome.success
        assert "timeout" in outcome.reason

    def test_confirmation_required(self):
        """Test a 200 without confirmation text counts as rejected when confirmation is required."""
        delivery, _ = _delivery(_response(200, "<html>Sign in</html>"), require_confirmation=True)
        outcome = delivery.submit(VIEW_URL, _payload())
        assert not outcome.success
        assert "confirmation" in outcome.reason

    def test_async_call(self):
        """Test the awaitable interface used by the scheduler."""
        delivery, _ = _delivery(_response(200, "Your response has been recorded"), require_confirmation=True)
        outcome = asyncio.run(delivery(VIEW_URL, _payload()))
        assert outcome.success

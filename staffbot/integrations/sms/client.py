"""Async httpx client for the sms.ru one-time-code delivery API."""

from __future__ import annotations

import logging

import httpx

from staffbot.config import settings
from staffbot.integrations.sms.schemas import STATUS_ERROR, STATUS_OK, SmsResult

logger = logging.getLogger(__name__)


class SmsClient:
    """Thin async wrapper around sms.ru ``/sms/send``.

    Endpoint: GET {api_url}?api_id=...&to=...&msg=...&json=1
    Never raises for gateway or transport failures: those come back as a
    result with a non-OK status so the dialogue can answer the user.
    """

    def __init__(self) -> None:
        self._api_url = settings.sms.sms_api_url
        self._api_id = settings.sms.sms_api_id
        self._test_mode = settings.sms.sms_test_mode
        self._template = settings.sms.sms_message_template
        self._timeout = httpx.Timeout(settings.sms.sms_timeout, connect=5.0)

    @property
    def _bypass_mode(self) -> bool:
        """Return True if no api_id is configured (dev/test bypass)."""
        return not self._api_id

    async def send_code(self, phone: str, code: int) -> SmsResult:
        """Deliver *code* to *phone* (canonical 7XXXXXXXXXX form)."""
        if self._bypass_mode:
            logger.info("SMS bypass mode active, code for %s*** is %s", phone[:4], code)
            return SmsResult(status=STATUS_OK)

        params = {
            "api_id": self._api_id,
            "to": phone,
            "msg": self._template.format(code=code),
            "json": 1,
        }
        if self._test_mode:
            params["test"] = 1

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._api_url, params=params)
                response.raise_for_status()
                payload: dict = response.json()

        except httpx.TimeoutException:
            logger.warning("sms.ru timeout sending to %s***", phone[:4])
            return SmsResult(status=STATUS_ERROR, status_text="timeout")

        except httpx.HTTPStatusError as exc:
            logger.warning("sms.ru HTTP error %s sending to %s***", exc.response.status_code, phone[:4])
            return SmsResult(status=STATUS_ERROR, status_text=f"http_{exc.response.status_code}")

        except (httpx.HTTPError, ValueError):
            logger.exception("sms.ru request failed for %s***", phone[:4])
            return SmsResult(status=STATUS_ERROR)

        return self._parse_response(phone, payload)

    def _parse_response(self, phone: str, payload: dict) -> SmsResult:
        """Per-number status wins over the request-level one."""
        entry = (payload.get("sms") or {}).get(phone)
        source = entry if isinstance(entry, dict) else payload

        result = SmsResult(
            status=str(source.get("status", STATUS_ERROR)),
            status_code=source.get("status_code"),
            sms_id=source.get("sms_id"),
            status_text=source.get("status_text"),
        )
        if not result.ok:
            logger.error("sms.ru rejected message to %s***: %s %s", phone[:4], result.status_code, result.status_text)
        return result


# Module-level singleton
sms_client = SmsClient()

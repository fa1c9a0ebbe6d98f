"""Pydantic schemas for the sms.ru gateway."""

from __future__ import annotations

from pydantic import BaseModel

STATUS_OK = "OK"
STATUS_ERROR = "ERROR"


class SmsResult(BaseModel):
    """Outcome of one send request."""

    status: str  # "OK", a gateway error status, or "ERROR" for transport failures
    status_code: int | None = None
    sms_id: str | None = None
    status_text: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

"""SMS, voice and transactional email integrations."""

from typing import Protocol

from metering.billing.cost import sms_segment_count, voice_minutes
from metering.billing.models import MeteredService
from metering.integrations.base import Consumption, MeteredIntegration
from metering.schemas.integrations import EmailSendRequest, SmsSendRequest, VoiceCallRequest


class SmsClient(Protocol):
    async def send(self, to: str, body: str) -> dict: ...


class VoiceClient(Protocol):
    """Returns at least {"sid": ..., "duration_seconds": ...} once the call ends."""

    async def place_call(self, to: str, message: str) -> dict: ...


class EmailClient(Protocol):
    async def send(self, to: list[str], subject: str, html: str) -> dict: ...


def _mask(identifier: str) -> str:
    return f"***{identifier[-4:]}"


class SmsIntegration(MeteredIntegration):
    service = MeteredService.SMS
    operation_name = "send_sms"

    def __init__(self, client: SmsClient, session_factory=None):
        super().__init__(session_factory)
        self.client = client

    def units_for(self, request: SmsSendRequest) -> int:
        return sms_segment_count(request.body)

    async def invoke(self, request: SmsSendRequest) -> dict:
        return await self.client.send(request.to, request.body)

    def measure(self, request: SmsSendRequest, result: dict) -> Consumption:
        segments = sms_segment_count(request.body)
        return Consumption(
            units_used=segments,
            metadata={
                "to": _mask(request.to),
                "message_length": len(request.body),
                "segments": segments,
                "sid": result.get("sid"),
            },
        )


class VoiceCallIntegration(MeteredIntegration):
    service = MeteredService.VOICE_CALL
    operation_name = "voice_call"
    requested_units = 1

    def __init__(self, client: VoiceClient, session_factory=None):
        super().__init__(session_factory)
        self.client = client

    async def invoke(self, request: VoiceCallRequest) -> dict:
        return await self.client.place_call(request.to, request.message)

    def measure(self, request: VoiceCallRequest, result: dict) -> Consumption:
        duration = float(result.get("duration_seconds") or 0)
        return Consumption(
            units_used=voice_minutes(duration),
            metadata={
                "to": _mask(request.to),
                "duration_seconds": duration,
                "sid": result.get("sid"),
            },
        )


class TransactionalEmailIntegration(MeteredIntegration):
    service = MeteredService.TRANSACTIONAL_EMAIL
    operation_name = "send_email"

    def __init__(self, client: EmailClient, session_factory=None):
        super().__init__(session_factory)
        self.client = client

    def units_for(self, request: EmailSendRequest) -> int:
        return len(request.to)

    async def invoke(self, request: EmailSendRequest) -> dict:
        return await self.client.send(request.to, request.subject, request.html)

    def measure(self, request: EmailSendRequest, result: dict) -> Consumption:
        return Consumption(
            units_used=len(request.to),
            metadata={
                "recipients": len(request.to),
                "subject": request.subject[:80],
                "message_id": result.get("id"),
            },
        )

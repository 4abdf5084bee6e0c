"""Metered integrations - one adapter per billed third-party service."""

from metering.integrations.base import Consumption, MeteredCallState, MeteredIntegration
from metering.integrations.llm import ChatCompletionIntegration, CompletionClient, VisionAnalysisIntegration
from metering.integrations.messaging import (
    EmailClient, SmsClient, SmsIntegration,
    TransactionalEmailIntegration, VoiceCallIntegration, VoiceClient,
)

__all__ = [
    "ChatCompletionIntegration",
    "CompletionClient",
    "Consumption",
    "EmailClient",
    "MeteredCallState",
    "MeteredIntegration",
    "SmsClient",
    "SmsIntegration",
    "TransactionalEmailIntegration",
    "VisionAnalysisIntegration",
    "VoiceCallIntegration",
    "VoiceClient",
]

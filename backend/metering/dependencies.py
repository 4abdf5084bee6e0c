"""FastAPI dependency injection."""

from fastapi import Request

from metering.billing.exceptions import ProviderNotConfiguredError
from metering.billing.models import MeteredService
from metering.integrations.llm import ChatCompletionIntegration, VisionAnalysisIntegration
from metering.integrations.messaging import (
    SmsIntegration, TransactionalEmailIntegration, VoiceCallIntegration,
)


def _provider(request: Request, service: MeteredService):
    """Paid client registered on app.state.providers, keyed by service."""
    providers = getattr(request.app.state, "providers", None) or {}
    client = providers.get(service)
    if client is None:
        raise ProviderNotConfiguredError(service)
    return client


def _session_factory(request: Request):
    # Tests and embedded deployments may swap the session factory on app.state
    return getattr(request.app.state, "session_factory", None)


def get_chat_integration(request: Request) -> ChatCompletionIntegration:
    return ChatCompletionIntegration(_provider(request, MeteredService.LLM_COMPLETION), _session_factory(request))


def get_vision_integration(request: Request) -> VisionAnalysisIntegration:
    return VisionAnalysisIntegration(_provider(request, MeteredService.LLM_COMPLETION), _session_factory(request))


def get_sms_integration(request: Request) -> SmsIntegration:
    return SmsIntegration(_provider(request, MeteredService.SMS), _session_factory(request))


def get_voice_integration(request: Request) -> VoiceCallIntegration:
    return VoiceCallIntegration(_provider(request, MeteredService.VOICE_CALL), _session_factory(request))


def get_email_integration(request: Request) -> TransactionalEmailIntegration:
    return TransactionalEmailIntegration(
        _provider(request, MeteredService.TRANSACTIONAL_EMAIL), _session_factory(request)
    )

"""Metered integration endpoints - AI, SMS, voice and email."""

from fastapi import APIRouter, Depends

from metering.dependencies import (
    get_chat_integration, get_email_integration, get_sms_integration,
    get_vision_integration, get_voice_integration,
)
from metering.integrations.llm import ChatCompletionIntegration, VisionAnalysisIntegration
from metering.integrations.messaging import (
    SmsIntegration, TransactionalEmailIntegration, VoiceCallIntegration,
)
from metering.schemas.integrations import (
    ChatCompletionRequest, EmailSendRequest, SmsSendRequest,
    VisionAnalysisRequest, VoiceCallRequest,
)

router = APIRouter(tags=["integrations"])


@router.post("/ai/chat", response_model=dict)
async def ai_chat(
    body: ChatCompletionRequest,
    integration: ChatCompletionIntegration = Depends(get_chat_integration),
):
    return await integration.run(body, tenant_id=body.tenant_id, user_id=body.user_id)


@router.post("/ai/vision", response_model=dict)
async def ai_vision(
    body: VisionAnalysisRequest,
    integration: VisionAnalysisIntegration = Depends(get_vision_integration),
):
    return await integration.run(body, tenant_id=body.tenant_id, user_id=body.user_id)


@router.post("/sms/send", response_model=dict)
async def send_sms(
    body: SmsSendRequest,
    integration: SmsIntegration = Depends(get_sms_integration),
):
    return await integration.run(body, tenant_id=body.tenant_id, user_id=body.user_id)


@router.post("/voice/call", response_model=dict)
async def voice_call(
    body: VoiceCallRequest,
    integration: VoiceCallIntegration = Depends(get_voice_integration),
):
    return await integration.run(body, tenant_id=body.tenant_id, user_id=body.user_id)


@router.post("/email/send", response_model=dict)
async def send_email(
    body: EmailSendRequest,
    integration: TransactionalEmailIntegration = Depends(get_email_integration),
):
    return await integration.run(body, tenant_id=body.tenant_id, user_id=body.user_id)

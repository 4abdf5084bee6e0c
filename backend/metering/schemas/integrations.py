"""Request schemas for metered integration endpoints."""

import uuid
from pydantic import BaseModel, Field


class MeteredRequest(BaseModel):
    # Omitted for unmetered calls (local development, internal testing)
    tenant_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None


class ChatMessage(BaseModel):
    role: str = Field(pattern=r"^(system|user|assistant)$")
    content: str


class ChatCompletionRequest(MeteredRequest):
    messages: list[ChatMessage] = Field(min_length=1)
    model: str | None = None
    max_tokens: int | None = Field(default=None, ge=1)


class VisionAnalysisRequest(MeteredRequest):
    image_url: str
    prompt: str = "Describe this image."
    model: str | None = None


class SmsSendRequest(MeteredRequest):
    to: str = Field(min_length=3, max_length=32)
    body: str = Field(min_length=1, max_length=1600)


class VoiceCallRequest(MeteredRequest):
    to: str = Field(min_length=3, max_length=32)
    message: str = Field(min_length=1)


class EmailSendRequest(MeteredRequest):
    to: list[str] = Field(min_length=1)
    subject: str
    html: str

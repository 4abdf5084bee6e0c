"""LLM completion integrations - chat and vision."""

from typing import Any, Protocol

from metering.billing.cost import cost_for_tokens
from metering.billing.models import MeteredService
from metering.integrations.base import Consumption, MeteredIntegration
from metering.schemas.integrations import ChatCompletionRequest, VisionAnalysisRequest


class CompletionClient(Protocol):
    """
    Paid LLM provider.

    Responses are OpenAI-style dicts: {"model": ..., "choices": [...],
    "usage": {"prompt_tokens": ..., "completion_tokens": ..., "total_tokens": ...}}.
    """

    async def complete(self, messages: list[dict], model: str | None = None, max_tokens: int | None = None) -> dict: ...

    async def analyze_image(self, image_url: str, prompt: str, model: str | None = None) -> dict: ...


def _token_usage(result: dict) -> tuple[int, dict[str, Any]]:
    usage = result.get("usage") or {}
    total = usage.get("total_tokens")
    if total is None:
        total = (usage.get("prompt_tokens") or 0) + (usage.get("completion_tokens") or 0)
    metadata = {
        "model": result.get("model"),
        "prompt_tokens": usage.get("prompt_tokens"),
        "completion_tokens": usage.get("completion_tokens"),
    }
    return int(total), metadata


class _CompletionIntegration(MeteredIntegration):
    service = MeteredService.LLM_COMPLETION

    def __init__(self, client: CompletionClient, session_factory=None):
        super().__init__(session_factory)
        self.client = client

    def measure(self, request, result: dict) -> Consumption:
        tokens, metadata = _token_usage(result)
        return Consumption(units_used=self.requested_units, tokens_used=tokens, metadata=metadata)

    def cost_for(self, consumption: Consumption) -> int:
        return cost_for_tokens(consumption.tokens_used)


class ChatCompletionIntegration(_CompletionIntegration):
    operation_name = "ai_chat"
    requested_units = 1

    async def invoke(self, request: ChatCompletionRequest) -> dict:
        messages = [m.model_dump() for m in request.messages]
        return await self.client.complete(messages, model=request.model, max_tokens=request.max_tokens)


class VisionAnalysisIntegration(_CompletionIntegration):
    """Image analysis costs far more than a chat turn, so it draws 5 units."""
    operation_name = "ai_vision"
    requested_units = 5

    async def invoke(self, request: VisionAnalysisRequest) -> dict:
        return await self.client.analyze_image(request.image_url, request.prompt, model=request.model)

    def measure(self, request: VisionAnalysisRequest, result: dict) -> Consumption:
        consumption = super().measure(request, result)
        consumption.metadata["image_url"] = request.image_url[:100]
        return consumption

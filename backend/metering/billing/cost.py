"""Cost model - per-service cost estimates in integer cents.

Every estimate rounds up so a call's cost is never under-estimated.
"""

import math

from metering.billing.models import MeteredService

LLM_CENTS_PER_1K_TOKENS = 2
SMS_CENTS_PER_SEGMENT = 0.79
VOICE_CENTS_PER_MINUTE = 1.3
EMAIL_CENTS_PER_MESSAGE = 0.1

# GSM-7 single-segment length. Unicode (UCS-2) bodies split at 70 chars
# and are under-counted here.
SMS_SEGMENT_LENGTH = 160


def cost_for_tokens(tokens: int, rate: float = LLM_CENTS_PER_1K_TOKENS) -> int:
    return math.ceil(tokens / 1000 * rate)


def cost_for_sms(segment_count: int, rate: float = SMS_CENTS_PER_SEGMENT) -> int:
    return math.ceil(segment_count * rate)


def cost_for_voice(minutes: int, rate: float = VOICE_CENTS_PER_MINUTE) -> int:
    return math.ceil(minutes * rate)


def cost_for_email(email_count: int, rate: float = EMAIL_CENTS_PER_MESSAGE) -> int:
    return math.ceil(email_count * rate)


def sms_segment_count(body: str) -> int:
    return math.ceil(len(body) / SMS_SEGMENT_LENGTH)


def voice_minutes(duration_seconds: float) -> int:
    """Billed minutes for a call; carriers bill any started minute."""
    return math.ceil(duration_seconds / 60)


_COST_FUNCTIONS = {
    MeteredService.LLM_COMPLETION: cost_for_tokens,
    MeteredService.SMS: cost_for_sms,
    MeteredService.VOICE_CALL: cost_for_voice,
    MeteredService.TRANSACTIONAL_EMAIL: cost_for_email,
}

if set(_COST_FUNCTIONS) != set(MeteredService):
    raise RuntimeError(f"cost functions missing for {set(MeteredService) - set(_COST_FUNCTIONS)}")


def estimate_cost(service: MeteredService, quantity: int) -> int:
    """
    Estimate the cost of `quantity` for a metered service.

    `quantity` is tokens for LLM completions and the service's own unit
    (segments, minutes, emails) otherwise.
    """
    return _COST_FUNCTIONS[MeteredService(service)](quantity)

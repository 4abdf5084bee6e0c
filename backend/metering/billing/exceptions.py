"""Usage governor exceptions."""

from metering.billing.models import MeteredService


class UsageGovernorError(Exception):
    """Base class for usage governor errors."""


class QuotaExceededError(UsageGovernorError):
    """The tenant has used up its quota for a metered service this period."""

    def __init__(self, service: MeteredService, decision):
        self.service = MeteredService(service)
        self.decision = decision
        super().__init__(f"{self.service.value} usage limit exceeded for this billing period")

    def to_response(self) -> dict:
        return {
            "error": "Usage limit exceeded",
            "message": str(self),
            "current_usage": self.decision.current_usage,
            "limit": self.decision.limit,
            "percentage_used": self.decision.percentage_used,
        }


class QuotaUnavailableError(UsageGovernorError):
    """Quota could not be evaluated and the deployment fails closed."""


class ProviderNotConfiguredError(UsageGovernorError):
    """No client is registered for a paid provider."""

    def __init__(self, service: MeteredService):
        self.service = MeteredService(service)
        super().__init__(f"{self.service.value} provider is not configured")

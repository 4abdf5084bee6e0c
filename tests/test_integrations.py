"""
Tests for the metered integration contract (backend/metering/integrations/).

Paid providers are replaced by AsyncMock clients; the ledger is SQLite.
"""

import sys
import os
import uuid
import unittest
from unittest.mock import AsyncMock, patch

from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from metering.billing.exceptions import QuotaExceededError
from metering.billing.models import MeteredService
from metering.billing.quota import evaluate_quota
from metering.config import Settings
from metering.integrations import (
    Consumption, ChatCompletionIntegration, SmsIntegration, TransactionalEmailIntegration,
    VisionAnalysisIntegration, VoiceCallIntegration,
)
from metering.schemas.integrations import (
    ChatCompletionRequest, EmailSendRequest, SmsSendRequest,
    VisionAnalysisRequest, VoiceCallRequest,
)
from tests.db_helpers import LedgerTestCase


def completion_response(total_tokens=1500, model="gpt-4o-mini"):
    return {
        "model": model,
        "choices": [{"message": {"role": "assistant", "content": "Hi"}}],
        "usage": {"prompt_tokens": total_tokens - 100, "completion_tokens": 100, "total_tokens": total_tokens},
    }


class TestConsumption(unittest.TestCase):

    def test_defaults(self):
        consumption = Consumption(units_used=3)
        self.assertEqual(consumption.tokens_used, 0)
        self.assertEqual(consumption.metadata, {})

    def test_metadata_not_shared_between_instances(self):
        first = Consumption(units_used=1)
        first.metadata["sid"] = "SM1"
        self.assertEqual(Consumption(units_used=1).metadata, {})

    def test_rejects_non_integer_units(self):
        with self.assertRaises(ValidationError):
            Consumption(units_used="many")


class TestUnmeteredCalls(LedgerTestCase):

    async def test_no_tenant_skips_governor(self):
        client = AsyncMock()
        client.send.return_value = {"sid": "SM1"}
        integration = SmsIntegration(client, self.session_factory)

        result = await integration.run(SmsSendRequest(to="+15550001111", body="hello"))

        self.assertEqual(result, {"sid": "SM1"})
        client.send.assert_awaited_once_with("+15550001111", "hello")
        self.assertEqual(await self.event_count(), 0)

    async def test_billing_disabled_skips_governor(self):
        client = AsyncMock()
        client.send.return_value = {"sid": "SM1"}
        integration = SmsIntegration(client, self.session_factory)
        await self.set_usage(self.tenant_id, MeteredService.SMS, 100)

        with patch("metering.integrations.base.get_settings", return_value=Settings(BILLING_ENABLED=False)):
            await integration.run(SmsSendRequest(to="+15550001111", body="hello"), tenant_id=self.tenant_id)

        client.send.assert_awaited_once()
        self.assertEqual(await self.event_count(), 0)


class TestChatCompletion(LedgerTestCase):

    async def test_allowed_call_records_actual_tokens(self):
        client = AsyncMock()
        client.complete.return_value = completion_response(total_tokens=2500)
        integration = ChatCompletionIntegration(client, self.session_factory)
        user_id = uuid.uuid4()
        request = ChatCompletionRequest(messages=[{"role": "user", "content": "Hello"}], model="gpt-4o-mini")

        result = await integration.run(request, tenant_id=self.tenant_id, user_id=user_id)

        self.assertEqual(result["usage"]["total_tokens"], 2500)
        events = await self.events(self.tenant_id)
        self.assertEqual(len(events), 1)
        event = events[0]
        self.assertEqual(event.service, MeteredService.LLM_COMPLETION)
        self.assertEqual(event.operation_name, "ai_chat")
        self.assertEqual(event.user_id, user_id)
        self.assertEqual(event.tokens_used, 2500)
        self.assertEqual(event.units_used, 1)
        self.assertEqual(event.estimated_cost_cents, 5)
        self.assertEqual(event.metadata_extra["model"], "gpt-4o-mini")
        self.assertEqual(await self.counter(self.tenant_id, MeteredService.LLM_COMPLETION), 1)

    async def test_denied_call_never_reaches_provider(self):
        await self.add_limit("starter", MeteredService.LLM_COMPLETION, 10)
        await self.set_usage(self.tenant_id, MeteredService.LLM_COMPLETION, 10)
        client = AsyncMock()
        integration = ChatCompletionIntegration(client, self.session_factory)
        request = ChatCompletionRequest(messages=[{"role": "user", "content": "Hello"}])

        with self.assertRaises(QuotaExceededError) as ctx:
            await integration.run(request, tenant_id=self.tenant_id)

        client.complete.assert_not_called()
        self.assertEqual(ctx.exception.decision.current_usage, 10)
        self.assertEqual(ctx.exception.decision.limit, 10)
        self.assertEqual(await self.event_count(), 0)

    async def test_recording_failure_still_returns_result(self):
        client = AsyncMock()
        client.complete.return_value = completion_response()
        integration = ChatCompletionIntegration(client, self.session_factory)
        request = ChatCompletionRequest(messages=[{"role": "user", "content": "Hello"}])

        with patch("metering.billing.recorder._counter_increment", side_effect=RuntimeError("ledger down")):
            result = await integration.run(request, tenant_id=self.tenant_id)

        self.assertEqual(result["model"], "gpt-4o-mini")
        self.assertEqual(await self.event_count(), 0)

    async def test_evaluation_failure_fails_open(self):
        client = AsyncMock()
        client.complete.return_value = completion_response()
        integration = ChatCompletionIntegration(client, self.session_factory)
        request = ChatCompletionRequest(messages=[{"role": "user", "content": "Hello"}])

        # Ledger outage: both the quota read and the usage write fail
        async with self.engine.begin() as conn:
            await conn.exec_driver_sql("DROP TABLE usage_counters")

        result = await integration.run(request, tenant_id=self.tenant_id)

        client.complete.assert_awaited_once()
        self.assertIn("choices", result)
        self.assertEqual(await self.event_count(), 0)

    async def test_tier_upgrade_raises_limit(self):
        await self.add_limit("starter", MeteredService.LLM_COMPLETION, 1)
        await self.add_limit("professional", MeteredService.LLM_COMPLETION, 1000)
        await self.set_usage(self.tenant_id, MeteredService.LLM_COMPLETION, 1)
        await self.add_subscription(self.tenant_id, "professional")
        client = AsyncMock()
        client.complete.return_value = completion_response()
        integration = ChatCompletionIntegration(client, self.session_factory)

        await integration.run(
            ChatCompletionRequest(messages=[{"role": "user", "content": "Hi"}]),
            tenant_id=self.tenant_id,
        )

        client.complete.assert_awaited_once()


class TestVisionAnalysis(LedgerTestCase):

    async def test_vision_checks_five_units(self):
        await self.add_limit("starter", MeteredService.LLM_COMPLETION, 100)
        await self.set_usage(self.tenant_id, MeteredService.LLM_COMPLETION, 96)
        client = AsyncMock()
        integration = VisionAnalysisIntegration(client, self.session_factory)

        with self.assertRaises(QuotaExceededError):
            await integration.run(
                VisionAnalysisRequest(image_url="https://cdn.example.com/a.jpg"),
                tenant_id=self.tenant_id,
            )
        client.analyze_image.assert_not_called()

    async def test_vision_records_five_units(self):
        client = AsyncMock()
        client.analyze_image.return_value = completion_response(total_tokens=900)
        integration = VisionAnalysisIntegration(client, self.session_factory)

        await integration.run(
            VisionAnalysisRequest(image_url="https://cdn.example.com/a.jpg", prompt="What is this?"),
            tenant_id=self.tenant_id,
        )

        event = (await self.events(self.tenant_id))[0]
        self.assertEqual(event.operation_name, "ai_vision")
        self.assertEqual(event.units_used, 5)
        self.assertEqual(event.tokens_used, 900)
        self.assertEqual(event.estimated_cost_cents, 2)
        self.assertEqual(event.metadata_extra["image_url"], "https://cdn.example.com/a.jpg")


class TestSms(LedgerTestCase):

    async def test_five_hundred_char_sms(self):
        client = AsyncMock()
        client.send.return_value = {"sid": "SM42"}
        integration = SmsIntegration(client, self.session_factory)

        await integration.run(SmsSendRequest(to="+15550001234", body="x" * 500), tenant_id=self.tenant_id)

        event = (await self.events(self.tenant_id))[0]
        self.assertEqual(event.units_used, 4)
        self.assertEqual(event.estimated_cost_cents, 4)
        self.assertEqual(event.metadata_extra["to"], "***1234")
        self.assertEqual(event.metadata_extra["segments"], 4)

    async def test_starter_limit_boundary(self):
        await self.add_limit("starter", MeteredService.SMS, 100)
        await self.set_usage(self.tenant_id, MeteredService.SMS, 99)
        client = AsyncMock()
        client.send.return_value = {"sid": "SM1"}
        integration = SmsIntegration(client, self.session_factory)
        request = SmsSendRequest(to="+15550001234", body="Your order is ready")

        # 99 + 1 <= 100: allowed, leaves nothing remaining
        await integration.run(request, tenant_id=self.tenant_id)
        self.assertEqual(await self.counter(self.tenant_id, MeteredService.SMS), 100)

        with self.assertRaises(QuotaExceededError) as ctx:
            await integration.run(request, tenant_id=self.tenant_id)

        decision = ctx.exception.decision
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.current_usage, 100)
        self.assertEqual(decision.remaining, 0)
        self.assertEqual(decision.percentage_used, 100.0)
        self.assertEqual(client.send.await_count, 1)

        body = ctx.exception.to_response()
        self.assertEqual(body["error"], "Usage limit exceeded")
        self.assertIn("sms", body["message"])
        self.assertEqual(body["limit"], 100)

    async def test_concurrent_calls_may_overshoot_without_corruption(self):
        import asyncio

        await self.add_limit("starter", MeteredService.SMS, 100)
        await self.set_usage(self.tenant_id, MeteredService.SMS, 99)
        client = AsyncMock()
        release = asyncio.Event()
        evaluated = 0

        async def slow_send(to, body):
            nonlocal evaluated
            evaluated += 1
            if evaluated == 2:
                release.set()
            await release.wait()
            return {"sid": f"SM{evaluated}"}

        client.send.side_effect = slow_send
        integration = SmsIntegration(client, self.session_factory)
        request = SmsSendRequest(to="+15550001234", body="hi")
        decisions = []

        async def capture(*args, **kwargs):
            decision = await evaluate_quota(*args, **kwargs)
            decisions.append(decision)
            return decision

        # Both calls read 99/100 before either records: a soft-limit overshoot
        with patch("metering.integrations.base.evaluate_quota", side_effect=capture):
            results = await asyncio.gather(
                integration.run(request, tenant_id=self.tenant_id),
                integration.run(request, tenant_id=self.tenant_id),
            )

        self.assertEqual(len(results), 2)
        self.assertEqual(len(decisions), 2)
        for decision in decisions:
            self.assertTrue(decision.allowed)
            self.assertEqual(decision.current_usage, 99)
            self.assertEqual(decision.remaining, 1)
            self.assertAlmostEqual(decision.percentage_used, 99.0)
        self.assertEqual(await self.event_count(self.tenant_id), 2)
        self.assertEqual(await self.counter(self.tenant_id, MeteredService.SMS), 101)


class TestVoiceAndEmail(LedgerTestCase):

    async def test_voice_records_billed_minutes(self):
        client = AsyncMock()
        client.place_call.return_value = {"sid": "CA1", "duration_seconds": 125}
        integration = VoiceCallIntegration(client, self.session_factory)

        await integration.run(VoiceCallRequest(to="+15550009999", message="Reminder"), tenant_id=self.tenant_id)

        event = (await self.events(self.tenant_id))[0]
        self.assertEqual(event.units_used, 3)
        self.assertEqual(event.estimated_cost_cents, 4)
        self.assertEqual(event.metadata_extra["duration_seconds"], 125.0)

    async def test_email_counts_recipients(self):
        await self.add_limit("starter", MeteredService.TRANSACTIONAL_EMAIL, 2)
        client = AsyncMock()
        integration = TransactionalEmailIntegration(client, self.session_factory)
        request = EmailSendRequest(to=["a@x.io", "b@x.io", "c@x.io"], subject="Invoice", html="<p>Hi</p>")

        with self.assertRaises(QuotaExceededError):
            await integration.run(request, tenant_id=self.tenant_id)
        client.send.assert_not_called()

    async def test_email_records_recipient_count(self):
        client = AsyncMock()
        client.send.return_value = {"id": "msg_1"}
        integration = TransactionalEmailIntegration(client, self.session_factory)
        request = EmailSendRequest(to=["a@x.io", "b@x.io"], subject="Invoice", html="<p>Hi</p>")

        await integration.run(request, tenant_id=self.tenant_id)

        event = (await self.events(self.tenant_id))[0]
        self.assertEqual(event.units_used, 2)
        self.assertEqual(event.estimated_cost_cents, 1)
        self.assertEqual(event.metadata_extra["message_id"], "msg_1")


if __name__ == '__main__':
    unittest.main()

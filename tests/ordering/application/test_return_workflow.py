"""Tests for return requests and their delayed approval and refund."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from ordering.returns.return_request import ReturnStatus
from ordering.returns.workflow import ReturnWorkflow
from payments.payment.refund import PaymentRefunds
from shared.errors import DuplicateReturn, InvalidTransition, ValidationError

APPROVAL = 180.0
REFUND = 5.0


@pytest.fixture
def paid_order(store):
    store.seed("orders", [{"id": "o1", "customer_id": "cust-001", "total_amount": Decimal("45.00")}])
    store.seed(
        "order_items",
        [
            {"id": "i1", "order_id": "o1", "product_id": "P1", "quantity": 2, "unit_price": Decimal("10.00")},
            {"id": "i2", "order_id": "o1", "product_id": "P2", "quantity": 1, "unit_price": Decimal("25.00")},
        ],
    )
    store.seed("payments", [{"id": "pay-1", "order_id": "o1", "amount_paid": Decimal("45.00")}])
    return "o1"


def _workflow(store, scheduler, clock, **kwargs):
    return ReturnWorkflow(
        store,
        scheduler,
        approval_delay=APPROVAL,
        refund_delay=REFUND,
        refunds=PaymentRefunds(store, now=clock),
        now=clock,
        **kwargs,
    )


@pytest.fixture
def workflow(store, scheduler, clock):
    return _workflow(store, scheduler, clock)


class TestRequestReturn:
    async def test_creates_pending_request_for_line_subtotal(self, workflow, paid_order):
        request = await workflow.request_return(paid_order, "P1")

        assert request.status == "PENDING"
        assert request.refund_amount == Decimal("20.00")
        assert request.reason == "Requested via app"

    async def test_keeps_given_reason(self, workflow, paid_order):
        request = await workflow.request_return(paid_order, "P2", "Chipped spout")
        assert request.reason == "Chipped spout"

    @pytest.mark.parametrize("order_id,product_id", [(None, "P1"), ("o1", None), ("", "")])
    async def test_missing_identifiers_write_nothing(self, workflow, paid_order, store, order_id, product_id):
        with pytest.raises(ValidationError):
            await workflow.request_return(order_id, product_id)
        assert store.writes("return_requests") == []

    async def test_product_not_in_order(self, workflow, paid_order, store):
        with pytest.raises(ValidationError) as exc:
            await workflow.request_return(paid_order, "P3")
        assert "product_id" in exc.value.messages
        assert store.writes("return_requests") == []


class TestAutomatedProgress:
    async def test_pending_approved_refunded(self, workflow, paid_order, scheduler):
        await workflow.request_return(paid_order, "P1")

        await scheduler.advance(APPROVAL)
        approved = await workflow.get_latest_return_status(paid_order, "P1")
        assert approved.status == "APPROVED"
        assert approved.refunded_at is None

        await scheduler.advance(REFUND)
        refunded = await workflow.get_latest_return_status(paid_order, "P1")
        assert refunded.status == "REFUNDED"
        assert refunded.refunded_at is not None

    async def test_refund_marks_payment(self, workflow, paid_order, scheduler, store):
        await workflow.request_return(paid_order, "P1")
        await scheduler.run_all()

        [payment] = store.rows("payments")
        assert payment["status"] == "PARTIALLY_REFUNDED"
        assert payment["refunded_amount"] == Decimal("20.00")

    async def test_failed_approval_is_dropped_not_retried(self, workflow, paid_order, scheduler, store):
        await workflow.request_return(paid_order, "P1")
        store.fail("return_requests", "update", times=1)

        await scheduler.run_all()

        assert (await workflow.get_latest_return_status(paid_order, "P1")).status == "PENDING"
        assert scheduler.pending == 0
        assert scheduler.failed == []

    async def test_payment_update_failure_keeps_refund(self, workflow, paid_order, scheduler, store):
        await workflow.request_return(paid_order, "P1")
        store.fail("payments", "update")

        await scheduler.run_all()

        assert (await workflow.get_latest_return_status(paid_order, "P1")).status == "REFUNDED"
        assert store.rows("payments")[0].get("refunded_amount") is None

    async def test_declined_request_is_not_approved(self, workflow, paid_order, scheduler):
        request = await workflow.request_return(paid_order, "P1")
        await workflow.decline_return(request.id)

        await scheduler.run_all()
        assert (await workflow.get_latest_return_status(paid_order, "P1")).status == "DECLINED"


class TestExplicitTransitions:
    async def test_cancel_pending(self, workflow, paid_order):
        request = await workflow.request_return(paid_order, "P1")
        cancelled = await workflow.cancel_return(request.id)
        assert cancelled.status == ReturnStatus.CANCELLED.value

    async def test_cannot_decline_after_approval(self, workflow, paid_order, scheduler):
        request = await workflow.request_return(paid_order, "P1")
        await scheduler.advance(APPROVAL)
        with pytest.raises(InvalidTransition):
            await workflow.decline_return(request.id)


class TestLatestStatus:
    async def test_none_without_requests(self, workflow, paid_order):
        assert await workflow.get_latest_return_status(paid_order, "P1") is None

    async def test_newest_request_wins(self, workflow, paid_order):
        first = await workflow.request_return(paid_order, "P1")
        await workflow.cancel_return(first.id)
        second = await workflow.request_return(paid_order, "P1")

        latest = await workflow.get_latest_return_status(paid_order, "P1")
        assert latest.id == second.id
        assert latest.status == "PENDING"


class TestSingleOpenReturnPolicy:
    async def test_advisory_by_default(self, workflow, paid_order, store):
        await workflow.request_return(paid_order, "P1")
        await workflow.request_return(paid_order, "P1")
        assert len(store.rows("return_requests")) == 2

    async def test_enforced_when_enabled(self, store, scheduler, clock, paid_order):
        workflow = _workflow(store, scheduler, clock, enforce_single_open_return=True)
        first = await workflow.request_return(paid_order, "P1")

        with pytest.raises(DuplicateReturn) as exc:
            await workflow.request_return(paid_order, "P1")
        assert exc.value.return_id == first.id

    async def test_closed_request_allows_a_new_one(self, store, scheduler, clock, paid_order):
        workflow = _workflow(store, scheduler, clock, enforce_single_open_return=True)
        first = await workflow.request_return(paid_order, "P1")
        await workflow.cancel_return(first.id)

        second = await workflow.request_return(paid_order, "P1")
        assert second.id != first.id


class TestConcurrentRefunds:
    async def test_overlapping_refunds_mark_the_whole_order(self, workflow, paid_order, scheduler, store):
        first = await workflow.request_return(paid_order, "P1")
        second = await workflow.request_return(paid_order, "P2")
        await scheduler.advance(APPROVAL)
        store.stall("payments", "update", 0.05)

        await asyncio.gather(workflow.refund(first.id), workflow.refund(second.id))

        [payment] = store.rows("payments")
        assert payment["refunded_amount"] == Decimal("45.00")
        assert payment["status"] == "REFUNDED"

    async def test_refunded_total_counts_only_refunded_requests(self, workflow, paid_order, scheduler):
        first = await workflow.request_return(paid_order, "P1")
        await workflow.request_return(paid_order, "P2")
        await scheduler.advance(APPROVAL)
        await workflow.refund(first.id)

        assert await workflow.refunded_total(paid_order) == Decimal("20.00")


class TestRequestOrderUnderFixedClock:
    @pytest.fixture
    def frozen(self, store, scheduler):
        moment = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
        return ReturnWorkflow(store, scheduler, now=lambda: moment)

    async def test_re_request_after_cancel_is_latest(self, frozen, paid_order):
        first = await frozen.request_return(paid_order, "P1")
        await frozen.cancel_return(first.id)
        second = await frozen.request_return(paid_order, "P1")

        latest = await frozen.get_latest_return_status(paid_order, "P1")

        assert latest.id == second.id
        assert second.requested_at > first.requested_at

    async def test_other_lines_keep_the_clock_time(self, frozen, paid_order):
        await frozen.request_return(paid_order, "P1")
        other = await frozen.request_return(paid_order, "P2")
        assert other.requested_at == datetime(2024, 3, 1, 9, 0, tzinfo=UTC)

"""
Доменные тесты агрегата заказа: создание, оплата, доставка, статусы,
возвраты и журнал доставки. Без I/O.
"""
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from storefront_orders.domain.exceptions import InvalidStatusTransitionError, ValidationError
from storefront_orders.domain.models import Order, OrderStatus, PaymentResult, PriceBreakdown
from storefront_orders.domain.validators import validate_order

from tests.fakes import FakeClock, make_address, make_item, make_order, make_prices


def payment(external_id: str = "px1") -> PaymentResult:
    return PaymentResult(
        external_id=external_id,
        status="COMPLETED",
        update_time="2024-05-01T12:05:00Z",
        payer_email="asha@example.com",
    )


# =============================================================================
# Создание заказа
# =============================================================================

class TestCreateOrder:

    def test_scenario_a_creates_pending_unpaid_order(self, clock):
        order = make_order(clock, items=[make_item(quantity=2, unit_price="500")])

        assert order.status == OrderStatus.PENDING
        assert order.is_paid is False
        assert order.is_delivered is False
        assert order.payment_attempts == 0
        assert order.version == 1
        assert order.total_price == Decimal("1180")
        assert order.tracking_history == ()
        assert order.carrier == "Standard Shipping"

    def test_scenario_b_empty_items_rejected(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, items=[])

    def test_quantity_below_one_rejected(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, items=[make_item(quantity=0)])

    def test_negative_unit_price_rejected(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, items=[make_item(unit_price="-1")])

    def test_negative_price_component_rejected(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, prices=make_prices(items="1200", tax="-20", shipping="0", total="1180"))

    def test_total_must_equal_sum_of_parts_exactly(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, prices=make_prices(items="1000", tax="180", shipping="0", total="1180.01"))

    def test_more_than_two_decimal_places_rejected(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, prices=make_prices(items="1.005", tax="1.005", shipping="0", total="2.010"))
        with pytest.raises(ValidationError):
            make_order(clock, items=[make_item(unit_price="9.999")])

    def test_missing_payment_method_rejected(self, clock):
        with pytest.raises(ValidationError):
            make_order(clock, payment_method="")

    def test_total_invariant_holds_for_random_decompositions(self, clock):
        rng = random.Random(20240501)
        cents = Decimal("0.01")
        for i in range(200):
            items = Decimal(rng.randint(0, 10_000_000)) * cents
            tax = Decimal(rng.randint(0, 1_000_000)) * cents
            shipping = Decimal(rng.randint(0, 100_000)) * cents
            prices = PriceBreakdown(
                items_price=items,
                tax_price=tax,
                shipping_price=shipping,
                total_price=items + tax + shipping,
            )
            order = make_order(clock, order_id=f"ord_{i}", prices=prices)
            assert order.total_price == order.items_price + order.tax_price + order.shipping_price

    def test_shipping_address_is_a_copy(self, clock):
        address = make_address(city="Pune")
        order = make_order(clock, shipping_address=address)

        assert order.shipping_address == address
        with pytest.raises(PydanticValidationError):
            order.shipping_address.city = "Delhi"

    def test_order_snapshot_is_immutable(self, order):
        with pytest.raises(PydanticValidationError):
            order.status = OrderStatus.SHIPPED


# =============================================================================
# Оплата
# =============================================================================

class TestConfirmPayment:

    def test_scenario_c_marks_paid(self, order, clock):
        now = clock.now()
        paid = order.confirm_payment(payment(), now)

        assert paid.is_paid is True
        assert paid.paid_at == now
        assert paid.payment_attempts == 1
        assert paid.payment_result.external_id == "px1"
        assert paid.updated_at == now
        # исходный снимок не меняется
        assert order.is_paid is False

    def test_every_call_counts_an_attempt_and_overwrites_result(self, order, clock):
        paid = order.confirm_payment(payment("px1"), clock.now())
        paid_again = paid.confirm_payment(payment("px2"), clock.now())

        assert paid_again.payment_attempts == 2
        assert paid_again.payment_result.external_id == "px2"

    def test_failed_payment_only_counts_attempt(self, order, clock):
        failed = order.register_failed_payment(clock.now())

        assert failed.payment_attempts == 1
        assert failed.is_paid is False
        assert failed.payment_result is None

    def test_paid_without_payment_result_violates_invariant(self, order, clock):
        broken = order.model_copy(update={"is_paid": True, "paid_at": clock.now()})
        with pytest.raises(ValidationError):
            validate_order(broken)


# =============================================================================
# Доставка и статусы
# =============================================================================

class TestDeliveryAndStatus:

    def test_confirm_delivery_does_not_require_payment(self, order, clock):
        now = clock.now()
        delivered = order.confirm_delivery(now)

        assert delivered.is_delivered is True
        assert delivered.delivered_at == now
        assert delivered.is_paid is False
        # из Pending в Delivered по таблице перейти нельзя
        assert delivered.status == OrderStatus.PENDING

    def test_confirm_delivery_of_shipped_order_moves_status(self, order, clock):
        shipped = (
            order.change_status(OrderStatus.PROCESSING, clock.now())
            .change_status(OrderStatus.SHIPPED, clock.now())
        )
        delivered = shipped.confirm_delivery(clock.now())

        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.is_delivered is True

    def test_happy_path_to_completed(self, order, clock):
        result = order.confirm_payment(payment(), clock.now())
        for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED):
            result = result.change_status(status, clock.now())

        assert result.status == OrderStatus.COMPLETED
        assert result.is_delivered is True
        assert result.delivered_at is not None

    def test_skipping_states_is_rejected(self, order, clock):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            order.change_status(OrderStatus.SHIPPED, clock.now())

        assert exc_info.value.current == "Pending"
        assert exc_info.value.requested == "Shipped"

    def test_invalid_transition_is_a_validation_error(self, order, clock):
        with pytest.raises(ValidationError):
            order.change_status(OrderStatus.COMPLETED, clock.now())

    def test_terminal_status_cannot_change(self, order, clock):
        cancelled = order.change_status(OrderStatus.CANCELLED, clock.now())
        with pytest.raises(InvalidStatusTransitionError):
            cancelled.change_status(OrderStatus.PROCESSING, clock.now())

    def test_completing_unpaid_order_rejected(self, order, clock):
        delivered = (
            order.change_status(OrderStatus.PROCESSING, clock.now())
            .change_status(OrderStatus.SHIPPED, clock.now())
            .change_status(OrderStatus.DELIVERED, clock.now())
        )
        with pytest.raises(ValidationError):
            delivered.change_status(OrderStatus.COMPLETED, clock.now())

    def test_delivered_status_sets_delivery_flags(self, order, clock):
        shipped = (
            order.change_status(OrderStatus.PROCESSING, clock.now())
            .change_status(OrderStatus.SHIPPED, clock.now())
        )
        now = clock.now()
        delivered = shipped.change_status(OrderStatus.DELIVERED, now)

        assert delivered.is_delivered is True
        assert delivered.delivered_at == now

    def test_shipped_accepts_carrier_and_estimate(self, order, clock):
        eta = datetime(2024, 5, 6, tzinfo=timezone.utc)
        shipped = (
            order.change_status(OrderStatus.PROCESSING, clock.now())
            .change_status(OrderStatus.SHIPPED, clock.now(), carrier="BlueDart", estimated_delivery=eta)
        )

        assert shipped.carrier == "BlueDart"
        assert shipped.estimated_delivery == eta


# =============================================================================
# Возвраты
# =============================================================================

class TestRefunds:

    def test_scenario_d_refund_above_total_rejected(self, order, clock):
        with pytest.raises(ValidationError):
            order.record_refund(Decimal("2000"), "rf1", "pending", clock.now())

    def test_negative_refund_rejected(self, order, clock):
        with pytest.raises(ValidationError):
            order.record_refund(Decimal("-1"), "rf1", "pending", clock.now())

    def test_full_refund_allowed(self, order, clock):
        now = clock.now()
        refunded = order.record_refund(Decimal("1180"), "rf1", "pending", now, notes={"reason": "damaged"})

        assert refunded.refund.amount == Decimal("1180")
        assert refunded.refund.created_at == now
        assert refunded.refund.processed_at is None
        assert refunded.refund.notes == {"reason": "damaged"}
        # статус заказа не меняется автоматически
        assert refunded.status == OrderStatus.PENDING

    def test_refund_with_sub_cent_amount_rejected(self, order, clock):
        with pytest.raises(ValidationError):
            order.record_refund(Decimal("10.001"), "rf1", "pending", clock.now())

    def test_new_refund_replaces_previous(self, order, clock):
        first = order.record_refund(Decimal("100"), "rf1", "pending", clock.now())
        second = first.record_refund(Decimal("200"), "rf2", "pending", clock.now())

        assert second.refund.external_id == "rf2"
        assert second.refund.amount == Decimal("200")

    def test_mark_refund_processed(self, order, clock):
        refunded = order.record_refund(Decimal("100"), "rf1", "pending", clock.now())
        clock.advance(hours=1)
        now = clock.now()
        processed = refunded.mark_refund_processed(now)

        assert processed.refund.processed_at == now
        assert processed.refund.external_id == "rf1"

    def test_mark_refund_processed_without_refund(self, order, clock):
        with pytest.raises(ValidationError):
            order.mark_refund_processed(clock.now())


# =============================================================================
# Журнал доставки
# =============================================================================

class TestTrackingHistory:

    def test_scenario_e_events_kept_in_call_order(self):
        clock = FakeClock(step=timedelta(minutes=5))
        order = make_order(clock)

        order = order.add_tracking_event("Shipped", clock.now(), location="Mumbai")
        order = order.add_tracking_event("Delivered", clock.now(), location="Delhi")

        history = order.tracking_history
        assert len(history) == 2
        assert [e.status for e in history] == ["Shipped", "Delivered"]
        assert [e.location for e in history] == ["Mumbai", "Delhi"]
        assert history[1].timestamp >= history[0].timestamp

    def test_appending_n_events_yields_n_entries(self, order, clock):
        for i in range(25):
            order = order.add_tracking_event(f"Checkpoint {i}", clock.now())

        assert [e.status for e in order.tracking_history] == [f"Checkpoint {i}" for i in range(25)]

    def test_event_accepted_regardless_of_status(self, order, clock):
        cancelled = order.change_status(OrderStatus.CANCELLED, clock.now())
        updated = cancelled.add_tracking_event("Returned to sender", clock.now())

        assert updated.tracking_history[-1].status == "Returned to sender"

    def test_previous_snapshot_not_changed(self, order, clock):
        updated = order.add_tracking_event("Shipped", clock.now())

        assert len(order.tracking_history) == 0
        assert len(updated.tracking_history) == 1

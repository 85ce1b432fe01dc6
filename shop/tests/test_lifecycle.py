from datetime import timedelta

from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from shop.exceptions import InvalidRequest, InvalidTransition, NotFound, PaymentVerificationFailed
from shop.models import Order, Return
from shop.services.lifecycle import (
    bulk_update_status,
    can_transition,
    cleanup_orders,
    create_return,
    list_returns,
    update_order_status,
    update_return_status,
    update_status_by_order_number,
)
from shop.tests.helpers import make_customer, make_order, make_product


class CanTransitionTests(SimpleTestCase):
    def test_forward_moves_are_allowed(self) -> None:
        self.assertTrue(can_transition("pending", "confirmed"))
        self.assertTrue(can_transition("pending_payment", "confirmed"))
        self.assertTrue(can_transition("confirmed", "shipped"))
        self.assertTrue(can_transition("shipped", "delivered"))

    def test_backward_moves_are_rejected(self) -> None:
        self.assertFalse(can_transition("shipped", "processing"))
        self.assertFalse(can_transition("confirmed", "pending"))

    def test_cancel_from_any_open_status(self) -> None:
        for status in ("pending", "pending_payment", "confirmed", "processing", "shipped"):
            self.assertTrue(can_transition(status, "cancelled"), status)

    def test_terminal_statuses_are_final(self) -> None:
        self.assertFalse(can_transition("delivered", "cancelled"))
        self.assertFalse(can_transition("cancelled", "confirmed"))

    def test_same_status_is_a_no_op(self) -> None:
        self.assertTrue(can_transition("delivered", "delivered"))


class UpdateOrderStatusTests(TestCase):
    def setUp(self) -> None:
        self.customer = make_customer()
        self.order = make_order(customer=self.customer, status=Order.Status.PENDING.value)

    def test_valid_status_updates_row(self) -> None:
        before = self.order.updated_at

        updated = update_order_status(self.order.pk, "processing", tracking_number="TRK-9")

        self.order.refresh_from_db()
        self.assertEqual(updated.status, "processing")
        self.assertEqual(self.order.status, "processing")
        self.assertEqual(self.order.tracking_number, "TRK-9")
        self.assertGreaterEqual(self.order.updated_at, before)

    def test_invalid_status_leaves_order_unchanged(self) -> None:
        with self.assertRaises(InvalidRequest):
            update_order_status(self.order.pk, "teleported")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")

    def test_missing_status_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            update_order_status(self.order.pk, "")

    def test_unknown_order_raises_not_found(self) -> None:
        with self.assertRaises(NotFound):
            update_order_status(999999, "confirmed")

    def test_terminal_order_cannot_be_reopened(self) -> None:
        delivered = make_order(customer=self.customer, status=Order.Status.DELIVERED.value)

        with self.assertRaises(InvalidTransition):
            update_order_status(delivered.pk, "processing")

        delivered.refresh_from_db()
        self.assertEqual(delivered.status, "delivered")

    def test_non_string_tracking_number_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            update_order_status(self.order.pk, "confirmed", tracking_number=["TRK-1"])

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")

    def test_overlong_tracking_number_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            update_order_status(self.order.pk, "confirmed", tracking_number="T" * 65)

    def test_awaiting_payment_keeps_submission_tracking_number(self) -> None:
        awaiting = make_order(status="pending_payment", tracking_number="FS42-1")

        with self.assertRaises(InvalidRequest):
            update_order_status(awaiting.pk, "pending_payment", tracking_number="DHL-778")

        awaiting.refresh_from_db()
        self.assertEqual(awaiting.tracking_number, "FS42-1")

    def test_tracking_number_cannot_join_another_submission(self) -> None:
        make_order(status="pending_payment", tracking_number="FS42-1")

        for value in ("FS42-9", "FS42-1-extra", "FS42-1"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidRequest):
                    update_order_status(self.order.pk, "confirmed", tracking_number=value)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")
        self.assertEqual(update_status_by_order_number("FS42", "cancelled"), 1)

    def test_carrier_tracking_numbers_may_share_a_dash_prefix(self) -> None:
        make_order(status="shipped", tracking_number="DHL-100")

        updated = update_order_status(self.order.pk, "shipped", tracking_number="DHL-200")

        self.assertEqual(updated.tracking_number, "DHL-200")

    def test_unchanged_tracking_number_is_accepted(self) -> None:
        awaiting = make_order(status="pending", tracking_number="FS43-1")

        updated = update_order_status(awaiting.pk, "pending", tracking_number="FS43-1")

        self.assertEqual(updated.tracking_number, "FS43-1")

    def test_cancellation_keeps_customer_counters(self) -> None:
        self.customer.total_orders = 1
        self.customer.total_spent_cents = self.order.total_amount_cents
        self.customer.save()

        update_order_status(self.order.pk, "cancelled")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.total_orders, 1)
        self.assertEqual(self.customer.total_spent_cents, self.order.total_amount_cents)


class BulkUpdateStatusTests(TestCase):
    def setUp(self) -> None:
        self.first = make_order(status=Order.Status.CONFIRMED.value)
        self.second = make_order(status=Order.Status.PROCESSING.value)
        self.untouched = make_order(status=Order.Status.CONFIRMED.value)

    def test_updates_only_listed_orders(self) -> None:
        untouched_updated_at = self.untouched.updated_at

        updated = bulk_update_status([self.first.pk, self.second.pk], "shipped")

        self.assertEqual(updated, 2)
        for order in (self.first, self.second):
            order.refresh_from_db()
            self.assertEqual(order.status, "shipped")
        self.untouched.refresh_from_db()
        self.assertEqual(self.untouched.status, "confirmed")
        self.assertEqual(self.untouched.updated_at, untouched_updated_at)

    def test_string_ids_are_accepted(self) -> None:
        self.assertEqual(bulk_update_status([str(self.first.pk)], "processing"), 1)

    def test_empty_list_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            bulk_update_status([], "shipped")

    def test_non_numeric_id_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            bulk_update_status([self.first.pk, "abc"], "shipped")

    def test_non_ascii_digit_id_rejected(self) -> None:
        for value in ("²", "-1", -1):
            with self.subTest(value=value):
                with self.assertRaises(InvalidRequest):
                    bulk_update_status([value], "shipped")

    def test_invalid_status_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            bulk_update_status([self.first.pk], "lost")

    def test_missing_order_updates_nothing(self) -> None:
        with self.assertRaises(NotFound):
            bulk_update_status([self.first.pk, 999999], "shipped")

        self.first.refresh_from_db()
        self.assertEqual(self.first.status, "confirmed")

    def test_one_forbidden_transition_blocks_the_batch(self) -> None:
        delivered = make_order(status=Order.Status.DELIVERED.value)

        with self.assertRaises(InvalidTransition):
            bulk_update_status([self.first.pk, delivered.pk], "cancelled")

        self.first.refresh_from_db()
        self.assertEqual(self.first.status, "confirmed")


class UpdateByOrderNumberTests(TestCase):
    def test_prefix_match_does_not_leak_into_longer_numbers(self) -> None:
        fs1 = [make_order(status="pending", tracking_number=f"FS1-{n}") for n in (1, 2)]
        fs10 = make_order(status="pending", tracking_number="FS10-1")

        updated = update_status_by_order_number("FS1", "confirmed", payment_reference="ref-1")

        self.assertEqual(updated, 2)
        for order in fs1:
            order.refresh_from_db()
            self.assertEqual(order.status, "confirmed")
            self.assertEqual(order.payment_reference, "ref-1")
        fs10.refresh_from_db()
        self.assertEqual(fs10.status, "pending")
        self.assertEqual(fs10.payment_reference, "")

    def test_payment_must_cover_submission_total(self) -> None:
        lines = [make_order(status="pending_payment", amount=5100, tracking_number=f"FS8-{n}") for n in (1, 2)]

        with self.assertRaises(PaymentVerificationFailed):
            update_status_by_order_number("FS8", "confirmed", payment_reference="ref-8", paid_amount_cents=10199)

        for order in lines:
            order.refresh_from_db()
            self.assertEqual(order.status, "pending_payment")
            self.assertEqual(order.payment_reference, "")

        updated = update_status_by_order_number(
            "FS8", "confirmed", payment_reference="ref-8", paid_amount_cents=10200
        )
        self.assertEqual(updated, 2)

    def test_payment_reference_cannot_be_reused(self) -> None:
        first = make_order(status="confirmed", tracking_number="FS20-1")
        first.payment_reference = "ref-20"
        first.save()
        second = make_order(status="pending_payment", tracking_number="FS21-1")

        with self.assertRaises(PaymentVerificationFailed):
            update_status_by_order_number("FS21", "confirmed", payment_reference="ref-20", paid_amount_cents=10**6)

        second.refresh_from_db()
        self.assertEqual(second.status, "pending_payment")

    def test_same_submission_may_repeat_its_reference(self) -> None:
        order = make_order(status="confirmed", tracking_number="FS22-1")
        order.payment_reference = "ref-22"
        order.save()

        self.assertEqual(update_status_by_order_number("FS22", "confirmed", payment_reference="ref-22"), 1)

    def test_unknown_order_number_raises_not_found(self) -> None:
        with self.assertRaises(NotFound):
            update_status_by_order_number("FS404", "cancelled")

    def test_blank_order_number_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            update_status_by_order_number("  ", "cancelled")


class TrackingNumberConstraintTests(TestCase):
    def test_duplicate_tracking_numbers_are_rejected(self) -> None:
        make_order(tracking_number="FS30-1")

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_order(tracking_number="FS30-1")

    def test_blank_tracking_numbers_may_repeat(self) -> None:
        make_order()
        make_order()

        self.assertEqual(Order.objects.filter(tracking_number="").count(), 2)


class CleanupOrdersTests(TestCase):
    def test_deletes_only_old_orders_in_status(self) -> None:
        old = timezone.now() - timedelta(days=400)
        stale = make_order(status="delivered", created_at=old)
        recent = make_order(status="delivered")
        old_cancelled = make_order(status="cancelled", created_at=old)

        deleted = cleanup_orders(older_than_days=365)

        self.assertEqual(deleted, 1)
        self.assertFalse(Order.objects.filter(pk=stale.pk).exists())
        self.assertTrue(Order.objects.filter(pk=recent.pk).exists())
        self.assertTrue(Order.objects.filter(pk=old_cancelled.pk).exists())

    def test_orders_with_returns_are_kept(self) -> None:
        old = make_order(status="delivered", created_at=timezone.now() - timedelta(days=400))
        Return.objects.create(order=old, reason="Damaged")

        self.assertEqual(cleanup_orders(older_than_days=365), 0)
        self.assertTrue(Order.objects.filter(pk=old.pk).exists())

    def test_negative_age_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            cleanup_orders(older_than_days=-1)


class ReturnTests(TestCase):
    def setUp(self) -> None:
        self.product = make_product("Barite")
        self.order = make_order(customer=make_customer(), product=self.product, status="delivered")

    def test_create_return_starts_pending(self) -> None:
        item = create_return(self.order.pk, "  Wrong grade delivered ", refund_amount_cents=500)

        self.assertEqual(item.status, "pending")
        self.assertEqual(item.reason, "Wrong grade delivered")
        self.assertEqual(item.refund_amount_cents, 500)
        self.assertEqual([r.pk for r in list_returns()], [item.pk])

    def test_create_return_requires_reason(self) -> None:
        with self.assertRaises(InvalidRequest):
            create_return(self.order.pk, " ")

    def test_create_return_rejects_negative_refund(self) -> None:
        with self.assertRaises(InvalidRequest):
            create_return(self.order.pk, "Damaged", refund_amount_cents=-5)

    def test_create_return_for_unknown_order(self) -> None:
        with self.assertRaises(NotFound):
            create_return(999999, "Damaged")

    def test_update_return_status(self) -> None:
        item = create_return(self.order.pk, "Damaged")

        update_return_status(item.pk, "approved")

        item.refresh_from_db()
        self.assertEqual(item.status, "approved")

    def test_update_return_status_rejects_unknown_value(self) -> None:
        item = create_return(self.order.pk, "Damaged")

        with self.assertRaises(InvalidRequest):
            update_return_status(item.pk, "lost")

    def test_update_unknown_return(self) -> None:
        with self.assertRaises(NotFound):
            update_return_status(999999, "approved")

from datetime import timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from orders.models import Order
from orders.services import scheduler
from orders.services.cleanup import run_scheduled_sweep, sweep_abandoned_orders
from orders.services.order_store import mark_abandoned
from orders.tests.helpers import make_order, make_prescription, make_quote


class SweepAbandonedOrdersTests(TestCase):
    """
    GUARANTEES:
    - Only PENDING_PAYMENT orders older than the threshold are abandoned
    - One failing order does not stop the batch
    - Dry runs write nothing
    """

    def setUp(self):
        self.quote = make_quote(make_prescription())
        self.old = make_order(self.quote, age_minutes=10)
        self.recent = make_order(self.quote, age_minutes=4)
        self.fresh = make_order(self.quote, age_minutes=1)

    def _states(self):
        return {
            o.id: o.state
            for o in Order.objects.filter(id__in=[self.old.id, self.recent.id, self.fresh.id])
        }

    def test_only_stale_orders_are_abandoned(self):
        result = sweep_abandoned_orders(age_minutes=5)

        self.assertEqual(result.found, 1)
        self.assertEqual(result.succeeded, 1)
        states = self._states()
        self.assertEqual(states[self.old.id], Order.STATE_ABANDONED)
        self.assertEqual(states[self.recent.id], Order.STATE_PENDING_PAYMENT)
        self.assertEqual(states[self.fresh.id], Order.STATE_PENDING_PAYMENT)

    @override_settings(ORDERS_PENDING_AGE_MINUTES=3)
    def test_threshold_comes_from_settings(self):
        result = sweep_abandoned_orders()

        self.assertEqual(result.succeeded, 2)
        self.assertEqual(self._states()[self.fresh.id], Order.STATE_PENDING_PAYMENT)

    def test_paid_orders_are_never_swept(self):
        Order.objects.filter(id=self.old.id).update(state=Order.STATE_PAID, payment_id="1")

        result = sweep_abandoned_orders(age_minutes=5)

        self.assertEqual(result.found, 0)
        self.assertEqual(self._states()[self.old.id], Order.STATE_PAID)

    def test_one_failure_does_not_stop_the_batch(self):
        Order.objects.filter(id=self.recent.id).update(
            created_at=self.old.created_at - timedelta(minutes=1)
        )
        failing_id = str(self.old.id)

        def flaky(*, order_id):
            if order_id == failing_id:
                raise DatabaseError("row vanished")
            return mark_abandoned(order_id=order_id)

        with mock.patch("orders.services.cleanup.mark_abandoned", side_effect=flaky):
            result = sweep_abandoned_orders(age_minutes=5)

        self.assertEqual(result.found, 2)
        self.assertEqual(result.failed, 1)
        self.assertEqual(result.succeeded, 1)
        states = self._states()
        self.assertEqual(states[self.old.id], Order.STATE_PENDING_PAYMENT)
        self.assertEqual(states[self.recent.id], Order.STATE_ABANDONED)

    def test_order_that_left_pending_is_skipped(self):
        with mock.patch("orders.services.cleanup.mark_abandoned", return_value=False):
            result = sweep_abandoned_orders(age_minutes=5)

        self.assertEqual(result.skipped, 1)
        self.assertEqual(result.succeeded, 0)

    def test_dry_run_changes_nothing(self):
        result = sweep_abandoned_orders(age_minutes=5, dry_run=True)

        self.assertTrue(result.dry_run)
        self.assertEqual(result.found, 1)
        self.assertEqual(result.succeeded, 0)
        self.assertEqual(self._states()[self.old.id], Order.STATE_PENDING_PAYMENT)

    def test_scheduled_run_never_raises(self):
        with mock.patch(
            "orders.services.cleanup.find_stale_pending",
            side_effect=DatabaseError("connection refused"),
        ):
            self.assertIsNone(run_scheduled_sweep())


class SweepCommandTests(TestCase):
    def setUp(self):
        self.order = make_order(make_quote(make_prescription()), age_minutes=10)

    def test_command_abandons_stale_orders(self):
        out = StringIO()
        call_command("sweep_abandoned_orders", "--age-minutes", "5", stdout=out)

        self.order.refresh_from_db()
        self.assertEqual(self.order.state, Order.STATE_ABANDONED)
        self.assertIn("found=1 abandoned=1", out.getvalue())

    def test_command_dry_run(self):
        out = StringIO()
        call_command("sweep_abandoned_orders", "--dry-run", stdout=out)

        self.order.refresh_from_db()
        self.assertEqual(self.order.state, Order.STATE_PENDING_PAYMENT)
        self.assertIn("DRY RUN", out.getvalue())

    def test_command_rejects_bad_age(self):
        with self.assertRaises(CommandError):
            call_command("sweep_abandoned_orders", "--age-minutes", "0", stdout=StringIO())


class SchedulerTests(TestCase):
    def test_disabled_scheduler_is_not_started(self):
        with override_settings(ORDERS_CLEANUP_ENABLED=False):
            self.assertIsNone(scheduler.start_scheduler_if_enabled())
        self.assertFalse(scheduler.scheduler_running())

    @override_settings(ORDERS_CLEANUP_INTERVAL_MS=120_000)
    def test_jobs_are_registered_on_the_interval(self):
        sched = scheduler.build_scheduler()

        jobs = {job.id: job for job in sched.get_jobs()}
        self.assertEqual(set(jobs), {scheduler.SWEEP_JOB_ID, scheduler.LOCK_PURGE_JOB_ID})
        sweep = jobs[scheduler.SWEEP_JOB_ID]
        self.assertEqual(sweep.trigger.interval, timedelta(minutes=2))
        self.assertEqual(sweep.max_instances, 1)
        self.assertTrue(sweep.coalesce)


class OrderApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.order = make_order(make_quote(make_prescription()), age_minutes=10)

    def test_order_status_is_public(self):
        res = self.client.get(reverse("orders:order-status", args=[self.order.id]))

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["state"], Order.STATE_PENDING_PAYMENT)
        self.assertEqual(res.data["price"], "1500.00")

    def test_unknown_order_is_404(self):
        res = self.client.get(
            reverse("orders:order-status", args=["00000000-0000-0000-0000-000000000000"])
        )

        self.assertEqual(res.status_code, 404)

    def test_sweep_requires_admin(self):
        user = get_user_model().objects.create_user(username="clerk", password="pass12345")
        self.client.force_authenticate(user=user)

        res = self.client.post(reverse("orders:order-sweep"), {}, format="json")

        self.assertEqual(res.status_code, 403)
        self.order.refresh_from_db()
        self.assertEqual(self.order.state, Order.STATE_PENDING_PAYMENT)

    def test_admin_can_sweep_now(self):
        admin = get_user_model().objects.create_superuser(
            username="admin", email="admin@example.test", password="pass12345"
        )
        self.client.force_authenticate(user=admin)

        res = self.client.post(reverse("orders:order-sweep"), {"age_minutes": 5}, format="json")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["found"], 1)
        self.assertEqual(res.data["succeeded"], 1)
        self.order.refresh_from_db()
        self.assertEqual(self.order.state, Order.STATE_ABANDONED)

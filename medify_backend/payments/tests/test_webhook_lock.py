from unittest import mock

from django.db import DatabaseError
from django.test import TestCase, override_settings

from payments.models import WebhookLock
from payments.services import webhook_lock


class WebhookLockTests(TestCase):
    """
    GUARANTEES:
    - One holder per payment id until release or TTL expiry
    - An expired lock is taken over (renewed) by the next caller
    - Release only drops the caller's own lock
    - Database failures follow WEBHOOK_LOCK_FAIL_OPEN
    """

    def setUp(self):
        self.now = 1_700_000_000
        patcher = mock.patch("payments.services.webhook_lock._now_epoch", side_effect=lambda: self.now)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_first_acquire_wins_second_is_refused(self):
        self.assertTrue(webhook_lock.try_acquire("123", owner_token="a"))
        self.assertFalse(webhook_lock.try_acquire("123", owner_token="b"))

        lock = WebhookLock.objects.get(payment_id="123")
        self.assertEqual(lock.owner_token, "a")
        self.assertEqual(lock.acquired_at, self.now)

    def test_release_allows_reacquire(self):
        webhook_lock.try_acquire("123", owner_token="a")

        webhook_lock.release("123", owner_token="a")

        self.assertFalse(WebhookLock.objects.filter(payment_id="123").exists())
        self.assertTrue(webhook_lock.try_acquire("123", owner_token="b"))

    def test_locks_are_per_payment(self):
        self.assertTrue(webhook_lock.try_acquire("123"))
        self.assertTrue(webhook_lock.try_acquire("456"))

    def test_lock_held_until_ttl(self):
        webhook_lock.try_acquire("123", owner_token="a")

        self.now += 299
        self.assertFalse(webhook_lock.try_acquire("123", owner_token="b"))
        self.assertTrue(webhook_lock.is_locked("123"))

    def test_expired_lock_is_renewed(self):
        webhook_lock.try_acquire("123", owner_token="a")

        self.now += 301
        self.assertFalse(webhook_lock.is_locked("123"))
        self.assertTrue(webhook_lock.try_acquire("123", owner_token="b"))

        lock = WebhookLock.objects.get(payment_id="123")
        self.assertEqual(lock.owner_token, "b")
        self.assertEqual(lock.acquired_at, self.now)

    @override_settings(WEBHOOK_LOCK_TTL_SECONDS=10)
    def test_ttl_is_configurable(self):
        webhook_lock.try_acquire("123")

        self.now += 11
        self.assertTrue(webhook_lock.try_acquire("123"))

    def test_release_by_stale_owner_keeps_new_lock(self):
        webhook_lock.try_acquire("123", owner_token="a")
        self.now += 301
        webhook_lock.try_acquire("123", owner_token="b")

        webhook_lock.release("123", owner_token="a")

        self.assertEqual(WebhookLock.objects.get(payment_id="123").owner_token, "b")

    def test_release_without_lock_is_noop(self):
        webhook_lock.release("missing", owner_token="a")
        webhook_lock.release("", owner_token="a")

        self.assertEqual(WebhookLock.objects.count(), 0)

    def test_empty_payment_id_is_never_locked(self):
        self.assertFalse(webhook_lock.try_acquire(""))
        self.assertFalse(webhook_lock.try_acquire(None))

    def test_database_failure_fails_open_by_default(self):
        with mock.patch(
            "payments.services.webhook_lock.run_in_transaction",
            side_effect=DatabaseError("db down"),
        ):
            self.assertTrue(webhook_lock.try_acquire("123"))

    @override_settings(WEBHOOK_LOCK_FAIL_OPEN=False)
    def test_database_failure_fails_closed_when_configured(self):
        with mock.patch(
            "payments.services.webhook_lock.run_in_transaction",
            side_effect=DatabaseError("db down"),
        ):
            self.assertFalse(webhook_lock.try_acquire("123"))

    def test_concurrent_insert_loses(self):
        real_create = WebhookLock.objects.create

        def rival_inserts_first(**kwargs):
            # Another worker commits the same payment id between our SELECT and INSERT.
            WebhookLock(
                payment_id=kwargs["payment_id"], acquired_at=kwargs["acquired_at"], owner_token="rival"
            ).save(force_insert=True)
            return real_create(**kwargs)

        with mock.patch.object(WebhookLock.objects, "create", side_effect=rival_inserts_first) as create:
            self.assertFalse(webhook_lock.try_acquire("123", owner_token="mine"))

        create.assert_called_once()
        self.assertFalse(WebhookLock.objects.filter(owner_token="mine").exists())
        # The failed attempt rolled back cleanly; the connection is still usable.
        self.assertTrue(webhook_lock.try_acquire("123", owner_token="next"))

    def test_purge_removes_only_expired_locks(self):
        webhook_lock.try_acquire("old")
        self.now += 400
        webhook_lock.try_acquire("new")

        self.assertEqual(webhook_lock.purge_expired_locks(), 1)
        self.assertEqual(list(WebhookLock.objects.values_list("payment_id", flat=True)), ["new"])

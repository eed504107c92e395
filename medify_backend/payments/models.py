# payments/models.py

from django.db import models


class WebhookLock(models.Model):
    """
    Mutual-exclusion record for webhook processing of one payment id.

    - Row present and younger than WEBHOOK_LOCK_TTL_SECONDS: locked
    - Row missing or older than the TTL: unlocked (the next acquirer
      overwrites it)

    Only payments.services.webhook_lock touches this table.
    """

    payment_id = models.CharField(max_length=64, primary_key=True)

    # Epoch seconds; staleness is computed from this, never from memory.
    acquired_at = models.BigIntegerField(db_index=True)
    owner_token = models.CharField(max_length=64)

    class Meta:
        verbose_name = "Webhook lock"
        verbose_name_plural = "Webhook locks"

    def __str__(self):
        return f"{self.payment_id} @ {self.acquired_at}"

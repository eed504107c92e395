from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="WebhookLock",
            fields=[
                (
                    "payment_id",
                    models.CharField(max_length=64, primary_key=True, serialize=False),
                ),
                ("acquired_at", models.BigIntegerField(db_index=True)),
                ("owner_token", models.CharField(max_length=64)),
            ],
            options={
                "verbose_name": "Webhook lock",
                "verbose_name_plural": "Webhook locks",
            },
        ),
    ]

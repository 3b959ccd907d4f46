from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("authentication", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="profile",
            name="push_token",
            field=models.TextField(
                blank=True,
                help_text="Push delivery address (Web Push subscription JSON, Expo or FCM token)",
            ),
        ),
        migrations.AlterField(
            model_name="profile",
            name="push_token_type",
            field=models.CharField(
                blank=True,
                choices=[("web", "Web Push"), ("expo", "Expo (mobile)"), ("fcm", "Firebase Cloud Messaging")],
                help_text="Channel the push token belongs to",
                max_length=10,
            ),
        ),
    ]

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("mediajobs", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="mediajob",
            name="thumbnail_url",
            field=models.URLField(blank=True, max_length=1024, null=True),
        ),
    ]

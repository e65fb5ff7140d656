# Generated manually for file records

from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    dependencies = [
        ('airdrop', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('owner_id', models.CharField(db_index=True, max_length=255)),
                ('storage_path', models.CharField(max_length=512, unique=True)),
                ('display_name', models.CharField(max_length=255)),
                ('content_type', models.CharField(default='application/octet-stream', max_length=255)),
                ('size_bytes', models.PositiveBigIntegerField()),
                ('description', models.TextField(blank=True, null=True)),
                ('is_favorite', models.BooleanField(default=False)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('share_token', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                'db_table': 'files',
                'indexes': [
                    models.Index(fields=['owner_id', 'created_at'], name='files_owner_created_idx'),
                ],
            },
        ),
    ]

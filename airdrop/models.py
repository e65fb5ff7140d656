from django.contrib.auth.models import AbstractUser
from django.db import models
import uuid


class User(AbstractUser):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def owner_id(self):
        """Opaque identifier used to scope storage paths and file records"""
        return str(self.pk)

    def __str__(self):
        return self.username


class FileRecord(models.Model):
    """
    Metadata for one uploaded blob. The blob lives in object storage at
    storage_path, which is always prefixed by "{owner_id}/".
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner_id = models.CharField(max_length=255, db_index=True)
    storage_path = models.CharField(max_length=512, unique=True)
    display_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=255, default='application/octet-stream')
    size_bytes = models.PositiveBigIntegerField()
    description = models.TextField(blank=True, null=True)
    is_favorite = models.BooleanField(default=False)
    tags = models.JSONField(default=list, blank=True)
    share_token = models.CharField(max_length=64, unique=True, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'files'
        indexes = [
            models.Index(fields=['owner_id', 'created_at'], name='files_owner_created_idx'),
        ]

    def __str__(self):
        return f"{self.owner_id}: {self.display_name}"

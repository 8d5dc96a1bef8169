"""
Abstract base for lifecycle records.

Timestamps are set by the services, not by auto_now: a full-record
replace must carry exactly the updated_at the workflow decided on.
"""

import uuid

from django.db import models
from django.utils import timezone


class BaseModel(models.Model):
    id = models.UUIDField(
        default=uuid.uuid4,
        primary_key=True,
        editable=False,
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
    )

    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True

    def touch(self) -> None:
        self.updated_at = timezone.now()

# utils/models.py

"""
Abstract base for every school record.

UUID primary keys keep sequential ids out of the API. Timestamps and the
acting user/IP are stamped on each save from utils.context, so rows written
by signal handlers carry the actor of the request that triggered them.
"""

from django.db import models
from django.utils import timezone
import uuid

from utils.context import get_request_context

AUDIT_FIELDS = ('updated_at', 'updated_by_id', 'updated_from_ip')


class BaseModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField("Created At", db_index=True, editable=False)
    updated_at = models.DateTimeField("Updated At", db_index=True, editable=False)

    # plain ids, so the audit columns outlive deleted users
    created_by_id = models.CharField("Created By", max_length=50, null=True, blank=True)
    updated_by_id = models.CharField("Updated By", max_length=50, null=True, blank=True)
    created_from_ip = models.GenericIPAddressField("Created From IP", null=True, blank=True)
    updated_from_ip = models.GenericIPAddressField("Updated From IP", null=True, blank=True)

    class Meta:
        abstract = True

    def _stamp(self, creating):
        now = timezone.now()
        if creating:
            self.created_at = self.created_at or now
        self.updated_at = now

        actor = get_request_context() or {}
        user_id = str(actor['user'].pk) if actor.get('user') else None
        ip_address = actor.get('ip_address')

        if creating:
            self.created_by_id = self.created_by_id or user_id
            self.created_from_ip = self.created_from_ip or ip_address
        if user_id:
            self.updated_by_id = user_id
        if ip_address:
            self.updated_from_ip = ip_address

    def save(self, *args, **kwargs):
        creating = self._state.adding
        self._stamp(creating)

        update_fields = kwargs.get('update_fields')
        if update_fields is not None and not creating:
            kwargs['update_fields'] = set(update_fields).union(AUDIT_FIELDS)

        return super().save(*args, **kwargs)

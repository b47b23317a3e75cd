# core/signals.py

"""
Campus Signal Handlers

Deactivating a campus takes its classes, teaching assignments, teachers and
students out of service with it.
"""

from django.db.models.signals import pre_save, post_save
from django.dispatch import receiver
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)


@receiver(pre_save, sender='core.Campus')
def campus_pre_save(sender, instance, raw=False, **kwargs):
    """Remember whether the campus was active before this save"""
    if raw or instance._state.adding:
        instance._was_active = None
        return
    instance._was_active = (
        sender.objects.filter(pk=instance.pk).values_list('is_active', flat=True).first()
    )


@receiver(post_save, sender='core.Campus')
def campus_post_save(sender, instance, created, raw=False, **kwargs):
    """Cascade a deactivation to classes and campus members"""
    if raw or created:
        return

    if instance.is_active or getattr(instance, '_was_active', None) is False:
        return

    from django.contrib.auth import get_user_model
    from academics.models import Class, TeachingAssignment

    User = get_user_model()

    classes = Class.objects.filter(campus=instance, is_active=True).update(is_active=False)
    assignments = TeachingAssignment.objects.filter(campus=instance, is_active=True).update(is_active=False)

    members = User.objects.filter(
        campus=instance,
        role__in=[User.TEACHER, User.STUDENT],
        is_active=True,
    )
    member_ids = list(members.values_list('pk', flat=True))
    members.update(is_active=False)

    cache.delete_many([f"user_campus_{pk}" for pk in member_ids])
    if instance.campus_admin_id:
        cache.delete(f"user_campus_{instance.campus_admin_id}")

    logger.info(
        f"Campus {instance.code} deactivated: {classes} classes, {assignments} assignments, "
        f"{len(member_ids)} members deactivated"
    )

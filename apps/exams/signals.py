# exams/signals.py

"""
Marksheet Trigger Handlers

- Score created/updated  -> run the marksheet pipeline for its term
- Score deleted          -> recompute or retract that marksheet after commit
- Score moved            -> also refresh the term it left, after commit
- Exam total changed     -> recompute every student scored on the exam

Pipeline conditions (MarksheetError) are logged and never fail the write
that triggered them. Database errors propagate.
"""

from functools import partial

from django.db import transaction
from django.db.models.signals import pre_save, post_save, pre_delete, post_delete
from django.dispatch import receiver
import logging

from .exceptions import MarksheetError
from .services import MarksheetService, ExamService

logger = logging.getLogger(__name__)


# =============================================================================
# SCORE SIGNALS
# =============================================================================

@receiver(pre_save, sender='exams.Score')
def score_pre_save(sender, instance, raw=False, **kwargs):
    """Remember the term a score counted toward before it moves to another exam or student"""
    instance._previous_marksheet_key = None
    if raw or instance._state.adding:
        return

    previous = sender.objects.select_related('exam').filter(pk=instance.pk).first()
    if previous is None:
        return
    if previous.exam_id != instance.exam_id or previous.student_id != instance.student_id:
        instance._previous_marksheet_key = previous.term_key


@receiver(post_save, sender='exams.Score')
def score_post_save(sender, instance, created, raw=False, **kwargs):
    """Every score write re-evaluates the marksheet of its term"""
    if raw:
        return

    # the term it left may no longer be complete
    previous_key = getattr(instance, '_previous_marksheet_key', None)
    if previous_key is not None:
        transaction.on_commit(partial(_refresh_marksheet, previous_key), robust=True)

    try:
        marksheet = MarksheetService.generate_for_score(instance)
    except MarksheetError as e:
        logger.warning(f"Marksheet skipped for score {instance.pk}: {e}")
        return

    if marksheet is not None:
        logger.debug(f"Score {instance.pk} {'created' if created else 'updated'} -> marksheet {marksheet.pk}")


@receiver(pre_delete, sender='exams.Score')
def score_pre_delete(sender, instance, **kwargs):
    """Remember the term the score counted toward while its exam still exists"""
    from .models import Exam

    try:
        instance._marksheet_key = instance.term_key
    except Exam.DoesNotExist:
        instance._marksheet_key = None


def _refresh_marksheet(key):
    try:
        MarksheetService.refresh(*key)
    except MarksheetError as e:
        logger.warning(f"Marksheet refresh skipped for {key}: {e}")


@receiver(post_delete, sender='exams.Score')
def score_post_delete(sender, instance, **kwargs):
    """
    Re-evaluate once the deleting transaction commits, so cascades (exam or
    class deletion) have finished before anything is recomputed.
    """
    key = getattr(instance, '_marksheet_key', None)
    if key is None:
        return
    transaction.on_commit(partial(_refresh_marksheet, key), robust=True)


# =============================================================================
# EXAM SIGNALS
# =============================================================================

@receiver(pre_save, sender='exams.Exam')
def exam_pre_save(sender, instance, raw=False, **kwargs):
    if raw or instance._state.adding:
        instance._previous_total_marks = None
        return
    instance._previous_total_marks = (
        sender.objects.filter(pk=instance.pk).values_list('total_marks', flat=True).first()
    )


@receiver(post_save, sender='exams.Exam')
def exam_post_save(sender, instance, created, raw=False, **kwargs):
    """A new total changes every fraction the exam contributes to"""
    if raw or created:
        return

    previous = getattr(instance, '_previous_total_marks', None)
    if previous is None or previous == instance.total_marks:
        return

    logger.info(f"Exam {instance.pk} total marks changed {previous} -> {instance.total_marks}")
    ExamService.recompute_for_exam(instance)

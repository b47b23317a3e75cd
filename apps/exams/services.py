# exams/services.py

"""
Exam Services Module

Business logic for exams, scores and marksheets:
- Marksheet pipeline: completion check -> aggregation -> remark -> upsert
- Marksheet retraction and cohort rebuilds
- Cohort ranking
- Batch score recording
- Study recommendations

The marksheet pipeline runs synchronously from the score signals. It never
fails a score write: pipeline conditions are logged and absorbed, only
database errors propagate.
"""

from django.db import transaction
from django.core.exceptions import ValidationError
from decimal import Decimal
import logging

from academics.models import Class, StudentEnrollment
from core.utils import to_decimal, calculate_percentage
from .exceptions import MalformedReferenceError, DegenerateTotalError, RemarkServiceUnavailable
from .grading import get_grade
from .models import Exam, Score, Marksheet, MarksheetSubject
from .remarks import get_remark_client, get_remark_synthesizer

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger('academic_audit')

ZERO = Decimal('0')


# =============================================================================
# MARKSHEET SERVICE
# =============================================================================

class MarksheetService:
    """Materialises one marksheet per (student, class, term, session)"""

    # -------------------------------------------------------------------------
    # COMPLETION
    # -------------------------------------------------------------------------

    @staticmethod
    def check_completion(student_id, class_id, term, academic_session):
        """
        Decide whether every curriculum subject has a score for the term.

        Read-only. An unknown class or an empty curriculum is reported as not
        ready. Scores of subjects that are no longer in the curriculum are
        left out, and exams with a non-positive total cannot cover a subject.

        Returns:
            dict: {
                'ready': bool,
                'scores': [Score, ...] (curriculum subjects only),
                'missing_subject_ids': set,
                'class': Class or None,
            }
        """
        result = {'ready': False, 'scores': [], 'missing_subject_ids': set(), 'class': None}

        try:
            class_instance = Class.objects.get(pk=class_id)
        except (Class.DoesNotExist, ValidationError, ValueError):
            logger.warning(
                f"Marksheet check for student {student_id}: class {class_id} does not exist"
            )
            return result

        result['class'] = class_instance
        required = class_instance.get_required_subject_ids()
        if not required:
            logger.debug(f"{class_instance} has no curriculum, no marksheet for student {student_id}")
            return result

        scores = list(
            Score.objects.filter(
                student_id=student_id,
                class_instance_id=class_id,
                subject_id__in=required,
                exam__term=term,
                exam__academic_session=academic_session,
            ).select_related('exam', 'subject', 'student')
            .order_by('subject__name', 'subject_id', 'exam__created_at', 'pk')
        )

        covered = {score.subject_id for score in scores if score.exam.total_marks > 0}
        missing = required - covered

        result['scores'] = scores
        result['missing_subject_ids'] = missing
        result['ready'] = not missing
        return result

    # -------------------------------------------------------------------------
    # AGGREGATION
    # -------------------------------------------------------------------------

    @staticmethod
    def aggregate(scores):
        """
        Fold scores into subject lines and grand totals.

        Every exam of a subject in the term is summed into one fraction
        (70/100 + 18/20 -> 88/120), never an average of percentages.
        Scores whose exam total is not positive are left out and logged.

        Returns:
            dict with subjects, grand_obtained, grand_total,
            overall_percentage, overall_grade and excluded_scores

        Raises:
            DegenerateTotalError: nothing with a positive total remains
        """
        groups = {}
        excluded = []

        for score in scores:
            total = to_decimal(score.exam.total_marks)
            if total <= 0:
                logger.warning(
                    f"Exam {score.exam_id} has total marks {total}; "
                    f"score {score.pk} left out of marksheet totals"
                )
                excluded.append(score.pk)
                continue

            entry = groups.get(score.subject_id)
            if entry is None:
                entry = groups[score.subject_id] = {
                    'subject_id': score.subject_id,
                    'subject_name': score.subject.name,
                    'marks_obtained': ZERO,
                    'total_marks': ZERO,
                }
            entry['marks_obtained'] += to_decimal(score.marks_obtained)
            entry['total_marks'] += total

        subjects = []
        for entry in sorted(groups.values(), key=lambda e: (e['subject_name'], str(e['subject_id']))):
            percentage = calculate_percentage(entry['marks_obtained'], entry['total_marks'])
            subjects.append({
                **entry,
                'percentage': percentage,
                'grade': get_grade(percentage),
            })

        grand_obtained = sum((s['marks_obtained'] for s in subjects), ZERO)
        grand_total = sum((s['total_marks'] for s in subjects), ZERO)

        if grand_total <= 0:
            raise DegenerateTotalError("No exam with positive total marks to aggregate")

        overall_percentage = calculate_percentage(grand_obtained, grand_total)

        return {
            'subjects': subjects,
            'grand_obtained': grand_obtained,
            'grand_total': grand_total,
            'overall_percentage': overall_percentage,
            'overall_grade': get_grade(overall_percentage),
            'excluded_scores': excluded,
        }

    # -------------------------------------------------------------------------
    # PERSISTENCE
    # -------------------------------------------------------------------------

    @staticmethod
    def upsert(student_id, class_instance, term, academic_session, result, remark):
        """
        Replace-or-insert the marksheet for a key.

        The unique key (student, class, term, session) is the concurrency
        boundary: update_or_create locks an existing row and recovers from a
        racing insert. Subject lines are replaced in full and the rank is
        cleared until the next ranking run.
        """
        with transaction.atomic():
            marksheet, created = Marksheet.objects.update_or_create(
                student_id=student_id,
                class_instance_id=class_instance.pk,
                term=term,
                academic_session=academic_session,
                defaults={
                    'campus_id': class_instance.campus_id,
                    'grand_obtained': result['grand_obtained'],
                    'grand_total': result['grand_total'],
                    'overall_percentage': result['overall_percentage'],
                    'overall_grade': result['overall_grade'],
                    'rank': None,
                    'final_remarks': remark['text'],
                    'remark_source': remark['source'],
                }
            )

            marksheet.subject_rows.all().delete()
            MarksheetSubject.objects.bulk_create([
                MarksheetSubject(
                    marksheet=marksheet,
                    subject_id=row['subject_id'],
                    marks_obtained=row['marks_obtained'],
                    total_marks=row['total_marks'],
                    percentage=row['percentage'],
                    grade=row['grade'],
                    position=position,
                )
                for position, row in enumerate(result['subjects'])
            ])

        audit_logger.info(
            f"Marksheet {'created' if created else 'updated'}: student={student_id} "
            f"class={class_instance.pk} {term} {academic_session} "
            f"{result['grand_obtained']}/{result['grand_total']} "
            f"{result['overall_percentage']}% {result['overall_grade']}"
        )
        return marksheet

    @staticmethod
    def retract(student_id, class_id, term, academic_session):
        """Delete the marksheet of a key that is no longer complete"""
        deleted, _ = Marksheet.objects.filter(
            student_id=student_id,
            class_instance_id=class_id,
            term=term,
            academic_session=academic_session,
        ).delete()
        if deleted:
            audit_logger.info(
                f"Marksheet retracted: student={student_id} class={class_id} {term} {academic_session}"
            )
        return bool(deleted)

    # -------------------------------------------------------------------------
    # PIPELINE ENTRY POINTS
    # -------------------------------------------------------------------------

    @classmethod
    def evaluate(cls, student_id, class_id, term, academic_session, synthesizer=None):
        """
        Run the full pipeline for one key.

        Returns:
            Marksheet or None when the key is not complete yet
        """
        completion = cls.check_completion(student_id, class_id, term, academic_session)
        if not completion['ready']:
            logger.debug(
                f"Marksheet not ready: student={student_id} class={class_id} {term} "
                f"{academic_session}, missing {len(completion['missing_subject_ids'])} subject(s)"
            )
            return None

        result = cls.aggregate(completion['scores'])

        student_name = completion['scores'][0].student.display_name
        synthesizer = synthesizer or get_remark_synthesizer()
        remark = synthesizer.generate(student_name, result['subjects'], result['overall_grade'])

        return cls.upsert(student_id, completion['class'], term, academic_session, result, remark)

    @classmethod
    def refresh(cls, student_id, class_id, term, academic_session, synthesizer=None):
        """
        Re-evaluate a key after its scores shrank or changed: recompute when
        still complete, otherwise retract the marksheet.

        Returns:
            Marksheet or None
        """
        marksheet = cls.evaluate(student_id, class_id, term, academic_session, synthesizer=synthesizer)
        if marksheet is None:
            cls.retract(student_id, class_id, term, academic_session)
        return marksheet

    @classmethod
    def generate_for_score(cls, score):
        """
        Pipeline entry for a score write.

        Raises:
            MalformedReferenceError: the score's exam or class is gone
        """
        exam = Exam.objects.filter(pk=score.exam_id).first()
        if exam is None:
            raise MalformedReferenceError(f"Score {score.pk} references missing exam {score.exam_id}")
        if not Class.objects.filter(pk=score.class_instance_id).exists():
            raise MalformedReferenceError(
                f"Score {score.pk} references missing class {score.class_instance_id}"
            )

        return cls.evaluate(score.student_id, score.class_instance_id, exam.term, exam.academic_session)

    @classmethod
    def rebuild_cohort(cls, class_id, term, academic_session):
        """
        Re-run the pipeline for every student scored in a class/term/session.

        Returns:
            dict: {'generated': n, 'retracted': n, 'skipped': n}
        """
        student_ids = (
            Score.objects.filter(
                class_instance_id=class_id,
                exam__term=term,
                exam__academic_session=academic_session,
            ).order_by().values_list('student_id', flat=True).distinct()
        )
        synthesizer = get_remark_synthesizer()
        summary = {'generated': 0, 'retracted': 0, 'skipped': 0}

        for student_id in list(student_ids):
            try:
                marksheet = cls.evaluate(student_id, class_id, term, academic_session, synthesizer=synthesizer)
            except DegenerateTotalError as e:
                logger.warning(f"Skipping student {student_id}: {e}")
                summary['skipped'] += 1
                continue
            if marksheet is not None:
                summary['generated'] += 1
            elif cls.retract(student_id, class_id, term, academic_session):
                summary['retracted'] += 1
            else:
                summary['skipped'] += 1

        audit_logger.info(f"Cohort rebuilt: class={class_id} {term} {academic_session} {summary}")
        return summary


# =============================================================================
# RANKING SERVICE
# =============================================================================

class MarksheetRankingService:

    @staticmethod
    @transaction.atomic
    def rank_cohort(class_id, term, academic_session):
        """
        Competition ranking by overall percentage (1, 1, 3, ...).

        Returns:
            list of (marksheet id, rank)
        """
        marksheets = list(
            Marksheet.objects.select_for_update().filter(
                class_instance_id=class_id,
                term=term,
                academic_session=academic_session,
            ).order_by('-overall_percentage', 'pk')
        )

        previous_percentage = None
        current_rank = 0
        for position, marksheet in enumerate(marksheets, start=1):
            if marksheet.overall_percentage != previous_percentage:
                current_rank = position
                previous_percentage = marksheet.overall_percentage
            marksheet.rank = current_rank

        Marksheet.objects.bulk_update(marksheets, ['rank'])

        audit_logger.info(
            f"Ranked {len(marksheets)} marksheet(s): class={class_id} {term} {academic_session}"
        )
        return [(m.pk, m.rank) for m in marksheets]


# =============================================================================
# EXAM SERVICE
# =============================================================================

class ExamService:

    @staticmethod
    def recompute_for_exam(exam):
        """Re-run the pipeline for every student holding a score on ``exam``"""
        student_ids = list(exam.scores.values_list('student_id', flat=True))
        synthesizer = get_remark_synthesizer()
        for student_id in student_ids:
            try:
                MarksheetService.refresh(
                    student_id, exam.class_instance_id, exam.term, exam.academic_session,
                    synthesizer=synthesizer,
                )
            except DegenerateTotalError as e:
                logger.warning(f"Exam {exam.pk} recompute skipped student {student_id}: {e}")
        logger.info(f"Recomputed marksheets of {len(student_ids)} student(s) after exam {exam.pk} changed")
        return len(student_ids)

    @staticmethod
    def get_statistics(exam):
        """Score distribution of one exam"""
        scores = list(exam.scores.values_list('marks_obtained', 'is_present'))
        present = [marks for marks, is_present in scores if is_present]
        return {
            'scored': len(scores),
            'absent': len(scores) - len(present),
            'highest': str(max(present)) if present else None,
            'lowest': str(min(present)) if present else None,
            'average': str((sum(present, ZERO) / len(present)).quantize(Decimal('0.01'))) if present else None,
            'average_percentage': (
                str(calculate_percentage(sum(present, ZERO), exam.total_marks * len(present))) if present else None
            ),
        }


# =============================================================================
# SCORE SERVICE
# =============================================================================

class ScoreService:
    """Score recording and correction"""

    @staticmethod
    def _parse_marks(value, exam):
        marks = to_decimal(value, default=None)
        if marks is None:
            raise ValidationError("Marks must be a number.")
        if marks < 0:
            raise ValidationError("Marks cannot be negative.")
        if marks > exam.total_marks:
            raise ValidationError(f"Marks cannot exceed the exam total of {exam.total_marks}.")
        return marks

    @staticmethod
    def record_scores(exam, rows, entered_by=None):
        """
        Create or update scores of an exam in one go.

        Each row is {'student': id, 'marks_obtained': n, 'is_present': bool,
        'remarks': str}; 'marksObtained' is accepted as well. A row that
        fails validation is reported and skipped, the others are saved.

        Returns:
            dict: {'created': [...], 'updated': [...], 'errors': [...]}
        """
        enrolled = set(
            StudentEnrollment.objects.filter(
                class_instance_id=exam.class_instance_id,
                is_active=True,
            ).values_list('student_id', flat=True)
        )
        enrolled = {str(pk) for pk in enrolled}

        outcome = {'created': [], 'updated': [], 'errors': []}

        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                outcome['errors'].append({'row': index, 'error': "Row must be an object"})
                continue

            student_id = str(row.get('student') or row.get('student_id') or '').strip()
            if student_id not in enrolled:
                outcome['errors'].append({
                    'row': index,
                    'student': student_id or None,
                    'error': "Student is not actively enrolled in the exam's class",
                })
                continue

            try:
                marks = ScoreService._parse_marks(
                    row.get('marks_obtained', row.get('marksObtained')), exam
                )
            except ValidationError as e:
                outcome['errors'].append({'row': index, 'student': student_id, 'error': "; ".join(e.messages)})
                continue

            defaults = {
                'marks_obtained': marks,
                'is_present': row.get('is_present', row.get('isPresent', True)) is not False,
                'remarks': str(row.get('remarks') or '')[:255],
                'entered_by': entered_by,
            }

            with transaction.atomic():
                score, created = Score.objects.update_or_create(
                    student_id=student_id,
                    exam=exam,
                    defaults=defaults,
                )
            outcome['created' if created else 'updated'].append(score)

        logger.info(
            f"Scores recorded for exam {exam.pk}: {len(outcome['created'])} created, "
            f"{len(outcome['updated'])} updated, {len(outcome['errors'])} rejected"
        )
        return outcome

    @staticmethod
    def update_score(score, marks_obtained=None, remarks=None, is_present=None):
        if marks_obtained is not None:
            score.marks_obtained = ScoreService._parse_marks(marks_obtained, score.exam)
        if remarks is not None:
            score.remarks = str(remarks)[:255]
        if is_present is not None:
            score.is_present = bool(is_present)
        score.save()
        return score

    @staticmethod
    def delete_score(score):
        """Deleting a score re-evaluates (or retracts) its marksheet via signals"""
        logger.info(f"Deleting score {score.pk} of student {score.student_id} for exam {score.exam_id}")
        score.delete()

    @staticmethod
    def merged_listing(exam):
        """
        Every active enrollment of the exam's class with its score for the
        exam (missing scores show as 0, not entered).
        """
        scores = {s.student_id: s for s in exam.scores.all()}
        enrollments = exam.class_instance.get_active_enrollments().order_by('roll_number')
        rows = []
        for enrollment in enrollments:
            score = scores.get(enrollment.student_id)
            rows.append({
                'student': {
                    'id': str(enrollment.student_id),
                    'name': enrollment.student.display_name,
                    'roll_number': enrollment.roll_number,
                },
                'score_id': str(score.pk) if score else None,
                'marks_obtained': str(score.marks_obtained) if score else '0',
                'is_present': score.is_present if score else None,
                'remarks': score.remarks if score else '',
                'entered': score is not None,
            })
        return rows


# =============================================================================
# STUDY RECOMMENDATIONS
# =============================================================================

class StudyRecommendationService:

    WEAK_THRESHOLD = Decimal('50')
    SYSTEM_PROMPT = "You are a professional academic advisor and teacher."

    @staticmethod
    def subject_summary(student):
        """Per-subject fraction over all of a student's scores"""
        rows = {}
        for score in Score.objects.filter(student=student).select_related('subject', 'exam'):
            if score.exam.total_marks <= 0:
                continue
            entry = rows.setdefault(score.subject_id, {
                'subject_name': score.subject.name,
                'marks_obtained': ZERO,
                'total_marks': ZERO,
            })
            entry['marks_obtained'] += score.marks_obtained
            entry['total_marks'] += score.exam.total_marks

        summary = []
        for entry in sorted(rows.values(), key=lambda e: e['subject_name']):
            percentage = calculate_percentage(entry['marks_obtained'], entry['total_marks'])
            summary.append({**entry, 'percentage': percentage, 'grade': get_grade(percentage)})
        return summary

    @staticmethod
    def build_prompt(student_name, summary):
        lines = "\n".join(
            f"• {row['subject_name']}: {row['marks_obtained']}/{row['total_marks']}" for row in summary
        )
        return (
            f"You are an expert teacher analyzing {student_name}'s academic performance.\n\n"
            f"Here are {student_name}'s marks:\n{lines}\n\n"
            "Give only a short, personalized study recommendation (2-4 sentences) for this student.\n"
            "Focus on how they can improve weak subjects and how to maintain good performance "
            "in strong subjects. Keep it direct, motivational, and easy to understand."
        )

    @classmethod
    def fallback(cls, weak_subjects):
        if not weak_subjects:
            return "Keep up the steady work in every subject and keep revising regularly."
        names = ", ".join(row['subject_name'] for row in weak_subjects)
        return f"Focus extra study time on {names}, where results are below 50%."

    @classmethod
    def recommend(cls, student, client=None):
        """
        Returns:
            dict or None when the student has no scores
        """
        summary = cls.subject_summary(student)
        if not summary:
            return None

        weak = [row for row in summary if row['percentage'] < cls.WEAK_THRESHOLD]
        result = {
            'student': {'id': str(student.pk), 'name': student.display_name},
            'total_subjects': len(summary),
            'subjects': [
                {
                    'subject': row['subject_name'],
                    'marks_obtained': str(row['marks_obtained']),
                    'total_marks': str(row['total_marks']),
                    'percentage': str(row['percentage']),
                    'grade': row['grade'],
                }
                for row in summary
            ],
            'weak_subjects': [row['subject_name'] for row in weak],
        }

        client = client if client is not None else get_remark_client()
        text = None
        if client is not None and getattr(client, 'is_configured', True):
            messages = [
                {'role': 'system', 'content': cls.SYSTEM_PROMPT},
                {'role': 'user', 'content': cls.build_prompt(student.display_name, summary)},
            ]
            try:
                text = (client.complete(messages, temperature=0.7, max_tokens=200) or '').strip()
            except RemarkServiceUnavailable as e:
                logger.warning(f"Study recommendation service unavailable for {student.username}: {e}")
            except Exception as e:
                logger.warning(f"Study recommendation client error for {student.username}: {e}")

        result['recommendation'] = text or cls.fallback(weak)
        result['source'] = 'generated' if text else 'fallback'
        return result


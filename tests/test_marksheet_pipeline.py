# tests/test_marksheet_pipeline.py

from decimal import Decimal

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from exams.models import Marksheet, Score
from exams.services import MarksheetService, MarksheetRankingService
from tests.conftest import SESSION, TERM


def _marksheet(student):
    return Marksheet.objects.get(student=student, term=TERM, academic_session=SESSION)


@pytest.mark.django_db
def test_partial_scores_produce_no_marksheet(student, math_exam, english_exam, record_score):
    record_score(student, math_exam, 60)

    assert not Marksheet.objects.filter(student=student).exists()

    completion = MarksheetService.check_completion(student.pk, math_exam.class_instance_id, TERM, SESSION)
    assert completion['ready'] is False
    assert completion['missing_subject_ids'] == {english_exam.subject_id}


@pytest.mark.django_db
def test_complete_scores_generate_marksheet(student, math_exam, english_exam, record_score, remark_client):
    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)

    marksheet = _marksheet(student)
    assert marksheet.grand_obtained == Decimal('105')
    assert marksheet.grand_total == Decimal('150')
    assert marksheet.overall_percentage == Decimal('70.00')
    assert marksheet.overall_grade == 'B'
    assert marksheet.rank is None
    assert marksheet.final_remarks == "Steady progress this term, keep it up."
    assert marksheet.remark_source == 'generated'
    assert marksheet.campus_id == math_exam.campus_id

    rows = list(marksheet.subject_rows.select_related('subject').order_by('position'))
    assert [(r.subject.name, r.grade) for r in rows] == [("English", 'A+'), ("Mathematics", 'C')]

    prompt = remark_client.calls[-1][1]['content']
    assert "• Mathematics: 60.00/100.00 (C)" in prompt


@pytest.mark.django_db
def test_pipeline_is_idempotent(student, math_exam, english_exam, record_score):
    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)
    first = _marksheet(student)

    again = MarksheetService.evaluate(student.pk, math_exam.class_instance_id, TERM, SESSION)

    assert Marksheet.objects.filter(student=student).count() == 1
    assert again.pk == first.pk
    assert again.overall_percentage == first.overall_percentage
    assert again.subject_rows.count() == 2


@pytest.mark.django_db
def test_score_update_recomputes_and_clears_rank(student, math_exam, english_exam, record_score):
    math_score = record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)
    Marksheet.objects.filter(student=student).update(rank=1)

    math_score.marks_obtained = Decimal('90')
    math_score.save()

    marksheet = _marksheet(student)
    assert marksheet.overall_percentage == Decimal('90.00')
    assert marksheet.overall_grade == 'A+'
    assert marksheet.rank is None


@pytest.mark.django_db
def test_second_exam_of_a_subject_is_summed(student, math_exam, english_exam, make_exam, math, record_score):
    record_score(student, math_exam, 70)
    record_score(student, english_exam, 40)
    quiz = make_exam(math, total_marks='20', exam_type='Assessment')
    record_score(student, quiz, 18)

    marksheet = _marksheet(student)
    math_row = marksheet.subject_rows.get(subject=math)
    assert math_row.marks_obtained == Decimal('88')
    assert math_row.total_marks == Decimal('120')
    assert math_row.percentage == Decimal('73.33')
    assert marksheet.grand_total == Decimal('170')


@pytest.mark.django_db
def test_absent_student_still_completes(student, math_exam, english_exam, record_score):
    record_score(student, math_exam, 0, is_present=False)
    record_score(student, english_exam, 40)

    marksheet = _marksheet(student)
    assert marksheet.grand_obtained == Decimal('40')
    assert marksheet.overall_grade == 'F'


@pytest.mark.django_db
def test_empty_curriculum_never_ready(student, school_class, math_exam, record_score):
    school_class.subjects.clear()
    record_score(student, math_exam, 90)

    assert not Marksheet.objects.filter(student=student).exists()


@pytest.mark.django_db
def test_subject_dropped_from_curriculum_is_ignored(student, school_class, english, math_exam, english_exam, record_score):
    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)

    school_class.subjects.remove(english)
    MarksheetService.evaluate(student.pk, school_class.pk, TERM, SESSION)

    marksheet = _marksheet(student)
    assert marksheet.grand_total == Decimal('100')
    assert marksheet.subject_rows.count() == 1


@pytest.mark.django_db
@pytest.mark.parametrize('client_path', [
    'tests.remark_clients.FailingRemarkClient',
    'tests.remark_clients.BrokenRemarkClient',
    'tests.remark_clients.UnconfiguredRemarkClient',
    'tests.remark_clients.DoesNotExist',
])
def test_remark_falls_back_to_grade(settings, client_path, student, math_exam, english_exam, record_score):
    settings.MARKSHEET_REMARK_CLIENT = client_path

    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)

    marksheet = _marksheet(student)
    assert marksheet.final_remarks == "Very Good"
    assert marksheet.remark_source == 'fallback'


@pytest.mark.django_db
def test_deleting_a_required_score_retracts_marksheet(
    student, math_exam, english_exam, record_score, django_capture_on_commit_callbacks
):
    record_score(student, math_exam, 60)
    english_score = record_score(student, english_exam, 45)
    assert Marksheet.objects.filter(student=student).exists()

    with django_capture_on_commit_callbacks(execute=True):
        english_score.delete()

    assert not Marksheet.objects.filter(student=student).exists()


@pytest.mark.django_db
def test_deleting_an_extra_score_recomputes_marksheet(
    student, math, math_exam, english_exam, make_exam, record_score, django_capture_on_commit_callbacks
):
    record_score(student, math_exam, 70)
    record_score(student, english_exam, 40)
    quiz_score = record_score(student, make_exam(math, total_marks='20', exam_type='Assessment'), 18)
    assert _marksheet(student).grand_total == Decimal('170')

    with django_capture_on_commit_callbacks(execute=True):
        quiz_score.delete()

    marksheet = _marksheet(student)
    assert marksheet.grand_total == Decimal('150')
    assert marksheet.grand_obtained == Decimal('110')


@pytest.mark.django_db
def test_exam_total_change_recomputes(student, math_exam, english_exam, record_score):
    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)

    math_exam.total_marks = Decimal('200')
    math_exam.save()

    marksheet = _marksheet(student)
    assert marksheet.grand_total == Decimal('250')
    assert marksheet.overall_percentage == Decimal('42.00')
    assert marksheet.overall_grade == 'F'


@pytest.mark.django_db
def test_score_copies_exam_references(student, math_exam, record_score):
    score = record_score(student, math_exam, 12)

    assert score.class_instance_id == math_exam.class_instance_id
    assert score.subject_id == math_exam.subject_id
    assert score.campus_id == math_exam.campus_id


@pytest.mark.django_db
def test_competition_ranking(make_user, campus, enroll, student, second_student, math_exam, english_exam, record_score):
    third = make_user('s_omar', 'student', campus=campus)
    enroll(third, 3)

    for user, math_marks in ((student, 80), (second_student, 80), (third, 50)):
        record_score(user, math_exam, math_marks)
        record_score(user, english_exam, 40)

    ranks = MarksheetRankingService.rank_cohort(math_exam.class_instance_id, TERM, SESSION)

    assert sorted(rank for _, rank in ranks) == [1, 1, 3]
    assert _marksheet(third).rank == 3
    assert _marksheet(student).rank == 1


@pytest.mark.django_db
def test_rebuild_cohort_counts(student, second_student, math_exam, english_exam, record_score):
    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)
    record_score(second_student, math_exam, 30)

    summary = MarksheetService.rebuild_cohort(math_exam.class_instance_id, TERM, SESSION)

    assert summary == {'generated': 1, 'retracted': 0, 'skipped': 1}


@pytest.mark.django_db
def test_management_commands(student, second_student, math_exam, english_exam, record_score, capsys):
    for user, marks in ((student, 60), (second_student, 90)):
        record_score(user, math_exam, marks)
        record_score(user, english_exam, 45)
    Marksheet.objects.all().delete()

    call_command('rebuild_marksheets', '--class', str(math_exam.class_instance_id), '--term', TERM, '--session', SESSION)
    call_command('rank_marksheets', '--term', TERM, '--session', SESSION)

    assert Marksheet.objects.count() == 2
    assert _marksheet(second_student).rank == 1
    assert _marksheet(student).rank == 2
    out = capsys.readouterr().out
    assert "2 generated" in out
    assert out.count("ranked 2 marksheet(s)") == 1


@pytest.mark.django_db
def test_score_for_removed_exam_is_not_kept(student, math_exam, record_score):
    record_score(student, math_exam, 60)
    math_exam.delete()

    assert not Score.objects.filter(student=student).exists()


@pytest.mark.django_db
def test_rebuild_records_acting_user(student, math_exam, english_exam, record_score, campus_admin):
    record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)

    call_command(
        'rebuild_marksheets', '--class', str(math_exam.class_instance_id),
        '--term', TERM, '--session', SESSION, '--user', campus_admin.username,
    )

    assert _marksheet(student).updated_by_id == str(campus_admin.pk)


@pytest.mark.django_db
def test_rebuild_rejects_unknown_user(math_exam):
    with pytest.raises(CommandError):
        call_command(
            'rebuild_marksheets', '--class', str(math_exam.class_instance_id),
            '--term', TERM, '--session', SESSION, '--user', 'nobody',
        )


@pytest.mark.django_db
def test_rebuild_evaluates_each_student_once(student, second_student, math_exam, english_exam, record_score,
                                             remark_client):
    for user in (student, second_student):
        record_score(user, math_exam, 60)
        record_score(user, english_exam, 45)
    remark_client.calls.clear()

    summary = MarksheetService.rebuild_cohort(math_exam.class_instance_id, TERM, SESSION)

    assert summary == {'generated': 2, 'retracted': 0, 'skipped': 0}
    assert len(remark_client.calls) == 2


@pytest.mark.django_db
def test_moving_score_to_another_term_refreshes_the_old_one(
    student, math, math_exam, english_exam, make_exam, record_score, django_capture_on_commit_callbacks
):
    math_score = record_score(student, math_exam, 60)
    record_score(student, english_exam, 45)
    assert _marksheet(student).grand_total == Decimal('150')

    math_score.exam = make_exam(math, term='SecondTerm')
    with django_capture_on_commit_callbacks(execute=True):
        math_score.save()

    assert not Marksheet.objects.filter(student=student, term=TERM, academic_session=SESSION).exists()


@pytest.mark.django_db
def test_moving_score_within_term_recomputes(
    student, math, math_exam, english_exam, make_exam, record_score, django_capture_on_commit_callbacks
):
    record_score(student, math_exam, 60)
    english_score = record_score(student, english_exam, 45)
    math_quiz = make_exam(math, total_marks='20', exam_type='Assessment')

    english_score.exam = math_quiz
    english_score.marks_obtained = Decimal('18')
    with django_capture_on_commit_callbacks(execute=True):
        english_score.save()

    # english no longer has a score, so the term is incomplete again
    assert not Marksheet.objects.filter(student=student, term=TERM, academic_session=SESSION).exists()


def test_saved_score_keeps_exam_and_student_in_admin():
    from django.contrib import admin
    from exams.models import Score

    score_admin = admin.site._registry[Score]

    assert 'exam' in score_admin.get_readonly_fields(None, obj=Score())
    assert 'exam' not in score_admin.get_readonly_fields(None)

# tests/test_score_api.py

from decimal import Decimal

import pytest

from accounts.models import User
from exams.models import Score, Marksheet


def _scores_url(exam):
    return f"/api/exams/{exam.pk}/scores/"


@pytest.mark.django_db
def test_class_teacher_records_batch(api, teacher, student, second_student, math_exam):
    response = api.login(teacher).post(_scores_url(math_exam), {'scores': [
        {'student': str(student.pk), 'marksObtained': 72},
        {'student': str(second_student.pk), 'marks_obtained': '64.5', 'isPresent': True},
    ]})

    assert response.status_code == 201
    body = response.json()
    assert len(body['created']) == 2
    assert body['errors'] == []
    assert Score.objects.get(student=second_student).marks_obtained == Decimal('64.5')
    assert Score.objects.get(student=student).entered_by == teacher


@pytest.mark.django_db
def test_batch_reports_row_errors(api, make_user, campus, campus_admin, student, math_exam):
    outsider = make_user('s_outsider', User.STUDENT, campus=campus)

    response = api.login(campus_admin).post(_scores_url(math_exam), {'scores': [
        {'student': str(student.pk), 'marks_obtained': 101},
        {'student': str(outsider.pk), 'marks_obtained': 50},
        {'student': str(student.pk), 'marks_obtained': 'abc'},
    ]})

    assert response.status_code == 400
    errors = response.json()['errors']
    assert [e['row'] for e in errors] == [0, 1, 2]
    assert "exceed" in errors[0]['error']
    assert "not actively enrolled" in errors[1]['error']
    assert not Score.objects.exists()


@pytest.mark.django_db
def test_batch_updates_existing_scores(api, campus_admin, student, math_exam, record_score):
    record_score(student, math_exam, 40)

    response = api.login(campus_admin).post(_scores_url(math_exam), {'scores': [
        {'student': str(student.pk), 'marks_obtained': 55},
    ]})

    assert response.status_code == 200
    assert len(response.json()['updated']) == 1
    assert Score.objects.get(student=student).marks_obtained == Decimal('55')


@pytest.mark.django_db
def test_other_campus_admin_cannot_grade(api, other_campus, student, math_exam):
    response = api.login(other_campus.campus_admin).post(_scores_url(math_exam), {'scores': [
        {'student': str(student.pk), 'marks_obtained': 10},
    ]})
    assert response.status_code == 403


@pytest.mark.django_db
def test_student_cannot_reach_score_endpoints(api, student, math_exam):
    assert api.login(student).get(_scores_url(math_exam)).status_code == 403


@pytest.mark.django_db
def test_anonymous_gets_401(api, math_exam):
    assert api.get(_scores_url(math_exam)).status_code == 401


@pytest.mark.django_db
def test_listing_merges_missing_scores(api, campus_admin, student, second_student, math_exam, record_score):
    record_score(student, math_exam, 81)

    response = api.login(campus_admin).get(_scores_url(math_exam))

    assert response.status_code == 200
    rows = {row['student']['roll_number']: row for row in response.json()['scores']}
    assert rows['1']['marks_obtained'] == '81.00'
    assert rows['1']['entered'] is True
    assert rows['2']['marks_obtained'] == '0'
    assert rows['2']['entered'] is False
    assert response.json()['pagination']['total_count'] == 2


@pytest.mark.django_db
def test_score_patch_and_delete(api, teacher, campus_admin, student, math_exam, record_score):
    score = record_score(student, math_exam, 40)
    url = f"/api/exams/scores/{score.pk}/"

    response = api.login(teacher).patch(url, {'marksObtained': 45, 'remarks': "Improved"})
    assert response.status_code == 200
    score.refresh_from_db()
    assert score.marks_obtained == Decimal('45')
    assert score.remarks == "Improved"

    assert api.patch(url, {'marks_obtained': 500}).status_code == 400
    assert api.delete(url).status_code == 403

    assert api.login(campus_admin).delete(url).status_code == 200
    assert not Score.objects.filter(pk=score.pk).exists()


@pytest.mark.django_db
def test_scores_through_api_build_marksheet(api, teacher, student, math_exam, english_exam):
    api.login(teacher)
    api.post(_scores_url(math_exam), {'scores': [{'student': str(student.pk), 'marks_obtained': 60}]})
    assert not Marksheet.objects.exists()

    api.post(_scores_url(english_exam), {'scores': [{'student': str(student.pk), 'marks_obtained': 45}]})
    assert Marksheet.objects.get(student=student).overall_percentage == Decimal('70.00')


@pytest.mark.django_db
def test_score_sheet_export(api, campus_admin, student, math_exam, record_score):
    record_score(student, math_exam, 50)

    response = api.login(campus_admin).get(f"/api/exams/{math_exam.pk}/scores/export/")

    assert response.status_code == 200
    assert response['Content-Type'].startswith('application/vnd.openxmlformats')


@pytest.mark.django_db
def test_exam_create_validates_curriculum(api, campus_admin, school_class, math, make_user):
    from academics.models import Subject
    art = Subject.objects.create(name="Art")
    payload = {
        'name': "Midterm", 'term': 'FirstTerm', 'academic_session': '2025-2026',
        'class_instance': str(school_class.pk), 'total_marks': 100, 'exam_type': 'Examination',
    }

    api.login(campus_admin)
    assert api.post("/api/exams/", {**payload, 'subject': str(art.pk)}).status_code == 400

    response = api.post("/api/exams/", {**payload, 'subject': str(math.pk)})
    assert response.status_code == 201
    assert response.json()['exam']['campus'] == str(school_class.campus_id)


@pytest.mark.django_db
def test_exam_identity_locked_once_scored(api, campus_admin, student, math_exam, record_score):
    record_score(student, math_exam, 50)
    url = f"/api/exams/{math_exam.pk}/"

    api.login(campus_admin)
    assert api.patch(url, {'term': 'SecondTerm'}).status_code == 400
    assert api.patch(url, {'name': "Final Exam"}).status_code == 200


@pytest.mark.django_db
def test_exam_total_cannot_drop_below_recorded_marks(api, campus_admin, student, math_exam, english_exam, record_score):
    record_score(student, math_exam, 90)
    record_score(student, english_exam, 45)
    url = f"/api/exams/{math_exam.pk}/"

    api.login(campus_admin)
    response = api.patch(url, {'total_marks': '10'})

    assert response.status_code == 400
    math_exam.refresh_from_db()
    assert math_exam.total_marks == Decimal('100')
    marksheet = Marksheet.objects.get(student=student)
    assert marksheet.overall_percentage == Decimal('90.00')

    assert api.patch(url, {'total_marks': '90'}).status_code == 200
    assert Marksheet.objects.get(student=student).overall_percentage == Decimal('96.43')

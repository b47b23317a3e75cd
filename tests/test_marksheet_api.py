# tests/test_marksheet_api.py

import pytest

from accounts.models import User
from exams.models import Marksheet
from tests.conftest import SESSION, TERM


@pytest.fixture
def marksheets(student, second_student, math_exam, english_exam, record_score):
    for user, marks in ((student, 60), (second_student, 95)):
        record_score(user, math_exam, marks)
        record_score(user, english_exam, 45)
    return Marksheet.objects.all()


@pytest.mark.django_db
def test_student_sees_only_own(api, student, marksheets):
    response = api.login(student).get("/api/exams/marksheets/")

    assert response.status_code == 200
    data = response.json()['marksheets']
    assert [m['student']['id'] for m in data] == [str(student.pk)]
    assert len(data[0]['subjects']) == 2


@pytest.mark.django_db
def test_class_teacher_list_sorted_by_percentage(api, teacher, student, second_student, marksheets):
    response = api.login(teacher).get("/api/exams/marksheets/")

    assert response.status_code == 200
    names = [m['student']['id'] for m in response.json()['marksheets']]
    assert names == [str(second_student.pk), str(student.pk)]


@pytest.mark.django_db
def test_teacher_without_class_is_refused(api, make_user, campus, marksheets):
    other_teacher = make_user('t_other', User.TEACHER, campus=campus)
    assert api.login(other_teacher).get("/api/exams/marksheets/").status_code == 403


@pytest.mark.django_db
def test_campus_admin_pinned_to_campus(api, campus_admin, other_campus, marksheets):
    api.login(campus_admin)
    assert len(api.get("/api/exams/marksheets/").json()['marksheets']) == 2
    assert api.get("/api/exams/marksheets/", {'campus': str(other_campus.pk)}).status_code == 403

    api.login(other_campus.campus_admin)
    assert api.get("/api/exams/marksheets/").json()['marksheets'] == []


@pytest.mark.django_db
def test_detail_hidden_from_other_students(api, student, second_student, marksheets):
    theirs = Marksheet.objects.get(student=second_student)
    assert api.login(student).get(f"/api/exams/marksheets/{theirs.pk}/").status_code == 404


@pytest.mark.django_db
def test_rank_endpoint(api, campus_admin, school_class, student, second_student, marksheets):
    response = api.login(campus_admin).post("/api/exams/marksheets/rank/", {
        'class_instance': str(school_class.pk), 'term': TERM, 'academic_session': SESSION,
    })

    assert response.status_code == 200
    assert response.json()['ranked'] == 2
    assert Marksheet.objects.get(student=second_student).rank == 1
    assert Marksheet.objects.get(student=student).rank == 2


@pytest.mark.django_db
def test_rebuild_endpoint(api, super_admin, school_class, marksheets):
    Marksheet.objects.all().delete()

    response = api.login(super_admin).post("/api/exams/marksheets/rebuild/", {
        'class_instance': str(school_class.pk), 'term': TERM, 'academic_session': SESSION,
    })

    assert response.json()['generated'] == 2
    assert Marksheet.objects.count() == 2


@pytest.mark.django_db
def test_pdf_download(api, student, marksheets):
    mine = Marksheet.objects.get(student=student)

    response = api.login(student).get(f"/api/exams/marksheets/{mine.pk}/pdf/")

    assert response.status_code == 200
    assert response['Content-Type'] == 'application/pdf'
    assert response.content.startswith(b'%PDF')


@pytest.mark.django_db
def test_cohort_csv_export(api, teacher, school_class, marksheets):
    response = api.login(teacher).get("/api/exams/marksheets/export/", {
        'class': str(school_class.pk), 'term': TERM, 'academic_session': SESSION,
    })

    assert response.status_code == 200
    lines = response.content.decode().strip().splitlines()
    assert lines[0].startswith('Rank,Student')
    assert len(lines) == 3


@pytest.mark.django_db
def test_recommendations_endpoint(api, student, second_student, marksheets):
    api.login(student)
    response = api.get(f"/api/exams/recommendations/{student.pk}/")
    assert response.status_code == 200
    assert response.json()['source'] == 'generated'

    assert api.get(f"/api/exams/recommendations/{second_student.pk}/").status_code == 403

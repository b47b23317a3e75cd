# tests/test_campuses.py

from datetime import date
from decimal import Decimal

import pytest

from academics.models import Class, TeachingAssignment
from accounts.models import User
from attendance.services import StudentAttendanceService
from core import stats
from core.models import Campus


@pytest.mark.django_db
def test_health_check(client):
    response = client.get("/health/")
    assert response.status_code == 200
    assert response.json()['status'] == 'ok'
    assert 'timestamp' in response.json()


@pytest.mark.django_db
def test_super_admin_creates_campus(api, super_admin, make_user):
    admin = make_user('isb_admin', User.CAMPUS_ADMIN)

    response = api.login(super_admin).post("/api/campuses/", {
        'name': "Islamabad Campus", 'code': 'isb-01', 'city': "Islamabad", 'address': "Blue Area",
        'phone': '+923001234567', 'email': 'isb@schoolnet.test', 'campus_admin': str(admin.pk),
    })

    assert response.status_code == 201
    campus = Campus.objects.get(code='ISB-01')
    assert campus.latitude == Decimal('0')
    assert campus.created_by_id == str(super_admin.pk)
    admin.refresh_from_db()
    assert admin.campus == campus


@pytest.mark.django_db
def test_campus_code_unique_among_active(api, super_admin, campus):
    response = api.login(super_admin).post("/api/campuses/", {'name': "Duplicate", 'code': 'LHR-01', 'city': "Lahore"})
    assert response.status_code == 400
    assert 'code' in response.json()['errors']


@pytest.mark.django_db
def test_campus_admin_reads_only_own(api, campus_admin, campus, other_campus):
    api.login(campus_admin)

    listing = api.get("/api/campuses/").json()['campuses']
    assert [c['id'] for c in listing] == [str(campus.pk)]
    assert api.get(f"/api/campuses/{campus.pk}/").status_code == 200
    assert api.get(f"/api/campuses/{other_campus.pk}/").status_code == 403
    assert api.patch(f"/api/campuses/{campus.pk}/", {'city': "Multan"}).status_code == 403


@pytest.mark.django_db
def test_soft_delete_cascades(api, super_admin, campus, school_class, teacher, student, math):
    TeachingAssignment.objects.create(campus=campus, class_instance=school_class, subject=math)

    response = api.login(super_admin).delete(f"/api/campuses/{campus.pk}/")

    assert response.status_code == 200
    campus.refresh_from_db()
    assert campus.is_active is False
    assert not Class.objects.filter(campus=campus, is_active=True).exists()
    assert not TeachingAssignment.objects.filter(campus=campus, is_active=True).exists()
    teacher.refresh_from_db()
    student.refresh_from_db()
    assert teacher.is_active is False
    assert student.is_active is False


@pytest.mark.django_db
def test_dashboard_statistics(campus, other_campus, school_class, teacher, student, second_student,
                              math_exam, english_exam, record_score):
    record_score(student, math_exam, 90)
    record_score(student, english_exam, 40)
    record_score(second_student, math_exam, 50)
    second_student.is_active = False
    second_student.save()
    StudentAttendanceService.mark_bulk(school_class, [{'roll_number': '1', 'status': 'present'}], teacher, date=date(2025, 9, 1))

    overview = stats.get_overview_statistics()
    assert overview == {'campus_count': 2, 'student_count': 1, 'teacher_count': 1}

    top = stats.get_top_performers()
    assert len(top) == 1
    assert [s['id'] for s in top[0]['top_students']] == [str(student.pk), str(second_student.pk)]
    assert top[0]['top_students'][0]['average_marks'] == Decimal('65.00')

    comparison = stats.get_campus_comparison()
    assert comparison[0]['score_count'] == 3

    subjects = {row['subject']: row['average_percentage'] for row in stats.get_subject_performance(campus)}
    assert subjects == {"Mathematics": Decimal('70.00'), "English": Decimal('80.00')}

    drop = stats.get_drop_ratio(campus)
    assert drop == {'total_students': 2, 'inactive_students': 1, 'drop_ratio': Decimal('50.00')}

    trend = stats.get_attendance_trend(campus)
    assert trend == [{'month': '2025-09', 'total': 1, 'present': 1, 'attendance_percentage': Decimal('100.00')}]


@pytest.mark.django_db
def test_dashboard_endpoints_scoping(api, super_admin, campus_admin, campus):
    assert api.login(campus_admin).get("/api/dashboard/overview/").status_code == 403
    assert api.get("/api/dashboard/drop-ratio/", {'from': '2025-01-01', 'to': '2025-12-31'}).status_code == 200
    assert api.get("/api/dashboard/drop-ratio/", {'from': '2025-12-31', 'to': '2025-01-01'}).status_code == 400

    api.login(super_admin)
    assert api.get("/api/dashboard/overview/").json()['data']['campus_count'] == 1
    assert api.get("/api/dashboard/trends/").status_code == 200
    assert api.get("/api/dashboard/campus-comparison/").status_code == 200

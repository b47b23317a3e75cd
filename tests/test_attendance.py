# tests/test_attendance.py

from datetime import date

import pytest
from django.core.exceptions import ValidationError

from accounts.models import User
from attendance.models import StudentAttendance, TeacherAttendance
from attendance.services import StudentAttendanceService, TeacherAttendanceService, AttendanceReportService

MONDAY = date(2025, 9, 1)
SUNDAY = date(2025, 8, 31)


@pytest.fixture
def school_monday(monkeypatch):
    monkeypatch.setattr('attendance.services.get_school_today', lambda: MONDAY)
    monkeypatch.setattr('attendance.forms.get_school_today', lambda: MONDAY)
    return MONDAY


@pytest.mark.django_db
def test_bulk_marking_reports_each_roll(school_class, teacher, student, second_student):
    results = StudentAttendanceService.mark_bulk(school_class, [
        {'roll_number': '1', 'status': 'present'},
        {'rollNo': '2', 'status': 'ABSENT'},
        {'roll_number': '99', 'status': 'present'},
        {'roll_number': '1', 'status': 'absent'},
        {'roll_number': '2', 'status': 'sick'},
    ], teacher, date=MONDAY)

    assert [r['message'] for r in results] == [
        "Marked", "Marked", "Student not found", "Already marked", "Invalid status",
    ]
    assert StudentAttendance.objects.filter(date=MONDAY).count() == 2
    assert StudentAttendance.objects.get(enrollment__student=second_student).status == 'absent'


@pytest.mark.django_db
def test_bulk_marking_rejects_invalid_status(school_class, teacher, student):
    results = StudentAttendanceService.mark_bulk(school_class, [{'roll_number': '1', 'status': 'sick'}], teacher, date=MONDAY)
    assert results[0]['message'] == "Invalid status"


@pytest.mark.django_db
def test_bulk_marking_refuses_sunday(school_class, teacher, student):
    with pytest.raises(ValidationError):
        StudentAttendanceService.mark_bulk(school_class, [{'roll_number': '1', 'status': 'present'}], teacher, date=SUNDAY)


@pytest.mark.django_db
def test_mark_endpoint_scoped_to_class(api, school_monday, make_user, campus, school_class, teacher, student):
    outsider = make_user('t_outsider', User.TEACHER, campus=campus)
    payload = {'class_instance': str(school_class.pk), 'records': [{'roll_number': '1', 'status': 'present'}]}

    assert api.login(outsider).post("/api/attendance/students/mark/", payload).status_code == 403

    response = api.login(teacher).post("/api/attendance/students/mark/", payload)
    assert response.status_code == 201
    assert response.json()['results'][0]['message'] == "Marked"
    assert StudentAttendance.objects.get().date == MONDAY


@pytest.mark.django_db
def test_student_history(api, school_class, teacher, student, second_student):
    StudentAttendanceService.mark_bulk(school_class, [{'roll_number': '1', 'status': 'present'}], teacher, date=MONDAY)
    StudentAttendanceService.mark_bulk(school_class, [{'roll_number': '1', 'status': 'leave'}], teacher, date=date(2025, 9, 2))

    response = api.login(student).get(f"/api/attendance/students/history/{student.pk}/")
    assert response.status_code == 200
    assert response.json()['counts'] == {'present': 1, 'absent': 0, 'leave': 1}
    assert response.json()['records'][0]['date'] == '2025-09-02'

    assert api.get(f"/api/attendance/students/history/{second_student.pk}/").status_code == 403


@pytest.mark.django_db
def test_record_update_and_delete(api, campus_admin, school_class, teacher, student):
    StudentAttendanceService.mark_bulk(school_class, [{'roll_number': '1', 'status': 'absent'}], teacher, date=MONDAY)
    record = StudentAttendance.objects.get()
    url = f"/api/attendance/students/{record.pk}/"

    assert api.login(teacher).patch(url, {'status': 'leave'}).status_code == 200
    record.refresh_from_db()
    assert record.status == 'leave'
    assert api.delete(url).status_code == 403

    assert api.login(campus_admin).delete(url).status_code == 200
    assert not StudentAttendance.objects.exists()


@pytest.mark.django_db
def test_teacher_check_in_and_out(school_monday, teacher):
    attendance = TeacherAttendanceService.check_in(teacher, teacher)
    assert attendance.status == 'present'
    assert attendance.check_in is not None
    assert attendance.campus == teacher.campus

    with pytest.raises(ValidationError):
        TeacherAttendanceService.check_in(teacher, teacher)

    attendance = TeacherAttendanceService.check_out(teacher)
    assert attendance.check_out >= attendance.check_in

    with pytest.raises(ValidationError):
        TeacherAttendanceService.check_out(teacher)


@pytest.mark.django_db
def test_check_out_requires_check_in(api, school_monday, teacher):
    response = api.login(teacher).post("/api/attendance/teachers/check-out/")
    assert response.status_code == 404


@pytest.mark.django_db
def test_check_in_refused_on_sunday(monkeypatch, teacher):
    monkeypatch.setattr('attendance.services.get_school_today', lambda: SUNDAY)
    with pytest.raises(ValidationError):
        TeacherAttendanceService.check_in(teacher, teacher)
    assert not TeacherAttendance.objects.exists()


@pytest.mark.django_db
def test_admin_checks_in_a_teacher(api, school_monday, campus_admin, teacher):
    response = api.login(campus_admin).post("/api/attendance/teachers/check-in/", {
        'teacher': str(teacher.pk), 'status': 'leave',
    })

    assert response.status_code == 201
    assert response.json()['attendance']['status'] == 'leave'
    assert TeacherAttendance.objects.get().marked_by == campus_admin


@pytest.mark.django_db
def test_monthly_summary_and_low_attendance(campus, school_class, teacher, student, second_student):
    days = [date(2025, 9, d) for d in (1, 2, 3, 4)]
    pattern = {
        '1': ['present', 'present', 'present', 'absent'],
        '2': ['present', 'absent', 'absent', 'leave'],
    }
    for index, day in enumerate(days):
        StudentAttendanceService.mark_bulk(school_class, [
            {'roll_number': roll, 'status': statuses[index]} for roll, statuses in pattern.items()
        ], teacher, date=day)

    summary = AttendanceReportService.monthly_summary(2025, 9, campus=campus)
    by_roll = {row['roll_number']: row for row in summary}
    assert str(by_roll['1']['percentage']) == '75.00'
    assert by_roll['2']['absent'] == 2
    assert by_roll['2']['leave'] == 1
    assert str(by_roll['2']['percentage']) == '25.00'

    low = AttendanceReportService.low_attendance(2025, 9, campus=campus)
    assert [row['roll_number'] for row in low] == ['2']


@pytest.mark.django_db
def test_reports_are_admin_only(api, campus_admin, teacher, campus):
    assert api.login(teacher).get("/api/attendance/reports/low/").status_code == 403

    response = api.login(campus_admin).get("/api/attendance/reports/monthly/", {'year': 2025, 'month': 9})
    assert response.status_code == 200
    assert response.json()['students'] == []

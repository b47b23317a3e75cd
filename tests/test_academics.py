# tests/test_academics.py

import pytest
from django.core.exceptions import ValidationError

from academics.models import Class, TeacherAssignment
from academics.services import ClassEnrollmentService, TeacherAssignmentService
from accounts.models import User
from tests.conftest import SESSION


@pytest.fixture
def other_teacher(make_user, campus):
    return make_user('t_hamza', User.TEACHER, campus=campus)


@pytest.mark.django_db
def test_assign_is_idempotent(teacher, campus, school_class, math):
    first = TeacherAssignmentService.assign(teacher, campus, school_class, math)
    second = TeacherAssignmentService.assign(teacher, campus, school_class, math)

    assert first.pk == second.pk
    assert TeacherAssignment.objects.filter(teacher=teacher).count() == 1


@pytest.mark.django_db
def test_assign_requires_curriculum_subject(teacher, campus, school_class):
    from academics.models import Subject
    art = Subject.objects.create(name="Art")
    with pytest.raises(ValidationError):
        TeacherAssignmentService.assign(teacher, campus, school_class, art)


@pytest.mark.django_db
def test_reassign_releases_previous_holder(teacher, other_teacher, campus, school_class, math):
    TeacherAssignmentService.assign(teacher, campus, school_class, math)

    TeacherAssignmentService.reassign(other_teacher, campus, school_class, math)

    assert not TeacherAssignmentService.get_assignments(teacher).exists()
    assert TeacherAssignmentService.get_assignments(other_teacher).count() == 1


@pytest.mark.django_db
def test_remove_from_campus(teacher, campus, school_class, math, english):
    TeacherAssignmentService.assign(teacher, campus, school_class, math)
    TeacherAssignmentService.assign(teacher, campus, school_class, english)

    assert TeacherAssignmentService.remove_from_campus(teacher, campus) == 2
    assert Class.objects.get(pk=school_class.pk).class_teacher is None

    with pytest.raises(ValidationError):
        TeacherAssignmentService.remove_from_campus(teacher, campus)


@pytest.mark.django_db
def test_roll_number_unique_per_class(make_user, campus, school_class, student):
    newcomer = make_user('s_new', User.STUDENT, campus=campus)
    with pytest.raises(ValidationError):
        ClassEnrollmentService.enroll_student(newcomer, school_class, '1', SESSION)

    enrollment, created = ClassEnrollmentService.enroll_student(newcomer, school_class, '7', SESSION)
    assert created is True


@pytest.mark.django_db
def test_withdrawn_enrollment_is_reactivated(student, school_class):
    enrollment = student.enrollments.get()
    ClassEnrollmentService.withdraw_student(enrollment)

    again, created = ClassEnrollmentService.enroll_student(student, school_class, '3', SESSION)

    assert created is False
    assert again.pk == enrollment.pk
    assert again.is_active is True
    assert again.roll_number == '3'


@pytest.mark.django_db
def test_class_endpoints(api, campus_admin, teacher, campus, math, english):
    api.login(campus_admin)
    response = api.post("/api/academics/classes/", {
        'grade': 6, 'section': 'B', 'subjects': [str(math.pk), str(english.pk)],
    })
    assert response.status_code == 201
    class_id = response.json()['class']['id']

    assert api.post("/api/academics/classes/", {'grade': 6, 'section': 'B'}).status_code == 400

    assert api.delete(f"/api/academics/classes/{class_id}/").status_code == 200
    assert Class.objects.get(pk=class_id).is_active is False


@pytest.mark.django_db
def test_assign_endpoint(api, campus_admin, teacher, campus, school_class, math):
    response = api.login(campus_admin).post("/api/academics/assignments/assign/", {
        'teacher': str(teacher.pk), 'campus': str(campus.pk),
        'class_instance': str(school_class.pk), 'subject': str(math.pk),
    })
    assert response.status_code in (200, 201)
    assert TeacherAssignment.objects.filter(teacher=teacher, is_active=True).count() == 1

    listing = api.get(f"/api/academics/assignments/teachers/{teacher.pk}/")
    assert listing.status_code == 200


@pytest.mark.django_db
def test_subject_writes_need_super_admin(api, campus_admin, super_admin):
    assert api.login(campus_admin).post("/api/academics/subjects/", {'name': "Urdu"}).status_code == 403
    response = api.login(super_admin).post("/api/academics/subjects/", {'name': "Urdu", 'code': 'urd'})
    assert response.status_code == 201
    assert response.json()['subject']['code'] == 'URD'

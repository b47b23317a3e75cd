# tests/conftest.py

import json
from decimal import Decimal

import pytest
from django.core.cache import cache

from accounts.models import User
from academics.models import Subject, Class, StudentEnrollment
from core.models import Campus
from exams.models import Exam, Score

SESSION = '2025-2026'
TERM = 'FirstTerm'


@pytest.fixture(autouse=True)
def remark_client(settings):
    from tests.remark_clients import StaticRemarkClient
    settings.MARKSHEET_REMARK_CLIENT = 'tests.remark_clients.StaticRemarkClient'
    StaticRemarkClient.calls = []
    cache.clear()
    return StaticRemarkClient


@pytest.fixture
def make_user(db):
    def _make_user(username, role, campus=None, **extra):
        return User.objects.create_user(
            username=username,
            email=f"{username}@schoolnet.test",
            password='secret-pass-123',
            role=role,
            campus=campus,
            **extra
        )
    return _make_user


@pytest.fixture
def super_admin(make_user):
    return make_user('root', User.SUPER_ADMIN)


@pytest.fixture
def campus_admin(make_user):
    return make_user('lhr_admin', User.CAMPUS_ADMIN)


@pytest.fixture
def campus(db, campus_admin):
    campus = Campus.objects.create(name="Lahore Campus", code='lhr-01', city="Lahore", campus_admin=campus_admin)
    campus_admin.campus = campus
    campus_admin.save(update_fields=['campus'])
    return campus


@pytest.fixture
def other_campus(db, make_user):
    admin = make_user('khi_admin', User.CAMPUS_ADMIN)
    return Campus.objects.create(name="Karachi Campus", code='KHI-01', city="Karachi", campus_admin=admin)


@pytest.fixture
def teacher(make_user, campus):
    return make_user('t_ayesha', User.TEACHER, campus=campus, first_name="Ayesha", last_name="Khan")


@pytest.fixture
def math(db):
    return Subject.objects.create(name="Mathematics", code='math')


@pytest.fixture
def english(db):
    return Subject.objects.create(name="English", code='ENG')


@pytest.fixture
def school_class(campus, teacher, math, english):
    class_instance = Class.objects.create(grade=5, section='A', campus=campus, class_teacher=teacher)
    class_instance.subjects.set([math, english])
    return class_instance


@pytest.fixture
def enroll(school_class):
    def _enroll(student, roll_number, class_instance=None):
        class_instance = class_instance or school_class
        return StudentEnrollment.objects.create(
            student=student,
            campus=class_instance.campus,
            class_instance=class_instance,
            roll_number=str(roll_number),
            academic_session=SESSION,
        )
    return _enroll


@pytest.fixture
def student(make_user, campus, enroll):
    user = make_user('s_bilal', User.STUDENT, campus=campus, first_name="Bilal", last_name="Ahmed")
    enroll(user, 1)
    return user


@pytest.fixture
def second_student(make_user, campus, enroll):
    user = make_user('s_sana', User.STUDENT, campus=campus, first_name="Sana", last_name="Malik")
    enroll(user, 2)
    return user


@pytest.fixture
def make_exam(school_class):
    def _make_exam(subject, total_marks='100', exam_type='Examination', term=TERM, name=None):
        return Exam.objects.create(
            name=name or f"{subject.name} {exam_type}",
            term=term,
            academic_session=SESSION,
            class_instance=school_class,
            subject=subject,
            campus=school_class.campus,
            total_marks=Decimal(total_marks),
            exam_type=exam_type,
        )
    return _make_exam


@pytest.fixture
def math_exam(make_exam, math):
    return make_exam(math)


@pytest.fixture
def english_exam(make_exam, english):
    return make_exam(english, total_marks='50')


@pytest.fixture
def record_score():
    def _record_score(student, exam, marks, **extra):
        return Score.objects.create(student=student, exam=exam, marks_obtained=Decimal(str(marks)), **extra)
    return _record_score


@pytest.fixture
def api(client):
    """Django test client with JSON helpers"""
    class JsonClient:
        def __init__(self, django_client):
            self.client = django_client

        def login(self, user):
            self.client.force_login(user)
            return self

        def get(self, path, data=None):
            return self.client.get(path, data or {})

        def post(self, path, payload=None):
            return self.client.post(path, json.dumps(payload or {}), content_type='application/json')

        def patch(self, path, payload=None):
            return self.client.patch(path, json.dumps(payload or {}), content_type='application/json')

        def delete(self, path):
            return self.client.delete(path)

    return JsonClient(client)

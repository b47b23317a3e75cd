# tests/test_accounts.py

import pytest

from accounts.models import User


@pytest.mark.django_db
def test_login_with_email_or_username(api, teacher):
    for login in ('t_ayesha@schoolnet.test', 'T_AYESHA'):
        response = api.post("/api/auth/login/", {'email': login, 'password': 'secret-pass-123'})
        assert response.status_code == 200
        assert response.json()['user']['role'] == User.TEACHER


@pytest.mark.django_db
def test_login_rejects_bad_password_and_inactive(api, teacher):
    assert api.post("/api/auth/login/", {'email': teacher.email, 'password': 'wrong'}).status_code == 401

    teacher.is_active = False
    teacher.save()
    assert api.post("/api/auth/login/", {'email': teacher.email, 'password': 'secret-pass-123'}).status_code == 401


@pytest.mark.django_db
def test_me_reports_scope_campus(api, campus_admin, campus):
    response = api.login(campus_admin).get("/api/auth/me/")
    assert response.json()['user']['scope_campus']['id'] == str(campus.pk)


@pytest.mark.django_db
def test_campus_admin_creates_teacher_on_own_campus(api, campus_admin, campus, other_campus):
    response = api.login(campus_admin).post("/api/auth/users/", {
        'username': 'new_teacher', 'email': 'New.Teacher@schoolnet.test', 'password': 'long-enough-1',
        'role': User.TEACHER, 'campus': str(other_campus.pk),
    })

    assert response.status_code == 201
    user = User.objects.get(username='new_teacher')
    assert user.campus == campus
    assert user.email == 'new.teacher@schoolnet.test'
    assert user.check_password('long-enough-1')


@pytest.mark.django_db
def test_campus_admin_cannot_create_admins(api, campus_admin, campus):
    response = api.login(campus_admin).post("/api/auth/users/", {
        'username': 'boss', 'email': 'boss@schoolnet.test', 'password': 'long-enough-1',
        'role': User.SUPER_ADMIN,
    })
    assert response.status_code == 400
    assert 'role' in response.json()['errors']


@pytest.mark.django_db
def test_duplicate_email_rejected(api, super_admin, teacher, campus):
    response = api.login(super_admin).post("/api/auth/users/", {
        'username': 'someone', 'email': teacher.email.upper(), 'password': 'long-enough-1',
        'role': User.STUDENT, 'campus': str(campus.pk),
    })
    assert response.status_code == 400
    assert 'email' in response.json()['errors']


@pytest.mark.django_db
def test_teacher_cannot_create_users(api, teacher):
    assert api.login(teacher).post("/api/auth/users/", {}).status_code == 403

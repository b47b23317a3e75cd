# accounts/permissions.py

"""
Role scoping helpers shared by the JSON views.

A teacher's reach is the set of (campus, class, subject) triples it holds
through active teacher assignments, plus the whole of the class it leads
(subject ``None`` meaning "any subject of that class").
"""

import logging

logger = logging.getLogger(__name__)


def get_admin_campus(user):
    """Active campus administered by ``user`` (campus admins only)"""
    if not user.is_authenticated or not user.is_campus_admin:
        return None
    from core.models import Campus
    return Campus.objects.filter(campus_admin=user, is_active=True).first()


def get_teacher_scopes(user):
    """
    Set of (campus_id, class_id, subject_id) triples a teacher may act on.

    subject_id is None for the class the teacher leads.
    """
    if not user.is_authenticated or not user.is_teacher:
        return set()

    from academics.models import Class, TeacherAssignment

    scopes = set(
        TeacherAssignment.objects.filter(
            teacher=user,
            is_active=True,
            teaching_assignment__is_active=True,
        ).values_list(
            'teaching_assignment__campus_id',
            'teaching_assignment__class_instance_id',
            'teaching_assignment__subject_id',
        )
    )

    led_class = Class.objects.filter(class_teacher=user, is_active=True).values_list('campus_id', 'pk').first()
    if led_class:
        scopes.add((led_class[0], led_class[1], None))

    return scopes


def teacher_covers(scopes, campus_id, class_id, subject_id=None):
    """True if a scope set reaches the given campus/class (and subject, when given)"""
    for scope_campus, scope_class, scope_subject in scopes:
        if scope_campus != campus_id or scope_class != class_id:
            continue
        if scope_subject is None or subject_id is None or scope_subject == subject_id:
            return True
    return False


def can_manage_campus(user, campus_id):
    """Super admins manage every campus, campus admins only their own"""
    if user.is_super_admin:
        return True
    campus = get_admin_campus(user)
    return campus is not None and campus.pk == campus_id


def can_grade(user, exam):
    """
    Whether ``user`` may record or correct scores for ``exam``.

    Admins within their campus, teachers within their teaching scopes.
    """
    if not user.is_authenticated:
        return False
    if user.is_super_admin or user.is_campus_admin:
        return can_manage_campus(user, exam.campus_id)
    if user.is_teacher:
        return teacher_covers(
            get_teacher_scopes(user), exam.campus_id, exam.class_instance_id, exam.subject_id
        )
    return False


def can_view_class(user, class_instance):
    """Read access to a class's records (attendance, marksheets)"""
    if user.is_super_admin:
        return True
    if user.is_campus_admin:
        return can_manage_campus(user, class_instance.campus_id)
    if user.is_teacher:
        return teacher_covers(get_teacher_scopes(user), class_instance.campus_id, class_instance.pk)
    return False

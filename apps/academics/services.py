# academics/services.py

"""
Academic Services Module

Business logic for academic operations:
- Student enrollment in classes
- Teacher assignment to campus/class/subject combinations

All services use @transaction.atomic for data consistency
"""

from django.db import transaction
from django.core.exceptions import ValidationError
from django.contrib.auth import get_user_model
import logging

from .models import Class, StudentEnrollment, TeachingAssignment, TeacherAssignment

logger = logging.getLogger(__name__)

User = get_user_model()


# =============================================================================
# CLASS ENROLLMENT SERVICE
# =============================================================================

class ClassEnrollmentService:
    """Student enrollment workflow"""

    @staticmethod
    @transaction.atomic
    def enroll_student(student, class_instance, roll_number, academic_session):
        """
        Enroll a student in a class of the class's campus.

        A previously withdrawn enrollment in the same class is reactivated
        rather than duplicated.

        Returns:
            tuple: (enrollment, created)
        """
        if student.role != User.STUDENT:
            raise ValidationError("Only students can be enrolled.")
        if not class_instance.is_active:
            raise ValidationError(f"{class_instance} is not active.")
        if student.campus_id and student.campus_id != class_instance.campus_id:
            raise ValidationError("Student belongs to another campus.")

        roll_number = str(roll_number).strip()
        if not roll_number:
            raise ValidationError("Roll number is required.")

        roll_taken = StudentEnrollment.objects.filter(
            class_instance=class_instance,
            roll_number=roll_number,
            is_active=True,
        ).exclude(student=student).exists()
        if roll_taken:
            raise ValidationError(f"Roll number {roll_number} is already taken in {class_instance}.")

        enrollment, created = StudentEnrollment.objects.get_or_create(
            student=student,
            campus_id=class_instance.campus_id,
            class_instance=class_instance,
            defaults={
                'roll_number': roll_number,
                'academic_session': academic_session,
            }
        )

        if not created:
            if enrollment.is_active:
                raise ValidationError(f"{student.display_name} is already enrolled in {class_instance}.")
            enrollment.roll_number = roll_number
            enrollment.academic_session = academic_session
            enrollment.is_active = True
            enrollment.full_clean()
            enrollment.save()
        else:
            enrollment.full_clean()

        if student.campus_id is None:
            student.campus_id = class_instance.campus_id
            student.save(update_fields=['campus'])

        logger.info(
            f"Enrolled {student.username} in {class_instance} "
            f"(roll {roll_number}, {academic_session})"
        )
        return enrollment, created

    @staticmethod
    @transaction.atomic
    def update_enrollment(enrollment, roll_number=None, academic_session=None, is_active=None):
        if roll_number is not None:
            roll_number = str(roll_number).strip()
            clash = StudentEnrollment.objects.filter(
                class_instance=enrollment.class_instance,
                roll_number=roll_number,
                is_active=True,
            ).exclude(pk=enrollment.pk)
            if clash.exists():
                raise ValidationError(f"Roll number {roll_number} is already taken.")
            enrollment.roll_number = roll_number
        if academic_session is not None:
            enrollment.academic_session = academic_session
        if is_active is not None:
            enrollment.is_active = bool(is_active)

        enrollment.full_clean()
        enrollment.save()
        return enrollment

    @staticmethod
    @transaction.atomic
    def withdraw_student(enrollment):
        """Soft delete: the enrollment and its history stay in place"""
        enrollment.is_active = False
        enrollment.save(update_fields=['is_active'])
        logger.info(f"Withdrew {enrollment.student.username} from {enrollment.class_instance}")
        return enrollment


# =============================================================================
# TEACHER ASSIGNMENT SERVICE
# =============================================================================

class TeacherAssignmentService:
    """Who teaches which subject of which class"""

    @staticmethod
    def _validate(teacher, campus, class_instance, subject):
        if teacher.role != User.TEACHER:
            raise ValidationError("Only teachers can be assigned.")
        if class_instance.campus_id != campus.pk:
            raise ValidationError("Class does not belong to this campus.")
        if not class_instance.subjects.filter(pk=subject.pk).exists():
            raise ValidationError(f"{subject.name} is not part of {class_instance}'s curriculum.")

    @staticmethod
    @transaction.atomic
    def assign(teacher, campus, class_instance, subject):
        """
        Give a teacher a campus/class/subject combination.

        Idempotent: assigning the same combination twice keeps one link.

        Returns:
            TeacherAssignment
        """
        TeacherAssignmentService._validate(teacher, campus, class_instance, subject)

        teaching_assignment, _ = TeachingAssignment.objects.get_or_create(
            campus=campus,
            class_instance=class_instance,
            subject=subject,
        )
        if not teaching_assignment.is_active:
            teaching_assignment.is_active = True
            teaching_assignment.save(update_fields=['is_active'])

        link, created = TeacherAssignment.objects.get_or_create(
            teacher=teacher,
            teaching_assignment=teaching_assignment,
        )
        if not created and not link.is_active:
            link.is_active = True
            link.save(update_fields=['is_active'])

        if teacher.campus_id is None:
            teacher.campus = campus
            teacher.save(update_fields=['campus'])

        logger.info(f"Assigned {teacher.username} to {campus.code} {teaching_assignment}")
        return link

    @staticmethod
    @transaction.atomic
    def unassign(teacher, campus, class_instance, subject):
        """
        Drop one combination from a teacher.

        Raises:
            TeachingAssignment.DoesNotExist: the combination was never created
        """
        teaching_assignment = TeachingAssignment.objects.get(
            campus=campus,
            class_instance=class_instance,
            subject=subject,
        )
        updated = TeacherAssignment.objects.filter(
            teacher=teacher,
            teaching_assignment=teaching_assignment,
            is_active=True,
        ).update(is_active=False)

        logger.info(f"Unassigned {teacher.username} from {campus.code} {teaching_assignment} ({updated})")
        return updated

    @staticmethod
    @transaction.atomic
    def reassign(teacher, campus, class_instance, subject):
        """
        Hand a combination to ``teacher``, taking it away from whoever
        currently holds it.
        """
        link = TeacherAssignmentService.assign(teacher, campus, class_instance, subject)
        released = TeacherAssignment.objects.filter(
            teaching_assignment=link.teaching_assignment,
            is_active=True,
        ).exclude(teacher=teacher).update(is_active=False)

        if released:
            logger.info(f"Reassigned {link.teaching_assignment} to {teacher.username}, released {released}")
        return link

    @staticmethod
    @transaction.atomic
    def remove_from_campus(teacher, campus):
        """
        Deactivate every assignment the teacher holds on a campus.

        Raises:
            ValidationError: the teacher holds nothing on that campus
        """
        links = TeacherAssignment.objects.filter(
            teacher=teacher,
            teaching_assignment__campus=campus,
            is_active=True,
        )
        if not links.exists():
            raise ValidationError("No assignment to the teacher is found for the campus")

        count = links.update(is_active=False)
        Class.objects.filter(campus=campus, class_teacher=teacher).update(class_teacher=None)

        logger.info(f"Removed {teacher.username} from campus {campus.code} ({count} assignments)")
        return count

    @staticmethod
    def get_assignments(teacher, active_only=True):
        links = TeacherAssignment.objects.filter(teacher=teacher).select_related(
            'teaching_assignment__campus',
            'teaching_assignment__class_instance',
            'teaching_assignment__subject',
        )
        if active_only:
            links = links.filter(is_active=True, teaching_assignment__is_active=True)
        return links

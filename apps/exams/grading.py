# exams/grading.py

"""
Grade scale shared by subject lines and overall results.
"""

from decimal import Decimal

from core.utils import calculate_percentage, to_decimal


# (minimum percentage, grade), highest first
GRADE_SCALE = [
    (Decimal('90'), 'A+'),
    (Decimal('80'), 'A'),
    (Decimal('70'), 'B'),
    (Decimal('60'), 'C'),
    (Decimal('50'), 'D'),
]

FAILING_GRADE = 'F'

GRADES = [grade for _, grade in GRADE_SCALE] + [FAILING_GRADE]


def get_grade(percentage):
    """
    Letter grade for a percentage.

    Example:
        >>> get_grade(Decimal('90.00'))   # 'A+'
        >>> get_grade(Decimal('89.99'))   # 'A'
    """
    percentage = to_decimal(percentage)
    for minimum, grade in GRADE_SCALE:
        if percentage >= minimum:
            return grade
    return FAILING_GRADE


def grade_for(obtained, total):
    """(percentage, grade) for a fraction"""
    percentage = calculate_percentage(obtained, total)
    return percentage, get_grade(percentage)

# core/utils.py

"""
Number, date and export helpers shared by every app of the school network.
"""
from django.http import HttpResponse
from django.utils import timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
import calendar
import csv
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# NUMBERS
# =============================================================================

TWO_PLACES = Decimal('0.01')


def to_decimal(value, default=Decimal('0')):
    """Decimal from a number or numeric string, ``default`` when it is not one"""
    if isinstance(value, Decimal):
        return value
    if value is None or value == '':
        return default
    try:
        # through str() so 0.1 stays 0.1
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def calculate_percentage(part, whole, decimal_places=2):
    """
    ``part`` as a percentage of ``whole``, rounded half up.

        >>> calculate_percentage(88, 120)
        Decimal('73.33')
        >>> calculate_percentage(1, 0)
        Decimal('0.00')
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    whole = to_decimal(whole)
    if not whole:
        return Decimal(0).quantize(quantum)
    return (to_decimal(part) * 100 / whole).quantize(quantum, rounding=ROUND_HALF_UP)


# =============================================================================
# DATES
# =============================================================================

def get_school_today():
    """Today in the configured TIME_ZONE; attendance days follow this, not UTC"""
    return timezone.localdate()


def is_school_day(check_date=None):
    # six-day week, Sunday off
    return (check_date or get_school_today()).weekday() != calendar.SUNDAY


def parse_date(value):
    """
    Date from a YYYY-MM-DD string; dates and datetimes pass through.

    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError("Date is required")
    return datetime.strptime(str(value).strip()[:10], '%Y-%m-%d').date()


def validate_date_range(start_date, end_date):
    """(is_valid, error_message) for an inclusive range"""
    if not (start_date and end_date):
        return False, "Both start and end dates are required"
    if start_date > end_date:
        return False, "Start date must be on or before end date"
    return True, None


def month_bounds(year, month):
    """First and last day of a calendar month"""
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


# =============================================================================
# EXPORTS
# =============================================================================

def generate_csv_response(rows, filename, headers=None):
    """CSV attachment of ``rows`` (sequences), ``headers`` first when given"""
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'

    writer = csv.writer(response)
    if headers:
        writer.writerow(headers)
    writer.writerows(rows)
    return response


# =============================================================================
# AUDIT LOGGING
# =============================================================================

def log_user_action(user, action, details=None, level='INFO'):
    """
    One audit line per administrative action:

        log_user_action(request.user, 'Campus Deactivated', {'campus': campus.code}, level='WARNING')
    """
    message = f"User: {getattr(user, 'username', 'anonymous')} | Action: {action}"
    if details:
        message += f" | Details: {details}"
    getattr(logger, level.lower(), logger.info)(message)

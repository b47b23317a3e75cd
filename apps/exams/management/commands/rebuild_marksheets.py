# exams/management/commands/rebuild_marksheets.py

"""
Re-run the marksheet pipeline for a class/term/session cohort.

USAGE EXAMPLES:
===============

# Rebuild one class
python manage.py rebuild_marksheets --class <class uuid> --term FirstTerm --session 2025-2026

# Rebuild every active class of a campus
python manage.py rebuild_marksheets --campus LHR-01 --term FirstTerm --session 2025-2026

# Record an admin as the author of the rebuilt marksheets
python manage.py rebuild_marksheets --campus LHR-01 --term FirstTerm --session 2025-2026 --user admin
"""

from django.core.management.base import BaseCommand, CommandError
import logging

from accounts.models import User
from academics.models import Class
from exams.models import TERMS
from exams.services import MarksheetService
from utils.context import RequestContext

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Recompute (or retract) marksheets of a class/term/session cohort'

    def add_arguments(self, parser):
        target = parser.add_mutually_exclusive_group(required=True)
        target.add_argument('--class', dest='class_id', help='Class id')
        target.add_argument('--campus', dest='campus_code', help='Campus code (all active classes)')
        parser.add_argument('--term', required=True, choices=TERMS)
        parser.add_argument('--session', required=True, help='Academic session, e.g. 2025-2026')
        parser.add_argument('--user', help='Username recorded as updater of the rebuilt marksheets')

    def handle(self, *args, **options):
        if options['class_id']:
            classes = Class.objects.filter(pk=options['class_id'])
        else:
            classes = Class.objects.filter(campus__code=options['campus_code'].upper(), is_active=True)

        classes = list(classes.select_related('campus'))
        if not classes:
            raise CommandError('No matching class found')

        user = None
        if options['user']:
            user = User.objects.filter(username=options['user']).first()
            if user is None:
                raise CommandError(f"User '{options['user']}' not found")

        for class_instance in classes:
            with RequestContext(user=user, request_path='manage.py rebuild_marksheets'):
                summary = MarksheetService.rebuild_cohort(class_instance.pk, options['term'], options['session'])
            self.stdout.write(self.style.SUCCESS(
                f"{class_instance.campus.code} {class_instance}: {summary['generated']} generated, "
                f"{summary['retracted']} retracted, {summary['skipped']} skipped"
            ))

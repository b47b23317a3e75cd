# exams/management/commands/rank_marksheets.py

"""
Assign ranks within class/term/session cohorts.

python manage.py rank_marksheets --term FirstTerm --session 2025-2026 [--class <class uuid>]
"""

from django.core.management.base import BaseCommand, CommandError
import logging

from exams.models import Marksheet, TERMS
from exams.services import MarksheetRankingService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Rank marksheets by overall percentage (ties share a rank)'

    def add_arguments(self, parser):
        parser.add_argument('--class', dest='class_id', help='Only this class')
        parser.add_argument('--term', required=True, choices=TERMS)
        parser.add_argument('--session', required=True, help='Academic session, e.g. 2025-2026')

    def handle(self, *args, **options):
        cohorts = Marksheet.objects.filter(term=options['term'], academic_session=options['session'])
        if options['class_id']:
            cohorts = cohorts.filter(class_instance_id=options['class_id'])

        class_ids = list(cohorts.order_by().values_list('class_instance_id', flat=True).distinct())
        if not class_ids:
            raise CommandError('No marksheets found for that cohort')

        for class_id in class_ids:
            ranks = MarksheetRankingService.rank_cohort(class_id, options['term'], options['session'])
            self.stdout.write(self.style.SUCCESS(f"Class {class_id}: ranked {len(ranks)} marksheet(s)"))

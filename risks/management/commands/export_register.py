"""
Write the full risk register to the export directory.
"""

import logging
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from risks.permissions import Actor, Capability
from risks.services.report_service import ReportService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Export the whole risk register as CSV and/or Excel files'

    def add_arguments(self, parser):
        parser.add_argument(
            '--format',
            choices=['csv', 'excel', 'all'],
            default='all',
            help='Which export to write (default: all)',
        )
        parser.add_argument(
            '--output-dir',
            default=settings.RISKS_EXPORT_DIR,
            help='Directory to write into (default: RISKS_EXPORT_DIR)',
        )

    def handle(self, *args, **options):
        output_dir = Path(options['output_dir'])
        output_dir.mkdir(parents=True, exist_ok=True)

        # Exports run outside any request, with an unrestricted actor
        service = ReportService(Actor(id=None, capabilities=frozenset(Capability)))
        stamp = timezone.localtime().strftime('%Y%m%d_%H%M%S')
        written = []

        if options['format'] in ('csv', 'all'):
            path = output_dir / f'risk_register_{stamp}.csv'
            path.write_text(service.generate_csv_report(), encoding='utf-8')
            written.append(path)

        if options['format'] in ('excel', 'all'):
            path = output_dir / f'risk_register_{stamp}.xlsx'
            path.write_bytes(service.generate_excel_report())
            written.append(path)

        for path in written:
            logger.info(f"Register export written to {path}")
            self.stdout.write(self.style.SUCCESS(f"Wrote {path}"))

"""
Block until the default database accepts connections.
Usage: python manage.py wait_for_db [--attempts N] [--interval SECONDS]
"""
import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import connections
from django.db.utils import OperationalError

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Wait for the database to become available, retrying a fixed number of times'

    def add_arguments(self, parser):
        parser.add_argument(
            '--attempts',
            type=int,
            default=settings.DB_WAIT_ATTEMPTS,
            help='Number of connection attempts before giving up',
        )
        parser.add_argument(
            '--interval',
            type=float,
            default=settings.DB_WAIT_INTERVAL,
            help='Seconds to sleep between attempts',
        )

    def handle(self, *args, **options):
        attempts = options['attempts']
        interval = options['interval']

        for attempt in range(1, attempts + 1):
            try:
                connections['default'].ensure_connection()
            except OperationalError as e:
                logger.warning(f"Database unavailable (attempt {attempt}/{attempts}): {e}")
                self.stdout.write(self.style.WARNING(f"Database unavailable, retrying in {interval}s..."))
                time.sleep(interval)
                continue

            self.stdout.write(self.style.SUCCESS(f"Database available after {attempt} attempt(s)"))
            return

        raise CommandError(f"Database still unavailable after {attempts} attempts")

# Audit Bookings Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db import IntegrityError, transaction
from django.db.models import Count

from core.models import TERMINAL_STATUSES, Booking


class Command(BaseCommand):
    help = 'Checks bookings for status drift, duplicate open bookings and misplaced review locks.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rewrite stored statuses that disagree with the party tracks.',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report only; never write, even with --fix.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        fix = options['fix'] and not options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be a positive integer.')

        drifted = self.check_status_drift(fix, batch_size)
        duplicates = self.check_open_bookings_per_conversation()
        misplaced = self.check_review_locks()

        problems = drifted + duplicates + misplaced
        if problems:
            self.stdout.write(self.style.WARNING(f'Audit found {problems} problem(s).'))
        else:
            self.stdout.write(self.style.SUCCESS('Audit completed. No problems found.'))

    def check_status_drift(self, fix, batch_size):
        self.stdout.write('Checking booking statuses against party tracks...')
        bookings = Booking.objects.order_by('pk').iterator(chunk_size=batch_size)
        updates = []
        drifted = 0
        count = 0

        for booking in bookings:
            expected = booking.derived_status()
            if booking.status != expected:
                drifted += 1
                self.stdout.write(
                    f'  Booking {booking.pk}: stored {booking.status}, '
                    f'derived {expected} (guest {booking.guest_status}, host {booking.host_status})'
                )
                booking.status = expected
                updates.append(booking)

            if len(updates) >= batch_size:
                if fix:
                    self._write_statuses(updates)
                updates = []

            count += 1
            if count % 1000 == 0:
                self.stdout.write(f'Processed {count} bookings...')

        if updates and fix:
            self._write_statuses(updates)

        self.stdout.write(f'Processed {count} bookings total, {drifted} with status drift.')
        return drifted

    def _write_statuses(self, bookings):
        try:
            with transaction.atomic():
                Booking.objects.bulk_update(bookings, ['status'])
        except IntegrityError as e:
            raise CommandError(
                f'Could not rewrite statuses, a conversation would hold two open bookings: {e}'
            )

    def check_open_bookings_per_conversation(self):
        self.stdout.write('Checking open bookings per conversation...')
        duplicates = (
            Booking.objects
            .exclude(status__in=TERMINAL_STATUSES)
            .values('conversation_id')
            .annotate(open_count=Count('id'))
            .filter(open_count__gt=1)
            .order_by('conversation_id')
        )

        found = 0
        for row in duplicates:
            found += 1
            self.stdout.write(
                f'  Conversation {row["conversation_id"]}: {row["open_count"]} open bookings'
            )
        return found

    def check_review_locks(self):
        self.stdout.write('Checking review locks on unfinished bookings...')
        misplaced = (
            Booking.objects
            .exclude(status='completed')
            .exclude(buyer_review_id__isnull=True, seller_review_id__isnull=True)
            .order_by('pk')
        )

        found = 0
        for booking in misplaced:
            found += 1
            self.stdout.write(
                f'  Booking {booking.pk}: review lock set while {booking.status}'
            )
        return found

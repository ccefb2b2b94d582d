import os
import sys
import django
import random
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'viewinger_marketplace.settings')
django.setup()

from core.models import User
from core import bookings as lifecycle
from core.conversations import get_or_create_conversation
from core.reviews import submit_review

fake = Faker()

# Lifecycle steps that bring a fresh booking to each target status
STATUS_PATHS = {
    'requested': [],
    'scheduled': ['accept'],
    'declined': ['decline'],
    'cancelled': ['accept', 'cancel'],
    'completed_pending_confirmation': ['accept', 'confirm_guest'],
    'completed': ['accept', 'confirm_guest', 'confirm_host'],
}


def create_users(num_hosts=5, num_guests=10):
    print(f"Creating {num_hosts} hosts and {num_guests} guests...")

    def make_user():
        email = fake.unique.email()
        return User.objects.create_user(
            username=fake.unique.user_name(),
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
        )

    hosts = [make_user() for _ in range(num_hosts)]
    guests = [make_user() for _ in range(num_guests)]

    print(f"Created {len(hosts)} hosts and {len(guests)} guests.")
    return hosts, guests


def create_offers(hosts):
    print("Creating offers...")
    offers = []

    for host in hosts:
        # Each host lists 1-3 properties
        for _ in range(random.randint(1, 3)):
            offers.append({
                'offer_id': fake.unique.bothify(text='offer-????-####'),
                'title': f"{random.choice(['Bright', 'Cosy', 'Spacious', 'Quiet'])} "
                         f"{random.choice(['studio', 'flat', 'house', 'loft'])} in {fake.city()}",
                'host': host,
            })

    print(f"Created {len(offers)} offers.")
    return offers


def drive_booking(booking_id, host, guest, path):
    for step in path:
        if step == 'accept':
            lifecycle.accept_booking(booking_id, host.uid)
        elif step == 'decline':
            lifecycle.decline_booking(booking_id, host.uid)
        elif step == 'cancel':
            lifecycle.cancel_booking(booking_id, random.choice([host.uid, guest.uid]))
        elif step == 'confirm_guest':
            lifecycle.confirm_booking_completed(booking_id, guest.uid)
        elif step == 'confirm_host':
            lifecycle.confirm_booking_completed(booking_id, host.uid)


def create_bookings(guests, offers):
    print("Creating conversations and bookings...")
    created = []

    for guest in guests:
        # Each guest contacts 0-3 hosts
        for offer in random.sample(offers, min(len(offers), random.randint(0, 3))):
            host = offer['host']
            conversation_id = get_or_create_conversation(
                offer_id=offer['offer_id'],
                host_uid=host.uid,
                guest_uid=guest.uid,
                offer_title=offer['title'],
            )

            status = random.choice(list(STATUS_PATHS))
            if status in ('completed', 'completed_pending_confirmation'):
                scheduled_at = timezone.now() - timedelta(days=random.randint(1, 30))
            else:
                scheduled_at = timezone.now() + timedelta(days=random.randint(1, 30))

            booking_id = lifecycle.create_booking(
                offer_id=offer['offer_id'],
                conversation_id=conversation_id,
                host_uid=host.uid,
                guest_uid=guest.uid,
                scheduled_at=scheduled_at,
                address_text=fake.address(),
                requirements_text=fake.sentence(),
                offer_title=offer['title'],
            )
            drive_booking(booking_id, host, guest, STATUS_PATHS[status])
            created.append((booking_id, offer, host, guest, status))

    print(f"Created {len(created)} bookings.")
    return created


def create_reviews(created):
    print("Creating reviews...")
    count = 0

    for booking_id, offer, host, guest, status in created:
        if status != 'completed':
            continue

        # 70% chance each side leaves a review
        if random.random() < 0.7:
            submit_review(booking_id, offer['offer_id'], guest.uid, host.uid, 'buyer',
                          random.randint(3, 5), fake.paragraph())
            count += 1
        if random.random() < 0.7:
            submit_review(booking_id, offer['offer_id'], host.uid, guest.uid, 'seller',
                          random.randint(3, 5), fake.paragraph())
            count += 1

    print(f"Created {count} reviews.")


def main():
    hosts, guests = create_users()
    offers = create_offers(hosts)
    created = create_bookings(guests, offers)
    create_reviews(created)
    print("Database populated.")


if __name__ == '__main__':
    main()

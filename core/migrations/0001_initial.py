import core.models
import core.validators
import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('uid', models.CharField(default=core.models.generate_uid, editable=False, help_text='Opaque actor identifier used by bookings and reviews.', max_length=64, unique=True, verbose_name='uid')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Conversation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offer_id', models.CharField(help_text='Listing this conversation is about', max_length=64, verbose_name='offer id')),
                ('offer_title', models.CharField(blank=True, default='', help_text='Offer title at the time the conversation started', max_length=200, verbose_name='offer title')),
                ('host_uid', models.CharField(help_text='Party offering the viewing', max_length=64, verbose_name='host uid')),
                ('guest_uid', models.CharField(help_text='Party requesting the viewing', max_length=64, verbose_name='guest uid')),
                ('status', models.CharField(choices=[('open', 'Open'), ('archived', 'Archived'), ('blocked', 'Blocked')], default='open', max_length=10, verbose_name='status')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
            ],
            options={
                'verbose_name': 'conversation',
                'verbose_name_plural': 'conversations',
                'ordering': ['-updated_at'],
                'indexes': [
                    models.Index(fields=['host_uid'], name='conversation_host_uid_idx'),
                    models.Index(fields=['guest_uid'], name='conversation_guest_uid_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('offer_id', 'host_uid', 'guest_uid'), name='unique_conversation_per_offer_pair'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offer_id', models.CharField(help_text='Listing being booked', max_length=64, verbose_name='offer id')),
                ('offer_title', models.CharField(blank=True, default='', help_text='Offer title snapshot for display', max_length=200, verbose_name='offer title')),
                ('host_uid', models.CharField(help_text='Party offering the viewing', max_length=64, verbose_name='host uid')),
                ('guest_uid', models.CharField(help_text='Party requesting the viewing', max_length=64, verbose_name='guest uid')),
                ('scheduled_at', models.DateTimeField(help_text='Date and time of the viewing', verbose_name='scheduled at')),
                ('address_text', models.CharField(blank=True, default='', help_text='Address of the property', max_length=300, verbose_name='address')),
                ('requirements_text', models.TextField(blank=True, default='', help_text='What the guest wants checked during the viewing', verbose_name='requirements')),
                ('status', models.CharField(choices=[('requested', 'Requested'), ('scheduled', 'Scheduled'), ('completed_pending_confirmation', 'Pending confirmation'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('declined', 'Declined')], default='requested', editable=False, help_text='Aggregate status derived from the party tracks', max_length=32, verbose_name='status')),
                ('guest_status', models.CharField(choices=[('requested', 'Requested'), ('scheduled', 'Scheduled'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='requested', max_length=16, verbose_name='guest status')),
                ('host_status', models.CharField(choices=[('requested', 'Requested'), ('scheduled', 'Scheduled'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='requested', max_length=16, verbose_name='host status')),
                ('closed_reason', models.CharField(blank=True, choices=[('', 'Not closed'), ('declined', 'Declined'), ('cancelled', 'Cancelled')], default='', max_length=16, verbose_name='closed reason')),
                ('buyer_review_id', models.PositiveBigIntegerField(blank=True, help_text='Review left by the guest, once submitted', null=True, verbose_name='buyer review id')),
                ('seller_review_id', models.PositiveBigIntegerField(blank=True, help_text='Review left by the host, once submitted', null=True, verbose_name='seller review id')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the booking was created', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the booking was last updated', verbose_name='updated at')),
                ('conversation', models.ForeignKey(help_text='Conversation this booking belongs to', on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='core.conversation')),
            ],
            options={
                'verbose_name': 'booking',
                'verbose_name_plural': 'bookings',
                'ordering': ['-updated_at', '-created_at'],
                'indexes': [
                    models.Index(fields=['host_uid'], name='booking_host_uid_idx'),
                    models.Index(fields=['guest_uid'], name='booking_guest_uid_idx'),
                    models.Index(fields=['offer_id'], name='booking_offer_id_idx'),
                    models.Index(fields=['status'], name='booking_status_idx'),
                    models.Index(fields=['scheduled_at'], name='booking_scheduled_at_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ('completed', 'cancelled', 'declined')), _negated=True), fields=('conversation',), name='unique_open_booking_per_conversation'),
                ],
            },
        ),
        migrations.AddField(
            model_name='conversation',
            name='latest_booking',
            field=models.ForeignKey(blank=True, help_text='Most recently created booking in this conversation', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='core.booking'),
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offer_id', models.CharField(help_text='Listing the booking was for', max_length=64, verbose_name='offer id')),
                ('author_uid', models.CharField(help_text='Party writing the review', max_length=64, verbose_name='author uid')),
                ('target_uid', models.CharField(help_text='Party being reviewed', max_length=64, verbose_name='target uid')),
                ('role', models.CharField(choices=[('buyer', 'Buyer'), ('seller', 'Seller')], help_text="Author's role in the booking", max_length=10, verbose_name='role')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[core.validators.validate_rating], verbose_name='rating')),
                ('comment', models.TextField(help_text='Written feedback about the viewing', validators=[core.validators.validate_not_blank], verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the review was created', verbose_name='created at')),
                ('booking', models.ForeignKey(help_text='Booking being reviewed', on_delete=django.db.models.deletion.PROTECT, related_name='reviews', to='core.booking')),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['author_uid'], name='review_author_uid_idx'),
                    models.Index(fields=['target_uid'], name='review_target_uid_idx'),
                    models.Index(fields=['offer_id'], name='review_offer_id_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('booking', 'role'), name='unique_review_per_booking_role'),
                ],
            },
        ),
    ]

"""
Django admin configuration for users, conversations, bookings and reviews.

Bookings and reviews are shown read-only: transitions must go through the
lifecycle functions so the party tracks and review locks stay consistent.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Booking, Conversation, Review, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin to show the opaque uid.
    """

    list_display = ['email', 'username', 'uid', 'is_staff', 'is_active', 'created_at']
    list_filter = ['is_staff', 'is_superuser', 'is_active', 'created_at']
    search_fields = ['email', 'username', 'uid', 'first_name', 'last_name']
    ordering = ['-created_at']
    readonly_fields = ['uid', 'created_at', 'updated_at', 'last_login', 'date_joined']

    fieldsets = (
        (None, {
            'fields': ('username', 'password', 'uid')
        }),
        (_('Personal Info'), {
            'fields': ('first_name', 'last_name', 'email')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'password1', 'password2'),
        }),
    )


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'offer_id', 'offer_title', 'host_uid', 'guest_uid', 'status', 'latest_booking', 'updated_at']
    list_filter = ['status']
    search_fields = ['offer_id', 'offer_title', 'host_uid', 'guest_uid']
    readonly_fields = ['latest_booking', 'created_at', 'updated_at']


class ReadOnlyAdmin(admin.ModelAdmin):
    """Admin that lists and displays records but never writes them."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(ReadOnlyAdmin):
    list_display = [
        'id',
        'offer_id',
        'conversation',
        'host_uid',
        'guest_uid',
        'scheduled_at',
        'status',
        'guest_status',
        'host_status',
        'updated_at',
    ]
    list_filter = ['status', 'guest_status', 'host_status', 'closed_reason']
    search_fields = ['offer_id', 'host_uid', 'guest_uid', 'address_text']
    date_hierarchy = 'scheduled_at'


@admin.register(Review)
class ReviewAdmin(ReadOnlyAdmin):
    list_display = ['id', 'booking', 'role', 'author_uid', 'target_uid', 'rating', 'created_at']
    list_filter = ['role', 'rating']
    search_fields = ['author_uid', 'target_uid', 'offer_id', 'comment']

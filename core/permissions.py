"""
Custom permission classes for the Viewinger marketplace.
"""

from rest_framework import permissions


class IsBookingParticipant(permissions.BasePermission):
    """
    Object-level permission allowing only the host or guest of a booking.

    Compares the authenticated user's ``uid`` against the booking's
    ``participant_ids``. Which party may perform which transition is
    decided by the booking lifecycle, not here.

    Usage:
        class BookingDetailView(RetrieveAPIView):
            permission_classes = [IsAuthenticated, IsBookingParticipant]
    """

    message = 'You do not have permission to view this booking.'

    def has_object_permission(self, request, view, obj):
        """
        Check the requesting user is one of the booking's two parties.

        Args:
            request: HTTP request object
            view: View being accessed
            obj: Booking instance

        Returns:
            bool: True if user is host or guest, False otherwise
        """
        if not request.user or not request.user.is_authenticated:
            return False

        return getattr(request.user, 'uid', None) in obj.participant_ids

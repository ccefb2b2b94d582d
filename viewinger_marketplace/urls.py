"""
URL configuration for viewinger_marketplace project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)
from core.views import (
    ConversationCreateView,
    BookingListCreateView,
    BookingDetailView,
    BookingActionView,
    BookingReviewCreateView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # JWT Authentication endpoints
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Conversation endpoints
    path('api/conversations/', ConversationCreateView.as_view(), name='conversation_create'),

    # Booking endpoints
    path('api/bookings/', BookingListCreateView.as_view(), name='booking_list_create'),
    path('api/bookings/<int:pk>/', BookingDetailView.as_view(), name='booking_detail'),
    path('api/bookings/<int:pk>/accept/', BookingActionView.as_view(action='accept'), name='booking_accept'),
    path('api/bookings/<int:pk>/decline/', BookingActionView.as_view(action='decline'), name='booking_decline'),
    path('api/bookings/<int:pk>/cancel/', BookingActionView.as_view(action='cancel'), name='booking_cancel'),
    path(
        'api/bookings/<int:pk>/confirm-completion/',
        BookingActionView.as_view(action='confirm-completion'),
        name='booking_confirm_completion'
    ),

    # Review endpoints
    path('api/bookings/<int:pk>/reviews/', BookingReviewCreateView.as_view(), name='booking_review_create'),
]

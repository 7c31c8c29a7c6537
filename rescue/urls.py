# rescue/urls.py
from django.urls import path

from . import views

urlpatterns = [
    # --- Donor URLs ---
    path('donations/', views.donor_donations, name='donor_donations'),
    path('donations/<int:donation_id>/', views.donation_detail, name='donation_detail'),
    path('donations/<int:donation_id>/cancel/', views.cancel_donation, name='cancel_donation'),

    # --- NGO URLs ---
    path('donations/feed/', views.donation_feed, name='donation_feed'),
    path('donations/claimed/', views.claimed_donations, name='claimed_donations'),
    path('donations/<int:donation_id>/claim/', views.claim_donation, name='claim_donation'),
    path('donations/<int:donation_id>/reject/', views.reject_donation, name='reject_donation'),
    path('donations/<int:donation_id>/complete/', views.complete_donation, name='complete_donation'),
    path('donations/<int:donation_id>/offer/', views.offer_mission, name='offer_mission'),

    # --- Volunteer URLs ---
    path('missions/available/', views.available_missions, name='available_missions'),
    path('missions/history/', views.mission_history, name='mission_history'),
    path('missions/<int:donation_id>/accept/', views.accept_mission, name='accept_mission'),
    path('missions/<int:donation_id>/status/', views.update_mission_status, name='update_mission_status'),
    path('missions/<int:donation_id>/pickup/', views.confirm_pickup, name='confirm_pickup'),
    path('missions/<int:donation_id>/delivery/', views.confirm_delivery, name='confirm_delivery'),
    path('missions/<int:donation_id>/cancel/', views.cancel_mission, name='cancel_mission'),
    path('missions/<int:donation_id>/route/', views.mission_route, name='mission_route'),

    # --- Admin URLs ---
    path('missions/active/', views.active_missions, name='active_missions'),

    # --- Shared ---
    path('stats/', views.stats, name='stats'),
]

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import (
    CustodyRecord, DailyUtilization, Donation, DonationEvent, DonorProfile, Mission, NGOProfile,
    Notification, User, VolunteerProfile, VolunteerTrustScore,
)


@admin.register(User)
class RescueUserAdmin(UserAdmin):
    list_display = ('username', 'email', 'user_type', 'is_staff')
    list_filter = ('user_type', 'is_staff')
    fieldsets = UserAdmin.fieldsets + (('Role', {'fields': ('user_type',)}),)


@admin.register(DonorProfile)
class DonorProfileAdmin(admin.ModelAdmin):
    list_display = ('organization_name', 'phone_number', 'address')
    search_fields = ('organization_name',)


@admin.register(NGOProfile)
class NGOProfileAdmin(admin.ModelAdmin):
    list_display = ('ngo_name', 'daily_capacity', 'storage_facilities', 'is_urgent_need')
    list_filter = ('is_urgent_need',)
    search_fields = ('ngo_name',)


@admin.register(VolunteerProfile)
class VolunteerProfileAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'vehicle_type', 'max_weight_kg', 'is_available')
    list_filter = ('is_available', 'vehicle_type')


@admin.register(VolunteerTrustScore)
class VolunteerTrustScoreAdmin(admin.ModelAdmin):
    list_display = ('volunteer', 'completed_missions', 'cancelled_missions', 'trust_score', 'tier')


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ('title', 'donor', 'status', 'delivery_status', 'quantity', 'claimed_by', 'assigned_volunteer', 'expiry_date')
    list_filter = ('status', 'delivery_status', 'food_category')
    search_fields = ('title', 'donor__organization_name')
    # Lifecycle fields change only through the state machine
    readonly_fields = ('status', 'delivery_status', 'version', 'claimed_by', 'claimed_at', 'assigned_volunteer')


@admin.register(Mission)
class MissionAdmin(admin.ModelAdmin):
    list_display = ('donation', 'volunteer', 'status', 'accepted_at', 'ended_at', 'cancel_reason')
    list_filter = ('status', 'cancel_reason')


@admin.register(CustodyRecord)
class CustodyRecordAdmin(admin.ModelAdmin):
    list_display = ('donation', 'kind', 'actor', 'recorded_at')
    list_filter = ('kind',)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DonationEvent)
class DonationEventAdmin(admin.ModelAdmin):
    list_display = ('donation', 'event', 'from_status', 'to_status', 'actor', 'created_at')
    list_filter = ('event',)


admin.site.register(DailyUtilization)
admin.site.register(Notification)

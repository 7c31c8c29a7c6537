from django.db import models
from django.contrib.auth.models import AbstractUser
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.db.models import Q


# --- VALIDATORS ---
alphabetic_validator = RegexValidator(
    regex=r'^[a-zA-Z\s]+$',
    message='This field can only contain alphabetic characters and spaces.',
    code='invalid_name'
)


# --- CORE USER AND PROFILE MODELS ---
class User(AbstractUser):
    class UserType(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        DONOR = 'DONOR', 'Donor'
        NGO = 'NGO', 'NGO'
        VOLUNTEER = 'VOLUNTEER', 'Volunteer'
    user_type = models.CharField(max_length=10, choices=UserType.choices, default=UserType.ADMIN)

    def __str__(self):
        return f"{self.username} ({self.get_user_type_display()})" # type: ignore


class StorageType(models.TextChoices):
    COLD = 'cold', 'Cold'
    DRY = 'dry', 'Dry'
    FROZEN = 'frozen', 'Frozen'


class DonorProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, primary_key=True, related_name='donor_profile')
    organization_name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    phone_number = models.CharField(max_length=15, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.organization_name


class NGOProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, primary_key=True, related_name='ngo_profile')
    ngo_name = models.CharField(max_length=255, validators=[alphabetic_validator])
    address = models.TextField(blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    daily_capacity = models.PositiveIntegerField(default=0, help_text="Units the NGO can distribute per day; 0 means not set")
    storage_facilities = models.JSONField(default=list, blank=True, help_text="Subset of ['cold', 'dry', 'frozen']")
    is_urgent_need = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.ngo_name

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {'lat': self.latitude, 'lng': self.longitude}


class VolunteerProfile(models.Model):
    class VehicleType(models.TextChoices):
        BICYCLE = 'bicycle', 'Bicycle'
        SCOOTER = 'scooter', 'Scooter'
        CAR = 'car', 'Car'
        VAN = 'van', 'Van'

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, primary_key=True, related_name='volunteer_profile')
    full_name = models.CharField(max_length=255, validators=[alphabetic_validator])
    phone_number = models.CharField(max_length=15, blank=True, null=True)
    vehicle_type = models.CharField(max_length=10, choices=VehicleType.choices, blank=True)
    max_weight_kg = models.FloatField(null=True, blank=True, help_text="Maximum payload the volunteer can carry; empty means no declared limit")
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True, help_text="Timestamp of last geolocation update")
    is_available = models.BooleanField(default=True, db_index=True)
    webpush_subscription = models.TextField(blank=True, null=True, help_text="Web push subscription data (JSON)")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.full_name

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {'lat': self.latitude, 'lng': self.longitude}

    def can_carry(self, weight_kg):
        return self.max_weight_kg is None or weight_kg <= self.max_weight_kg


class VolunteerTrustScore(models.Model):
    """
    Tracks a volunteer's mission history, rating and tier
    """
    class Tier(models.TextChoices):
        ROOKIE = 'rookie', 'Rookie'
        HERO = 'hero', 'Hero'
        CHAMPION = 'champion', 'Champion'

    HERO_MISSIONS = 10
    CHAMPION_MISSIONS = 50

    volunteer = models.OneToOneField(VolunteerProfile, on_delete=models.CASCADE, related_name='trust_score')
    completed_missions = models.IntegerField(default=0)
    cancelled_missions = models.IntegerField(default=0)
    total_ratings = models.IntegerField(default=0)
    average_rating = models.FloatField(default=0.0)
    trust_score = models.FloatField(default=100.0, help_text="0-100 score, starts at 100")
    tier = models.CharField(max_length=10, choices=Tier.choices, default=Tier.ROOKIE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Trust Score for {self.volunteer.full_name}: {self.trust_score:.1f}"

    @property
    def reliability_score(self):
        total = self.completed_missions + self.cancelled_missions
        if total == 0:
            return 100.0
        return self.completed_missions / total * 100

    @classmethod
    def tier_for(cls, completed_missions):
        if completed_missions >= cls.CHAMPION_MISSIONS:
            return cls.Tier.CHAMPION
        if completed_missions >= cls.HERO_MISSIONS:
            return cls.Tier.HERO
        return cls.Tier.ROOKIE

    def add_rating(self, rating):
        total = self.average_rating * self.total_ratings + rating
        self.total_ratings += 1
        self.average_rating = total / self.total_ratings

    def update_trust_score(self):
        """Recalculate trust score and tier from mission history"""
        self.tier = self.tier_for(self.completed_missions)
        if self.completed_missions + self.cancelled_missions == 0:
            self.trust_score = 100.0
            return

        cancellation_penalty = self.cancelled_missions * 5
        rating_bonus = (self.average_rating / 5) * 20 if self.total_ratings else 10
        self.trust_score = max(0, min(100, self.reliability_score * 0.8 - cancellation_penalty + rating_bonus))


class Donation(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        ASSIGNED = 'assigned', 'Claimed by NGO'
        ACCEPTED = 'accepted', 'Volunteer Assigned'
        AT_PICKUP = 'at_pickup', 'Volunteer at Pickup'
        PICKED_UP = 'picked_up', 'Picked Up'
        AT_DELIVERY = 'at_delivery', 'Volunteer at Delivery'
        DELIVERED = 'delivered', 'Delivered'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'
        REJECTED = 'rejected', 'Rejected'
        EXPIRED = 'expired', 'Expired'

    class DeliveryStatus(models.TextChoices):
        PENDING_PICKUP = 'pending_pickup', 'Heading to Pickup'
        AT_PICKUP = 'at_pickup', 'At Pickup'
        PICKED_UP = 'picked_up', 'Picked Up'
        ARRIVED_AT_DELIVERY = 'arrived_at_delivery', 'Arrived at Delivery'
        DELIVERED = 'delivered', 'Delivered'

    class FoodCategory(models.TextChoices):
        COOKED = 'cooked', 'Cooked'
        RAW = 'raw', 'Raw'
        PACKAGED = 'packaged', 'Packaged'

    class Perishability(models.TextChoices):
        HIGH = 'high', 'High'
        MEDIUM = 'medium', 'Medium'
        LOW = 'low', 'Low'

    class RejectionCategory(models.TextChoices):
        HYGIENE = 'hygiene', 'Food Safety Risk'
        EXPIRED = 'expired', 'Expired'
        STORAGE = 'storage', 'Improper Packaging / Storage'
        LOGISTICS = 'logistics', 'Transport Issue'
        OTHER = 'other', 'Other'

    CLAIMED_STATUSES = (
        Status.ASSIGNED, Status.ACCEPTED, Status.AT_PICKUP, Status.PICKED_UP,
        Status.AT_DELIVERY, Status.DELIVERED, Status.COMPLETED,
    )
    IN_PROGRESS_STATUSES = (
        Status.ASSIGNED, Status.ACCEPTED, Status.AT_PICKUP, Status.PICKED_UP,
        Status.AT_DELIVERY, Status.DELIVERED,
    )
    MISSION_STATUSES = (Status.ACCEPTED, Status.AT_PICKUP, Status.PICKED_UP, Status.AT_DELIVERY)
    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED, Status.REJECTED, Status.EXPIRED)

    RATING_CHOICES = (
        (1, '1 Star'),
        (2, '2 Stars'),
        (3, '3 Stars'),
        (4, '4 Stars'),
        (5, '5 Stars'),
    )

    donor = models.ForeignKey(DonorProfile, on_delete=models.CASCADE, related_name='donations')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)], help_text="e.g., number of meals, weight in kg")
    food_category = models.CharField(max_length=10, choices=FoodCategory.choices)
    storage_req = models.CharField(max_length=10, choices=StorageType.choices, blank=True)
    perishability = models.CharField(max_length=10, choices=Perishability.choices, default=Perishability.MEDIUM)
    allergens = models.JSONField(default=list, blank=True)
    dietary_tags = models.JSONField(default=list, blank=True)

    pickup_address = models.TextField()
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    expiry_date = models.DateTimeField(db_index=True)
    pickup_window_start = models.DateTimeField()
    pickup_window_end = models.DateTimeField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    delivery_status = models.CharField(max_length=20, choices=DeliveryStatus.choices, null=True, blank=True)
    version = models.PositiveIntegerField(default=0, help_text="Optimistic concurrency counter, bumped on every transition")

    claimed_by = models.ForeignKey(NGOProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='claimed_donations', db_index=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    assigned_volunteer = models.ForeignKey(VolunteerProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_donations', db_index=True)

    pickup_photo = models.CharField(max_length=500, blank=True)
    pickup_notes = models.TextField(blank=True)
    delivery_photo = models.CharField(max_length=500, blank=True)
    delivery_notes = models.TextField(blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    rejected_by = models.ForeignKey(NGOProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='rejected_donations')
    rejection_category = models.CharField(max_length=10, choices=RejectionCategory.choices, blank=True)
    rejection_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Rating and Review fields
    rating = models.IntegerField(null=True, blank=True, choices=RATING_CHOICES, validators=[MinValueValidator(1), MaxValueValidator(5)])
    review = models.TextField(blank=True, help_text="NGO's review of the delivery")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} from {self.donor.organization_name} ({self.status})"

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {'lat': self.latitude, 'lng': self.longitude}

    @property
    def ngo_coordinates(self):
        return self.claimed_by.coordinates if self.claimed_by else None

    @property
    def ngo_address(self):
        return self.claimed_by.address if self.claimed_by else None

    @property
    def volunteer_coordinates(self):
        return self.assigned_volunteer.coordinates if self.assigned_volunteer else None

    @property
    def estimated_weight_kg(self):
        return self.quantity * settings.DONATION_UNIT_WEIGHT_KG

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES


class Mission(models.Model):
    """One volunteer's hold on a claimed donation, from acceptance until delivery or cancellation"""
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        CANCELLED = 'cancelled', 'Cancelled'
        DELIVERED = 'delivered', 'Delivered'

    class CancelReason(models.TextChoices):
        VEHICLE_BREAKDOWN = 'vehicle_breakdown', 'Vehicle Breakdown'
        TRAFFIC_ACCIDENT = 'traffic_accident', 'Traffic / Accident'
        PERSONAL_EMERGENCY = 'personal_emergency', 'Personal Emergency'
        OVERWEIGHT = 'overweight', 'Load Too Heavy'
        DONOR_NOT_FOUND = 'donor_not_found', 'Donor Not Found'
        OTHER = 'other', 'Other'

    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, related_name='missions')
    volunteer = models.ForeignKey(VolunteerProfile, on_delete=models.CASCADE, related_name='missions')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    accepted_at = models.DateTimeField()
    ended_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=20, choices=CancelReason.choices, blank=True)
    cancel_notes = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='cancelled_missions')

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['donation'], condition=Q(status='active'), name='one_active_mission_per_donation'),
        ]

    def __str__(self):
        return f"Mission {self.pk}: {self.volunteer.full_name} for donation {self.donation_id} ({self.status})"


class CustodyRecord(models.Model):
    """Append-only proof that food changed hands at pickup or delivery"""
    class Kind(models.TextChoices):
        PICKUP = 'pickup', 'Pickup'
        DELIVERY = 'delivery', 'Delivery'

    donation = models.ForeignKey(Donation, on_delete=models.PROTECT, related_name='custody_records')
    mission = models.ForeignKey(Mission, on_delete=models.PROTECT, related_name='custody_records')
    kind = models.CharField(max_length=10, choices=Kind.choices)
    photo_ref = models.CharField(max_length=500)
    notes = models.TextField(blank=True)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='custody_records')
    recorded_at = models.DateTimeField()

    class Meta:
        ordering = ['recorded_at']
        constraints = [
            models.UniqueConstraint(fields=['mission', 'kind'], name='one_custody_record_per_mission_kind'),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} of donation {self.donation_id} at {self.recorded_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Custody records are immutable once written.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Custody records cannot be deleted.")


class DailyUtilization(models.Model):
    ngo = models.ForeignKey(NGOProfile, on_delete=models.CASCADE, related_name='utilization_buckets')
    day = models.DateField()
    units_claimed = models.IntegerField(default=0)

    class Meta:
        unique_together = ('ngo', 'day')

    def __str__(self):
        return f"{self.ngo.ngo_name} on {self.day}: {self.units_claimed} units"


class DonationEvent(models.Model):
    """Audit trail of every applied lifecycle transition"""
    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, related_name='events')
    event = models.CharField(max_length=30)
    from_status = models.CharField(max_length=20, choices=Donation.Status.choices)
    to_status = models.CharField(max_length=20, choices=Donation.Status.choices)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='donation_events')
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'pk']

    def __str__(self):
        return f"{self.event}: {self.from_status} -> {self.to_status}"


class Notification(models.Model):
    class Type(models.TextChoices):
        DONATION_CREATED = 'donation_created', 'Donation Created'
        DONATION_ASSIGNED = 'donation_assigned', 'Donation Claimed'
        DONATION_REJECTED = 'donation_rejected', 'Donation Rejected'
        DONATION_CANCELLED = 'donation_cancelled', 'Donation Cancelled'
        DONATION_EXPIRED = 'donation_expired', 'Donation Expired'
        MISSION_AVAILABLE = 'mission_available', 'Mission Available'
        MISSION_ASSIGNED = 'mission_assigned', 'Mission Assigned'
        MISSION_CANCELLED = 'mission_cancelled', 'Mission Cancelled'
        DONATION_DELIVERED = 'donation_delivered', 'Donation Delivered'
        DONATION_COMPLETED = 'donation_completed', 'Donation Completed'

    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    message = models.TextField()
    type = models.CharField(max_length=30, choices=Type.choices)
    donation = models.ForeignKey(Donation, on_delete=models.SET_NULL, null=True, blank=True, related_name='notifications')
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.type} for {self.recipient.username}"

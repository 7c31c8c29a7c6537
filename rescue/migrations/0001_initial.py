# Generated migration for the donation lifecycle models

import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
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
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('user_type', models.CharField(choices=[('ADMIN', 'Admin'), ('DONOR', 'Donor'), ('NGO', 'NGO'), ('VOLUNTEER', 'Volunteer')], default='ADMIN', max_length=10)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='DonorProfile',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='donor_profile', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('organization_name', models.CharField(max_length=255)),
                ('address', models.TextField(blank=True)),
                ('phone_number', models.CharField(blank=True, max_length=15)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='NGOProfile',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='ngo_profile', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('ngo_name', models.CharField(max_length=255, validators=[django.core.validators.RegexValidator(code='invalid_name', message='This field can only contain alphabetic characters and spaces.', regex='^[a-zA-Z\\s]+$')])),
                ('address', models.TextField(blank=True)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('daily_capacity', models.PositiveIntegerField(default=0, help_text='Units the NGO can distribute per day; 0 means not set')),
                ('storage_facilities', models.JSONField(blank=True, default=list, help_text="Subset of ['cold', 'dry', 'frozen']")),
                ('is_urgent_need', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='VolunteerProfile',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='volunteer_profile', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('full_name', models.CharField(max_length=255, validators=[django.core.validators.RegexValidator(code='invalid_name', message='This field can only contain alphabetic characters and spaces.', regex='^[a-zA-Z\\s]+$')])),
                ('phone_number', models.CharField(blank=True, max_length=15, null=True)),
                ('vehicle_type', models.CharField(blank=True, choices=[('bicycle', 'Bicycle'), ('scooter', 'Scooter'), ('car', 'Car'), ('van', 'Van')], max_length=10)),
                ('max_weight_kg', models.FloatField(blank=True, help_text='Maximum payload the volunteer can carry; empty means no declared limit', null=True)),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('last_location_update', models.DateTimeField(blank=True, help_text='Timestamp of last geolocation update', null=True)),
                ('is_available', models.BooleanField(db_index=True, default=True)),
                ('webpush_subscription', models.TextField(blank=True, help_text='Web push subscription data (JSON)', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='VolunteerTrustScore',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('completed_missions', models.IntegerField(default=0)),
                ('cancelled_missions', models.IntegerField(default=0)),
                ('total_ratings', models.IntegerField(default=0)),
                ('average_rating', models.FloatField(default=0.0)),
                ('trust_score', models.FloatField(default=100.0, help_text='0-100 score, starts at 100')),
                ('tier', models.CharField(choices=[('rookie', 'Rookie'), ('hero', 'Hero'), ('champion', 'Champion')], default='rookie', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('volunteer', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='trust_score', to='rescue.volunteerprofile')),
            ],
        ),
        migrations.CreateModel(
            name='Donation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('quantity', models.PositiveIntegerField(help_text='e.g., number of meals, weight in kg', validators=[django.core.validators.MinValueValidator(1)])),
                ('food_category', models.CharField(choices=[('cooked', 'Cooked'), ('raw', 'Raw'), ('packaged', 'Packaged')], max_length=10)),
                ('storage_req', models.CharField(blank=True, choices=[('cold', 'Cold'), ('dry', 'Dry'), ('frozen', 'Frozen')], max_length=10)),
                ('perishability', models.CharField(choices=[('high', 'High'), ('medium', 'Medium'), ('low', 'Low')], default='medium', max_length=10)),
                ('allergens', models.JSONField(blank=True, default=list)),
                ('dietary_tags', models.JSONField(blank=True, default=list)),
                ('pickup_address', models.TextField()),
                ('latitude', models.FloatField(blank=True, null=True)),
                ('longitude', models.FloatField(blank=True, null=True)),
                ('expiry_date', models.DateTimeField(db_index=True)),
                ('pickup_window_start', models.DateTimeField()),
                ('pickup_window_end', models.DateTimeField()),
                ('status', models.CharField(choices=[('active', 'Active'), ('assigned', 'Claimed by NGO'), ('accepted', 'Volunteer Assigned'), ('at_pickup', 'Volunteer at Pickup'), ('picked_up', 'Picked Up'), ('at_delivery', 'Volunteer at Delivery'), ('delivered', 'Delivered'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('rejected', 'Rejected'), ('expired', 'Expired')], db_index=True, default='active', max_length=20)),
                ('delivery_status', models.CharField(blank=True, choices=[('pending_pickup', 'Heading to Pickup'), ('at_pickup', 'At Pickup'), ('picked_up', 'Picked Up'), ('arrived_at_delivery', 'Arrived at Delivery'), ('delivered', 'Delivered')], max_length=20, null=True)),
                ('version', models.PositiveIntegerField(default=0, help_text='Optimistic concurrency counter, bumped on every transition')),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('pickup_photo', models.CharField(blank=True, max_length=500)),
                ('pickup_notes', models.TextField(blank=True)),
                ('delivery_photo', models.CharField(blank=True, max_length=500)),
                ('delivery_notes', models.TextField(blank=True)),
                ('picked_up_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_category', models.CharField(blank=True, choices=[('hygiene', 'Food Safety Risk'), ('expired', 'Expired'), ('storage', 'Improper Packaging / Storage'), ('logistics', 'Transport Issue'), ('other', 'Other')], max_length=10)),
                ('rejection_reason', models.TextField(blank=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('rating', models.IntegerField(blank=True, choices=[(1, '1 Star'), (2, '2 Stars'), (3, '3 Stars'), (4, '4 Stars'), (5, '5 Stars')], null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('review', models.TextField(blank=True, help_text="NGO's review of the delivery")),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donations', to='rescue.donorprofile')),
                ('claimed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='claimed_donations', to='rescue.ngoprofile')),
                ('assigned_volunteer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_donations', to='rescue.volunteerprofile')),
                ('rejected_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='rejected_donations', to='rescue.ngoprofile')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Mission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('active', 'Active'), ('cancelled', 'Cancelled'), ('delivered', 'Delivered')], db_index=True, default='active', max_length=10)),
                ('accepted_at', models.DateTimeField()),
                ('ended_at', models.DateTimeField(blank=True, null=True)),
                ('cancel_reason', models.CharField(blank=True, choices=[('vehicle_breakdown', 'Vehicle Breakdown'), ('traffic_accident', 'Traffic / Accident'), ('personal_emergency', 'Personal Emergency'), ('overweight', 'Load Too Heavy'), ('donor_not_found', 'Donor Not Found'), ('other', 'Other')], max_length=20)),
                ('cancel_notes', models.TextField(blank=True)),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='missions', to='rescue.donation')),
                ('volunteer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='missions', to='rescue.volunteerprofile')),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cancelled_missions', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.AddConstraint(
            model_name='mission',
            constraint=models.UniqueConstraint(condition=models.Q(('status', 'active')), fields=('donation',), name='one_active_mission_per_donation'),
        ),
        migrations.CreateModel(
            name='CustodyRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('pickup', 'Pickup'), ('delivery', 'Delivery')], max_length=10)),
                ('photo_ref', models.CharField(max_length=500)),
                ('notes', models.TextField(blank=True)),
                ('recorded_at', models.DateTimeField()),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='custody_records', to='rescue.donation')),
                ('mission', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='custody_records', to='rescue.mission')),
                ('actor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='custody_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['recorded_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='custodyrecord',
            constraint=models.UniqueConstraint(fields=('mission', 'kind'), name='one_custody_record_per_mission_kind'),
        ),
        migrations.CreateModel(
            name='DailyUtilization',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day', models.DateField()),
                ('units_claimed', models.IntegerField(default=0)),
                ('ngo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='utilization_buckets', to='rescue.ngoprofile')),
            ],
            options={
                'unique_together': {('ngo', 'day')},
            },
        ),
        migrations.CreateModel(
            name='DonationEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event', models.CharField(max_length=30)),
                ('from_status', models.CharField(choices=[('active', 'Active'), ('assigned', 'Claimed by NGO'), ('accepted', 'Volunteer Assigned'), ('at_pickup', 'Volunteer at Pickup'), ('picked_up', 'Picked Up'), ('at_delivery', 'Volunteer at Delivery'), ('delivered', 'Delivered'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('rejected', 'Rejected'), ('expired', 'Expired')], max_length=20)),
                ('to_status', models.CharField(choices=[('active', 'Active'), ('assigned', 'Claimed by NGO'), ('accepted', 'Volunteer Assigned'), ('at_pickup', 'Volunteer at Pickup'), ('picked_up', 'Picked Up'), ('at_delivery', 'Volunteer at Delivery'), ('delivered', 'Delivered'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('rejected', 'Rejected'), ('expired', 'Expired')], max_length=20)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='rescue.donation')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='donation_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['created_at', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('message', models.TextField()),
                ('type', models.CharField(choices=[('donation_created', 'Donation Created'), ('donation_assigned', 'Donation Claimed'), ('donation_rejected', 'Donation Rejected'), ('donation_cancelled', 'Donation Cancelled'), ('donation_expired', 'Donation Expired'), ('mission_available', 'Mission Available'), ('mission_assigned', 'Mission Assigned'), ('mission_cancelled', 'Mission Cancelled'), ('donation_delivered', 'Donation Delivered'), ('donation_completed', 'Donation Completed')], max_length=30)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
                ('donation', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='rescue.donation')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]

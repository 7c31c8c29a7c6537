# rescue/forms.py

from django import forms

from .models import Donation


class DonationForm(forms.ModelForm):
    """
    Field-level validation of a new donation posted by a donor.
    Schedule rules (expiry, pickup window) are enforced by the state machine.
    """
    class Meta:
        model = Donation
        fields = [
            'title', 'description', 'quantity', 'food_category', 'storage_req', 'perishability',
            'allergens', 'dietary_tags', 'pickup_address', 'latitude', 'longitude',
            'expiry_date', 'pickup_window_start', 'pickup_window_end',
        ]
        labels = {
            'quantity': 'Quantity (e.g., number of meals)',
            'storage_req': 'Storage Requirement',
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['perishability'].required = False

    def clean_perishability(self):
        return self.cleaned_data.get('perishability') or Donation.Perishability.MEDIUM

    def clean_allergens(self):
        return self.cleaned_data.get('allergens') or []

    def clean_dietary_tags(self):
        return self.cleaned_data.get('dietary_tags') or []

    def clean(self):
        cleaned_data = super().clean()
        latitude, longitude = cleaned_data.get('latitude'), cleaned_data.get('longitude')
        if (latitude is None) != (longitude is None):
            self.add_error('latitude', 'Latitude and longitude must be given together.')
        if latitude is not None and not -90 <= latitude <= 90:
            self.add_error('latitude', 'Latitude must be between -90 and 90.')
        if longitude is not None and not -180 <= longitude <= 180:
            self.add_error('longitude', 'Longitude must be between -180 and 180.')
        return cleaned_data

    def donation_fields(self):
        return {name: self.cleaned_data.get(name) for name in self.Meta.fields}

    def error_summary(self):
        return {field: errors[0] for field, errors in self.errors.items()}

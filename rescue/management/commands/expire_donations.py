# rescue/management/commands/expire_donations.py
from django.core.management.base import BaseCommand

from ... import services


class Command(BaseCommand):
    help = "Expire overdue donations and cancel claimed ones no volunteer picked up in time"

    def handle(self, *args, **kwargs):
        result = services.expire_overdue()
        self.stdout.write(self.style.SUCCESS(
            f"Expired {result['expired']} donations, cancelled {result['cancelled']} claimed donations"
        ))

# rescue/apps.py
from django.apps import AppConfig


class RescueConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rescue'
    verbose_name = 'Food Rescue'

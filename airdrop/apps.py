from django.apps import AppConfig


class AirdropConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'airdrop'
    verbose_name = 'AirDrop'

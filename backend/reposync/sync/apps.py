from django.apps import AppConfig


class SyncConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "reposync.sync"
    verbose_name = "Repository Sync"

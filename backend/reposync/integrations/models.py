from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models


class HostingIdentity(models.Model):
    """OAuth connection between a local user and a git hosting account."""

    class Provider(models.TextChoices):
        GITHUB = "github", "GitHub"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="hosting_identities",
    )
    provider = models.CharField(max_length=20, choices=Provider.choices, default=Provider.GITHUB)
    login = models.CharField(max_length=255, blank=True)
    access_token = models.TextField(blank=True)
    refresh_token = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Hosting Identity"
        verbose_name_plural = "Hosting Identities"
        unique_together = ("user", "provider")
        ordering = ["created_at"]

    def token_preview(self) -> str:
        suffix = self.access_token[-4:] if self.access_token else ""
        return f"***{suffix}" if suffix else ""

import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission


class HasCronSecret(BasePermission):
    """
    Allows the request when it carries ``Authorization: Bearer <CRON_SECRET>``.
    With no CRON_SECRET configured every request is allowed (local dev).
    """

    message = "Unauthorized"

    def has_permission(self, request, view):
        secret = settings.CRON_SECRET
        if not secret:
            return True
        header = request.headers.get("Authorization", "")
        return hmac.compare_digest(header.encode(), f"Bearer {secret}".encode())

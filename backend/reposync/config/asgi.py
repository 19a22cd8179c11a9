"""ASGI config for reposync."""

from __future__ import annotations

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "reposync.config.settings")

django_asgi_app = get_asgi_application()


async def application(scope, receive, send):
    if scope["type"] == "http":
        await django_asgi_app(scope, receive, send)
    elif scope["type"] == "websocket":
        await send({"type": "websocket.close", "code": 4003})
    else:
        raise NotImplementedError(f"Unknown scope type {scope['type']}")

"""
Dépendances partagées des routes (Depends)

Instances uniques créées à la première demande; les tests les remplacent
via app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from services.brevo import BrevoClient
from services.mailer import send_email
from services.row_store import GoogleSheetsRowStore, RowStore
from services.settings import SettingsCache, load_settings


@lru_cache()
def get_store() -> RowStore:
    return GoogleSheetsRowStore()


@lru_cache()
def get_settings_cache() -> SettingsCache:
    store = get_store()
    return SettingsCache(lambda: load_settings(store))


@lru_cache()
def get_brevo() -> BrevoClient:
    return BrevoClient()


def get_mailer(cache: SettingsCache = Depends(get_settings_cache)):
    """send(to, subject, html) avec les paramètres SMTP courants"""

    async def send(to: str, subject: str, html: str):
        settings = await cache.get_or_refresh()
        await send_email(settings, to, subject, html)

    return send

"""
Courtage CRM - Service Settings

Paramètres stockés dans la feuille "Settings" (colonnes key / value):
- SMTP / IMAP (envoi et réception des emails)
- geminiApiKey
- depenses, cpl (dépenses marketing, coût par fiche)
- commission_<COMPAGNIE>_annee1 / _recurrent
- charge_<Commercial> (charge par commercial, optionnelle)

Lecture mise en cache 5 minutes (SettingsCache). Pas de déduplication des
rechargements concurrents: deux requêtes simultanées peuvent relire la feuille.
"""

import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from config import SHEET_SETTINGS, SETTINGS_CACHE_SECONDS
from services.commission import COMPAGNIES, commission_keys
from services.errors import NotFound
from services.row_store import RowStore, TableNotFound

logger = logging.getLogger("settings")

BASE_KEYS = [
    'smtpHost', 'smtpPort', 'smtpUser', 'smtpPass',
    'imapHost', 'imapPort', 'imapUser', 'imapPass',
    'geminiApiKey', 'depenses', 'cpl',
]

REQUIRED_KEYS = BASE_KEYS + [key for name in COMPAGNIES for key in commission_keys(name)]


def rows_to_settings(table: List[List[str]]) -> Dict[str, str]:
    settings = {}
    for row in table[1:]:
        if row and row[0]:
            settings[row[0]] = row[1] if len(row) > 1 else ''
    return settings


async def load_settings(store: RowStore) -> Dict[str, str]:
    table = await store.get_table(SHEET_SETTINGS)
    if not table or len(table) < 2:
        raise NotFound(f"La feuille '{SHEET_SETTINGS}' est vide ou mal formatée.")
    return rows_to_settings(table)


class SettingsCache:
    """
    Cache explicite {value, expires_at}.
    L'horloge est injectable (secondes monotones) pour les tests.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[Dict[str, str]]],
        ttl: float = SETTINGS_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.loader = loader
        self.ttl = ttl
        self.clock = clock
        self.value: Optional[Dict[str, str]] = None
        self.expires_at = 0.0

    async def get_or_refresh(self, clock: Optional[Callable[[], float]] = None) -> Dict[str, str]:
        now = (clock or self.clock)()
        if self.value is not None and now < self.expires_at:
            return self.value

        try:
            settings = await self.loader()
        except Exception as e:
            # Les fonctionnalités dépendantes échoueront, pas le serveur
            logger.error(f"[SETTINGS] Impossible de charger les paramètres: {str(e)}")
            return {}

        self.value = settings
        self.expires_at = now + self.ttl
        logger.info(f"[SETTINGS] {len(settings)} paramètres chargés et mis en cache")
        return settings

    def invalidate(self):
        self.value = None
        self.expires_at = 0.0


async def ensure_settings_sheet(store: RowStore) -> None:
    """Crée la feuille Settings si besoin et ajoute les clés manquantes"""
    try:
        table = await store.get_table(SHEET_SETTINGS)
    except TableNotFound:
        logger.info(f"[SETTINGS] Feuille '{SHEET_SETTINGS}' absente, création")
        await store.create_table(SHEET_SETTINGS)
        await store.update_range(
            SHEET_SETTINGS, 'A1', [['key', 'value']] + [[k, ''] for k in REQUIRED_KEYS]
        )
        return

    existing = {row[0] for row in (table or [])[1:] if row and row[0]}
    missing = [k for k in REQUIRED_KEYS if k not in existing]
    if missing:
        logger.info(f"[SETTINGS] Clés manquantes ajoutées: {', '.join(missing)}")
        await store.append_rows(SHEET_SETTINGS, [[k, ''] for k in missing])


async def save_settings(store: RowStore, new_settings: Dict[str, str], cache: Optional[SettingsCache] = None) -> None:
    """Réécrit la feuille à partir de A1 et invalide le cache"""
    rows = [['key', 'value']] + [[k, '' if v is None else str(v)] for k, v in new_settings.items()]
    await store.update_range(SHEET_SETTINGS, 'A1', rows)
    if cache:
        cache.invalidate()

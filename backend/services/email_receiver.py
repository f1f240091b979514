"""
Réception des emails (IMAP)

Toutes les 2 minutes:
1. reconstruit l'index email -> prospect (fiches fusionnées)
2. lit les messages non lus de INBOX sans les marquer (BODY.PEEK)
3. journalise chaque message d'un prospect connu dans "Interactions"
4. marque comme lus les messages traités

Un message illisible ou dont l'enregistrement échoue reste non lu et
sera repris au cycle suivant; les autres messages du lot sont traités.
Une erreur de cycle est journalisée, le cycle suivant a lieu normalement.
"""

import asyncio
import email
import imaplib
import logging
from datetime import datetime, timezone
from email import policy
from email.utils import parseaddr
from typing import Dict, List, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import IMAP_POLL_SECONDS, parse_int
from services.data_manager import get_merged_prospects
from services.interactions import log_interaction, CANAL_RECEPTION, STATUT_RECU
from services.row_store import RowStore
from services.settings import SettingsCache

logger = logging.getLogger("email_receiver")

BODY_MAX_LENGTH = 500
DEFAULT_SUBJECT = "Sans sujet"

# (uid IMAP, expéditeur en minuscules, sujet, texte)
ReceivedMail = Tuple[str, str, str, str]


def truncate_body(text: str) -> str:
    if len(text) > BODY_MAX_LENGTH:
        return text[:BODY_MAX_LENGTH] + "..."
    return text


def index_prospects_by_email(prospects: List[dict]) -> Dict[str, dict]:
    return {p["Email"].lower(): p for p in prospects if p.get("Email")}


def parse_mail(raw: bytes) -> Optional[Tuple[str, str, str]]:
    """(expéditeur, sujet, texte); None sans expéditeur. Peut lever sur un message corrompu."""
    msg = email.message_from_bytes(raw, policy=policy.default)
    sender = parseaddr(str(msg.get("From", "")))[1].lower()
    if not sender:
        return None

    body = msg.get_body(preferencelist=("plain",))
    text = body.get_content() if body is not None else ""
    return sender, str(msg.get("Subject") or DEFAULT_SUBJECT), text


def fetch_unseen(host: str, port: int, user: str, password: str) -> List[ReceivedMail]:
    """Bloquant: à exécuter dans un thread. Les messages restent non lus."""
    mails = []
    with imaplib.IMAP4_SSL(host, port) as imap:
        imap.login(user, password)
        imap.select("INBOX")
        _, data = imap.uid("search", None, "UNSEEN")
        uids = data[0].split() if data and data[0] else []
        if uids:
            logger.info(f"[EMAIL RECEIVER] {len(uids)} nouveaux emails non lus trouvés")

        for uid in uids:
            uid = uid.decode() if isinstance(uid, bytes) else str(uid)
            try:
                _, parts = imap.uid("fetch", uid, "(BODY.PEEK[])")
                raw = next((part[1] for part in parts if isinstance(part, tuple)), None)
                parsed = parse_mail(raw) if raw else None
            except Exception as e:
                logger.error(f"[EMAIL RECEIVER] Message {uid} illisible, ignoré: {str(e)}")
                continue
            if parsed:
                mails.append((uid, *parsed))
    return mails


def mark_seen(host: str, port: int, user: str, password: str, uids: List[str]) -> None:
    """Bloquant: marque les messages traités comme lus"""
    with imaplib.IMAP4_SSL(host, port) as imap:
        imap.login(user, password)
        imap.select("INBOX")
        for uid in uids:
            imap.uid("store", uid, "+FLAGS", "(\\Seen)")


class EmailReceiver:
    """Surveillance IMAP périodique"""

    def __init__(
        self,
        store: RowStore,
        settings_cache: SettingsCache,
        interval_seconds: int = IMAP_POLL_SECONDS,
        fetcher=fetch_unseen,
        marker=mark_seen
    ):
        self.store = store
        self.settings_cache = settings_cache
        self.interval_seconds = interval_seconds
        self.fetcher = fetcher
        self.marker = marker
        self.scheduler = AsyncIOScheduler(timezone="Europe/Paris")

    def start(self):
        self.scheduler.add_job(
            self.run_cycle,
            IntervalTrigger(seconds=self.interval_seconds),
            id="email_receiver",
            name="Réception des emails",
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc)
        )
        self.scheduler.start()
        logger.info(f"[EMAIL RECEIVER] Surveillance démarrée (toutes les {self.interval_seconds}s)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("[EMAIL RECEIVER] Surveillance arrêtée")

    async def run_cycle(self):
        try:
            await self.poll()
        except Exception as e:
            logger.error(f"[EMAIL RECEIVER] Erreur pendant le cycle: {str(e)}")

    async def poll(self) -> int:
        """Un cycle complet; retourne le nombre d'interactions enregistrées"""
        settings = await self.settings_cache.get_or_refresh()
        host = settings.get("imapHost")
        port = parse_int(settings.get("imapPort"))
        user = settings.get("imapUser")
        password = settings.get("imapPass")

        if not host or not port or not user or not password:
            logger.warning("[EMAIL RECEIVER] Configuration IMAP incomplète, cycle ignoré")
            return 0

        prospects = index_prospects_by_email(await get_merged_prospects(self.store))
        logger.info(f"[EMAIL RECEIVER] {len(prospects)} emails de prospects indexés")

        mails = await asyncio.to_thread(self.fetcher, host, port, user, password)

        recorded = 0
        handled = []
        for uid, sender, subject, text in mails:
            prospect = prospects.get(sender)
            if prospect is None:
                logger.info(f"[EMAIL RECEIVER] Email de {sender} non associé à un prospect existant")
                handled.append(uid)
                continue

            try:
                await log_interaction(
                    self.store,
                    prospect.get("Identifiant", ""),
                    subject,
                    truncate_body(text),
                    canal=CANAL_RECEPTION,
                    statut=STATUT_RECU,
                    workflow="",
                    segment=""
                )
            except Exception as e:
                # Reste non lu, repris au prochain cycle
                logger.error(f"[EMAIL RECEIVER] Échec d'enregistrement de l'email de {sender}: {str(e)}")
                continue

            handled.append(uid)
            recorded += 1
            logger.info(f"[EMAIL RECEIVER] Email de {sender} enregistré pour {prospect.get('Nom Complet', '')}")

        if handled:
            await asyncio.to_thread(self.marker, host, port, user, password, handled)
        return recorded

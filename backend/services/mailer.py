"""
Envoi d'emails SMTP (paramètres lus dans les Settings à chaque envoi)

smtpHost / smtpPort / smtpUser / smtpPass
Port 465 -> SSL direct, sinon STARTTLS.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Dict

from config import parse_int
from services.errors import UpstreamAuthError, UpstreamError, ValidationError

logger = logging.getLogger("mailer")

SENDER_NAME = "Premunia CRM"
SMTP_TIMEOUT = 30


def build_message(sender: str, to: str, subject: str, html: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((SENDER_NAME, sender))
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def _send(host: str, port: int, user: str, password: str, msg: MIMEMultipart):
    if port == 465:
        with smtplib.SMTP_SSL(host, port, timeout=SMTP_TIMEOUT) as server:
            server.login(user, password)
            server.send_message(msg)
    else:
        with smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT) as server:
            server.starttls()
            server.login(user, password)
            server.send_message(msg)


async def send_email(settings: Dict[str, str], to: str, subject: str, html: str) -> None:
    host = settings.get("smtpHost")
    port = parse_int(settings.get("smtpPort"))
    user = settings.get("smtpUser")
    password = settings.get("smtpPass")

    if not host or not port or not user or not password:
        raise ValidationError(
            "Paramètres SMTP non configurés. Veuillez les définir dans la page d'Administration."
        )

    msg = build_message(user, to, subject, html)
    try:
        await asyncio.to_thread(_send, host, port, user, password, msg)
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"[SMTP] Authentification échouée pour {user}: {str(e)}")
        raise UpstreamAuthError("Authentification SMTP échouée.", details=str(e))
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[SMTP] Erreur lors de l'envoi à {to}: {str(e)}")
        raise UpstreamError("L'envoi de l'email a échoué.", details=str(e))

    logger.info(f"[SMTP] Email envoyé à {to}: {subject}")

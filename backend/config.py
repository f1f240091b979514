"""
Configuration et utilitaires partagés
"""

import os
import re
from datetime import datetime, timezone
from typing import Optional
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Google Sheets (base de données)
GOOGLE_SHEET_ID = os.environ.get('GOOGLE_SHEET_ID', '')
GOOGLE_CREDENTIALS_FILE = os.environ.get('GOOGLE_CREDENTIALS_FILE', str(ROOT_DIR / 'credentials.json'))

# Brevo (campagnes email)
BREVO_API_URL = os.environ.get('BREVO_API_URL', 'https://api.brevo.com/v3')
BREVO_API_KEY = os.environ.get('BREVO_API_KEY', '')

# Gemini (génération IA)
GEMINI_API_URL = os.environ.get(
    'GEMINI_API_URL',
    'https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent'
)

# Serveur
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')
ENABLE_EMAIL_RECEIVER = os.environ.get('ENABLE_EMAIL_RECEIVER', 'false').lower() == 'true'
IMAP_POLL_SECONDS = int(os.environ.get('IMAP_POLL_SECONDS', 120))
SETTINGS_CACHE_SECONDS = int(os.environ.get('SETTINGS_CACHE_SECONDS', 300))


# ==================== NOMS DES FEUILLES ====================

SHEET_CONTACTS = 'Contacts'
SHEET_PROJETS = 'Projets Assurance de personnes'
SHEET_CONTRATS = 'Contrats Assurance de personnes'
SHEET_SETTINGS = 'Settings'
SHEET_INTERACTIONS = 'Interactions'
SHEET_WORKFLOWS = 'Workflows'
SHEET_SCENARIOS = 'ScenariosEmailing'


# ==================== HELPERS ====================

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()


_LEADING_NUMBER = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


def parse_float(value) -> float:
    """
    Lecture tolérante d'un nombre issu d'une cellule.
    Comme parseFloat: prend le préfixe numérique ("12.5 €" -> 12.5),
    retourne 0.0 si rien n'est exploitable.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value == value else 0.0
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return 0.0
    return float(match.group(0))


def parse_int(value):
    """Entier tolérant (préfixe numérique), None si illisible"""
    match = re.match(r'^\s*[+-]?\d+', str(value if value is not None else ''))
    if not match:
        return None
    return int(match.group(0))


_DATE_FR = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')


def parse_date(value) -> Optional[datetime]:
    """
    Date de cellule -> datetime UTC, None si illisible.
    JJ/MM/AAAA est toujours lu jour d'abord ("01/02/2024" = 1er février),
    sinon ISO 8601 (AAAA-MM-JJ, heure optionnelle, sans fuseau = UTC).
    """
    if not value:
        return None
    text = str(value).strip()
    match = _DATE_FR.match(text)
    try:
        if match:
            day, month, year = (int(g) for g in match.groups())
            return datetime(year, month, day, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_amount(value) -> str:
    """Nettoie un montant saisi à la main: espaces, virgule décimale, symbole €"""
    return re.sub(r'\s', '', str(value)).replace(',', '.', 1).replace('€', '').strip()

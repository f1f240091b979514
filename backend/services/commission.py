"""
Calcul des commissions par compagnie

Taux lus dans les Settings:
  commission_<COMPAGNIE>_annee1     (% 1ère année)
  commission_<COMPAGNIE>_recurrent  (% années suivantes)
où <COMPAGNIE> est le nom normalisé (majuscules, accents retirés,
seulement A-Z et 0-9).

Type de commission: Précompte pour une liste fixe de compagnies,
Linéaire pour toutes les autres (y compris inconnues).
Le facteur 0.875 (commission effectivement reçue) s'applique partout.
"""

import re
import unicodedata
from typing import Dict, Optional

from config import clean_amount

TAUX_RECU = 0.875

TYPE_PRECOMPTE = "Précompte"
TYPE_LINEAIRE = "Linéaire"

# Compagnies connues (ordre de la page Administration)
COMPAGNIES = [
    "SPVIE", "HARMONIE MUTUELLE", "AS SOLUTIONS", "SOLLY AZAR", "NÉOLIANE",
    "ZENIOO", "APRIL", "ALPTIS", "ENTORIA", "AVA", "COVERITY",
    "MALAKOFF HUMANIS", "ASAF&AFPS", "JOKER ASSURANCES", "APICIL",
    "ECA CAPITAL SENIOR", "ECA SÉRENISSIME", "ECA Autres", "CNP",
]

COMPAGNIES_PRECOMPTE = {
    "SPVIE", "HARMONIEMUTUELLE", "ASSOLUTIONS", "NEOLIANE", "ZENIOO", "AVA",
    "MALAKOFFHUMANIS", "ASAFAFPS", "ECACAPITALSENIOR", "ECASERENISSIME", "ECAAUTRES",
}

EMPTY_RESULT = {
    "cotisationAnnuelle": "",
    "commissionMensuel": "",
    "commissionAnnuelle": "",
    "commissionAnnuelle1": "",
    "commissionRecurrente": "",
    "commissionRecu": "",
    "typeCommission": "",
}


def normalize_company_name(name) -> str:
    """'Néoliane ' -> 'NEOLIANE', 'ASAF&AFPS' -> 'ASAFAFPS'"""
    folded = unicodedata.normalize("NFKD", str(name)).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^A-Z0-9]", "", folded.upper().strip())


def commission_keys(compagnie) -> tuple:
    key = normalize_company_name(compagnie)
    return f"commission_{key}_annee1", f"commission_{key}_recurrent"


def commission_type(compagnie) -> str:
    if normalize_company_name(compagnie) in COMPAGNIES_PRECOMPTE:
        return TYPE_PRECOMPTE
    return TYPE_LINEAIRE


def _to_number(value) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    cleaned = clean_amount(value)
    match = re.match(r"^[+-]?(\d+(\.\d*)?|\.\d+)", cleaned)
    if not match:
        return None
    return float(match.group(0))


def _rate(settings: Dict[str, str], key: str) -> float:
    rate = _to_number(settings.get(key) or "")
    return rate or 0.0


def calculate_commission(compagnie, prime_brute_mensuelle, settings: Optional[Dict[str, str]]) -> dict:
    """
    Commission dérivée d'une prime brute mensuelle.

    Retourne des chaînes vides (pas des zéros) quand il manque la compagnie,
    la prime, les settings, ou si la prime est illisible.
    """
    if not compagnie or prime_brute_mensuelle in (None, "") or not settings:
        return dict(EMPTY_RESULT)

    cotisation = _to_number(prime_brute_mensuelle)
    if cotisation is None:
        return dict(EMPTY_RESULT)

    annee1_key, recurrent_key = commission_keys(compagnie)
    annee1 = _rate(settings, annee1_key)
    recurrent = _rate(settings, recurrent_key)

    cotisation_annuelle = cotisation * 12
    commission_annuelle = cotisation_annuelle * (annee1 / 100)
    commission_recurrente = cotisation_annuelle * (recurrent / 100)

    return {
        "cotisationAnnuelle": cotisation_annuelle,
        "commissionMensuel": cotisation * (annee1 / 100),
        "commissionAnnuelle": commission_annuelle,
        "commissionAnnuelle1": commission_annuelle * TAUX_RECU,
        "commissionRecurrente": commission_recurrente,
        "commissionRecu": commission_recurrente * TAUX_RECU,
        "typeCommission": commission_type(compagnie),
    }

"""
Rapports et KPIs

Agrège contrats + prospects fusionnés + statistiques des campagnes email:
- KPIs globaux (contrats actifs = tout sauf 'rétracté')
- KPIs campagnes (Brevo)
- Regroupements par Commercial, Origine, Pays, Compagnie

Fonction pure: mêmes entrées -> mêmes sorties, aucune écriture.
Le filtre de période porte sur la date d'effet des contrats; le nombre de
prospects n'est jamais filtré.
"""

import logging
import re
from typing import Dict, List, Optional

from config import SHEET_CONTRATS, parse_date, parse_float, clean_amount
from models.crm import Contrat
from services.commission import calculate_commission
from services.data_manager import get_merged_prospects
from services.row_store import RowStore, rows_to_dicts

logger = logging.getLogger("reports")

NON_ATTRIBUE = "Non attribué"
ORIGINE_INCONNUE = "Inconnue"
PAYS_INCONNU = "Inconnu"
COMPAGNIE_INCONNUE = "Inconnue"

ACTIVE_CAMPAIGN_STATUSES = ("sent", "scheduled")

COMMISSION_FIELDS = [
    "cotisationAnnuelle",
    "commissionMensuel",
    "commissionAnnuelle",
    "commissionAnnuelle1",
    "commissionRecurrente",
    "commissionRecu",
]


# ==================== FILTRAGE ====================

def filter_by_period(
    contrats: List[Contrat],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> List[Contrat]:
    """
    Contrats dont la date d'effet est dans [start, end]; date illisible = exclu.
    Une borne fournie mais illisible n'est pas appliquée, le filtre reste actif.
    """
    if not start_date and not end_date:
        return contrats

    start, end = parse_date(start_date), parse_date(end_date)
    kept = []
    for contrat in contrats:
        effet = parse_date(contrat.debut_effet)
        if effet is None:
            continue
        if start and effet < start:
            continue
        if end and effet > end:
            continue
        kept.append(contrat)
    return kept


# ==================== CAMPAGNES ====================

def _global_stat(campaign: dict, key: str) -> float:
    stats = (campaign.get("statistics") or {}).get("globalStats") or {}
    return stats.get(key) or 0


def campaign_kpis(campaigns: List[dict]) -> dict:
    total_sent = sum((c.get("recipients") or {}).get("total") or 0 for c in campaigns)
    total_opened = sum(_global_stat(c, "opened") for c in campaigns)
    total_clicked = sum(_global_stat(c, "clicked") for c in campaigns)
    total_unsubscribed = sum(_global_stat(c, "unsubscribed") for c in campaigns)

    return {
        "totalCampaigns": len(campaigns),
        "activeCampaigns": len([c for c in campaigns if c.get("status") in ACTIVE_CAMPAIGN_STATUSES]),
        "totalEmailsSent": total_sent,
        "totalOpened": total_opened,
        "totalClicked": total_clicked,
        "totalUnsubscribed": total_unsubscribed,
        "openRate": (total_opened / total_sent) * 100 if total_sent > 0 else 0,
        "clickRate": (total_clicked / total_sent) * 100 if total_sent > 0 else 0,
    }


# ==================== REGROUPEMENTS ====================

def parse_prime_brute_mensuelle(value) -> float:
    return parse_float(clean_amount(value)) if value else 0.0


def group_by_commercial(prospects: List[dict], actifs: List[Contrat]) -> Dict[str, dict]:
    groups = {}
    for prospect in prospects:
        commercial = prospect.get("Attribution") or NON_ATTRIBUE
        group = groups.setdefault(commercial, {
            "nbProspects": 0,
            "nbContrats": 0,
            "primeNetteAnnuelle": 0,
            "commission1A": 0,
            "commissionRecurrente": 0,
            "contracts": [],
        })
        group["nbProspects"] += 1

    for contrat in actifs:
        group = groups.get(contrat.projet_attribution or NON_ATTRIBUE)
        if group is None:
            continue
        group["nbContrats"] += 1
        group["primeNetteAnnuelle"] += contrat.prime_nette_annuelle
        group["commission1A"] += contrat.commission_1a
        group["commissionRecurrente"] += contrat.commission_recurrente
        group["contracts"].append({
            "compagnie": contrat.compagnie,
            "primeBruteMensuelle": parse_prime_brute_mensuelle(contrat.prime_brute_mensuelle_raw),
        })
    return groups


def group_by_origine(prospects: List[dict], actifs: List[Contrat]) -> Dict[str, dict]:
    groups = {}
    for prospect in prospects:
        origine = prospect.get("Origine") or ORIGINE_INCONNUE
        group = groups.setdefault(origine, {
            "nbProspects": 0,
            "nbContrats": 0,
            "primeNetteAnnuelle": 0,
            "commission1A": 0,
        })
        group["nbProspects"] += 1

    for contrat in actifs:
        group = groups.get(contrat.projet_origine or ORIGINE_INCONNUE)
        if group is None:
            continue
        group["nbContrats"] += 1
        group["primeNetteAnnuelle"] += contrat.prime_nette_annuelle
        group["commission1A"] += contrat.commission_1a
    return groups


def group_contrats(actifs: List[Contrat], key, fallback: str) -> Dict[str, dict]:
    """Regroupement des seuls contrats (Pays, Compagnie)"""
    groups = {}
    for contrat in actifs:
        group = groups.setdefault(key(contrat) or fallback, {
            "nbContrats": 0,
            "cotisationMensuel": 0,
            "cotisationAnnuel": 0,
            "commission1A": 0,
            "commissionRecurrente": 0,
        })
        group["nbContrats"] += 1
        group["cotisationMensuel"] += contrat.prime_nette_mensuelle
        group["cotisationAnnuel"] += contrat.prime_nette_annuelle
        group["commission1A"] += contrat.commission_1a
        group["commissionRecurrente"] += contrat.commission_recurrente
    return groups


# ==================== RAPPORT ====================

def build_report(
    prospects: List[dict],
    contrats: List[dict],
    campaigns: List[dict],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> dict:
    records = [Contrat.from_row(row) for row in contrats]
    records = filter_by_period(records, start_date, end_date)
    actifs = [c for c in records if c.is_active]

    global_kpis = {
        "totalProspects": len(prospects),
        "totalContrats": len(records),
        "totalActiveContrats": len(actifs),
        "totalPrimeNetteAnnuelle": sum(c.prime_nette_annuelle for c in actifs),
        "totalPrimeBruteAnnuelle": sum(c.prime_brute_annuelle for c in actifs),
        "totalCommission1A": sum(c.commission_1a for c in actifs),
        "totalCommissionRecurrente": sum(c.commission_recurrente for c in actifs),
    }
    global_kpis.update(campaign_kpis(campaigns))

    return {
        "global": global_kpis,
        "byCommercial": group_by_commercial(prospects, actifs),
        "byOrigine": group_by_origine(prospects, actifs),
        "byPays": group_contrats(actifs, lambda c: c.pays, PAYS_INCONNU),
        "byCompagnie": group_contrats(actifs, lambda c: c.compagnie, COMPAGNIE_INCONNUE),
    }


# ==================== ENRICHISSEMENT (coûts, marges) ====================

def charge_key(commercial: str) -> str:
    return "charge_" + re.sub(r"\s+", "_", commercial)


def enrich_commercial_kpis(by_commercial: Dict[str, dict], settings: Dict[str, str]) -> List[dict]:
    """
    Détail par commercial: charge, dépenses marketing (nbProspects x cpl),
    marge nette (commission 1ère année - charge - dépenses) et cumul des
    commissions calculées contrat par contrat. Trié par marge décroissante.
    """
    cpl = parse_float(settings.get("cpl"))
    rows = []

    for name, data in by_commercial.items():
        charge = parse_float(settings.get(charge_key(name)))
        depenses_marketing = (data.get("nbProspects") or 0) * cpl
        totals = {field: 0.0 for field in COMMISSION_FIELDS}
        type_commission = ""

        for contract in data.get("contracts", []):
            commission = calculate_commission(contract.get("compagnie"), contract.get("primeBruteMensuelle"), settings)
            for field in COMMISSION_FIELDS:
                totals[field] += parse_float(commission[field])
            if commission["typeCommission"]:
                type_commission = commission["typeCommission"]

        rows.append({
            "commercial": name,
            "nbProspects": data.get("nbProspects", 0),
            "nbContrats": data.get("nbContrats", 0),
            "primeNetteAnnuelle": data.get("primeNetteAnnuelle", 0),
            "commission1A": data.get("commission1A", 0),
            "charge": charge,
            "depensesMarketing": depenses_marketing,
            "margeNette": data.get("commission1A", 0) - (charge + depenses_marketing),
            **totals,
            "typeCommission": type_commission,
        })

    rows.sort(key=lambda r: r["margeNette"], reverse=True)
    return rows


def enrich_origine_kpis(by_origine: Dict[str, dict]) -> Dict[str, dict]:
    enriched = {}
    for name, data in by_origine.items():
        nb_prospects = data.get("nbProspects") or 0
        taux = round(data["nbContrats"] / nb_prospects * 100, 2) if nb_prospects > 0 else 0
        enriched[name] = {**data, "tauxConversion": taux}
    return enriched


async def get_report(
    store: RowStore,
    brevo,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> dict:
    prospects = await get_merged_prospects(store)
    contrats = rows_to_dicts(await store.get_table(SHEET_CONTRATS))
    campaigns = await brevo.list_campaigns()
    report = build_report(prospects, contrats, campaigns, start_date, end_date)
    logger.info(
        f"[REPORTS] {report['global']['totalActiveContrats']}/{report['global']['totalContrats']} "
        f"contrats actifs, période {start_date or '-'} -> {end_date or '-'}"
    )
    return report

"""
Courtage CRM - Routes Rapports

GET /reports?startDate=AAAA-MM-JJ&endDate=AAAA-MM-JJ
Filtre de période sur la date d'effet des contrats.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from routes.deps import get_store, get_brevo, get_settings_cache
from services.brevo import BrevoClient
from services.reports import get_report, enrich_commercial_kpis, enrich_origine_kpis
from services.row_store import RowStore
from services.settings import SettingsCache

router = APIRouter(prefix="/reports", tags=["Rapports"])


@router.get("")
async def reports(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    store: RowStore = Depends(get_store),
    brevo: BrevoClient = Depends(get_brevo),
    cache: SettingsCache = Depends(get_settings_cache)
):
    report = await get_report(store, brevo, startDate, endDate)
    settings = await cache.get_or_refresh()

    report["commercialDetails"] = enrich_commercial_kpis(report["byCommercial"], settings)
    report["byOrigine"] = enrich_origine_kpis(report["byOrigine"])
    return report

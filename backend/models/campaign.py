"""
Campagnes email (Brevo) et export de segments
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class Sender(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class CampaignCreate(BaseModel):
    """Création d'une campagne à partir d'une cohorte fixe (segmentId = nom du segment)"""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    subject: Optional[str] = None
    htmlContent: Optional[str] = None
    segmentId: Optional[str] = None
    sender: Optional[Sender] = None
    scheduledAt: Optional[str] = None

    def missing_fields(self) -> List[str]:
        fields = ["name", "subject", "htmlContent", "segmentId", "sender"]
        return [name for name in fields if not getattr(self, name)]


class ExportSegmentRequest(BaseModel):
    segmentName: Optional[str] = None
    contacts: Optional[list] = None

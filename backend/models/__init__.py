"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Courtage CRM - Models Package                                               ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import Contact, SegmentFilters, WorkflowIn, etc.                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Feuilles métier (Contacts, Projets, Contrats)
from .crm import (
    SheetRecord,
    Contact,
    Projet,
    Contrat,
    STATUT_RETRACTE,
    is_active_statut
)

# Segmentation
from .segment import (
    SegmentFilters,
    FIXED_SEGMENTS,
    SEGMENT_RECHERCHE_IA,
    SEGMENT_PAR_REGION
)

# Workflows / scénarios
from .workflow import (
    WorkflowIn,
    ScenarioIn,
    LaunchWorkflowRequest
)

# Campagnes
from .campaign import (
    Sender,
    CampaignCreate,
    ExportSegmentRequest
)

# Interactions / email / IA
from .interaction import (
    InteractionCreate,
    EmailSendRequest,
    PromptRequest,
    QueryRequest
)

__all__ = [
    # CRM
    "SheetRecord",
    "Contact",
    "Projet",
    "Contrat",
    "STATUT_RETRACTE",
    "is_active_statut",
    # Segments
    "SegmentFilters",
    "FIXED_SEGMENTS",
    "SEGMENT_RECHERCHE_IA",
    "SEGMENT_PAR_REGION",
    # Workflows
    "WorkflowIn",
    "ScenarioIn",
    "LaunchWorkflowRequest",
    # Campagnes
    "Sender",
    "CampaignCreate",
    "ExportSegmentRequest",
    # Interactions
    "InteractionCreate",
    "EmailSendRequest",
    "PromptRequest",
    "QueryRequest",
]

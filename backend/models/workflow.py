"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Courtage CRM - Workflows et scénarios emailing                              ║
║                                                                              ║
║  Les noms de champs reprennent les en-têtes des feuilles (Segment_cible =    ║
║  colonne "Segment cible"). Tous optionnels: la route renvoie un 400 avec     ║
║  la liste des champs requis, et une mise à jour partielle garde les          ║
║  valeurs existantes.                                                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict


class WorkflowIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    Nom: Optional[str] = None
    Déclencheur: Optional[str] = None
    Étapes: Optional[Any] = None  # liste d'étapes [{type: "email", ...}], stockée en JSON
    Statut: Optional[str] = None
    Segment_cible: Optional[str] = None
    Sujet_Email: Optional[str] = None
    Corps_Email: Optional[str] = None

    def missing_for_create(self) -> list:
        required = ["Nom", "Déclencheur", "Étapes", "Statut", "Sujet_Email", "Corps_Email"]
        return [name for name in required if not getattr(self, name)]


class ScenarioIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    Nom: Optional[str] = None
    Description: Optional[str] = None
    Contenu: Optional[str] = None


class LaunchWorkflowRequest(BaseModel):
    segmentName: Optional[str] = None
    workflowId: Optional[Union[int, str]] = None

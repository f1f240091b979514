"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Courtage CRM - Enregistrements métier (Contacts, Projets, Contrats)         ║
║                                                                              ║
║  Les feuilles n'imposent aucun schéma: chaque modèle nomme les colonnes      ║
║  qu'il exploite (alias = en-tête exact de la feuille) et range toutes les    ║
║  autres colonnes dans `extensions`.                                          ║
║  Les valeurs restent des chaînes; les montants sont lus à la demande et      ║
║  une valeur illisible vaut 0 (jamais d'exception).                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Dict, Set
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from config import parse_float

STATUT_RETRACTE = "rétracté"


class SheetRecord(BaseModel):
    """Ligne de feuille: colonnes connues + colonnes libres"""
    model_config = ConfigDict(populate_by_name=True)

    extensions: Dict[str, str] = Field(default_factory=dict)

    # En-têtes connus réellement présents dans la ligne source
    _present: Set[str] = PrivateAttr(default_factory=set)

    @classmethod
    def column_names(cls) -> Dict[str, str]:
        """nom d'attribut -> en-tête de colonne"""
        return {
            name: field.alias
            for name, field in cls.model_fields.items()
            if field.alias
        }

    @classmethod
    def from_row(cls, row: Dict[str, str]):
        columns = cls.column_names()
        known = set(columns.values())
        values = {name: row.get(header, '') or '' for name, header in columns.items()}
        extensions = {k: v for k, v in row.items() if k not in known}
        record = cls(**values, extensions=extensions)
        record._present = known & set(row)
        return record

    def to_row(self) -> Dict[str, str]:
        """Reconstruit la ligne source (colonnes absentes de la feuille exclues)"""
        row = dict(self.extensions)
        for name, header in self.column_names().items():
            if header in self._present:
                row[header] = getattr(self, name)
        return row


class Contact(SheetRecord):
    identifiant: str = Field("", alias="Identifiant")
    prenom: str = Field("", alias="Prénom")
    nom: str = Field("", alias="Nom")
    email: str = Field("", alias="Email")
    telephone: str = Field("", alias="Téléphone")
    ville: str = Field("", alias="Ville")
    pays: str = Field("", alias="Pays")
    attribution: str = Field("", alias="Attribution")

    @property
    def nom_complet(self) -> str:
        return f"{self.prenom} {self.nom}".strip()


class Projet(SheetRecord):
    identifiant_contact: str = Field("", alias="Identifiant contact")
    statut: str = Field("", alias="Statut")
    origine: str = Field("", alias="Origine")
    date_creation: str = Field("", alias="Date de création")
    attribution: str = Field("", alias="Attribution")


class Contrat(SheetRecord):
    contact_identifiant: str = Field("", alias="Contact - Identifiant")
    compagnie: str = Field("", alias="Contrat - Compagnie")
    produit: str = Field("", alias="Contrat - Produit")
    statut: str = Field("", alias="Contrat - Statut")
    debut_effet: str = Field("", alias="Contrat - Début d'effet")
    pays: str = Field("", alias="Contact - Pays")
    projet_attribution: str = Field("", alias="Projet - Attribution")
    projet_origine: str = Field("", alias="Projet - Origine")
    prime_nette_mensuelle_raw: str = Field("", alias="Contrat - Prime nette mensuelle")
    prime_nette_annuelle_raw: str = Field("", alias="Contrat - Prime nette annuelle")
    prime_brute_mensuelle_raw: str = Field("", alias="Contrat - Prime brute mensuelle")
    prime_brute_annuelle_raw: str = Field("", alias="Contrat - Prime brute annuelle")
    commission_1a_pct_raw: str = Field("", alias="Contrat - Commissionnement 1ère année (%)")
    commission_recurrente_pct_raw: str = Field("", alias="Contrat - Commissionnement années suivantes (%)")

    @property
    def is_active(self) -> bool:
        return is_active_statut(self.statut)

    @property
    def prime_nette_mensuelle(self) -> float:
        return parse_float(self.prime_nette_mensuelle_raw)

    @property
    def prime_nette_annuelle(self) -> float:
        return parse_float(self.prime_nette_annuelle_raw)

    @property
    def prime_brute_annuelle(self) -> float:
        return parse_float(self.prime_brute_annuelle_raw)

    @property
    def commission_1a(self) -> float:
        """Commission 1ère année sur la prime nette annuelle"""
        return parse_float(self.commission_1a_pct_raw) * self.prime_nette_annuelle / 100

    @property
    def commission_recurrente(self) -> float:
        return parse_float(self.commission_recurrente_pct_raw) * self.prime_nette_annuelle / 100


def is_active_statut(statut) -> bool:
    """Actif = tout statut sauf 'rétracté' (casse et espaces ignorés)"""
    return (statut or '').strip().lower() != STATUT_RETRACTE

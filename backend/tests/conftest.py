"""
Courtage CRM — fixtures partagées
- InMemoryRowStore: feuilles en mémoire (même interface que GoogleSheetsRowStore)
- jeu de données Contacts / Projets / Contrats de référence
- client HTTP FastAPI avec dépendances remplacées
Run: cd backend && pytest tests -v
"""

import copy
import re
from datetime import datetime, timezone

import httpx
import pytest

from services.row_store import RowStore, TableNotFound
from services.settings import SettingsCache

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

CONTACTS = [
    ["Identifiant", "Prénom", "Nom", "Email", "Téléphone", "Ville", "Pays",
     "Âge", "Score IA", "Département", "Type de produit"],
    ["C1", "Marie", "Durand", "Marie@Example.fr", "0601020304", "Lyon", "France", "45", "80", "69", "Santé"],
    ["C2", "Paul", "Martin", "paul@example.fr", "0605060708", "lyon", "France", "30", "55", "69", "Prévoyance"],
    ["C3", "Julie", "Bernard", "", "", "Lyon 3e", "France", "52", "70", "69", "Santé"],
    ["C4", "Luc", "Petit", "luc@example.fr", "", "Marseille", "France", "", "", "13", "Obsèques"],
    ["C5", "", "Leroy", "sophie@example.fr", "", "Lyon", "France", "38", "90", "69", "Santé"],
]

PROJETS = [
    ["Identifiant contact", "Statut", "Origine", "Date de création", "Attribution"],
    ["C1", "Contrat signé", "Web", "16/04/2024", "Alice Martin"],
    ["C2", "Devis envoyé", "Salon", "05/06/2024", "Bob"],
    ["C3", "Ne répond pas", "Web", "26/05/2024", ""],
    ["C4", "Nouveau", "Parrainage", "2024-06-15T10:00:00Z", "Alice Martin"],
    ["C5", "Contrat signé", "Salon", "01/03/2024", "Bob"],
    ["C9", "Devis envoyé", "Web", "12/06/2024", "Bob"],
]

CONTRATS = [
    ["Contact - Identifiant", "Contrat - Compagnie", "Contrat - Produit", "Contrat - Statut",
     "Contrat - Début d'effet", "Contact - Pays", "Projet - Attribution", "Projet - Origine",
     "Contrat - Prime nette mensuelle", "Contrat - Prime nette annuelle",
     "Contrat - Prime brute mensuelle", "Contrat - Prime brute annuelle",
     "Contrat - Commissionnement 1ère année (%)", "Contrat - Commissionnement années suivantes (%)"],
    ["C1", "APRIL", "Santé", "En cours", "15/01/2024", "France", "Alice Martin", "Web",
     "83.33", "1000", "100", "1200", "20", "10"],
    ["C1", "SPVIE", "Santé", " Rétracté ", "01/02/2024", "France", "Alice Martin", "Web",
     "416.67", "5000", "500", "6000", "30", "10"],
    ["C3", "NÉOLIANE", "Prévoyance", "Actif", "2024-03-10", "France", "", "Web",
     "50", "600", "60", "720", "25", "5"],
    ["C5", "ALPTIS", "Santé", "Actif", "2024-05-01", "France", "Bob", "Salon",
     "75", "900", "80", "960", "15", "10"],
]

WORKFLOWS = [
    ["ID", "Nom", "Déclencheur", "Étapes", "Statut", "Dernière exécution",
     "Segment cible", "Sujet Email", "Corps Email"],
    ["1", "Relance non joignables", "Manuel", '[{"type": "email", "delai": 0}]', "Actif", "",
     "Non joignables", "Bonjour [Prénom]", "<p>Bonjour [Prénom], rappelez-nous.</p>"],
    ["2", "Brouillon", "Manuel", "", "Inactif", "", "", "", ""],
    ["4", "Relance SMS", "Manuel", '[{"type": "sms"}]', "Actif", "", "", "Sujet", "Corps"],
]

SCENARIOS = [
    ["ID", "Nom", "Description", "Contenu"],
    ["1", "Bienvenue", "Premier contact", "<p>Bienvenue</p>"],
]

INTERACTIONS = [
    ["Date", "ID Contact", "Type", "Canal", "Sujet", "Message", "Statut", "Workflow", "Segment"],
    ["2024-06-01T09:00:00+00:00", "C1", "Email", "Manuel", "Devis", "Voici votre devis", "Envoyé"],
    ["2024-06-02T09:00:00+00:00", "C2", "Email", "Manuel", "Rappel", "Rappel", "Envoyé"],
]

SETTINGS = [
    ["key", "value"],
    ["smtpHost", "smtp.example.fr"],
    ["smtpPort", "465"],
    ["smtpUser", "crm@example.fr"],
    ["smtpPass", "secret"],
    ["geminiApiKey", "gemini-key"],
    ["cpl", "10"],
    ["charge_Alice_Martin", "100"],
    ["commission_APRIL_annee1", "20"],
    ["commission_APRIL_recurrent", "10"],
]


def _column_index(letters: str) -> int:
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


class InMemoryRowStore(RowStore):
    """Feuilles en mémoire; journalise les écritures pour les assertions"""

    def __init__(self, tables=None):
        self.tables = copy.deepcopy(tables or {})
        self.writes = []

    def _table(self, name):
        if name not in self.tables:
            raise TableNotFound(name)
        return self.tables[name]

    async def get_table(self, name):
        return copy.deepcopy(self._table(name))

    async def append_rows(self, name, rows):
        self._table(name).extend([list(r) for r in rows])
        self.writes.append(("append", name, rows))

    async def update_row(self, name, index, row):
        await self.update_range(name, f"A{index}", [row])

    async def delete_row(self, name, index):
        del self._table(name)[index - 1]
        self.writes.append(("delete", name, index))

    async def create_table(self, name):
        self.tables[name] = []
        self.writes.append(("create", name))

    async def update_range(self, name, start_cell, rows):
        table = self._table(name)
        letters, number = re.match(r"([A-Z]+)(\d+)", start_cell).groups()
        col, first = _column_index(letters), int(number) - 1
        for offset, values in enumerate(rows):
            while len(table) <= first + offset:
                table.append([])
            target = table[first + offset]
            while len(target) < col + len(values):
                target.append("")
            target[col:col + len(values)] = list(values)
        self.writes.append(("update", name, start_cell, rows))


def crm_tables():
    return {
        "Contacts": CONTACTS,
        "Projets Assurance de personnes": PROJETS,
        "Contrats Assurance de personnes": CONTRATS,
        "Workflows": WORKFLOWS,
        "ScenariosEmailing": SCENARIOS,
        "Interactions": INTERACTIONS,
        "Settings": SETTINGS,
    }


def settings_dict():
    return {row[0]: row[1] for row in SETTINGS[1:]}


def static_cache(settings=None):
    values = settings_dict() if settings is None else settings

    async def loader():
        return dict(values)

    return SettingsCache(loader)


# ═══════════════════════════════════════════════════════════════
# Faux serveur Brevo (httpx.MockTransport)
# ═══════════════════════════════════════════════════════════════

CAMPAIGNS = [
    {"id": 1, "name": "Printemps", "status": "sent",
     "recipients": {"total": 200},
     "statistics": {"globalStats": {"opened": 50, "clicked": 10, "unsubscribed": 2}}},
    {"id": 2, "name": "Brouillon", "status": "draft", "recipients": {"total": 0}},
    {"id": 3, "name": "Été", "status": "scheduled",
     "recipients": {"total": 100},
     "statistics": {"globalStats": {"opened": 25, "clicked": 5, "unsubscribed": 1}}},
]


class FakeBrevo:
    """Enregistre les requêtes et répond comme l'API v3"""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/v3", "", 1)

        if request.headers.get("api-key") != "test-key":
            return httpx.Response(401, json={"code": "unauthorized", "message": "Key not found"})
        if path == "/emailCampaigns" and request.method == "GET":
            return httpx.Response(200, json={"campaigns": CAMPAIGNS, "count": len(CAMPAIGNS)})
        if path == "/emailCampaigns" and request.method == "POST":
            return httpx.Response(201, json={"id": 42})
        if path == "/emailCampaigns/1":
            return httpx.Response(200, json=CAMPAIGNS[0])
        if path.startswith("/emailCampaigns/") and path.endswith("/sendNow"):
            return httpx.Response(204)
        if path.startswith("/emailCampaigns/"):
            return httpx.Response(404, json={"code": "document_not_found", "message": "Campaign ID does not exist"})
        if path == "/contacts/lists":
            return httpx.Response(201, json={"id": 7})
        if path == "/contacts/batch":
            return httpx.Response(201, json={})
        if path == "/contacts/lists/7/contacts/add":
            return httpx.Response(201, json={"contacts": {"success": [], "failure": []}})
        if path == "/account":
            return httpx.Response(200, json={"email": "crm@example.fr"})
        return httpx.Response(404, json={"code": "document_not_found", "message": "Not found"})


@pytest.fixture
def store():
    return InMemoryRowStore(crm_tables())


@pytest.fixture
def fake_brevo():
    return FakeBrevo()


@pytest.fixture
def brevo(fake_brevo):
    from services.brevo import BrevoClient
    return BrevoClient(api_key="test-key", transport=httpx.MockTransport(fake_brevo))


@pytest.fixture
def sent_emails():
    return []


@pytest.fixture
def client(store, brevo, sent_emails):
    from fastapi.testclient import TestClient
    from routes.deps import get_store, get_settings_cache, get_brevo, get_mailer
    from server import app

    async def send(to, subject, html):
        sent_emails.append((to, subject, html))

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings_cache] = lambda: static_cache()
    app.dependency_overrides[get_brevo] = lambda: brevo
    app.dependency_overrides[get_mailer] = lambda: send

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

"""
Interactions, envoi d'email manuel et requêtes IA
"""

from typing import Optional
from pydantic import BaseModel


class InteractionCreate(BaseModel):
    prospectId: Optional[str] = None
    type: Optional[str] = None
    canal: Optional[str] = None
    sujet: Optional[str] = None
    message: Optional[str] = None
    statut: Optional[str] = None


class EmailSendRequest(BaseModel):
    to: Optional[str] = None
    subject: Optional[str] = None
    html: Optional[str] = None


class PromptRequest(BaseModel):
    prompt: Optional[str] = None


class QueryRequest(BaseModel):
    query: Optional[str] = None

"""
Roster dependencies for FastAPI routes.
"""

from __future__ import annotations

from core import db
from identity.repository import IdentityRepository

from .repository import AssociationRepository
from .service import RelationshipService


def get_service() -> RelationshipService:
    database = db.database()
    return RelationshipService(IdentityRepository(database), AssociationRepository(database))

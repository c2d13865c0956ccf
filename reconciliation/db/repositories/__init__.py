"""Database repository layer — one repo per aggregate root."""

from reconciliation.db.repositories.case_repo import CaseRepo
from reconciliation.db.repositories.event_repo import CaseEventRepo
from reconciliation.db.repositories.session_repo import SessionRepo

__all__ = [
    "CaseEventRepo",
    "CaseRepo",
    "SessionRepo",
]

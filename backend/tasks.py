"""Background tasks run by the rq worker.

Each function here is enqueued by dotted path (``tasks.<kind>``) and
receives the job payload as keyword arguments. Start a worker with:

    rq worker account_syncs --url redis://localhost:6379/0
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from database import get_session_local
from models import Account, ProviderAccount
from services.balance_reconciler import BalanceReconciler

logger = logging.getLogger(__name__)


def linked_provider_accounts(db: Session, account: Account) -> list[ProviderAccount]:
    """Provider accounts feeding ``account``, through an AccountLink or the legacy FK."""
    found = {link.provider_account.id: link.provider_account for link in account.account_links}
    legacy = db.query(ProviderAccount).filter(ProviderAccount.account_id == account.id).all()
    for provider_account in legacy:
        found.setdefault(provider_account.id, provider_account)
    return [
        provider_account
        for provider_account in found.values()
        if provider_account.linked_account is not None
        and provider_account.linked_account.id == account.id
    ]


def sync_account(account_id: str, sync_run_id: Optional[str] = None, session_factory=None) -> bool:
    """Recompute balances for every provider account linked to ``account_id``.

    Returns:
        False when the account no longer exists, True otherwise.
    """
    SessionLocal = session_factory or get_session_local()
    db = SessionLocal()
    try:
        account = db.query(Account).filter(Account.id == account_id).first()
        if account is None:
            logger.warning("sync_account: account %s not found (sync %s)", account_id, sync_run_id)
            return False

        reconciler = BalanceReconciler()
        for provider_account in linked_provider_accounts(db, account):
            reconciler.reconcile(db, provider_account)
        db.commit()
        logger.info("sync_account: account %s refreshed (sync %s)", account_id, sync_run_id)
        return True
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

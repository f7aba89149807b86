"""Linking provider accounts to canonical accounts, unlinking, and pruning."""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from integrations.exceptions import public_error_message
from models import Account, AccountLink, Connection, Holding, ProviderAccount

logger = logging.getLogger(__name__)


@dataclass
class UnlinkResult:
    """Outcome of unlinking one provider account."""

    provider_account_id: str
    name: str
    detached_holdings: int = 0
    link_removed: bool = False
    error: str | None = None


class AccountLinker:
    """Maintains the ProviderAccount -> canonical Account association.

    A provider account counts as linked when it has an AccountLink or a
    legacy ``account_id``. Unlinking detaches holdings instead of deleting
    them, and pruning never removes a linked provider account.
    """

    def link(
        self, db: Session, provider_account: ProviderAccount, account: Account
    ) -> AccountLink:
        """Link a provider account to a canonical account.

        Linking to the same account again is a no-op.

        Raises:
            ValueError: If the provider account is already linked to a
                different canonical account.
        """
        existing = provider_account.account_link
        if existing is not None:
            if existing.account_id == account.id:
                return existing
            raise ValueError(
                f"Provider account {provider_account.external_id} is already linked"
            )

        link = AccountLink(account=account, provider_account=provider_account)
        db.add(link)
        db.flush()
        logger.info(
            "Linked provider account %s to account %s",
            provider_account.external_id, account.id,
        )
        return link

    def linked_provider_accounts(
        self, db: Session, connection: Connection
    ) -> list[ProviderAccount]:
        """Linked provider accounts for the connection, in creation order."""
        return [pa for pa in self._provider_accounts(db, connection) if pa.is_linked]

    def unlinked_provider_accounts(
        self, db: Session, connection: Connection
    ) -> list[ProviderAccount]:
        return [pa for pa in self._provider_accounts(db, connection) if not pa.is_linked]

    @staticmethod
    def _provider_accounts(db: Session, connection: Connection) -> list[ProviderAccount]:
        return (
            db.query(ProviderAccount)
            .filter(ProviderAccount.connection_id == connection.id)
            .order_by(ProviderAccount.created_at, ProviderAccount.external_id)
            .all()
        )

    def unlink_all(
        self, db: Session, connection: Connection, dry_run: bool = False
    ) -> list[UnlinkResult]:
        """Unlink every provider account of the connection.

        Per provider account, inside one savepoint: null ``account_link_id``
        on its holdings, delete the AccountLink, clear the legacy FK. A
        failure rolls back only that account and is reported in its
        result. Running it again once everything is unlinked changes
        nothing.

        Args:
            db: Database session
            connection: Connection whose accounts to unlink
            dry_run: Report what would happen without writing

        Returns:
            One result per provider account.
        """
        results = []
        for provider_account in self._provider_accounts(db, connection):
            result = UnlinkResult(
                provider_account_id=provider_account.id,
                name=provider_account.name,
            )
            link = provider_account.account_link

            if dry_run:
                if link is not None:
                    result.detached_holdings = (
                        db.query(Holding).filter(Holding.account_link_id == link.id).count()
                    )
                    result.link_removed = True
                elif provider_account.account_id is not None:
                    result.link_removed = True
                results.append(result)
                continue

            try:
                with db.begin_nested():
                    if link is not None:
                        result.detached_holdings = (
                            db.query(Holding)
                            .filter(Holding.account_link_id == link.id)
                            .update({Holding.account_link_id: None}, synchronize_session="fetch")
                        )
                        db.delete(link)
                        result.link_removed = True
                    if provider_account.account_id is not None:
                        provider_account.account_id = None
                        provider_account.account = None
                        result.link_removed = True
                    db.flush()
                db.expire(provider_account, ["account_link"])
            except Exception as e:
                logger.error(
                    "Failed to unlink provider account %s",
                    provider_account.external_id, exc_info=True,
                )
                result.error = public_error_message(e, "unlink")
                result.detached_holdings = 0
                result.link_removed = False

            results.append(result)

        logger.info(
            "Unlink%s for connection %s: %d accounts, %d holdings detached, %d errors",
            " (dry run)" if dry_run else "",
            connection.id,
            len(results),
            sum(r.detached_holdings for r in results),
            sum(1 for r in results if r.error),
        )
        return results

    def prune_removed(
        self, db: Session, connection: Connection, upstream_ids: set[str]
    ) -> int:
        """Delete provider accounts that vanished upstream and are unlinked.

        An empty ``upstream_ids`` set is treated as a bad response and
        prunes nothing.

        Returns:
            Number of provider accounts deleted.
        """
        if not upstream_ids:
            logger.warning(
                "Skipping prune for connection %s: empty upstream account list",
                connection.id,
            )
            return 0

        pruned = 0
        for provider_account in self._provider_accounts(db, connection):
            if provider_account.external_id in upstream_ids:
                continue
            if provider_account.is_linked:
                logger.info(
                    "Keeping linked provider account %s missing upstream",
                    provider_account.external_id,
                )
                continue
            logger.info(
                "Pruning provider account %s (%s): no longer reported upstream",
                provider_account.external_id, provider_account.name,
            )
            db.delete(provider_account)
            pruned += 1

        if pruned:
            db.flush()
        return pruned

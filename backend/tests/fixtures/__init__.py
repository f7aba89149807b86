"""Test fixtures and sample data."""
import pytest
from sqlalchemy.orm import Session

from models import Account, AccountLink, Connection, ProviderAccount, Security


def make_provider_account(
    db: Session,
    connection: Connection,
    external_id: str,
    account: Account | None = None,
    **fields,
) -> ProviderAccount:
    """Create a provider account, linked through an AccountLink when ``account`` is given.

    This is a helper function (not a fixture) for tests that need several
    provider accounts on one connection.
    """
    provider_account = ProviderAccount(
        connection_id=connection.id,
        external_id=external_id,
        name=fields.pop("name", f"Account {external_id}"),
        **fields,
    )
    db.add(provider_account)
    db.flush()
    if account is not None:
        db.add(AccountLink(account_id=account.id, provider_account_id=provider_account.id))
        db.flush()
        db.refresh(provider_account)
    return provider_account


@pytest.fixture
def connection(db: Session) -> Connection:
    """Create a brokerage connection."""
    conn = Connection(
        provider_name="brokerage",
        name="Test Brokerage",
        credentials={"base_url": "https://api.example.test", "token": "secret"},
    )
    db.add(conn)
    db.commit()
    db.refresh(conn)
    return conn


@pytest.fixture
def account(db: Session) -> Account:
    """Create a canonical account."""
    acc = Account(name="Brokerage Account", currency="USD", account_type="investment")
    db.add(acc)
    db.commit()
    db.refresh(acc)
    return acc


@pytest.fixture
def provider_account(db: Session, connection: Connection) -> ProviderAccount:
    """Create an unlinked provider account awaiting setup."""
    pa = make_provider_account(db, connection, "acct-unlinked", currency="USD")
    db.commit()
    db.refresh(pa)
    return pa


@pytest.fixture
def linked_provider_account(
    db: Session, connection: Connection, account: Account
) -> ProviderAccount:
    """Create a provider account linked to the canonical account."""
    pa = make_provider_account(db, connection, "acct-001", account=account, currency="USD")
    db.commit()
    db.refresh(pa)
    return pa


@pytest.fixture
def security(db: Session) -> Security:
    """Create a test security."""
    sec = Security(ticker="AAPL", name="Apple Inc.", exchange_mic="XNAS", country_code="US")
    db.add(sec)
    db.commit()
    db.refresh(sec)
    return sec

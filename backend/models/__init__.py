"""SQLAlchemy ORM models."""

from .account import Account
from .account_link import AccountLink
from .connection import Connection
from .entry import Entry, Trade, Transaction
from .holding import Holding
from .provider_account import ProviderAccount
from .security import Security
from .sync_run import SyncRun
from .valuation import Valuation
from .utils import generate_uuid

__all__ = ["Account", "AccountLink", "Connection", "Entry", "Holding", "ProviderAccount", "Security", "SyncRun", "Trade", "Transaction", "Valuation", "generate_uuid"]

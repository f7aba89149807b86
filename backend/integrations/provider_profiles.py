"""Per-provider payload profiles.

Providers disagree on field names (``units`` vs ``quantity`` vs ``titles``),
nesting (``symbol.symbol.symbol`` vs ``instrument.isin``) and activity type
vocabulary. A :class:`ProviderProfile` captures those differences as data:
ordered key paths per logical field and a closed activity-type mapping.
The importer and processors only ever talk to a profile, never to raw keys.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


KeyPath = tuple[str, ...]


class ActivityLabel(str, Enum):
    """User-facing classification of an imported activity."""

    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    CONTRIBUTION = "Contribution"
    WITHDRAWAL = "Withdrawal"
    TRANSFER = "Transfer"
    INTEREST = "Interest"
    FEE = "Fee"
    REINVESTMENT = "Reinvestment"
    OTHER = "Other"


class CashDirection(str, Enum):
    """How a cash activity's amount sign is normalized."""

    OUTFLOW = "outflow"  # forced negative
    INFLOW = "inflow"  # forced positive
    AS_REPORTED = "as_reported"


# Key paths shared by every profile. Profiles override individual fields.
BASE_FIELD_PATHS: dict[str, tuple[KeyPath, ...]] = {
    # Identity
    "id": (("id",), ("transaction_id",)),
    "type": (("type",), ("activity_type",)),
    # Dates
    "settlement_date": (("settlement_date",),),
    "trade_date": (("trade_date",),),
    "date": (("date",), ("transaction_date",)),
    # Money and units
    "amount": (("amount",), ("trade_value",)),
    "quantity": (("units",), ("quantity",)),
    "price": (("price",),),
    "fee": (("fee",), ("fees",)),
    "cost_basis": (("average_purchase_price",), ("cost_basis",)),
    "market_value": (("market_value",), ("amount",)),
    # Instrument
    "symbol": (("symbol",), ("ticker",)),
    "security_name": (("description",), ("name",)),
    "currency": (("currency",), ("currency", "code")),
    # Free text
    "description": (("description",), ("name",)),
    # Account-level fields
    "name": (("name",), ("display_name",)),
    "current_balance": (("balance",), ("current_balance",), ("balance", "total")),
    "cash_balance": (("cash",), ("cash_balance",), ("available-balance",), ("balance", "cash")),
    "account_type": (("account_type",), ("type",)),
    "status": (("status",),),
    "closed": (("closed",),),
    "hidden": (("hidden",),),
}

# Fields hashed when a record has no provider ID. Live valuations
# (current value, unrealized P&L) are deliberately absent.
DEFAULT_FALLBACK_ID_FIELDS: tuple[str, ...] = ("date", "type", "amount", "symbol", "fee")


@dataclass(frozen=True)
class ProviderProfile:
    """Data-only description of one provider's payload conventions."""

    name: str
    activity_labels: Mapping[str, ActivityLabel]
    trade_types: frozenset[str]
    sell_side_types: frozenset[str]
    cash_directions: Mapping[str, CashDirection]
    field_overrides: Mapping[str, tuple[KeyPath, ...]] = field(default_factory=dict)
    fallback_id_fields: tuple[str, ...] = DEFAULT_FALLBACK_ID_FIELDS
    security_prefix: str | None = None  # e.g. "CRYPTO:" for non-exchange assets
    supports_holdings: bool = True

    @property
    def field_paths(self) -> dict[str, tuple[KeyPath, ...]]:
        return {**BASE_FIELD_PATHS, **self.field_overrides}

    def label_for(self, activity_type: str | None) -> ActivityLabel | None:
        """Map a provider activity type to a label, or None when unmapped."""
        if not activity_type:
            return None
        return self.activity_labels.get(activity_type.strip().upper())

    def is_trade(self, activity_type: str) -> bool:
        return activity_type in self.trade_types

    def is_sell_side(self, activity_type: str) -> bool:
        return activity_type in self.sell_side_types

    def cash_direction(self, activity_type: str) -> CashDirection:
        return self.cash_directions.get(activity_type, CashDirection.AS_REPORTED)


def _directions(outflows: set[str], inflows: set[str]) -> dict[str, CashDirection]:
    result = {t: CashDirection.OUTFLOW for t in outflows}
    result.update({t: CashDirection.INFLOW for t in inflows})
    return result


# Brokerage aggregators (holdings with nested symbol objects, option trades)
BROKERAGE_PROFILE = ProviderProfile(
    name="brokerage",
    activity_labels={
        "BUY": ActivityLabel.BUY,
        "SELL": ActivityLabel.SELL,
        "DIVIDEND": ActivityLabel.DIVIDEND,
        "DIV": ActivityLabel.DIVIDEND,
        "STOCK_DIVIDEND": ActivityLabel.DIVIDEND,
        "CONTRIBUTION": ActivityLabel.CONTRIBUTION,
        "CASH": ActivityLabel.CONTRIBUTION,
        "WITHDRAWAL": ActivityLabel.WITHDRAWAL,
        "TRANSFER_IN": ActivityLabel.TRANSFER,
        "TRANSFER_OUT": ActivityLabel.TRANSFER,
        "TRANSFER": ActivityLabel.TRANSFER,
        "INTEREST": ActivityLabel.INTEREST,
        "FEE": ActivityLabel.FEE,
        "TAX": ActivityLabel.FEE,
        "REI": ActivityLabel.REINVESTMENT,
        "REINVEST": ActivityLabel.REINVESTMENT,
        "SPLIT": ActivityLabel.OTHER,
        "MERGER": ActivityLabel.OTHER,
        "SPIN_OFF": ActivityLabel.OTHER,
        "JOURNAL": ActivityLabel.OTHER,
        "CORP_ACTION": ActivityLabel.OTHER,
        "OTHER": ActivityLabel.OTHER,
        "EXERCISED": ActivityLabel.OTHER,
        "EXPIRED": ActivityLabel.OTHER,
        "ASSIGNED": ActivityLabel.OTHER,
        "OPTION_BUY": ActivityLabel.BUY,
        "OPTION_SELL": ActivityLabel.SELL,
    },
    trade_types=frozenset(
        {"BUY", "SELL", "REI", "REINVEST", "OPTION_BUY", "OPTION_SELL", "EXERCISED", "ASSIGNED"}
    ),
    sell_side_types=frozenset({"SELL", "OPTION_SELL", "ASSIGNED"}),
    cash_directions=_directions(
        outflows={"WITHDRAWAL", "TRANSFER_OUT", "FEE", "TAX"},
        inflows={"CONTRIBUTION", "TRANSFER_IN", "DIVIDEND", "DIV", "INTEREST", "CASH"},
    ),
    field_overrides={
        "symbol": (
            ("symbol", "symbol", "symbol"),
            ("symbol", "symbol"),
            ("symbol", "raw_symbol"),
            ("option_symbol", "ticker"),
            ("symbol",),
            ("ticker",),
        ),
        "security_name": (
            ("symbol", "symbol", "description"),
            ("symbol", "description"),
            ("description",),
        ),
        "currency": (
            ("currency", "code"),
            ("currency",),
            ("symbol", "currency", "code"),
        ),
    },
)

# Robo-advisors (ISIN-keyed instruments, "titles" for units)
ROBO_ADVISOR_PROFILE = ProviderProfile(
    name="robo_advisor",
    activity_labels={
        "BUY": ActivityLabel.BUY,
        "SELL": ActivityLabel.SELL,
        "DIVIDEND": ActivityLabel.DIVIDEND,
        "DIV": ActivityLabel.DIVIDEND,
        "CONTRIBUTION": ActivityLabel.CONTRIBUTION,
        "WITHDRAWAL": ActivityLabel.WITHDRAWAL,
        "TRANSFER_IN": ActivityLabel.TRANSFER,
        "TRANSFER_OUT": ActivityLabel.TRANSFER,
        "TRANSFER": ActivityLabel.TRANSFER,
        "INTEREST": ActivityLabel.INTEREST,
        "FEE": ActivityLabel.FEE,
        "TAX": ActivityLabel.FEE,
        "REINVEST": ActivityLabel.REINVESTMENT,
        "SPLIT": ActivityLabel.OTHER,
        "MERGER": ActivityLabel.OTHER,
        "OTHER": ActivityLabel.OTHER,
    },
    trade_types=frozenset({"BUY", "SELL", "REINVEST"}),
    sell_side_types=frozenset({"SELL"}),
    cash_directions=_directions(
        outflows={"WITHDRAWAL", "TRANSFER_OUT", "FEE", "TAX"},
        inflows={"CONTRIBUTION", "TRANSFER_IN", "DIVIDEND", "DIV", "INTEREST"},
    ),
    field_overrides={
        "symbol": (
            ("instrument", "identifier"),
            ("instrument", "isin"),
            ("isin",),
            ("identifier",),
            ("symbol",),
            ("ticker",),
        ),
        "security_name": (("instrument", "name"), ("name",), ("description",)),
        "quantity": (("titles",), ("quantity",), ("units",)),
        "cost_basis": (("cost_price",), ("average_purchase_price",)),
    },
)

# Crypto exchanges and wallet trackers (no stable IDs on some records)
CRYPTO_PROFILE = ProviderProfile(
    name="crypto",
    activity_labels={
        "BUY": ActivityLabel.BUY,
        "SELL": ActivityLabel.SELL,
        "RECEIVED": ActivityLabel.TRANSFER,
        "DEPOSIT": ActivityLabel.TRANSFER,
        "SENT": ActivityLabel.TRANSFER,
        "WITHDRAW": ActivityLabel.TRANSFER,
        "REWARD": ActivityLabel.INTEREST,
        "STAKING": ActivityLabel.INTEREST,
        "FEE": ActivityLabel.FEE,
    },
    trade_types=frozenset({"BUY", "SELL"}),
    sell_side_types=frozenset({"SELL"}),
    cash_directions=_directions(
        outflows={"SENT", "WITHDRAW", "FEE"},
        inflows={"RECEIVED", "DEPOSIT", "REWARD", "STAKING"},
    ),
    field_overrides={
        "id": (("id",), ("hash",), ("transaction_hash",)),
        "symbol": (("coin", "symbol"), ("asset",), ("symbol",), ("currency_code",)),
        "security_name": (("coin", "name"), ("asset_name",), ("name",)),
        "quantity": (("count",), ("quantity",), ("units",)),
        "price": (("price",), ("coin", "price")),
        "date": (("date",), ("created_at",)),
        "currency": (("native_currency",), ("currency",)),
    },
    security_prefix="CRYPTO:",
)

# Open-banking aggregators (cash accounts only, credit/debit indicators)
BANK_PROFILE = ProviderProfile(
    name="bank",
    activity_labels={
        "CRDT": ActivityLabel.TRANSFER,
        "DBIT": ActivityLabel.TRANSFER,
        "CREDIT": ActivityLabel.TRANSFER,
        "DEBIT": ActivityLabel.TRANSFER,
        "DEPOSIT": ActivityLabel.CONTRIBUTION,
        "WITHDRAWAL": ActivityLabel.WITHDRAWAL,
        "INTEREST": ActivityLabel.INTEREST,
        "FEE": ActivityLabel.FEE,
    },
    trade_types=frozenset(),
    sell_side_types=frozenset(),
    cash_directions=_directions(
        outflows={"DBIT", "DEBIT", "WITHDRAWAL", "FEE"},
        inflows={"CRDT", "CREDIT", "DEPOSIT", "INTEREST"},
    ),
    field_overrides={
        "id": (("transaction_id",), ("entry_reference",), ("id",)),
        "type": (("type",), ("credit_debit_indicator",)),
        "date": (("booking_date",), ("value_date",), ("date",)),
        "amount": (("transaction_amount", "amount"), ("amount",)),
        "currency": (("transaction_amount", "currency"), ("currency",)),
        "description": (
            ("remittance_information",),
            ("description",),
            ("creditor", "name"),
            ("debtor", "name"),
        ),
    },
    fallback_id_fields=("date", "type", "amount", "description"),
    supports_holdings=False,
)

PROFILES: dict[str, ProviderProfile] = {
    profile.name: profile
    for profile in (BROKERAGE_PROFILE, ROBO_ADVISOR_PROFILE, CRYPTO_PROFILE, BANK_PROFILE)
}


def get_profile(name: str) -> ProviderProfile:
    """Look up a built-in profile by name.

    Raises:
        ValueError: If no profile has that name.
    """
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown provider profile '{name}'") from None

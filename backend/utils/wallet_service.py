from datetime import datetime
from decimal import Decimal

from models.ledger import LedgerEntry, LedgerEntryType
from utils.guards import new_id
from utils.money import to_money
from utils.state import StoreState

# ==============================
# Ledger entry types (ENUM-LIKE)
# ==============================

ENTRY_COINS_CREDIT = LedgerEntryType.GREEN_COINS_CREDIT
ENTRY_COINS_DEBIT = LedgerEntryType.GREEN_COINS_DEBIT
ENTRY_COLLECTOR_EARNING = LedgerEntryType.COLLECTOR_EARNING
ENTRY_SALE_CREDIT = LedgerEntryType.SALE_CREDIT
ENTRY_PLATFORM_FEE = LedgerEntryType.PLATFORM_FEE
ENTRY_SALE_REVERSAL = LedgerEntryType.SALE_REVERSAL
ENTRY_PLATFORM_FEE_REVERSAL = LedgerEntryType.PLATFORM_FEE_REVERSAL


# ==============================
# Core: Append-only ledger write
# ==============================

def add_ledger_entry(
    state: StoreState,
    entry_type: LedgerEntryType,
    *,
    now: datetime,
    user_id: str | None = None,
    amount=Decimal("0"),
    green_coins: int = 0,
    reason: str | None = None,
    related_id: str | None = None,
) -> LedgerEntry:
    amount = to_money(amount)
    if amount < 0:
        raise ValueError("Ledger amount cannot be negative")
    if green_coins == 0 and amount == 0:
        raise ValueError("Ledger entry must move coins or money")

    entry = LedgerEntry(
        id=new_id(),
        user_id=user_id,
        entry_type=entry_type,
        amount=amount,
        green_coins=green_coins,
        reason=reason,
        related_id=related_id,
        created_at=now,
    )
    state.ledger.append(entry)
    return entry


# ==============================
# Derived balances (reconciliation)
# ==============================

def ledger_green_coin_balance(state: StoreState, user_id: str) -> int:
    """
    GreenCoins balance re-derived from the ledger. Must always equal
    User.green_coins; used by reconciliation checks and tests.
    """
    return sum(e.green_coins for e in state.ledger if e.user_id == user_id)


def ledger_total(state: StoreState, entry_type: LedgerEntryType, user_id: str | None = None) -> Decimal:
    total = Decimal("0")
    for e in state.ledger:
        if e.entry_type != entry_type:
            continue
        if user_id is not None and e.user_id != user_id:
            continue
        total += e.amount
    return to_money(total)


def ledger_net_sales(state: StoreState, user_id: str) -> Decimal:
    """
    Seller credit still standing: sale credits minus reversals from
    cancelled orders. Must equal seller_stats()["total_earnings"].
    """
    return to_money(
        ledger_total(state, ENTRY_SALE_CREDIT, user_id) - ledger_total(state, ENTRY_SALE_REVERSAL, user_id)
    )


def ledger_net_platform_fees(state: StoreState) -> Decimal:
    return to_money(ledger_total(state, ENTRY_PLATFORM_FEE) - ledger_total(state, ENTRY_PLATFORM_FEE_REVERSAL))

"""Tests for the credit ledger."""

from __future__ import annotations

import asyncio

import pytest

from lumina_schemas import SubscriptionTier

from services.orchestrator.app.errors import LedgerPersistenceError
from services.orchestrator.app.kv import CREDITS_KEY, SUBSCRIPTION_KEY, InMemoryKeyValueStore
from services.orchestrator.app.ledger import CreditLedger, Reservation
from tests.utils.studio import FailingKeyValueStore


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


async def test_load_seeds_new_account_with_initial_credits() -> None:
    store = InMemoryKeyValueStore()
    ledger = await CreditLedger.load(store)
    assert ledger.balance == 1000
    assert ledger.tier == SubscriptionTier.FREE
    assert await store.get(CREDITS_KEY) == 1000


async def test_load_restores_persisted_state() -> None:
    store = InMemoryKeyValueStore()
    await store.set(CREDITS_KEY, 250)
    await store.set(SUBSCRIPTION_KEY, "pro")
    ledger = await CreditLedger.load(store, initial_credits=5000)
    assert ledger.balance == 250
    assert ledger.tier == SubscriptionTier.PRO
    assert ledger.snapshot().unlimited is False


async def test_try_debit_rejects_overdraft_without_side_effects() -> None:
    store = InMemoryKeyValueStore()
    ledger = CreditLedger(store, balance=500)
    assert await ledger.try_debit(600, kind="story") is False
    assert ledger.balance == 500
    assert await store.get(CREDITS_KEY) is None


async def test_debit_down_to_zero_is_allowed() -> None:
    ledger = CreditLedger(InMemoryKeyValueStore(), balance=300)
    assert await ledger.try_debit(300, kind="regenerate") is True
    assert ledger.balance == 0


async def test_reserve_and_refund_restore_balance() -> None:
    store = InMemoryKeyValueStore()
    ledger = CreditLedger(store, balance=1000)
    reservation = await ledger.reserve(900, kind="story")
    assert reservation == Reservation(amount=900, kind="story", charged=True)
    assert ledger.balance == 100
    await ledger.refund(reservation)
    assert ledger.balance == 1000
    assert await store.get(CREDITS_KEY) == 1000


async def test_elite_tier_is_never_charged() -> None:
    ledger = CreditLedger(InMemoryKeyValueStore(), balance=0, tier=SubscriptionTier.ELITE)
    reservation = await ledger.reserve(1200, kind="video")
    assert reservation is not None
    assert reservation.charged is False
    assert ledger.balance == 0
    await ledger.refund(reservation)
    assert ledger.balance == 0
    assert ledger.snapshot().unlimited is True


async def test_failed_write_leaves_balance_untouched() -> None:
    ledger = CreditLedger(FailingKeyValueStore({CREDITS_KEY}), balance=1000)
    with pytest.raises(LedgerPersistenceError):
        await ledger.reserve(300, kind="regenerate")
    assert ledger.balance == 1000


async def test_negative_amounts_are_rejected() -> None:
    ledger = CreditLedger(InMemoryKeyValueStore(), balance=1000)
    with pytest.raises(ValueError):
        await ledger.try_debit(-1)
    with pytest.raises(ValueError):
        await ledger.credit(-5)


async def test_concurrent_debits_never_overdraw() -> None:
    ledger = CreditLedger(InMemoryKeyValueStore(), balance=1000)
    results = await asyncio.gather(*(ledger.try_debit(300, kind="story") for _ in range(5)))
    assert results.count(True) == 3
    assert ledger.balance == 100


async def test_credit_and_tier_changes_are_persisted() -> None:
    store = InMemoryKeyValueStore()
    ledger = CreditLedger(store, balance=100)
    assert await ledger.credit(500, kind="pack_500") == 600
    await ledger.set_tier("elite")
    assert ledger.tier == SubscriptionTier.ELITE
    assert await store.get(SUBSCRIPTION_KEY) == "elite"
    assert await store.get(CREDITS_KEY) == 600


async def test_failed_tier_write_keeps_previous_tier() -> None:
    ledger = CreditLedger(FailingKeyValueStore({SUBSCRIPTION_KEY}), balance=100)
    with pytest.raises(LedgerPersistenceError):
        await ledger.set_tier(SubscriptionTier.PRO)
    assert ledger.tier == SubscriptionTier.FREE

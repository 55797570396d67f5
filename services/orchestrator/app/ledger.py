"""Credit ledger: the single owner of balance and subscription tier state."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from lumina_observability import record_credit_movement
from lumina_schemas import LedgerSnapshot, SubscriptionTier

from .errors import LedgerPersistenceError
from .kv import CREDITS_KEY, SUBSCRIPTION_KEY, KeyValueStore

logger = logging.getLogger(__name__)
SERVICE_NAME = "orchestrator"


@dataclass(frozen=True)
class Reservation:
    """Outcome of a debit attempt.

    ``charged`` is False for elite accounts, whose balance never moves, so a
    refund of such a reservation is a no-op.
    """

    amount: int
    kind: str
    charged: bool


class CreditLedger:
    """Balance and tier with serialized, persist-before-commit mutations.

    Every mutating call acquires one ``asyncio.Lock`` so a check-and-debit can
    never interleave with another mutation on the same instance.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        balance: int = 0,
        tier: SubscriptionTier = SubscriptionTier.FREE,
    ) -> None:
        if balance < 0:
            raise ValueError("balance cannot be negative")
        self._store = store
        self._balance = balance
        self._tier = SubscriptionTier(tier)
        self._lock = asyncio.Lock()

    @classmethod
    async def load(cls, store: KeyValueStore, *, initial_credits: int = 1000) -> "CreditLedger":
        """Restore ledger state from ``store``, seeding a new account with ``initial_credits``."""

        balance = await store.get(CREDITS_KEY)
        tier = await store.get(SUBSCRIPTION_KEY)
        ledger = cls(
            store,
            balance=int(balance) if balance is not None else initial_credits,
            tier=SubscriptionTier(tier) if tier else SubscriptionTier.FREE,
        )
        if balance is None:
            await store.set(CREDITS_KEY, ledger._balance)
        return ledger

    @property
    def balance(self) -> int:
        return self._balance

    @property
    def tier(self) -> SubscriptionTier:
        return self._tier

    @property
    def unlimited(self) -> bool:
        return self._tier == SubscriptionTier.ELITE

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(balance=self._balance, tier=self._tier, unlimited=self.unlimited)

    async def try_debit(self, amount: int, *, kind: str = "unspecified") -> bool:
        """Atomically debit ``amount`` if the balance covers it."""

        reservation = await self.reserve(amount, kind=kind)
        return reservation is not None

    async def reserve(self, amount: int, *, kind: str = "unspecified") -> Reservation | None:
        """Debit ``amount`` and return a reservation, or ``None`` when funds are short."""

        _check_amount(amount)
        async with self._lock:
            if self.unlimited:
                logger.info(
                    "Elite tier bypassed debit",
                    extra={"credits": amount, "kind": kind, "tier": self._tier.value},
                )
                return Reservation(amount=amount, kind=kind, charged=False)
            if self._balance - amount < 0:
                logger.info(
                    "Debit rejected",
                    extra={"credits": amount, "kind": kind, "balance": self._balance},
                )
                return None
            await self._commit_balance(self._balance - amount)

        record_credit_movement(
            "debit", amount, kind=kind, service_name=SERVICE_NAME, balance=self._balance
        )
        logger.info("Credits debited", extra={"credits": amount, "kind": kind, "balance": self._balance})
        return Reservation(amount=amount, kind=kind, charged=True)

    async def refund(self, reservation: Reservation) -> None:
        """Return a reservation's credits; uncharged (elite) reservations are ignored."""

        if not reservation.charged or reservation.amount == 0:
            return
        async with self._lock:
            await self._commit_balance(self._balance + reservation.amount)
        record_credit_movement(
            "refund",
            reservation.amount,
            kind=reservation.kind,
            service_name=SERVICE_NAME,
            balance=self._balance,
        )
        logger.info(
            "Credits refunded",
            extra={"credits": reservation.amount, "kind": reservation.kind, "balance": self._balance},
        )

    async def credit(self, amount: int, *, kind: str = "purchase") -> int:
        _check_amount(amount)
        async with self._lock:
            await self._commit_balance(self._balance + amount)
        record_credit_movement("credit", amount, kind=kind, service_name=SERVICE_NAME, balance=self._balance)
        logger.info("Credits granted", extra={"credits": amount, "kind": kind, "balance": self._balance})
        return self._balance

    async def set_tier(self, tier: SubscriptionTier | str) -> SubscriptionTier:
        new_tier = SubscriptionTier(tier)
        async with self._lock:
            try:
                await self._store.set(SUBSCRIPTION_KEY, new_tier.value)
            except Exception as exc:
                logger.exception("Failed to persist subscription tier", extra={"tier": new_tier.value})
                raise LedgerPersistenceError("Could not persist subscription tier") from exc
            self._tier = new_tier
        logger.info("Subscription tier changed", extra={"tier": new_tier.value})
        return new_tier

    async def _commit_balance(self, new_balance: int) -> None:
        # Caller holds the lock. The in-memory value only changes after the write succeeds.
        try:
            await self._store.set(CREDITS_KEY, new_balance)
        except Exception as exc:
            logger.exception(
                "Failed to persist credit balance",
                extra={"balance": self._balance},
            )
            raise LedgerPersistenceError("Could not persist credit balance") from exc
        self._balance = new_balance


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError("Credit amounts must be non-negative")

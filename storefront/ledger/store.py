"""
Ledger store: the single persistence seam for the payment core.

Every write the state machines make goes through here so the idempotency
rules live in one place:

- ``insert_unique`` turns a unique-constraint violation into
  ``InsertResult(created=False)`` carrying the row that won, instead of an
  error. Callers rely on telling these apart.
- ``update_by_id`` takes an optional ``where`` guard and reports how many
  rows it changed, so check-then-act transitions are a single statement.
- ``unit_of_work`` commits everything written inside it together or
  nothing at all.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from storefront.billing.state_machine import PaymentStatus
from storefront.errors import NotFound
from storefront.extensions import db
from storefront.models import Payment, SellerWallet
from storefront.utils import to_money, utcnow

logger = logging.getLogger(__name__)


@dataclass
class InsertResult:
    row: Any
    created: bool


class LedgerStore:

    def __init__(self, session=None):
        self.session = session or db.session

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def unit_of_work(self):
        """Commit on success, roll back every write on any exception."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def rollback(self):
        self.session.rollback()

    # ------------------------------------------------------------------
    # Generic entity access
    # ------------------------------------------------------------------

    def get(self, model, id, *, for_update=False):
        stmt = select(model).where(model.id == id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_or_404(self, model, id, *, for_update=False):
        row = self.get(model, id, for_update=for_update)
        if row is None:
            raise NotFound(f"{model.__name__} {id} not found")
        return row

    def get_by(self, model, *, for_update=False, **filters):
        stmt = select(model).filter_by(**filters)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def exists(self, model, **filters) -> bool:
        stmt = select(model.id).filter_by(**filters).limit(1)
        return self.session.execute(stmt).first() is not None

    def insert(self, row):
        self.session.add(row)
        self.session.flush()
        return row

    def insert_unique(self, row, *, lookup: dict) -> InsertResult:
        """
        Insert ``row`` inside a savepoint.

        On a unique-constraint violation the savepoint is rolled back and
        the existing row matching ``lookup`` is returned with
        ``created=False``. The surrounding transaction stays usable.
        """
        try:
            with self.session.begin_nested():
                self.session.add(row)
        except IntegrityError:
            existing = self.get_by(type(row), **lookup)
            if existing is None:
                # Violation on some other constraint; not ours to absorb
                raise
            logger.info(
                "Duplicate insert resolved to existing row",
                extra={"model": type(row).__name__, "lookup": {k: str(v) for k, v in lookup.items()}},
            )
            return InsertResult(existing, created=False)
        return InsertResult(row, created=True)

    def update_by_id(self, model, id, values: dict, *, where=None) -> int:
        """
        ``UPDATE model SET values WHERE id = :id [AND where...]``.

        Returns the number of rows changed; 0 means the guard did not hold.
        """
        stmt = update(model).where(model.id == id)
        for clause in where or ():
            stmt = stmt.where(clause)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = self.session.execute(stmt)
        self.session.expire_all()
        return result.rowcount

    def delete_where(self, model, *criteria) -> int:
        result = self.session.execute(
            delete(model).where(*criteria).execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def find_payment_by_transaction(self, transaction_id) -> Optional[Payment]:
        return self.get_by(Payment, gateway_transaction_id=str(transaction_id))

    def find_payment_by_reference(self, reference, *, for_update=False) -> Optional[Payment]:
        if not reference:
            return None
        return self.get_by(Payment, reference=reference, for_update=for_update)

    def claim_payment(self, payment_id, transaction_id) -> bool:
        """
        Move a payment to success and stamp the gateway transaction id.

        Guarded on the payment not already being settled; the unique index
        on ``gateway_transaction_id`` backs this up across references.
        Returns True only for the caller that made the transition.
        """
        try:
            with self.session.begin_nested():
                changed = self.update_by_id(
                    Payment,
                    payment_id,
                    {
                        "status": PaymentStatus.SUCCESS.value,
                        "gateway_transaction_id": str(transaction_id),
                        "settled_at": utcnow(),
                        "failure_reason": None,
                    },
                    where=[Payment.status != PaymentStatus.SUCCESS.value],
                )
        except IntegrityError:
            logger.info(
                "Transaction id already bound to another payment",
                extra={"payment_id": payment_id, "transaction_id": str(transaction_id)},
            )
            return False
        return changed == 1

    def mark_payment_failed(self, payment_id, reason) -> int:
        return self.update_by_id(
            Payment,
            payment_id,
            {"status": PaymentStatus.FAILED.value, "failure_reason": reason[:255]},
            where=[Payment.status == PaymentStatus.PENDING.value],
        )

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def ensure_wallet(self, shop_id) -> SellerWallet:
        wallet = self.get_by(SellerWallet, shop_id=shop_id)
        if wallet is not None:
            return wallet
        return self.insert_unique(SellerWallet(shop_id=shop_id), lookup={"shop_id": shop_id}).row

    def credit_wallet(self, shop_id, amount):
        """Add ``amount`` to balance and lifetime earnings in one statement."""
        amount = to_money(amount)
        wallet = self.ensure_wallet(shop_id)
        self.update_by_id(
            SellerWallet,
            wallet.id,
            {
                "balance": SellerWallet.balance + amount,
                "total_earned": SellerWallet.total_earned + amount,
            },
        )
        return self.get(SellerWallet, wallet.id)

    def debit_wallet(self, shop_id, amount) -> bool:
        """Withdraw ``amount``; returns False when the balance cannot cover it."""
        amount = to_money(amount)
        wallet = self.get_by(SellerWallet, shop_id=shop_id)
        if wallet is None:
            return False
        changed = self.update_by_id(
            SellerWallet,
            wallet.id,
            {
                "balance": SellerWallet.balance - amount,
                "total_withdrawn": SellerWallet.total_withdrawn + amount,
            },
            where=[SellerWallet.balance >= amount],
        )
        return changed == 1

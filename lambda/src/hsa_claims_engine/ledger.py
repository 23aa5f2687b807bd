"""Apply adjudication results to claims and account balances."""

import logging
import threading
import uuid
from collections.abc import Callable
from decimal import Decimal

from hsa_claims_engine.adjudication import Adjudication, ClaimStatus, Classify, adjudicate
from hsa_claims_engine.models import (
    Account,
    AccountConflictError,
    AccountNotFoundError,
    Claim,
    ClaimNotFoundError,
    ClaimRequest,
    InvalidClaimError,
)
from hsa_claims_engine.store import ClaimStore

logger = logging.getLogger(__name__)

INSUFFICIENT_BALANCE_NOTE = "Insufficient balance for automatic approval"
BALANCE_CONFLICT_NOTE = "Balance could not be updated, under review"
CARD_PORTAL_NOTE = "Submitted via Transaction Submission portal"

AccountResolver = Callable[[ClaimStore], Account | None]


class ClaimLedger:
    """Commits claims and debits balances for covered claims.

    The read-check-debit sequence for an account runs under a per-account lock, so two
    covered claims can never both pass the sufficiency check against the same balance.
    """

    def __init__(self, store: ClaimStore, max_attempts: int = 3) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(account_id, threading.Lock())

    def apply_decision(
        self,
        account: Account,
        request: ClaimRequest,
        decision: Adjudication,
        default_notes: str = "",
    ) -> Claim:
        """Record a claim for `account`, debiting the balance if it is covered.

        A covered claim the balance cannot pay for, or whose debit keeps losing write
        conflicts, is recorded as PENDING and the balance is left untouched. If the
        claim cannot be stored after a debit, the debit is refunded before re-raising.
        """
        claim = Claim(
            id=str(uuid.uuid4()),
            account_id=account.id,
            provider_name=request.provider_name,
            service_description=request.service_description,
            amount=request.amount,
            date=request.submitted_at,
            status=decision.status,
            notes=decision.notes or default_notes,
            requires_documentation=decision.requires_documentation,
            documentation_type=decision.documentation_type,
            has_documentation=request.has_documentation,
            document_count=request.document_count,
        )

        with self._lock_for(account.id):
            if claim.status == ClaimStatus.COVERED:
                override = self._debit(account.id, request.amount)
                if override is not None:
                    claim.status = ClaimStatus.PENDING
                    claim.notes = override
            try:
                self.store.append_claim(claim)
            except Exception:
                if claim.status == ClaimStatus.COVERED:
                    self._credit(account.id, request.amount)
                raise

        logger.info(
            "Recorded claim %s for account %s: status=%s amount=%s",
            claim.id,
            account.id,
            claim.status.value,
            claim.amount,
        )
        return claim

    def _debit(self, account_id: str, amount: Decimal) -> str | None:
        """Debit `amount`, returning None on success or the note explaining why not."""
        for attempt in range(1, self.max_attempts + 1):
            current = self.store.get_account(account_id)
            if current is None:
                raise AccountNotFoundError(f"Account {account_id} not found")
            if current.balance < amount:
                logger.info("Insufficient balance on %s: %s < %s", account_id, current.balance, amount)
                return INSUFFICIENT_BALANCE_NOTE
            current.balance -= amount
            try:
                self.store.put_account(current)
            except AccountConflictError:
                logger.warning("Balance write conflict on %s (attempt %d/%d)", account_id, attempt, self.max_attempts)
                continue
            return None
        logger.error("Could not debit account %s after %d attempts", account_id, self.max_attempts)
        return BALANCE_CONFLICT_NOTE

    def _credit(self, account_id: str, amount: Decimal) -> None:
        """Give back a debit whose claim could not be recorded."""
        for attempt in range(1, self.max_attempts + 1):
            current = self.store.get_account(account_id)
            if current is None:
                break
            current.balance += amount
            try:
                self.store.put_account(current)
            except AccountConflictError:
                logger.warning("Refund write conflict on %s (attempt %d/%d)", account_id, attempt, self.max_attempts)
                continue
            logger.info("Refunded %s to account %s after failed claim write", amount, account_id)
            return
        logger.error("Could not refund %s to account %s", amount, account_id)


def submit_claim(
    ledger: ClaimLedger,
    request: ClaimRequest,
    resolve_account: AccountResolver,
    classify: Classify,
    default_notes: str = "",
) -> Claim:
    """Adjudicate a submission and record it against the resolved account.

    Both the authenticated flow and the card-present flow come through here; they
    differ only in `resolve_account` and `default_notes`.
    """
    account = resolve_account(ledger.store)
    if account is None:
        raise AccountNotFoundError("Account not found")

    decision = adjudicate(
        request.service_description,
        request.has_documentation,
        request.document_count,
        classify,
    )
    return ledger.apply_decision(account, request, decision, default_notes)


def by_user(user_id: str) -> AccountResolver:
    return lambda store: store.find_account_by_user(user_id)


def by_card(card_number: str) -> AccountResolver:
    return lambda store: store.find_account_by_card(card_number)


def update_claim(
    store: ClaimStore,
    account_id: str,
    claim_id: str,
    status: str | None = None,
    notes: str | None = None,
) -> Claim:
    """Explicitly set a claim's status and/or notes. Balances are not touched.

    Any status may move to any other status.
    """
    claim = store.get_claim(account_id, claim_id)
    if claim is None:
        raise ClaimNotFoundError(f"Claim {claim_id} not found")

    if status:
        try:
            claim.status = ClaimStatus(status)
        except ValueError as e:
            raise InvalidClaimError(f"Invalid status: {status!r}") from e
    if notes is not None and not isinstance(notes, str):
        raise InvalidClaimError(f"Invalid notes: {notes!r}")
    if notes:
        claim.notes = notes

    store.put_claim(claim)
    logger.info("Updated claim %s: status=%s", claim.id, claim.status.value)
    return claim

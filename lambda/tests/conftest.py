"""Shared test fixtures for HSA claims engine tests."""

import os
from collections.abc import Callable
from decimal import Decimal

import pytest

# Set dummy AWS settings so module-level boto3.client() calls don't fail during import.
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("BUCKET_NAME", "test-bucket")

from hsa_claims_engine.claude_client import ClassifierResult
from hsa_claims_engine.ledger import ClaimLedger
from hsa_claims_engine.models import Account, ClaimRequest
from hsa_claims_engine.store import InMemoryClaimStore


@pytest.fixture
def store() -> InMemoryClaimStore:
    return InMemoryClaimStore()


@pytest.fixture
def ledger(store: InMemoryClaimStore) -> ClaimLedger:
    return ClaimLedger(store)


@pytest.fixture
def funded_account(store: InMemoryClaimStore) -> Account:
    """An account with $500 and an issued card, already saved in the store."""
    account = Account(
        id="acct-1",
        user_id="user-1",
        balance=Decimal("500.00"),
        card_issued=True,
        card_number="4000123412341234",
    )
    store.put_account(account)
    return account


@pytest.fixture
def empty_account(store: InMemoryClaimStore) -> Account:
    """An account with a zero balance and no card."""
    account = Account(id="acct-0", user_id="user-0", balance=Decimal("0"))
    store.put_account(account)
    return account


@pytest.fixture
def make_request() -> Callable[..., ClaimRequest]:
    """Factory fixture for claim requests with sensible defaults."""

    def _make(
        service_description: str = "Dental cleaning",
        amount: str = "150.00",
        provider_name: str = "Bright Smiles Dental",
        has_documentation: bool = False,
        document_count: int = 0,
    ) -> ClaimRequest:
        return ClaimRequest(
            provider_name=provider_name,
            service_description=service_description,
            amount=Decimal(amount),
            has_documentation=has_documentation,
            document_count=document_count,
        )

    return _make


@pytest.fixture
def make_classifier() -> Callable[..., Callable[[str], ClassifierResult]]:
    """Factory fixture for deterministic classifier stubs that record their queries."""

    def _make(
        eligible: bool = True,
        confidence: int = 90,
        explanation: str = "Standard medical expense.",
        suggested_alternative: str | None = None,
    ) -> Callable[[str], ClassifierResult]:
        calls: list[str] = []

        def _classify(query: str) -> ClassifierResult:
            calls.append(query)
            return ClassifierResult(
                eligible=eligible,
                confidence=confidence,
                explanation=explanation,
                suggested_alternative=suggested_alternative,
            )

        _classify.calls = calls  # type: ignore[attr-defined]
        return _classify

    return _make

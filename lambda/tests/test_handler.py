"""Tests for handler module."""

import json
from collections.abc import Callable, Iterator
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from hsa_claims_engine import handler
from hsa_claims_engine.claude_client import ClassifierResult
from hsa_claims_engine.ledger import ClaimLedger
from hsa_claims_engine.models import Account
from hsa_claims_engine.store import InMemoryClaimStore

MakeClassifier = Callable[..., Callable[[str], ClassifierResult]]


@pytest.fixture
def memory_store() -> Iterator[InMemoryClaimStore]:
    """Swap the handler's S3 store for an in-memory one seeded with two accounts."""
    store = InMemoryClaimStore()
    store.put_account(
        Account(id="acct-1", user_id="user-1", balance=Decimal("500"), card_issued=True, card_number="4000123412341234")
    )
    store.put_account(Account(id="acct-0", user_id="user-0", balance=Decimal("0")))
    with patch.object(handler, "STORE", store), patch.object(handler, "LEDGER", ClaimLedger(store)):
        yield store


def _event(body: dict | None = None, user_id: str | None = "user-1", claim_id: str | None = None) -> dict:
    event: dict = {"body": json.dumps(body) if body is not None else None, "requestContext": {}}
    if user_id is not None:
        event["requestContext"]["authorizer"] = {"claims": {"sub": user_id}}
    if claim_id is not None:
        event["pathParameters"] = {"id": claim_id}
    return event


def _claim_body(**overrides: object) -> dict[str, object]:
    base: dict[str, object] = {"providerName": "Test Medical Center", "service": "Dental Cleaning", "amount": 150}
    base.update(overrides)
    return base


def _json(response: dict) -> dict:
    return json.loads(response["body"])


def test_create_claim_covered_debits_balance(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.create_claim(_event(_claim_body()), None)

    assert response["statusCode"] == 201
    body = _json(response)
    assert body["status"] == "covered"
    assert body["claim"]["account_id"] == "acct-1"
    assert memory_store.get_account("acct-1").balance == Decimal("350")  # type: ignore[union-attr]


def test_create_claim_insufficient_balance(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.create_claim(_event(_claim_body(), user_id="user-0"), None)

    body = _json(response)
    assert body["status"] == "pending"
    assert body["notes"] == "Insufficient balance for automatic approval"
    assert memory_store.get_account("acct-0").balance == Decimal("0")  # type: ignore[union-attr]


def test_create_claim_low_confidence_classifier(
    memory_store: InMemoryClaimStore, make_classifier: MakeClassifier
) -> None:
    classify = make_classifier(eligible=False, confidence=35, explanation="Unknown service.")
    with patch.object(handler, "_classify", classify):
        response = handler.create_claim(_event(_claim_body(service="Random Unavailable Service")), None)

    body = _json(response)
    assert body["status"] == "pending"
    assert "manual review" in body["notes"].lower()


def test_create_claim_requires_authentication(memory_store: InMemoryClaimStore) -> None:
    response = handler.create_claim(_event(_claim_body(), user_id=None), None)
    assert response["statusCode"] == 401


@pytest.mark.parametrize("body", [_claim_body(amount=0), _claim_body(service=""), {"providerName": "P"}])
def test_create_claim_invalid_input_never_adjudicates(
    body: dict, memory_store: InMemoryClaimStore, make_classifier: MakeClassifier
) -> None:
    classify = make_classifier()
    with patch.object(handler, "_classify", classify), patch.object(handler, "submit_claim") as mock_submit:
        response = handler.create_claim(_event(body), None)

    assert response["statusCode"] == 400
    mock_submit.assert_not_called()


def test_create_claim_malformed_json(memory_store: InMemoryClaimStore) -> None:
    event = _event()
    event["body"] = "{not json"
    assert handler.create_claim(event, None)["statusCode"] == 400


def test_create_claim_without_account(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.create_claim(_event(_claim_body(), user_id="user-9"), None)
    assert response["statusCode"] == 404


def test_card_transaction_uses_same_policy(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.card_transaction(
            _event(_claim_body(cardNumber="4000123412341234"), user_id=None), None
        )

    assert response["statusCode"] == 201
    body = _json(response)
    assert body["status"] == "covered"
    assert body["notes"] == "Submitted via Transaction Submission portal"
    assert memory_store.get_account("acct-1").balance == Decimal("350")  # type: ignore[union-attr]


def test_card_transaction_with_documents(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    body = _claim_body(cardNumber="4000123412341234", hasDocumentation=True, documentCount=2)
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.card_transaction(_event(body, user_id=None), None)

    assert _json(response)["notes"] == "Claim submitted with 2 document(s). Under review."


def test_card_transaction_unknown_card(memory_store: InMemoryClaimStore) -> None:
    response = handler.card_transaction(_event(_claim_body(cardNumber="9999"), user_id=None), None)
    assert response["statusCode"] == 404


def test_card_transaction_requires_card_number(memory_store: InMemoryClaimStore) -> None:
    response = handler.card_transaction(_event(_claim_body(), user_id=None), None)
    assert response["statusCode"] == 400


def test_list_get_and_update_claims(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        created = _json(handler.create_claim(_event(_claim_body()), None))["claim"]

    listed = _json(handler.list_claims(_event(), None))["claims"]
    assert [claim["id"] for claim in listed] == [created["id"]]

    fetched = handler.get_claim(_event(claim_id=created["id"]), None)
    assert _json(fetched)["claim"]["id"] == created["id"]

    update = {"status": "more_information_needed", "notes": "Please provide itemized receipt"}
    updated = _json(handler.update_claim_status(_event(update, claim_id=created["id"]), None))["claim"]
    assert updated["status"] == "more_information_needed"
    assert updated["notes"] == "Please provide itemized receipt"


def test_get_claim_not_found(memory_store: InMemoryClaimStore) -> None:
    response = handler.get_claim(_event(claim_id="non-existent-id"), None)
    assert response["statusCode"] == 404


def test_update_claim_invalid_status(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        created = _json(handler.create_claim(_event(_claim_body()), None))["claim"]
    response = handler.update_claim_status(_event({"status": "approved"}, claim_id=created["id"]), None)
    assert response["statusCode"] == 400


def test_check_eligibility_known_service(make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.check_service_eligibility(_event({"service": "Dental Cleaning"}, user_id=None), None)

    body = _json(response)
    assert response["statusCode"] == 200
    assert body["eligible"] is True
    assert body["confidence"] == 100
    assert body["requires_prescription"] is False


def test_check_eligibility_gym_membership(make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        response = handler.check_service_eligibility(_event({"service": "Gym Membership"}, user_id=None), None)
    assert _json(response)["eligible"] is False


def test_check_eligibility_requires_service() -> None:
    response = handler.check_service_eligibility(_event({}, user_id=None), None)
    assert response["statusCode"] == 400


def test_unexpected_errors_return_500(memory_store: InMemoryClaimStore) -> None:
    with patch.object(handler, "submit_claim", side_effect=RuntimeError("boom")):
        response = handler.create_claim(_event(_claim_body()), None)
    assert response["statusCode"] == 500


@patch("hsa_claims_engine.handler.classify_service")
def test_classify_passes_configured_key(mock_classify: MagicMock) -> None:
    with patch.object(handler, "SSM_API_KEY_PARAM", "/test/api-key"), patch.object(
        handler, "_get_ssm_param", return_value="secret"
    ):
        handler._classify("Root canal")

    mock_classify.assert_called_once_with(
        "secret",
        "Root canal",
        model=handler.CLASSIFIER_MODEL,
        timeout=handler.CLASSIFIER_TIMEOUT_SECONDS,
    )


@patch("hsa_claims_engine.handler.classify_service")
def test_classify_without_key_param_passes_none(mock_classify: MagicMock) -> None:
    with patch.object(handler, "SSM_API_KEY_PARAM", ""):
        handler._classify("Root canal")
    assert mock_classify.call_args[0][0] is None


def test_get_api_key_ssm_failure_returns_none() -> None:
    error = ClientError({"Error": {"Code": "ParameterNotFound", "Message": ""}}, "GetParameter")
    with patch.object(handler, "SSM_API_KEY_PARAM", "/test/api-key"), patch.object(
        handler, "_get_ssm_param", side_effect=error
    ):
        assert handler._get_api_key() is None


def test_get_ssm_param_caches() -> None:
    mock_ssm = MagicMock()
    mock_ssm.get_parameter.return_value = {"Parameter": {"Value": "cached-value"}}
    with patch.object(handler, "_ssm_client", mock_ssm), patch.dict(handler._ssm_cache, clear=True):
        assert handler._get_ssm_param("/p") == "cached-value"
        assert handler._get_ssm_param("/p") == "cached-value"
    mock_ssm.get_parameter.assert_called_once_with(Name="/p", WithDecryption=True)


def test_update_claim_non_string_notes(memory_store: InMemoryClaimStore, make_classifier: MakeClassifier) -> None:
    with patch.object(handler, "_classify", make_classifier()):
        created = _json(handler.create_claim(_event(_claim_body()), None))["claim"]
    response = handler.update_claim_status(_event({"notes": {"text": "x"}}, claim_id=created["id"]), None)
    assert response["statusCode"] == 400

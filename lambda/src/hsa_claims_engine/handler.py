"""Lambda handlers for claim submission and eligibility lookups (API Gateway proxy events)."""

import json
import logging
import os
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

import boto3
from botocore.exceptions import ClientError

from hsa_claims_engine.adjudication import check_eligibility
from hsa_claims_engine.claude_client import (
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
    ClassifierResult,
    classify_service,
)
from hsa_claims_engine.ledger import CARD_PORTAL_NOTE, ClaimLedger, by_card, by_user, submit_claim, update_claim
from hsa_claims_engine.models import (
    Account,
    AccountNotFoundError,
    Claim,
    ClaimNotFoundError,
    ClaimRequest,
    InvalidClaimError,
)
from hsa_claims_engine.store import S3ClaimStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

BUCKET_NAME = os.environ["BUCKET_NAME"]
SSM_API_KEY_PARAM = os.environ.get("SSM_API_KEY_PARAM", "")
CLASSIFIER_MODEL = os.environ.get("CLASSIFIER_MODEL", DEFAULT_MODEL)
CLASSIFIER_TIMEOUT_SECONDS = float(os.environ.get("CLASSIFIER_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))

_ssm_cache: dict[str, str] = {}
_ssm_client = boto3.client("ssm")

STORE = S3ClaimStore(BUCKET_NAME)
LEDGER = ClaimLedger(STORE)

Event = dict[str, Any]
Response = dict[str, Any]


class NotAuthenticatedError(Exception):
    pass


def _get_ssm_param(name: str) -> str:
    """Fetch an SSM parameter, caching across invocations."""
    if name not in _ssm_cache:
        response = _ssm_client.get_parameter(Name=name, WithDecryption=True)
        _ssm_cache[name] = response["Parameter"]["Value"]
    return _ssm_cache[name]


def _get_api_key() -> str | None:
    if not SSM_API_KEY_PARAM:
        return None
    try:
        return _get_ssm_param(SSM_API_KEY_PARAM) or None
    except ClientError:
        logger.exception("Could not read classifier API key from %s", SSM_API_KEY_PARAM)
        return None


def _classify(query: str) -> ClassifierResult:
    return classify_service(_get_api_key(), query, model=CLASSIFIER_MODEL, timeout=CLASSIFIER_TIMEOUT_SECONDS)


def create_claim(event: Event, context: Any) -> Response:
    """Submit a claim for the authenticated user's account."""
    return _run(_create_claim, event)


def card_transaction(event: Event, context: Any) -> Response:
    """Submit a card-present transaction, resolving the account by card number."""
    return _run(_card_transaction, event)


def list_claims(event: Event, context: Any) -> Response:
    return _run(_list_claims, event)


def get_claim(event: Event, context: Any) -> Response:
    return _run(_get_claim, event)


def update_claim_status(event: Event, context: Any) -> Response:
    return _run(_update_claim_status, event)


def check_service_eligibility(event: Event, context: Any) -> Response:
    return _run(_check_service_eligibility, event)


def _run(handle: Callable[[Event], Response], event: Event) -> Response:
    try:
        return handle(event)
    except NotAuthenticatedError:
        return _response(401, {"message": "Not authorized"})
    except InvalidClaimError as e:
        return _response(400, {"message": str(e)})
    except AccountNotFoundError:
        return _response(404, {"message": "Account not found or card not active"})
    except ClaimNotFoundError:
        return _response(404, {"message": "Claim not found"})
    except Exception:
        logger.exception("Failed to handle request")
        return _response(500, {"message": "Internal error"})


def _create_claim(event: Event) -> Response:
    user_id = _user_id(event)
    request = ClaimRequest.from_payload(_body(event))
    claim = submit_claim(LEDGER, request, by_user(user_id), _classify)
    return _claim_response(claim, "Claim submitted successfully")


def _card_transaction(event: Event) -> Response:
    payload = _body(event)
    card_number = payload.get("cardNumber")
    if not isinstance(card_number, str) or not card_number.strip():
        raise InvalidClaimError("cardNumber is required")
    request = ClaimRequest.from_payload(payload)
    claim = submit_claim(LEDGER, request, by_card(card_number.strip()), _classify, default_notes=CARD_PORTAL_NOTE)
    return _claim_response(claim, "Transaction processed successfully")


def _list_claims(event: Event) -> Response:
    account = _user_account(event)
    claims = STORE.list_claims(account.id)
    return _response(200, {"claims": [claim.to_dict() for claim in claims]})


def _get_claim(event: Event) -> Response:
    account = _user_account(event)
    claim = STORE.get_claim(account.id, _claim_id(event))
    if claim is None:
        raise ClaimNotFoundError(_claim_id(event))
    return _response(200, {"claim": claim.to_dict()})


def _update_claim_status(event: Event) -> Response:
    account = _user_account(event)
    payload = _body(event)
    claim = update_claim(STORE, account.id, _claim_id(event), status=payload.get("status"), notes=payload.get("notes"))
    return _response(200, {"message": "Claim updated successfully", "claim": claim.to_dict()})


def _check_service_eligibility(event: Event) -> Response:
    service = _body(event).get("service")
    if not isinstance(service, str) or not service.strip():
        raise InvalidClaimError("Service name is required")
    result = check_eligibility(service, _classify)
    body = asdict(result)
    if result.entry is not None:
        body["requires_prescription"] = result.entry.requires_prescription
        body["requires_letter_of_necessity"] = result.entry.requires_letter_of_necessity
    return _response(200, body)


def _claim_response(claim: Claim, message: str) -> Response:
    return _response(
        201,
        {
            "message": message,
            "status": claim.status.value,
            "notes": claim.notes,
            "requires_documentation": claim.requires_documentation,
            "documentation_type": claim.documentation_type,
            "claim": claim.to_dict(),
        },
    )


def _user_account(event: Event) -> Account:
    account = STORE.find_account_by_user(_user_id(event))
    if account is None:
        raise AccountNotFoundError(_user_id(event))
    return account


def _user_id(event: Event) -> str:
    """The authenticated subject from a Cognito authorizer (REST or HTTP API)."""
    authorizer = event.get("requestContext", {}).get("authorizer") or {}
    claims = authorizer.get("claims") or authorizer.get("jwt", {}).get("claims") or {}
    user_id = claims.get("sub")
    if not user_id:
        raise NotAuthenticatedError()
    return str(user_id)


def _claim_id(event: Event) -> str:
    claim_id = (event.get("pathParameters") or {}).get("id")
    if not claim_id:
        raise ClaimNotFoundError("missing claim id")
    return str(claim_id)


def _body(event: Event) -> dict[str, Any]:
    raw = event.get("body") or "{}"
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidClaimError("Request body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise InvalidClaimError("Request body must be a JSON object")
    return payload


def _response(status_code: int, body: dict[str, Any]) -> Response:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }

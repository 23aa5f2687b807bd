"""Accounts, claims and claim submissions."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from hsa_claims_engine.adjudication import ClaimStatus


class InvalidClaimError(ValueError):
    """A submission is missing required fields or carries an invalid value."""


class AccountNotFoundError(LookupError):
    pass


class ClaimNotFoundError(LookupError):
    pass


class AccountConflictError(RuntimeError):
    """The account changed underneath a read-check-write sequence."""


@dataclass
class Account:
    id: str
    user_id: str
    balance: Decimal = Decimal("0")
    card_issued: bool = False
    card_number: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "balance": str(self.balance),
            "card_issued": self.card_issued,
            "card_number": self.card_number,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            balance=Decimal(data["balance"]),
            card_issued=bool(data.get("card_issued", False)),
            card_number=data.get("card_number"),
        )


@dataclass
class Claim:
    id: str
    account_id: str
    provider_name: str
    service_description: str
    amount: Decimal
    date: datetime
    status: ClaimStatus
    notes: str = ""
    requires_documentation: bool = False
    documentation_type: str | None = None
    has_documentation: bool = False
    document_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "provider_name": self.provider_name,
            "service_description": self.service_description,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "status": self.status.value,
            "notes": self.notes,
            "requires_documentation": self.requires_documentation,
            "documentation_type": self.documentation_type,
            "has_documentation": self.has_documentation,
            "document_count": self.document_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Claim":
        return cls(
            id=data["id"],
            account_id=data["account_id"],
            provider_name=data["provider_name"],
            service_description=data["service_description"],
            amount=Decimal(data["amount"]),
            date=datetime.fromisoformat(data["date"]),
            status=ClaimStatus(data["status"]),
            notes=data.get("notes", ""),
            requires_documentation=bool(data.get("requires_documentation", False)),
            documentation_type=data.get("documentation_type"),
            has_documentation=bool(data.get("has_documentation", False)),
            document_count=int(data.get("document_count", 0)),
        )


@dataclass
class ClaimRequest:
    provider_name: str
    service_description: str
    amount: Decimal
    has_documentation: bool = False
    document_count: int = 0
    submitted_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ClaimRequest":
        """Build a validated request from a decoded JSON body.

        Accepts "service" as an alias for "serviceDescription".
        """
        provider_name = payload.get("providerName")
        service = payload.get("serviceDescription", payload.get("service"))
        if not isinstance(provider_name, str) or not provider_name.strip():
            raise InvalidClaimError("providerName is required")
        if not isinstance(service, str) or not service.strip():
            raise InvalidClaimError("serviceDescription is required")

        document_count = payload.get("documentCount", 0)
        if isinstance(document_count, bool) or not isinstance(document_count, int) or document_count < 0:
            raise InvalidClaimError("documentCount must be a non-negative integer")

        return cls(
            provider_name=provider_name.strip(),
            service_description=service.strip(),
            amount=parse_amount(payload.get("amount")),
            has_documentation=bool(payload.get("hasDocumentation", False)),
            document_count=document_count,
        )


def parse_amount(value: object) -> Decimal:
    """Parse a positive monetary amount."""
    if value is None or isinstance(value, bool):
        raise InvalidClaimError("amount is required")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidClaimError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise InvalidClaimError(f"Invalid amount: {value!r}")
    return amount

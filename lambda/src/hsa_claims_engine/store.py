"""Account and claim storage: an in-memory store and an S3-backed store."""

import json
import threading
from typing import Protocol

import boto3
from botocore.exceptions import ClientError

from hsa_claims_engine.models import Account, AccountConflictError, Claim

S3_CLIENT = boto3.client("s3")


class ClaimStore(Protocol):
    def get_account(self, account_id: str) -> Account | None: ...

    def put_account(self, account: Account) -> None: ...

    def find_account_by_user(self, user_id: str) -> Account | None: ...

    def find_account_by_card(self, card_number: str) -> Account | None: ...

    def append_claim(self, claim: Claim) -> None: ...

    def get_claim(self, account_id: str, claim_id: str) -> Claim | None: ...

    def put_claim(self, claim: Claim) -> None: ...

    def list_claims(self, account_id: str) -> list[Claim]: ...


class InMemoryClaimStore:
    """Process-local store. Returns copies so callers never share mutable state."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accounts: dict[str, dict[str, object]] = {}
        self._claims: dict[str, dict[str, object]] = {}

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            data = self._accounts.get(account_id)
        return Account.from_dict(data) if data is not None else None

    def put_account(self, account: Account) -> None:
        with self._lock:
            self._accounts[account.id] = account.to_dict()

    def find_account_by_user(self, user_id: str) -> Account | None:
        with self._lock:
            matches = [data for data in self._accounts.values() if data["user_id"] == user_id]
        return Account.from_dict(matches[0]) if matches else None

    def find_account_by_card(self, card_number: str) -> Account | None:
        with self._lock:
            matches = [
                data
                for data in self._accounts.values()
                if data["card_issued"] and data["card_number"] == card_number
            ]
        return Account.from_dict(matches[0]) if matches else None

    def append_claim(self, claim: Claim) -> None:
        with self._lock:
            if claim.id in self._claims:
                raise ValueError(f"Claim {claim.id} already exists")
            self._claims[claim.id] = claim.to_dict()

    def get_claim(self, account_id: str, claim_id: str) -> Claim | None:
        with self._lock:
            data = self._claims.get(claim_id)
        if data is None or data["account_id"] != account_id:
            return None
        return Claim.from_dict(data)

    def put_claim(self, claim: Claim) -> None:
        with self._lock:
            self._claims[claim.id] = claim.to_dict()

    def list_claims(self, account_id: str) -> list[Claim]:
        with self._lock:
            rows = [data for data in self._claims.values() if data["account_id"] == account_id]
        return [Claim.from_dict(data) for data in rows]


class S3ClaimStore:
    """Store accounts and claims as JSON documents in an S3 bucket.

    Layout:
        accounts/{account_id}.json
        accounts/by-user/{user_id}       -> account id
        accounts/by-card/{card_number}   -> account id
        claims/{account_id}/{claim_id}.json

    Account writes are conditional on the ETag seen by the last get_account, so a
    concurrent writer in another process raises AccountConflictError instead of
    being silently overwritten.
    """

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        self._etags: dict[str, str] = {}

    def get_account(self, account_id: str) -> Account | None:
        response = self._get_object(_account_key(account_id))
        if response is None:
            return None
        self._etags[account_id] = response["ETag"]
        return Account.from_dict(json.loads(response["Body"].read()))

    def put_account(self, account: Account) -> None:
        extra: dict[str, str] = {}
        etag = self._etags.get(account.id)
        if etag is not None:
            extra["IfMatch"] = etag
        try:
            response = S3_CLIENT.put_object(
                Bucket=self.bucket,
                Key=_account_key(account.id),
                Body=json.dumps(account.to_dict()).encode("utf-8"),
                ContentType="application/json",
                **extra,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in ("PreconditionFailed", "412", "ConditionalRequestConflict"):
                self._etags.pop(account.id, None)
                raise AccountConflictError(f"Account {account.id} was modified concurrently") from e
            raise
        if "ETag" in response:
            self._etags[account.id] = response["ETag"]

        self._put_text(f"accounts/by-user/{account.user_id}", account.id)
        if account.card_issued and account.card_number:
            self._put_text(f"accounts/by-card/{account.card_number}", account.id)

    def find_account_by_user(self, user_id: str) -> Account | None:
        account_id = self._get_text(f"accounts/by-user/{user_id}")
        return self.get_account(account_id) if account_id else None

    def find_account_by_card(self, card_number: str) -> Account | None:
        account_id = self._get_text(f"accounts/by-card/{card_number}")
        if not account_id:
            return None
        account = self.get_account(account_id)
        # The index can outlive a reissued card
        if account is None or not account.card_issued or account.card_number != card_number:
            return None
        return account

    def append_claim(self, claim: Claim) -> None:
        try:
            S3_CLIENT.put_object(
                Bucket=self.bucket,
                Key=_claim_key(claim.account_id, claim.id),
                Body=json.dumps(claim.to_dict()).encode("utf-8"),
                ContentType="application/json",
                IfNoneMatch="*",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in ("PreconditionFailed", "412"):
                raise ValueError(f"Claim {claim.id} already exists") from e
            raise

    def get_claim(self, account_id: str, claim_id: str) -> Claim | None:
        response = self._get_object(_claim_key(account_id, claim_id))
        if response is None:
            return None
        return Claim.from_dict(json.loads(response["Body"].read()))

    def put_claim(self, claim: Claim) -> None:
        S3_CLIENT.put_object(
            Bucket=self.bucket,
            Key=_claim_key(claim.account_id, claim.id),
            Body=json.dumps(claim.to_dict()).encode("utf-8"),
            ContentType="application/json",
        )

    def list_claims(self, account_id: str) -> list[Claim]:
        claims: list[Claim] = []
        paginator = S3_CLIENT.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=f"claims/{account_id}/"):
            for obj in page.get("Contents", []):
                response = S3_CLIENT.get_object(Bucket=self.bucket, Key=obj["Key"])
                claims.append(Claim.from_dict(json.loads(response["Body"].read())))
        claims.sort(key=lambda claim: claim.date)
        return claims

    def _get_object(self, key: str) -> dict | None:
        try:
            return S3_CLIENT.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                return None
            raise

    def _get_text(self, key: str) -> str | None:
        response = self._get_object(key)
        if response is None:
            return None
        return response["Body"].read().decode("utf-8").strip() or None

    def _put_text(self, key: str, value: str) -> None:
        S3_CLIENT.put_object(Bucket=self.bucket, Key=key, Body=value.encode("utf-8"), ContentType="text/plain")


def _account_key(account_id: str) -> str:
    return f"accounts/{account_id}.json"


def _claim_key(account_id: str, claim_id: str) -> str:
    return f"claims/{account_id}/{claim_id}.json"

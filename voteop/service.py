"""
Vote service: composes encoding, signing, verification and storage into the
create / get / list / verify operations exposed over HTTP.

No state spans requests; the service holds only the signer and the store.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from . import canonical, crypto
from .errors import (
    InvalidDataType,
    InvalidId,
    InvalidSignature,
    InvalidSignatureFormat,
    MissingData,
    MissingSignature,
    SignatureVerificationFailed,
    SignerMismatch,
    StoreUnavailable,
)
from .store import VoteRecord, VoteStore, VoteSummary, clamp_pagination

logger = logging.getLogger("vote_operator.service")


@dataclass(frozen=True)
class CreateResult:
    id: str
    signature: str
    signer: Optional[str]
    operator: str


@dataclass(frozen=True)
class VerifyResult:
    recovered_signer: str
    data_hash: str


@dataclass(frozen=True)
class Page:
    items: List[VoteSummary]
    limit: int
    offset: int


def check_data(data) -> None:
    if data is None:
        raise MissingData()
    if not isinstance(data, (dict, list)):
        raise InvalidDataType()


class VoteService:
    def __init__(self, signer: crypto.Signer, store: VoteStore, require_signature: bool = False):
        self.signer = signer
        self.store = store
        self.require_signature = require_signature

    @property
    def operator(self) -> str:
        return self.signer.address

    def create(self, data, signature: Optional[str] = None, signer: Optional[str] = None) -> CreateResult:
        """Sign and store `data`; the id is its content identifier.

        A caller signature, when given, must recover over the same id (and to
        `signer` when that is also given). Resubmitting identical content
        raises DuplicateRecord.
        """
        check_data(data)
        raw = canonical.encode(data)
        digest = canonical.derive_id(raw)
        vote_id = canonical.format_id(digest)

        submitter = None
        if signature:
            try:
                submitter = crypto.verify(digest, signature, signer)
            except SignerMismatch as e:
                logger.info("create rejected id=%s recovered=%s expected=%s", vote_id, e.recovered, e.expected)
                raise InvalidSignature(str(e)) from e
            except InvalidSignatureFormat as e:
                logger.info("create rejected id=%s err=%s", vote_id, e)
                raise InvalidSignature(f"Signature verification failed: {e}") from e
            logger.info("Signature validated for signer: %s", submitter)
        elif self.require_signature:
            raise InvalidSignature("signature is required")

        operator_signature = self.signer.sign_identifier(digest)
        self.store.insert(vote_id, raw.decode("utf-8"), operator_signature, submitter)
        logger.info("Vote created with ID: %s", vote_id)
        return CreateResult(
            id=vote_id,
            signature=operator_signature,
            signer=submitter,
            operator=self.operator,
        )

    def get(self, vote_id) -> VoteRecord:
        if not canonical.is_valid_id(vote_id):
            raise InvalidId()
        return self.store.get(vote_id)

    def list(self, limit=None, offset=None) -> Page:
        limit, offset = clamp_pagination(limit, offset)
        return Page(items=self.store.list(limit, offset), limit=limit, offset=offset)

    def verify_signature(self, data, signature: Optional[str], signer: Optional[str] = None) -> VerifyResult:
        check_data(data)
        if not signature:
            raise MissingSignature()
        digest = canonical.derive_id(canonical.encode(data))
        try:
            recovered = crypto.verify(digest, signature, signer)
        except (InvalidSignatureFormat, SignerMismatch) as e:
            raise SignatureVerificationFailed(str(e)) from e
        return VerifyResult(recovered_signer=recovered, data_hash=canonical.format_id(digest))

    def health(self) -> dict:
        try:
            self.store.ping()
        except StoreUnavailable as e:
            logger.warning("health check failed: %s", e)
            return {"healthy": False, "error": "Database connection failed"}
        return {"healthy": True, "operator": self.operator}

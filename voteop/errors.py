"""
Error taxonomy for the vote operator.

Every failure the service reports to a caller is a `VoteOperatorError` with a
machine-readable `code` and the HTTP status it maps to at the boundary.
"""


class VoteOperatorError(Exception):
    code = "INTERNAL_ERROR"
    status = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.detail, "code": self.code}


# --- Request data ---
class MissingData(VoteOperatorError):
    code = "MISSING_DATA"
    status = 400
    message = "Missing required field: data"


class InvalidDataType(VoteOperatorError):
    code = "INVALID_DATA_TYPE"
    status = 400
    message = "Data must be an object"


class DataTooLarge(VoteOperatorError):
    code = "DATA_TOO_LARGE"
    status = 413
    message = "Data exceeds the maximum encoded size"


# --- Signatures ---
class InvalidSignatureFormat(VoteOperatorError):
    code = "INVALID_SIGNATURE_FORMAT"
    status = 400
    message = "Signature must be a 65-byte hex string"


class SignerMismatch(VoteOperatorError):
    code = "SIGNER_MISMATCH"
    status = 400
    message = "Signature does not match expected signer"

    def __init__(self, recovered: str, expected: str):
        super().__init__()
        self.recovered = recovered
        self.expected = expected


class InvalidSignature(VoteOperatorError):
    code = "INVALID_SIGNATURE"
    status = 400
    message = "Invalid signature"


class MissingSignature(VoteOperatorError):
    code = "MISSING_SIGNATURE"
    status = 400
    message = "Signature is required for verification"


class SignatureVerificationFailed(VoteOperatorError):
    code = "SIGNATURE_VERIFICATION_FAILED"
    status = 400
    message = "Signature verification failed"


# --- Lookup ---
class InvalidId(VoteOperatorError):
    code = "INVALID_ID"
    status = 400
    message = "Invalid vote ID format"


class DuplicateRecord(VoteOperatorError):
    code = "DUPLICATE_VOTE"
    status = 409
    message = "Vote with this data already exists"


class NotFound(VoteOperatorError):
    code = "VOTE_NOT_FOUND"
    status = 404
    message = "Vote not found"


# --- Infrastructure ---
class StoreUnavailable(VoteOperatorError):
    code = "STORE_UNAVAILABLE"
    status = 503
    message = "Vote store unavailable"


class KeyInitializationError(VoteOperatorError):
    code = "KEY_INITIALIZATION_ERROR"
    status = 500
    message = "Operator key could not be initialized"


class InternalError(VoteOperatorError):
    pass


# --- HTTP boundary ---
class InvalidJson(VoteOperatorError):
    code = "INVALID_JSON"
    status = 400
    message = "Invalid JSON in request body"


class InvalidSignatureType(VoteOperatorError):
    code = "INVALID_SIGNATURE_TYPE"
    status = 400
    message = "Signature must be a string"


class InvalidSignerAddress(VoteOperatorError):
    code = "INVALID_SIGNER_ADDRESS"
    status = 400
    message = "Invalid signer address format"

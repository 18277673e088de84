#!/usr/bin/env python3
"""
Flask vote operator: accepts JSON vote payloads, derives a content-addressed
id, signs it with the operator key and stores the record first-write-wins.

Endpoints:
- GET  /                  health check (store reachability + operator address)
- POST /votes             create a signed vote record
- GET  /votes/<id>        fetch a record by id
- GET  /votes             list ids, newest first (limit/offset)
- POST /verify-signature  check a caller signature without storing anything
"""
import logging
import re
import sys
from datetime import datetime, timezone

from flask import Flask, request
from werkzeug.exceptions import BadRequest, HTTPException

from voteop import __version__
from voteop.canonical import MAX_DEPTH, check_depth, decode
from voteop.config import Settings
from voteop.crypto import OperatorKey, Signer, is_signer_address
from voteop.errors import (
    InternalError,
    InvalidJson,
    InvalidSignatureFormat,
    InvalidSignatureType,
    InvalidSignerAddress,
    KeyInitializationError,
    StoreUnavailable,
    VoteOperatorError,
)
from voteop.service import VoteService, check_data
from voteop.store import VoteStore

_HEX_STRING = re.compile(r"^0x[0-9a-fA-F]*$")

logger = logging.getLogger("vote_operator")


def configure_logging(level: str = "INFO") -> None:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)


def build_service(settings: Settings) -> VoteService:
    """Load the operator key and open the store. Raises KeyInitializationError
    or StoreUnavailable; either one means the process must not serve."""
    signer = Signer(OperatorKey.from_hex(settings.operator_private_key))
    logger.info("Wallet initialized: %s", signer.address)
    store = VoteStore(settings.db_path, timeout=settings.store_timeout)
    store.initialize()
    logger.info("Database connected and tables initialized (%s)", settings.db_path)
    return VoteService(signer, store, require_signature=settings.require_signature)


def _json_body() -> dict:
    raw = request.get_data(cache=True)
    if not raw:
        return {}
    # the body wraps `data` in one more object
    check_depth(raw, MAX_DEPTH + 1)
    try:
        body = request.get_json(force=True)
    except BadRequest as e:
        raise InvalidJson() from e
    return body if isinstance(body, dict) else {}


def _read_vote_request():
    """Shape checks shared by /votes and /verify-signature."""
    body = _json_body()
    data = body.get("data")
    signature = body.get("signature")
    signer = body.get("signer")
    check_data(data)
    if signature is not None and not isinstance(signature, str):
        raise InvalidSignatureType()
    if signature and not _HEX_STRING.fullmatch(signature):
        raise InvalidSignatureFormat("Signature must be a valid hex string")
    if signer is not None and signer != "" and not is_signer_address(signer):
        raise InvalidSignerAddress()
    return data, signature or None, signer or None


def _error(code: str, message: str, status: int):
    return {"success": False, "error": message, "code": code}, status


def create_app(settings: Settings | None = None, service: VoteService | None = None) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    if service is None:
        service = build_service(settings)

    app = Flask(__name__)
    app.config.update(MAX_CONTENT_LENGTH=settings.max_content_length)

    @app.before_request
    def log_request():
        logger.info("%s %s", request.method, request.path)

    # --- Error handling ---
    @app.errorhandler(VoteOperatorError)
    def handle_vote_error(e: VoteOperatorError):
        if isinstance(e, InternalError):
            logger.error("%s %s failed: %s", request.method, request.path, e)
            return _error(e.code, InternalError.message, 500)
        if e.status >= 500:
            logger.warning("%s %s failed: %s", request.method, request.path, e)
        return e.to_dict(), e.status

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        if e.code == 404:
            return _error("NOT_FOUND", "Endpoint not found", 404)
        if e.code == 413:
            return _error("PAYLOAD_TOO_LARGE", "Request body too large", 413)
        if e.code == 405:
            return _error("METHOD_NOT_ALLOWED", "Method not allowed", 405)
        return _error("BAD_REQUEST", e.description or "Bad request", e.code or 400)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error("INTERNAL_ERROR", "Internal server error", 500)

    # --- Routes ---
    @app.route("/")
    def health():
        state = service.health()
        if not state["healthy"]:
            return {"status": "unhealthy", "error": state["error"]}, 503
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "operator": service.operator,
        }

    @app.route("/votes", methods=["POST"])
    def create_vote():
        data, signature, signer = _read_vote_request()
        result = service.create(data, signature=signature, signer=signer)
        return {
            "success": True,
            "message": "Vote saved successfully",
            "data": {
                "id": result.id,
                "signature": result.signature,
                "signer": result.signer,
                "operator": result.operator,
            },
        }, 201

    @app.route("/votes/<vote_id>")
    def get_vote(vote_id):
        vote = service.get(vote_id)
        return {
            "success": True,
            "data": {
                "id": vote.id,
                "data": decode(vote.payload),
                "signature": vote.signature,
                "signer": vote.signer,
                "createdAt": vote.created_at,
            },
        }

    @app.route("/votes")
    def list_votes():
        page = service.list(request.args.get("limit"), request.args.get("offset"))
        return {
            "success": True,
            "data": [{"id": v.id, "createdAt": v.created_at} for v in page.items],
            "pagination": {"limit": page.limit, "offset": page.offset, "count": len(page.items)},
        }

    @app.route("/verify-signature", methods=["POST"])
    def verify_signature():
        data, signature, signer = _read_vote_request()
        result = service.verify_signature(data, signature, signer)
        return {
            "success": True,
            "message": "Signature is valid",
            "data": {
                "isValid": True,
                "recoveredSigner": result.recovered_signer,
                "dataHash": result.data_hash,
            },
        }

    return app


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        service = build_service(settings)
    except (KeyInitializationError, StoreUnavailable) as e:
        logger.error("Startup failed: %s", e)
        sys.exit(1)
    app = create_app(settings, service=service)
    logger.info("Vote Operator Server running on %s:%s", settings.host, settings.port)
    try:
        app.run(host=settings.host, port=settings.port, threaded=True, use_reloader=False)
    finally:
        service.store.close()
        logger.info("Shutting down gracefully")


if __name__ == "__main__":
    main()

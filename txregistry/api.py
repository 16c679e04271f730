"""
HTTP transport for the validation registry.

Callers authenticate with an Ed25519 signature in the request body. When
TXREGISTRY_TRUST_CALLER_HEADER is enabled (only behind a gateway that
authenticates callers itself) a request without a signature may instead
present its address in the caller header.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request

from . import config
from .errors import AuthenticationFailed, InvalidDescriptor
from .events import EventLog
from .hashing import derive_key
from .logging_config import audit_log, set_request_id
from .models import CallerIdentity, SignatureProof, TransactionDescriptor
from .registry import ValidationRegistry
from .schemas import (
    EventModel,
    EventsResponse,
    HealthResponse,
    KeyResponse,
    SignerResponse,
    ValidateRequest,
    ValidateResponse,
)


def _invalid(e: InvalidDescriptor) -> HTTPException:
    return HTTPException(400, {"error": "INVALID_DESCRIPTOR", "field": e.field, "reason": e.message})


def create_app(
    registry: Optional[ValidationRegistry] = None,
    trust_caller_header: Optional[bool] = None,
    event_log_size: Optional[int] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        registry: registry to serve; built from configuration at startup if None
        trust_caller_header: accept the caller header (default from config)
        event_log_size: events kept for GET /events (default from config)
    """
    if trust_caller_header is None:
        trust_caller_header = config.TRUST_CALLER_HEADER
    events = EventLog(maxlen=event_log_size or config.EVENT_LOG_SIZE)

    def attach(reg: ValidationRegistry) -> None:
        app.state.registry = reg
        app.state.unsubscribe = reg.subscribe(events)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "registry", None) is None
        if owned:
            attach(ValidationRegistry.from_config())
        yield
        if owned:
            app.state.unsubscribe()
            app.state.registry.close()
            app.state.registry = None

    docs_url = None if config.is_production() else "/docs"
    app = FastAPI(title="TxRegistry", lifespan=lifespan, docs_url=docs_url)
    app.state.registry = None
    app.state.events = events
    if registry is not None:
        attach(registry)

    def get_registry() -> ValidationRegistry:
        reg = app.state.registry
        if reg is None:
            raise HTTPException(503, "REGISTRY_UNAVAILABLE")
        return reg

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.post("/transactions/validate", response_model=ValidateResponse)
    def validate_transaction(req: ValidateRequest, request: Request):
        reg = get_registry()
        try:
            descriptor = TransactionDescriptor(req.operation, req.record_id, req.timestamp)
        except InvalidDescriptor as e:
            raise _invalid(e)

        if req.has_signature():
            proof = SignatureProof(req.public_key_b64 or "", req.signature_b64 or "")
        else:
            caller = request.headers.get(config.CALLER_HEADER_NAME)
            if caller is not None and not trust_caller_header:
                audit_log.security_event("UNTRUSTED_CALLER_HEADER", severity="medium", caller=caller)
            if not trust_caller_header or caller is None:
                raise HTTPException(401, {"error": "AUTHENTICATION_FAILED", "reason": "SIGNATURE_REQUIRED"})
            proof = CallerIdentity(caller)

        try:
            result = reg.validate_transaction(descriptor, proof)
        except AuthenticationFailed as e:
            raise HTTPException(401, {"error": "AUTHENTICATION_FAILED", "reason": e.reason})

        return ValidateResponse(success=result.success, signer=result.signer,
                                identity_key=result.identity_key)

    @app.get("/transactions/signer", response_model=SignerResponse)
    def get_signer(operation: str, record_id: str, timestamp: int):
        reg = get_registry()
        try:
            identity_key = derive_key(operation, record_id, timestamp)
            signer = reg.get_signer(operation, record_id, timestamp)
        except InvalidDescriptor as e:
            raise _invalid(e)
        if signer is None:
            raise HTTPException(404, "NOT_FOUND")
        return SignerResponse(signer=signer, identity_key=identity_key)

    @app.get("/transactions/key", response_model=KeyResponse)
    def get_identity_key(operation: str, record_id: str, timestamp: int):
        try:
            return KeyResponse(identity_key=derive_key(operation, record_id, timestamp))
        except InvalidDescriptor as e:
            raise _invalid(e)

    @app.get("/events", response_model=EventsResponse)
    def recent_events(limit: int = Query(100, ge=1)):
        return EventsResponse(events=[EventModel(**e.to_dict()) for e in events.recent(limit)])

    @app.get("/health", response_model=HealthResponse)
    def health():
        reg = get_registry()
        checks = config.validate_config()
        status = "ok" if all(checks.values()) else "degraded"
        return HealthResponse(status=status, env=config.ENV, entries=len(reg), checks=checks)

    return app


app = create_app()

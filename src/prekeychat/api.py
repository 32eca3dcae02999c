"""
HTTP API for the relay.

Exposes the five relay operations as JSON endpoints. Endpoints are plain
functions, so FastAPI runs them on its worker thread pool; the relay's own
lock serializes them.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

from .bundle import PreKeyBundle
from .envelope import MessageEnvelope
from .relay import RelayService
from .types import PreKeyChatError

logger = logging.getLogger(__name__)


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class PreKeyBundleModel(BaseModel):
    registration_id: int = Field(alias="registrationId")
    device_id: int = Field(alias="deviceId")
    one_time_pre_key_id: int = Field(
        validation_alias=AliasChoices("oneTimePreKeyId", "preKeyId"),
        serialization_alias="oneTimePreKeyId",
    )
    one_time_pre_key_public: str = Field(
        validation_alias=AliasChoices("oneTimePreKeyPublic", "preKeyPublic"),
        serialization_alias="oneTimePreKeyPublic",
    )
    signed_pre_key_id: int = Field(alias="signedPreKeyId")
    signed_pre_key_public: str = Field(alias="signedPreKeyPublic")
    signed_pre_key_signature: str = Field(alias="signedPreKeySignature")
    identity_key_public: str = Field(alias="identityKeyPublic")


class EnvelopeModel(BaseModel):
    # Validated by MessageEnvelope.from_dict
    kind: str = Field(
        validation_alias=AliasChoices("kind", "type"),
        serialization_alias="kind",
    )
    body: str


class PlaintextModel(BaseModel):
    plaintext: str


class HealthResponse(BaseModel):
    status: str
    remote_registered: bool = Field(serialization_alias="remoteRegistered")
    pending: int


# ============================================================================
# ROUTES
# ============================================================================

router = APIRouter()


def get_relay(request: Request) -> RelayService:
    return request.app.state.relay


@router.get("/local/prekey", response_model=PreKeyBundleModel)
def get_local_bundle(relay: RelayService = Depends(get_relay)):
    """Issue a fresh pre-key bundle for the local client"""
    return relay.get_local_bundle().to_dict()


@router.post("/remote/prekey", status_code=204)
def submit_remote_bundle(body: PreKeyBundleModel, relay: RelayService = Depends(get_relay)) -> Response:
    """Register the remote peer's bundle and establish a session"""
    relay.submit_remote_bundle(PreKeyBundle.from_dict(body.model_dump(by_alias=True)))
    return Response(status_code=204)


@router.post("/messages/inbound", response_model=PlaintextModel)
def deliver_inbound(body: EnvelopeModel, relay: RelayService = Depends(get_relay)):
    """Decrypt an envelope sent by the remote peer"""
    envelope = MessageEnvelope.from_dict(body.model_dump(by_alias=True))
    return {"plaintext": relay.deliver_inbound(envelope)}


@router.post("/messages/outbound", response_model=EnvelopeModel)
def send_outbound(body: PlaintextModel, relay: RelayService = Depends(get_relay)):
    """Encrypt a message for the remote peer and queue it"""
    return relay.send_outbound(body.plaintext).to_dict()


@router.get("/messages/outbound", response_model=List[EnvelopeModel])
def drain_outbound(relay: RelayService = Depends(get_relay)):
    """Return and clear every envelope queued for the remote peer"""
    return [envelope.to_dict() for envelope in relay.drain_outbound()]


@router.get("/health")
def health(relay: RelayService = Depends(get_relay)) -> JSONResponse:
    """Relay status"""
    status = HealthResponse(
        status="ok",
        remote_registered=relay.has_remote_bundle,
        pending=relay.pending_count,
    )
    return JSONResponse(status.model_dump(by_alias=True))


# Paths used by the first version of the browser demo
router.add_api_route("/java/prekey", get_local_bundle, methods=["GET"],
                     response_model=PreKeyBundleModel, include_in_schema=False)
router.add_api_route("/web/prekey", submit_remote_bundle, methods=["POST"],
                     status_code=204, include_in_schema=False)
router.add_api_route("/messages/from-web", deliver_inbound, methods=["POST"],
                     response_model=PlaintextModel, include_in_schema=False)
router.add_api_route("/messages/java/send", send_outbound, methods=["POST"],
                     response_model=EnvelopeModel, include_in_schema=False)
router.add_api_route("/messages/to-web", drain_outbound, methods=["GET"],
                     response_model=List[EnvelopeModel], include_in_schema=False)


# ============================================================================
# APP FACTORY
# ============================================================================

async def handle_prekeychat_error(request: Request, exc: PreKeyChatError) -> JSONResponse:
    """Render relay errors as JSON with the error's status code"""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def create_app(relay: RelayService) -> FastAPI:
    """Build the FastAPI application serving the given relay."""
    app = FastAPI(title="prekeychat relay")
    app.state.relay = relay
    app.include_router(router)
    app.add_exception_handler(PreKeyChatError, handle_prekeychat_error)
    return app

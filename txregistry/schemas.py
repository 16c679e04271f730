from typing import Dict, List, Optional

from pydantic import BaseModel, StrictInt, StrictStr


class ValidateRequest(BaseModel):
    operation: StrictStr
    record_id: StrictStr
    timestamp: StrictInt
    public_key_b64: Optional[StrictStr] = None
    signature_b64: Optional[StrictStr] = None

    def has_signature(self) -> bool:
        return self.public_key_b64 is not None or self.signature_b64 is not None


class ValidateResponse(BaseModel):
    success: bool
    signer: str
    identity_key: str


class SignerResponse(BaseModel):
    signer: str
    identity_key: str


class KeyResponse(BaseModel):
    identity_key: str


class EventModel(BaseModel):
    event: str
    success: bool
    signer: str
    identity_key: str
    sequence: Optional[int] = None


class EventsResponse(BaseModel):
    events: List[EventModel]


class HealthResponse(BaseModel):
    status: str
    env: str
    entries: int
    checks: Dict[str, bool]

from typing import Optional

from pydantic import BaseModel, ConfigDict


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class RegisterUserPayload(_Payload):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class ActivateUserPayload(_Payload):
    token: Optional[str] = None


class ActivationTokenRequestPayload(_Payload):
    email: Optional[str] = None

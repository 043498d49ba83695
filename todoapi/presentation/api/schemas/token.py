from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuthenticationTokenPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    email: Optional[str] = None
    password: Optional[str] = None

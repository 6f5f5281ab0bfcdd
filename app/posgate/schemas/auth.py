from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class LoginRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {"username_or_email": "cashier01", "password": "Pass1234!"},
            ]
        }
    }

    username_or_email: str | None = None
    email: str | None = None
    password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def ensure_identifier(self):
        if not self.email and not self.username_or_email:
            raise ValueError("email or username_or_email is required")
        return self

    @property
    def identifier(self) -> str:
        return self.username_or_email or self.email or ""


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    trace_id: str = ""


class SessionResponse(BaseModel):
    user_id: str
    role_id: int | None
    username: str | None = None
    email: str | None = None
    issued_at: datetime
    expires_at: datetime
    trace_id: str = ""


class LogoutResponse(BaseModel):
    status: str = "signed_out"
    trace_id: str = ""

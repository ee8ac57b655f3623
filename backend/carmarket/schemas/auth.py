from __future__ import annotations

from pydantic import BaseModel, Field

from carmarket.models.profile import UserRole


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: str
    password: str = Field(min_length=6)
    role: UserRole = UserRole.BUYER


class OAuthCallbackRequest(BaseModel):
    auth_code: str
    code_verifier: str


class PasswordResetRequest(BaseModel):
    email: str


class PasswordUpdateRequest(BaseModel):
    password: str = Field(min_length=6)


class PrincipalResponse(BaseModel):
    id: str
    email: str | None = None
    full_name: str | None = None
    role: str
    seller_phone: str | None = None

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    user: PrincipalResponse | None = None


class OAuthRedirectResponse(BaseModel):
    url: str


class ProfileUpdateRequest(BaseModel):
    full_name: str = ""
    role: UserRole = UserRole.BUYER
    dial_code: str = "+1"
    subscriber: str = ""


class ApplyPhoneRequest(BaseModel):
    dial_code: str
    subscriber: str


class ProfileResponse(PrincipalResponse):
    dial_code: str | None = None
    subscriber: str | None = None


class CountryResponse(BaseModel):
    label: str
    code: str

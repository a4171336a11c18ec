from __future__ import annotations

from pydantic import Field

from app.schemas.common import EntityModel, PortalModel


class Account(EntityModel):
    id: str
    email: str
    first_name: str
    last_name: str
    company_name: str | None = None
    address1: str | None = None
    city: str | None = None
    state: str | None = None
    postcode: str | None = None
    country: str | None = None
    phone_number: str | None = None


class LoginRequest(PortalModel):
    email: str | None = None
    password: str | None = None


class LoginResponse(PortalModel):
    user: Account
    token: str
    message: str = "Login successful"


class RegisterRequest(PortalModel):
    email: str | None = Field(default=None, max_length=255)
    password: str | None = None
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    company_name: str | None = Field(default=None, max_length=200)
    address1: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=120)
    state: str | None = Field(default=None, max_length=120)
    postcode: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, max_length=2)
    phone_number: str | None = Field(default=None, max_length=40)


class RegisterResponse(PortalModel):
    user_id: str
    message: str = "Registration successful. Please login."


class AccountResponse(PortalModel):
    user: Account

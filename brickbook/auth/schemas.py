"""Pydantic schemas for authentication API.

This module defines the request and response models used in authentication
endpoints. Every dealer account is a single ``User`` row; all customers,
sales and ledger entries hang off its ``user_id``.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
import uuid
from typing import Optional

# --- BASE MODELS (Used by multiple responses) ---

class User(BaseModel):
    """Base user model for responses (excludes sensitive data)."""
    user_id: uuid.UUID
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    created_at: datetime

class UserResponse(BaseModel):
    success: bool
    message: str
    data: User


# --- REGISTER ---

class RegisterInput(BaseModel):
    """Payload for creating a dealer account."""
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None


# --- LOGIN ---

class LoginInput(BaseModel):
    """Payload for user login."""
    email: EmailStr
    password: str

class LoginData(BaseModel):
    """Data returned upon successful login or registration."""
    user_id: uuid.UUID
    email: str
    name: Optional[str] = None
    company: Optional[str] = None
    created_at: datetime
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

class LoginResponse(BaseModel):
    """Response structure for successful login."""
    success: bool
    message: str
    data: LoginData


# --- TOKEN RENEWAL ---

class RenewAccessTokenResponse(BaseModel):
    success: bool
    message: str
    data: dict = {}

# --- LOGOUT ---

class LogoutInput(BaseModel):
    refresh_token: Optional[str] = None

class LogoutResponse(BaseModel):
    success: bool
    message: str
    data: dict = {}

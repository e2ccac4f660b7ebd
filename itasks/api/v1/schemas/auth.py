# itasks/api/v1/schemas/auth.py
from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    """JWT returned by the login endpoints"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Lifetime in seconds")


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1)

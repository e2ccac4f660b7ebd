# itasks/exceptions/auth.py
from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Base authentication error"""
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidCredentialsError(AuthenticationError):
    """Invalid email/password"""
    def __init__(self):
        super().__init__(detail="Incorrect email or password")


class TokenBlacklistedError(AuthenticationError):
    """Token was revoked by logout"""
    def __init__(self):
        super().__init__(detail="Token has been revoked")


class InactiveUserError(HTTPException):
    """User account is deactivated"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )


class UserAlreadyExistsError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )


class InsufficientRoleError(HTTPException):
    """Role-gated endpoint reached by a user without the role"""
    def __init__(self, detail: str = "Forbidden: insufficient role"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

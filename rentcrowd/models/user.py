"""User and authentication payload models."""

from typing import Literal, Optional
from pydantic import Field, model_validator

from rentcrowd.models.base import ApiModel

VerificationType = Literal["email", "phone", "both"]


class User(ApiModel):
    """Authenticated account identity."""
    id: str = Field(..., description="User ID")
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    phone: Optional[str] = Field(None, description="Phone number")
    role: str = Field(..., description="Role: tenant, landlord, agent, admin")
    profile_image: Optional[str] = Field(None, description="Avatar URL")


class UserProfile(ApiModel):
    """Role-specific profile; extra fields depend on the role."""
    user: User


class RegisterData(ApiModel):
    name: str
    email: str
    phone: str
    password: str
    role: str


class LoginCredentials(ApiModel):
    """Email + password, or phone + password."""
    email: Optional[str] = None
    phone: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def _require_identifier(self) -> "LoginCredentials":
        if not self.email and not self.phone:
            raise ValueError("email or phone is required")
        return self


class OtpData(ApiModel):
    otp: str
    user_id: Optional[str] = None
    verification_type: Optional[VerificationType] = None


class ResendOtpData(ApiModel):
    user_id: Optional[str] = None
    verification_type: Optional[VerificationType] = None


class PasswordUpdate(ApiModel):
    current_password: str
    new_password: str


class ForgotPasswordData(ApiModel):
    email: Optional[str] = None
    phone: Optional[str] = None

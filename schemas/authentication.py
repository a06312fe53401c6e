from typing import Optional
from pydantic import BaseModel, EmailStr, Field, model_validator

from core.config import settings
from models.authentication import OtpType
from models.user import UserRole


class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH)
    password_confirmation: str
    role: UserRole = UserRole.DRIVER

    @model_validator(mode="after")
    def check_registration(self):
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        if self.role == UserRole.ADMIN:
            raise ValueError("Role must be driver or expert.")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    device_name: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)
    type: OtpType


class ResendOtpRequest(BaseModel):
    email: EmailStr
    type: OtpType


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH)
    password_confirmation: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class FcmTokenRequest(BaseModel):
    fcm_token: str = Field(..., max_length=500)

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import client_ip
from core.database import get_db
from core.logging import get_logger
from core.security import get_current_active_user, get_current_user
from models.authentication import OtpType
from models.user import User
from repositories.user import UserRepository
from schemas.authentication import (
    FcmTokenRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    VerifyOtpRequest,
)
from schemas.responses import AuthTokenResponse, StandardSuccessResponse
from schemas.user import UserRead
from services import task_queue
from services.authentication_service import (
    create_otp,
    create_user_session,
    delete_otps,
    invalidate_all_sessions,
    invalidate_session,
    verify_otp,
)
from services.helpers import utcnow, verify_password

logger = get_logger(__name__)

router = APIRouter()


async def _issue_otp(db: AsyncSession, user: User, otp_type: OtpType):
    otp = await create_otp(db, user, otp_type)
    task_queue.enqueue_otp_email(user.email, otp, otp_type.value)


async def _start_session(request: Request, db: AsyncSession, user: User) -> str:
    return await create_user_session(
        db,
        user.id,
        user_agent=request.headers.get("User-Agent", ""),
        ip_address=client_ip(request),
    )


@router.post("/register", response_model=AuthTokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: Request, body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    repo = UserRepository(db)
    if await repo.get_by_email(body.email):
        raise HTTPException(status_code=422, detail="The email has already been taken.")
    if body.phone and await repo.get_by_phone(body.phone):
        raise HTTPException(status_code=422, detail="The phone has already been taken.")

    user = await repo.register(body)
    await _issue_otp(db, user, OtpType.EMAIL_VERIFICATION)
    token = await _start_session(request, db, user)
    logger.info("User registered", user_id=user.id, role=user.role.value)

    return {
        "success": True,
        "message": "Registration successful. Please verify your email.",
        "data": UserRead.model_validate(user),
        "token": token,
    }


@router.post("/login", response_model=AuthTokenResponse)
async def login(request: Request, body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await UserRepository(db).get_by_email(body.email)
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("Login failed", email_domain=body.email.split("@")[-1])
        raise HTTPException(status_code=422, detail="The provided credentials are incorrect.")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated. Please contact support.",
        )

    user.last_login_at = utcnow()
    await db.commit()
    token = await _start_session(request, db, user)
    logger.info("User logged in", user_id=user.id)

    return {
        "success": True,
        "message": "Login successful",
        "data": UserRead.model_validate(user),
        "token": token,
    }


@router.post("/forgot-password", response_model=StandardSuccessResponse)
async def forgot_password(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    user = await UserRepository(db).get_by_email(body.email)
    if not user:
        raise HTTPException(status_code=404, detail="We could not find a user with that email address.")

    await _issue_otp(db, user, OtpType.PASSWORD_RESET)
    return {"success": True, "message": "Password reset code sent to your email."}


@router.post("/verify-otp", response_model=StandardSuccessResponse)
async def verify_otp_code(body: VerifyOtpRequest, db: AsyncSession = Depends(get_db)):
    otp_code, msg = await verify_otp(db, body.email.lower(), body.type, body.otp)
    if not otp_code:
        raise HTTPException(status_code=400, detail=msg)

    if body.type == OtpType.EMAIL_VERIFICATION:
        user = await UserRepository(db).get_by_email(body.email)
        if user and not user.email_verified_at:
            user.email_verified_at = utcnow()
            await db.commit()
        await delete_otps(db, body.email.lower(), body.type)
        return {"success": True, "message": "Email verified successfully."}

    return {"success": True, "message": msg}


@router.post("/reset-password", response_model=StandardSuccessResponse)
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    repo = UserRepository(db)
    user = await repo.get_by_email(body.email)
    if not user:
        raise HTTPException(status_code=404, detail="We could not find a user with that email address.")

    otp_code, msg = await verify_otp(db, user.email, OtpType.PASSWORD_RESET, body.otp, allow_verified=True)
    if not otp_code:
        raise HTTPException(status_code=400, detail=msg)

    await repo.set_password(user, body.password)
    await delete_otps(db, user.email, OtpType.PASSWORD_RESET)
    revoked = await invalidate_all_sessions(db, user.id)
    logger.info("Password reset", user_id=user.id, sessions_revoked=revoked)
    return {"success": True, "message": "Password has been reset. Please log in with your new password."}


@router.post("/resend-otp", response_model=StandardSuccessResponse)
async def resend_otp(body: ResendOtpRequest, db: AsyncSession = Depends(get_db)):
    user = await UserRepository(db).get_by_email(body.email)
    if not user:
        raise HTTPException(status_code=404, detail="We could not find a user with that email address.")
    if body.type == OtpType.EMAIL_VERIFICATION and user.email_verified_at:
        raise HTTPException(status_code=400, detail="Email is already verified.")

    await _issue_otp(db, user, body.type)
    return {"success": True, "message": "A new code has been sent to your email."}


@router.get("/me", response_model=StandardSuccessResponse)
async def me(current_user: User = Depends(get_current_user)):
    return {"success": True, "message": "Success", "data": UserRead.model_validate(current_user)}


@router.post("/logout", response_model=StandardSuccessResponse)
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await invalidate_session(db, request.state.session_id)
    logger.info("User logged out", user_id=current_user.id)
    return {"success": True, "message": "Logged out successfully"}


@router.post("/logout-all", response_model=StandardSuccessResponse)
async def logout_all(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    revoked = await invalidate_all_sessions(db, current_user.id)
    logger.info("User logged out everywhere", user_id=current_user.id, sessions_revoked=revoked)
    return {"success": True, "message": "Logged out from all devices"}


@router.put("/update-fcm-token", response_model=StandardSuccessResponse)
async def update_fcm_token(
    body: FcmTokenRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    current_user.fcm_token = body.fcm_token
    await db.commit()
    return {"success": True, "message": "FCM token updated"}

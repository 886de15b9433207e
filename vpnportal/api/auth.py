"""Authentication API endpoints: login, registration, logout, captcha."""
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from vpnportal.api.deps import get_captcha, get_registration_pipeline
from vpnportal.api.schemas import (
    CaptchaChallengeResponse, CaptchaVerifyRequest,
    LoginRequest, LoginResponse, RegisterRequest, RegistrationResponse, UserResponse,
)
from vpnportal.db.database import get_db
from vpnportal.services.auth import SessionAuthenticator, get_bearer_token
from vpnportal.services.captcha import CaptchaStore
from vpnportal.services.errors import Unauthorized
from vpnportal.services.registration import RegistrationPipeline

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    token, expires_at, user = SessionAuthenticator(db).login(req.email, req.password)
    return LoginResponse(token=token, expires_at=expires_at, user=UserResponse.from_user(user))


@router.post("/register", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
def register(
    req: RegisterRequest,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
):
    registration = pipeline.submit(
        email=req.email,
        username=req.username,
        password=req.password,
        invite_token=req.invite_token,
        captcha_id=req.captcha_id,
        captcha_answer=req.captcha_answer,
    )
    return RegistrationResponse.from_registration(registration)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(token: Optional[str] = Depends(get_bearer_token), db: Session = Depends(get_db)):
    if not token:
        raise Unauthorized()
    SessionAuthenticator(db).logout(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===== Captcha =====

@router.get("/captcha/challenge", response_model=CaptchaChallengeResponse)
def captcha_challenge(captcha: CaptchaStore = Depends(get_captcha)):
    challenge = captcha.challenge()
    return CaptchaChallengeResponse(id=challenge.id, question=challenge.question)


@router.post("/captcha/verify")
def captcha_verify(req: CaptchaVerifyRequest, captcha: CaptchaStore = Depends(get_captcha)):
    captcha.verify(req.id, req.answer)
    return {"ok": True}

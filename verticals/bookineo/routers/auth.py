"""Signup, login, remember-me and logout.

Login sets the signed session cookie; remember-me extends it to the long
lifetime and sets the flag cookie; logout clears both.
"""

import logging

from fastapi import APIRouter, Depends, Response

from core.security.sessions import SessionSigner
from patterns.domain_config import BookineoConfig
from verticals.bookineo.auth import (
    AuthContext,
    clear_session,
    get_current_user,
    get_signer,
    issue_session,
)
from verticals.bookineo.config import get_config
from verticals.bookineo.models.schemas import LoginRequest, RememberMeRequest, SignupRequest
from verticals.bookineo.routers.common import ok
from verticals.bookineo.services.users import UserService, get_user_service
from verticals.bookineo.throttling import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/signup", status_code=201, dependencies=[Depends(rate_limit("registration"))])
async def signup(request: SignupRequest, service: UserService = Depends(get_user_service)):
    user = await service.signup(request)
    return ok(user.to_dict(), "Account created")


@router.post("/login", dependencies=[Depends(rate_limit("strict"))])
async def login(
    request: LoginRequest,
    response: Response,
    service: UserService = Depends(get_user_service),
    config: BookineoConfig = Depends(get_config),
    signer: SessionSigner = Depends(get_signer),
):
    user = await service.authenticate(request.email, request.password)
    claims = issue_session(response, user, request.remember_me, config, signer)
    logger.info("User %s logged in (remember_me=%s)", user.id, request.remember_me)
    return ok(
        {
            "user": user.to_dict(),
            "rememberMe": claims.remember_me,
            "expiresAt": claims.expires_at.isoformat(),
        },
        "Logged in",
    )


@router.get("/remember-me")
async def remember_me_status(user: AuthContext = Depends(get_current_user)):
    return ok({"remembered": user.remember_me, "expiresAt": user.expires_at.isoformat()})


@router.post("/remember-me", dependencies=[Depends(rate_limit("moderate"))])
async def set_remember_me(
    request: RememberMeRequest,
    response: Response,
    user: AuthContext = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    config: BookineoConfig = Depends(get_config),
    signer: SessionSigner = Depends(get_signer),
):
    """Re-issue the session with the lifetime matching the flag."""
    account = await service.get_user(user.user_id)
    claims = issue_session(response, account, request.remember, config, signer)
    return ok({"remembered": claims.remember_me, "expiresAt": claims.expires_at.isoformat()})


@router.post("/logout")
async def logout(response: Response, config: BookineoConfig = Depends(get_config)):
    clear_session(response, config)
    return ok(message="Logged out")

"""HTTP routes for sign-in.

The front-end shows the code from POST /qr, polls GET /qr/{qrcode_id} for
the prompt to display, and redirects once the prompt is "success".
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.base import success_response, error_response, ErrorCodes
from api.errors import friendly_json, request_id_of
from auth.exceptions import QRGenerateError, QRRenderError
from auth.messages import QR_EXPIRED
from auth.qr_login import QRLoginService
from auth.service import AuthService
from auth.session import SessionStore
from auth.types import PollState, Session, User
from utils.timezone import to_epoch_millis


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    code: str = Field(..., min_length=1)


class SendCodeRequest(BaseModel):
    email: str = Field(..., min_length=3)
    scene: int = 1


class ProfileUpdateRequest(BaseModel):
    nickname: str | None = Field(default=None, min_length=1, max_length=64)
    avatar_url: str | None = Field(default=None, alias="avatarUrl")

    model_config = {"populate_by_name": True}


def _user_view(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "displayName": user.display_name,
        "email": user.email,
        "avatarUrl": user.avatar_url,
        "createdAt": user.created_at.isoformat(),
    }


def _session_view(session: Session | None) -> dict:
    return {
        "authenticated": session is not None,
        "user": _user_view(session.user if session else None),
    }


def create_auth_router(
    qr_login: QRLoginService,
    auth_service: AuthService,
    store: SessionStore,
) -> APIRouter:
    """Create auth router with injected services."""
    router = APIRouter(tags=["auth"])

    @router.post("/qr")
    def start_qr_login(request: Request):
        """Show a fresh code. Cancels any attempt still being polled."""
        try:
            attempt = qr_login.start()
        except QRGenerateError as e:
            return friendly_json(request, 502, ErrorCodes.QR_GENERATE_FAILED, e)
        except QRRenderError as e:
            return friendly_json(request, 502, ErrorCodes.QR_RENDER_FAILED, e)

        login_session = attempt.login_session
        return success_response(
            {
                "qrcodeId": login_session.qrcode_id,
                "expireAt": to_epoch_millis(login_session.expire_at) if login_session.expire_at else None,
                "imageBase64": login_session.qr_image,
                "state": attempt.state.value,
            },
            request_id=request_id_of(request),
        )

    @router.get("/qr/{qrcode_id}")
    def get_qr_login(request: Request, qrcode_id: str):
        """Current prompt for an attempt."""
        attempt = qr_login.get_attempt(qrcode_id)
        if attempt is None:
            return JSONResponse(
                status_code=404,
                content=error_response(
                    ErrorCodes.QR_NOT_FOUND,
                    QR_EXPIRED.title,
                    description=QR_EXPIRED.description,
                    retry=True,
                    request_id=request_id_of(request),
                ).model_dump(mode="json"),
            )

        view = attempt.view()
        if attempt.state is PollState.DONE_TIMEOUT:
            view["message"] = QR_EXPIRED.description
        return success_response(view, request_id=request_id_of(request))

    @router.delete("/qr")
    def cancel_qr_login(request: Request):
        """Stop polling (dialog closed, page left). Idempotent."""
        qr_login.cancel()
        attempt = qr_login.current
        return success_response(
            {"cancelled": True, "qrcodeId": attempt.qrcode_id if attempt else None},
            request_id=request_id_of(request),
        )

    @router.get("/session")
    def get_session(request: Request):
        return success_response(_session_view(store.get_state()), request_id=request_id_of(request))

    @router.post("/login")
    def login(request: Request, body: LoginRequest):
        session = auth_service.login(body.email, body.password)
        return success_response(_session_view(session), request_id=request_id_of(request))

    @router.post("/register")
    def register(request: Request, body: RegisterRequest):
        session = auth_service.register(body.nickname, body.email, body.password, body.code)
        return success_response(_session_view(session), request_id=request_id_of(request))

    @router.post("/send-code")
    def send_code(request: Request, body: SendCodeRequest):
        auth_service.send_verification_code(body.email, scene=body.scene)
        return success_response({"sent": True}, request_id=request_id_of(request))

    @router.post("/logout")
    def logout(request: Request):
        qr_login.cancel()
        auth_service.logout()
        return success_response({"authenticated": False}, request_id=request_id_of(request))

    @router.post("/profile")
    def update_profile(request: Request, body: ProfileUpdateRequest):
        user = auth_service.update_profile(nickname=body.nickname, avatar_url=body.avatar_url)
        return success_response({"user": _user_view(user)}, request_id=request_id_of(request))

    return router

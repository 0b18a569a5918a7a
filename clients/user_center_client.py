"""
User center client for QR sign-in and account endpoints.

Every endpoint answers with the Java backend's HttpResult envelope
``{code, data, message}``; ``code`` 0 or 200 means success. Each call is
bounded by a client-side timeout that surfaces as UserCenterTimeoutError,
distinct from a failure the server reported.
"""

import json
import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

SUCCESS_CODES = (0, 200)


class UserCenterError(Exception):
    """Raised when a user center request fails (server-reported or transport)."""

    def __init__(self, message: str, code: int | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class UserCenterTimeoutError(UserCenterError):
    """Request did not complete within its client-side timeout."""

    def __init__(self, message: str = "请求超时，请检查网络连接"):
        super().__init__(message)


class UserCenterConnectionError(UserCenterError):
    """Network unreachable or the response was not JSON."""


class MalformedResponseError(UserCenterError):
    """Success envelope without a field the caller needs."""


class UserCenterClient:
    """Thin requests wrapper over the user center's front-end API."""

    GENERATE_QR_PATH = "/front/auth/qr/generate"
    WXACODE_PATH = "/front/auth/qr/wxacode"
    CHECK_QR_PATH = "/front/auth/qr/check"
    EMAIL_LOGIN_PATH = "/front/auth/email/login"
    EMAIL_REGISTER_PATH = "/front/auth/email/register"
    EMAIL_SEND_CODE_PATH = "/front/auth/email/sendCode"
    USER_UPDATE_PATH = "/front/users/update"

    def __init__(self, base_url: str, session: requests.Session | None = None):
        """
        Args:
            base_url: User center origin, e.g. https://almond.ravey.site
            session: Optional requests.Session (connection pooling, tests)

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError("base_url is required")

        self.base_url = base_url.rstrip("/")
        self._http = session or requests.Session()

    def _post(
        self,
        path: str,
        payload: dict,
        timeout: float,
        token: str | None = None,
        fallback_message: str = "服务错误",
    ) -> Any:
        """
        POST JSON and unwrap the HttpResult envelope.

        Returns:
            The envelope's ``data`` member.

        Raises:
            UserCenterTimeoutError: Timeout elapsed
            UserCenterConnectionError: Transport failure or non-JSON body
            UserCenterError: HTTP error status or non-success ``code``
        """
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._http.post(url, json=payload, headers=headers, timeout=timeout)
        except requests.exceptions.Timeout:
            logger.error(f"User center request timed out after {timeout}s: {path}")
            raise UserCenterTimeoutError()
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"User center connection failed: {path}: {e}")
            raise UserCenterConnectionError(f"Connection failed: {e}")

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            logger.error(f"User center returned invalid JSON ({response.status_code}): {path}")
            raise UserCenterConnectionError(f"HTTP error! status: {response.status_code}")

        if not isinstance(body, dict):
            raise MalformedResponseError(fallback_message)

        if not response.ok:
            message = body.get("message") or body.get("detail") or f"HTTP error! status: {response.status_code}"
            logger.error(f"User center HTTP {response.status_code} on {path}: {message}")
            raise UserCenterError(message, code=body.get("code"))

        code = body.get("code")
        if code not in SUCCESS_CODES:
            message = body.get("message") or fallback_message
            logger.error(f"User center rejected {path} (code={code}): {message}")
            raise UserCenterError(message, code=code)

        return body.get("data")

    # === QR sign-in ===

    def generate_qr(self, app_id: str, scene: str | None = None, timeout: float = 8) -> dict:
        """
        Start a QR login session.

        Returns:
            ``{qrcodeId, expireAt, qrContent}``

        Raises:
            MalformedResponseError: no qrcodeId, or an expireAt that is not
                epoch milliseconds
        """
        data = self._post(
            self.GENERATE_QR_PATH,
            {"appId": app_id, "scene": scene},
            timeout=timeout,
            fallback_message="生成二维码失败",
        )
        if not isinstance(data, dict) or not data.get("qrcodeId"):
            raise MalformedResponseError("生成二维码失败")
        expire_at = data.get("expireAt")
        if expire_at is not None and (
            isinstance(expire_at, bool) or not isinstance(expire_at, (int, float))
        ):
            logger.error(f"generate returned non-numeric expireAt: {expire_at!r}")
            raise MalformedResponseError("生成二维码失败")
        return data

    def render_wxacode(
        self,
        app_id: str,
        qrcode_id: str,
        page: str = "pages/auth/login/login",
        width: int = 430,
        env_version: str = "release",
        timeout: float = 10,
    ) -> dict:
        """
        Render the scannable mini-program code for a QR session.

        Returns:
            ``{qrcodeId, expireAt, imageBase64}``
        """
        data = self._post(
            self.WXACODE_PATH,
            {
                "appId": app_id,
                "qrcodeId": qrcode_id,
                "page": page,
                "width": width,
                "envVersion": env_version,
                "checkPath": True,
            },
            timeout=timeout,
            fallback_message="生成小程序码失败",
        )
        if not isinstance(data, dict) or not data.get("imageBase64"):
            raise MalformedResponseError("生成小程序码失败")
        return data

    def check_qr(self, qrcode_id: str, timeout: float = 8) -> dict:
        """
        Query a QR session's status.

        Returns:
            ``{status, token?, userInfo?}``; status 0 pending, 3 scanned,
            2 confirmed.
        """
        data = self._post(
            self.CHECK_QR_PATH,
            {"qrcodeId": qrcode_id},
            timeout=timeout,
            fallback_message="查询二维码状态失败",
        )
        if not isinstance(data, dict) or "status" not in data:
            raise MalformedResponseError("查询二维码状态失败")
        return data

    # === E-mail accounts ===

    def email_login(self, email: str, password: str, timeout: float = 8) -> dict:
        """Password login. Returns ``{token, userInfo, refreshToken?}``."""
        return self._post(
            self.EMAIL_LOGIN_PATH,
            {"email": email, "password": password, "loginType": 1},
            timeout=timeout,
            fallback_message="登录失败",
        )

    def email_register(
        self,
        nickname: str,
        email: str,
        password: str,
        code: str,
        timeout: float = 8,
    ) -> dict:
        """Register with an e-mailed verification code. Same response shape as login."""
        return self._post(
            self.EMAIL_REGISTER_PATH,
            {"nickname": nickname, "email": email, "password": password, "code": code},
            timeout=timeout,
            fallback_message="注册失败",
        )

    def send_email_code(self, email: str, scene: int = 1, timeout: float = 8) -> None:
        """Send a verification code. Scene 1 is registration."""
        self._post(
            self.EMAIL_SEND_CODE_PATH,
            {"email": email, "scene": scene},
            timeout=timeout,
            fallback_message="发送验证码失败",
        )
        logger.info(f"Verification code requested for {email}")

    def update_user(self, token: str, payload: dict, timeout: float = 8) -> dict:
        """Update the signed-in user's profile. Returns the updated user record."""
        data = self._post(
            self.USER_UPDATE_PATH,
            payload,
            timeout=timeout,
            token=token,
            fallback_message="更新失败",
        )
        if not isinstance(data, dict):
            raise MalformedResponseError("更新失败")
        return data

    def close(self) -> None:
        self._http.close()

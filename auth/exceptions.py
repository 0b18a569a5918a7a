"""Typed exceptions for sign-in failures."""


class AuthError(Exception):
    """Base class for authentication errors."""


class QRGenerateError(AuthError):
    """
    Could not generate a QR login session.

    The underlying UserCenterError is chained as __cause__. No session
    exists yet, so nothing is polled; the user has to retry.
    """

    def __init__(self, message: str = "生成二维码失败"):
        super().__init__(message)


class QRRenderError(AuthError):
    """Session was generated but its scannable image could not be rendered."""

    def __init__(self, message: str = "生成小程序码失败"):
        super().__init__(message)


class AdoptionError(AuthError):
    """
    Credential could not become a Session (missing user id or token).

    The previously stored Session, if any, is left untouched.
    """


class NotAuthenticatedError(AuthError):
    """Operation needs a signed-in user."""

    def __init__(self, message: str = "未登录"):
        super().__init__(message)

"""User-facing messages for sign-in failures.

The user center reports failures as Chinese sentences in the envelope's
``message``. Known ones map to a short title plus guidance; transport
problems map by exception type; anything else falls back to a generic
prompt that keeps the original message.
"""

from dataclasses import dataclass

from auth.exceptions import QRGenerateError, QRRenderError
from clients.user_center_client import UserCenterConnectionError, UserCenterTimeoutError


@dataclass(frozen=True)
class FriendlyError:
    """Inline error prompt."""

    title: str
    description: str


@dataclass(frozen=True)
class RetrySuggestion:
    should_retry: bool
    suggestion: str | None = None


BUSINESS_ERRORS: dict[str, FriendlyError] = {
    "该邮箱已注册": FriendlyError("邮箱已被注册", "该邮箱地址已经注册过账户，请直接登录或找回密码"),
    "用户不存在": FriendlyError("账户不存在", "请输入正确的邮箱地址，或先注册新账户"),
    "密码错误": FriendlyError("密码错误", "请输入正确的密码，或找回密码"),
    "未登录": FriendlyError("请先登录", "您需要登录后才能继续使用"),
    "不支持的登录方式": FriendlyError("登录方式不支持", "请选择支持的登录方式"),
    "验证码错误或已过期": FriendlyError("验证码错误", "验证码输入错误或已过期，请重新获取验证码"),
    "邮箱不能为空": FriendlyError("邮箱不能为空", "请输入有效的邮箱地址"),
    "二维码不存在": FriendlyError("二维码失效", "二维码已失效，请刷新页面重新生成"),
    "二维码已过期": FriendlyError("二维码已过期", "二维码已过期，请刷新页面重新生成"),
    "邮件发送失败": FriendlyError("邮件发送失败", "邮件发送失败，请稍后重试或检查邮箱地址是否正确"),
    "HTTP访问超时": FriendlyError("网络连接超时", "网络连接超时，请检查网络后重试"),
    "HTTP访问出错": FriendlyError("网络访问出错", "网络访问出错，请检查网络连接"),
}

TIMEOUT_ERROR = FriendlyError("请求超时", "请求超时，请稍后重试")
NETWORK_ERROR = FriendlyError("网络连接失败", "无法连接到服务器，请检查网络连接")
QR_EXPIRED = FriendlyError("二维码已过期", "二维码已过期，请点击刷新重新生成")

_RETRYABLE_TITLES = {
    TIMEOUT_ERROR.title,
    NETWORK_ERROR.title,
    "网络连接超时",
    "网络访问出错",
}


def friendly_error(error: BaseException | str | None) -> FriendlyError:
    """Map an exception (or raw message) to an inline prompt."""
    cause = error.__cause__ if isinstance(error, (QRGenerateError, QRRenderError)) else None

    for candidate in (error, cause):
        if isinstance(candidate, UserCenterTimeoutError):
            return TIMEOUT_ERROR
        if isinstance(candidate, UserCenterConnectionError):
            return NETWORK_ERROR

    message = str(error) if error is not None else ""

    if message in BUSINESS_ERRORS:
        return BUSINESS_ERRORS[message]

    for key, friendly in BUSINESS_ERRORS.items():
        if key in message:
            return friendly

    return FriendlyError("操作失败", message or "操作失败，请稍后重试")


def retry_suggestion(error: BaseException | str | None) -> RetrySuggestion:
    """Network trouble is worth retrying; business rejections are not."""
    friendly = friendly_error(error)
    if friendly.title in _RETRYABLE_TITLES:
        return RetrySuggestion(True, "建议检查网络后重试")
    if friendly.title == "邮件发送失败":
        return RetrySuggestion(True, "建议稍后重试")
    if friendly.title in ("二维码已过期", "二维码失效"):
        return RetrySuggestion(True, "请刷新二维码")
    return RetrySuggestion(False)

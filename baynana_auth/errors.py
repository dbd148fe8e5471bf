"""
Error kinds raised by the auth workflows and the user-facing messages they map to.

Only the fixed message of an error kind ever reaches a client. Collaborator
details (store errors, SDK errors, tracebacks) stay in the server log.
"""
from typing import Optional

DEFAULT_LOCALE = "ar"

REGISTER = "register"
LOGIN = "login"
CHECK_USERNAME = "check_username"

MESSAGES = {
    "ar": {
        "register.missing_fields": "يرجى ملء جميع الحقول",
        "login.missing_fields": "يرجى إدخال اسم المستخدم وكلمة المرور",
        "check_username.missing_fields": "اسم المستخدم مطلوب",
        "password_too_short": "كلمة المرور قصيرة جدًا",
        "password_too_long": "كلمة المرور طويلة جدًا",
        "invalid_username": "اسم المستخدم غير صالح",
        "username_taken": "اسم المستخدم غير متوفر",
        "user_not_found": "اسم المستخدم غير موجود",
        "invalid_credentials": "كلمة المرور غير صحيحة",
        "timeout": "انتهت مهلة الطلب، يرجى المحاولة مرة أخرى",
        "register.internal": "حدث خطأ أثناء إنشاء الحساب",
        "login.internal": "حدث خطأ أثناء تسجيل الدخول",
        "check_username.internal": "حدث خطأ أثناء التحقق من اسم المستخدم",
        "internal": "حدث خطأ غير متوقع",
    },
    "en": {
        "register.missing_fields": "Please fill in all fields",
        "login.missing_fields": "Please enter your username and password",
        "check_username.missing_fields": "Username is required",
        "password_too_short": "Password is too short",
        "password_too_long": "Password is too long",
        "invalid_username": "Username is not valid",
        "username_taken": "Username is not available",
        "user_not_found": "Username does not exist",
        "invalid_credentials": "Incorrect password",
        "timeout": "The request timed out, please try again",
        "register.internal": "An error occurred while creating the account",
        "login.internal": "An error occurred while logging in",
        "check_username.internal": "An error occurred while checking the username",
        "internal": "An unexpected error occurred",
    },
}


def translate(key: str, locale: str = DEFAULT_LOCALE) -> str:
    catalog = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    return catalog.get(key) or MESSAGES[DEFAULT_LOCALE][key]


class AuthError(Exception):
    """Base class for every error the HTTP layer knows how to render."""

    status_code = 500
    key = "internal"

    def __init__(self, operation: Optional[str] = None, reason: Optional[str] = None):
        self.operation = operation
        self.reason = reason
        super().__init__(self.message_key)

    @property
    def message_key(self) -> str:
        return self.reason or self.key

    def message(self, locale: str = DEFAULT_LOCALE) -> str:
        return translate(self.message_key, locale)


class ValidationError(AuthError):
    """Missing, empty or policy-violating input. Raised before any store access."""

    status_code = 400

    @property
    def message_key(self) -> str:
        if self.reason:
            return self.reason
        return f"{self.operation}.missing_fields"


class UsernameTaken(AuthError):
    status_code = 400
    key = "username_taken"


class UserNotFound(AuthError):
    status_code = 400
    key = "user_not_found"


class InvalidCredentials(AuthError):
    status_code = 400
    key = "invalid_credentials"


class Timeout(AuthError):
    """A store or issuer round-trip exceeded its deadline."""

    status_code = 504
    key = "timeout"


class InternalError(AuthError):
    status_code = 500

    @property
    def message_key(self) -> str:
        if self.operation:
            return f"{self.operation}.internal"
        return self.key


class StoreTimeout(Exception):
    """Raised by directory implementations when a round-trip hits its deadline."""

from detailbook.core.config import settings
from detailbook.core.security import create_access_token, verify_password


def make_admin_token() -> tuple[str, int]:
    access = create_access_token(settings.admin_email.lower())
    expires_in = settings.access_token_expire_minutes * 60
    return access, expires_in


def login_admin(email: str, password: str) -> tuple[str, int] | None:
    """Check credentials against the configured admin. Returns (token, expires_in) or None."""
    if not settings.admin_enabled:
        return None
    if email.strip().lower() != settings.admin_email.strip().lower():
        return None
    if not verify_password(password, settings.admin_password_hash):
        return None
    return make_admin_token()


def is_admin(subject: str | None) -> bool:
    return bool(subject and settings.admin_enabled and subject.lower() == settings.admin_email.strip().lower())

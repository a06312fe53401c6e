import hashlib
import secrets
from datetime import datetime
from pytz import utc


def generate_otp(length=6):
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode()).hexdigest()


def generate_access_token() -> str:
    return secrets.token_urlsafe(40)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite returns them without tzinfo)."""
    if value.tzinfo is None:
        return utc.localize(value)
    return value.astimezone(utc)


def is_expired(expires_at) -> bool:
    return datetime.now(tz=utc) > as_utc(expires_at)


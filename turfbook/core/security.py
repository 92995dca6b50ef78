from jose import JWTError, jwt

from turfbook.core.config import settings


def decode_access_token(token: str) -> str | None:
    """Subject of a valid access token, or None if it is expired, forged or not an access token."""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
        if payload.get("type") != "access":
            return None
        sub = payload.get("sub")
        return str(sub) if sub else None
    except JWTError:
        return None

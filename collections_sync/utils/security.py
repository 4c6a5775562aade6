import hashlib
import hmac
import re
import time
from typing import Callable, Optional, Union

from ..errors import AuthError
from .logger import warn

TIMESTAMP_HEADER = "x-sc-timestamp"
SIGNATURE_HEADER = "x-sc-signature"
DEFAULT_WINDOW_SEC = 300

_DIGITS = re.compile(r"-?[0-9]+")

Body = Union[bytes, str]


def _as_bytes(value: Body) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def sign(secret: str, timestamp: int | str, body: Body) -> str:
    """HMAC-SHA256 over ``"<timestamp>.<body>"``, lowercase hex."""
    message = f"{timestamp}.".encode("utf-8") + _as_bytes(body)
    return hmac.new(_as_bytes(secret), message, hashlib.sha256).hexdigest()


def verify(secret: str, timestamp: int | str, body: Body, candidate: Optional[str]) -> bool:
    if not secret or not candidate:
        return False
    expected = sign(secret, timestamp, body).encode("ascii")
    return hmac.compare_digest(expected, _as_bytes(candidate))


def signed_headers(secret: str, body: Body, now: Optional[float] = None) -> dict:
    ts = int(time.time() if now is None else now)
    return {
        "Content-Type": "application/json",
        TIMESTAMP_HEADER: str(ts),
        SIGNATURE_HEADER: sign(secret, ts, body),
    }


# =========================================================
# Credential gate
# ---------------------------------------------------------
# Each operation declares one of these; authorize() raises AuthError or returns None.
# =========================================================

class AdministrativeToken:
    """Static bearer token shared with trusted backend callers."""

    name = "admin"
    scheme = "Bearer "

    def __init__(self, secret: str):
        self._secret = secret or ""

    def authorize(self, req) -> None:
        if not self._secret:
            warn("[auth] admin token not configured, rejecting request")
            raise AuthError("unauthorized")
        header = req.headers.get("Authorization", "")
        if not header.startswith(self.scheme):
            raise AuthError("unauthorized")
        token = header[len(self.scheme):]
        if not hmac.compare_digest(_as_bytes(token), _as_bytes(self._secret)):
            raise AuthError("unauthorized")


class TimestampedSignature:
    """Signed runtime calls from the CMS: x-sc-timestamp + x-sc-signature over the raw body."""

    name = "runtime"

    def __init__(self, secret: str, window: int = DEFAULT_WINDOW_SEC, clock: Callable[[], float] = time.time):
        self._secret = secret or ""
        self.window = window
        self._clock = clock

    def authorize(self, req) -> None:
        if not self._secret:
            warn("[auth] CMS HMAC secret not configured, rejecting request")
            raise AuthError("unauthorized")

        ts = req.headers.get(TIMESTAMP_HEADER)
        sig = req.headers.get(SIGNATURE_HEADER)
        if not ts or not sig:
            raise AuthError("missing_signature")

        ts = ts.strip()
        if not _DIGITS.fullmatch(ts) or abs(int(self._clock()) - int(ts)) > self.window:
            raise AuthError("stale_signature")

        # Raw bytes as received; re-serialized JSON would not match the sender's signature.
        raw = req.get_data(cache=True)
        if not verify(self._secret, ts, raw, sig):
            raise AuthError("bad_signature")

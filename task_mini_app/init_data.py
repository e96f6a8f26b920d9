"""Telegram Mini App initData HMAC-SHA256 verification.

Turns the untrusted initData string the Telegram WebApp SDK hands to the
Mini App into a verified TelegramUser. Pure functions, no I/O, no state:
the bot token is always passed in by the caller.

Reference: https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
"""

import hashlib
import hmac
import json
import math
import time
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl, urlencode


# Telegram user ids are int64
MAX_USER_ID = 2**63 - 1
AUTH_DATE_CLOCK_SKEW = 60


class ErrorKind(str, Enum):
    EMPTY_INITDATA = "EMPTY_INITDATA"
    BAD_INITDATA_FORMAT = "BAD_INITDATA_FORMAT"
    NO_HASH = "NO_HASH"
    BAD_HASH = "BAD_HASH"
    NO_USER_IN_INITDATA = "NO_USER_IN_INITDATA"
    BAD_USER_JSON = "BAD_USER_JSON"
    NO_USER_ID = "NO_USER_ID"


class KeyScheme(str, Enum):
    """How the HMAC key is derived from the bot token.

    SHA256:  key = SHA256(bot_token)
    WEB_APP: key = HMAC-SHA256("WebAppData", bot_token), as signed by
             the Telegram WebApp clients.
    """

    SHA256 = "sha256"
    WEB_APP = "webapp"


@dataclass(frozen=True)
class TelegramUser:
    id: int
    first_name: str | None = None
    username: str | None = None

    def as_dict(self) -> dict:
        d = {"id": self.id}
        if self.first_name is not None:
            d["first_name"] = self.first_name
        if self.username is not None:
            d["username"] = self.username
        return d


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    user: TelegramUser | None = None
    auth_date: str | None = None
    reason: ErrorKind | None = None

    @classmethod
    def accepted(cls, user: TelegramUser, auth_date: str | None) -> "VerificationResult":
        return cls(ok=True, user=user, auth_date=auth_date)

    @classmethod
    def rejected(cls, reason: ErrorKind) -> "VerificationResult":
        return cls(ok=False, reason=reason)


def verify_init_data(
    init_data: str, bot_token: str, scheme: KeyScheme = KeyScheme.SHA256,
) -> VerificationResult:
    """Verify Telegram initData and extract the signed user.

    Never raises for malformed input: every rejection comes back as a
    VerificationResult with a reason. auth_date is passed through as-is,
    freshness is the caller's decision (see is_fresh).
    """
    if not isinstance(init_data, str) or not init_data:
        return VerificationResult.rejected(ErrorKind.EMPTY_INITDATA)

    try:
        fields = parse_init_data(init_data)
    except ValueError:
        return VerificationResult.rejected(ErrorKind.BAD_INITDATA_FORMAT)

    received_hash = fields.get("hash", "")
    if not received_hash:
        return VerificationResult.rejected(ErrorKind.NO_HASH)

    data_check_string = build_data_check_string(fields)
    expected_hash = compute_hash(bot_token, data_check_string, scheme)

    # Compare as bytes: compare_digest rejects non-ASCII str
    if not hmac.compare_digest(expected_hash.encode(), received_hash.encode()):
        return VerificationResult.rejected(ErrorKind.BAD_HASH)

    user_json = fields.get("user", "")
    if not user_json:
        return VerificationResult.rejected(ErrorKind.NO_USER_IN_INITDATA)

    try:
        raw_user = json.loads(user_json)
    except (ValueError, RecursionError):
        return VerificationResult.rejected(ErrorKind.BAD_USER_JSON)

    user = _user_from_json(raw_user)
    if user is None:
        return VerificationResult.rejected(ErrorKind.NO_USER_ID)

    return VerificationResult.accepted(user, fields.get("auth_date"))


def parse_init_data(init_data: str) -> dict[str, str]:
    """Parse the initData query string into a flat dict (last value wins).

    Raises ValueError on pairs without '=', on undecodable escapes, or
    on strings that are not encodable as UTF-8 (lone surrogates).
    """
    init_data.encode("utf-8")
    # Strict: a bare "dev" or an empty pair is a format error, not a missing hash
    pairs = parse_qsl(
        init_data, keep_blank_values=True, strict_parsing=True, errors="strict",
    )
    return dict(pairs)


def build_data_check_string(fields: dict[str, str]) -> str:
    """Build the sorted newline-separated data-check-string, skipping hash."""
    lines = sorted(f"{k}={v}" for k, v in fields.items() if k != "hash")
    return "\n".join(lines)


def derive_secret_key(bot_token: str, scheme: KeyScheme = KeyScheme.SHA256) -> bytes:
    if scheme == KeyScheme.WEB_APP:
        return hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    return hashlib.sha256(bot_token.encode()).digest()


def compute_hash(
    bot_token: str, data_check_string: str, scheme: KeyScheme = KeyScheme.SHA256,
) -> str:
    """Compute the lowercase hex HMAC-SHA256 of the data-check-string."""
    secret_key = derive_secret_key(bot_token, scheme)
    return hmac.new(
        secret_key, data_check_string.encode(), hashlib.sha256,
    ).hexdigest()


def sign_init_data(
    fields: dict[str, str], bot_token: str, scheme: KeyScheme = KeyScheme.SHA256,
) -> str:
    """Return a urlencoded initData string carrying a valid hash for fields."""
    params = {k: v for k, v in fields.items() if k != "hash"}
    params["hash"] = compute_hash(bot_token, build_data_check_string(params), scheme)
    return urlencode(params)


def is_fresh(auth_date: str | None, max_age_seconds: int, now: float | None = None) -> bool:
    """Check auth_date against a max age. A max age <= 0 disables the check.

    Dates more than AUTH_DATE_CLOCK_SKEW seconds in the future are stale too.
    """
    if max_age_seconds <= 0:
        return True
    if not auth_date:
        return False
    try:
        ts = int(auth_date)
    except ValueError:
        return False
    if now is None:
        now = time.time()
    if ts > now + AUTH_DATE_CLOCK_SKEW:
        return False
    return now - ts <= max_age_seconds


def _user_from_json(raw_user) -> TelegramUser | None:
    """Build a TelegramUser from decoded JSON, or None if the id is unusable."""
    if not isinstance(raw_user, dict):
        return None

    user_id = raw_user.get("id")
    # bool is an int subclass, but true is not an id
    if isinstance(user_id, bool):
        return None
    if isinstance(user_id, float):
        if not math.isfinite(user_id) or not user_id.is_integer():
            return None
        user_id = int(user_id)
    if not isinstance(user_id, int) or not 0 < user_id <= MAX_USER_ID:
        return None

    first_name = raw_user.get("first_name")
    username = raw_user.get("username")
    return TelegramUser(
        id=user_id,
        first_name=first_name if isinstance(first_name, str) else None,
        username=username if isinstance(username, str) else None,
    )

from dataclasses import dataclass
from pathlib import Path

from .init_data import KeyScheme


RECIPES_PATH_MARKER = "/recipes"


@dataclass
class Config:
    telegram_token: str
    session_secret: str
    db_path: Path
    recipes_telegram_token: str = ""
    key_scheme: KeyScheme = KeyScheme.SHA256
    init_data_max_age: int = 0
    webapp_url: str = ""
    recipes_webapp_url: str = ""
    notify_chat_id: int | None = None
    session_ttl_days: int = 30
    cookie_secure: bool = False
    api_port: int = 8080
    cors_origin: str = "*"
    max_body_bytes: int = 65536
    dev_local_auth: bool = False
    dev_tg_id: int = 999999


def _parse_int(section, key: str, default: int, minimum: int = 0) -> int:
    """Read an integer option, rejecting values below minimum."""
    raw = section.get(key, "").strip() if section is not None else ""
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _parse_bool(section, key: str, default: bool = False) -> bool:
    if section is None or key not in section:
        return default
    try:
        return section.getboolean(key)
    except ValueError:
        raise ValueError(f"{key} must be a boolean") from None


def _parse_key_scheme(raw: str) -> KeyScheme:
    raw = raw.strip().lower()
    if not raw:
        return KeyScheme.SHA256
    try:
        return KeyScheme(raw)
    except ValueError:
        choices = ", ".join(s.value for s in KeyScheme)
        raise ValueError(f"key_scheme must be one of: {choices}") from None


def _section(config, name: str):
    return config[name] if config.has_section(name) else None


def load_config(config) -> Config:
    """Build a Config from a parsed configparser object."""
    telegram = config["TELEGRAM"]
    telegram_token = telegram["bot_token"].strip()
    if not telegram_token:
        raise ValueError("TELEGRAM.bot_token must not be empty")

    notify = telegram.get("notify_chat_id", "").strip()
    notify_chat_id = int(notify) if notify else None

    session = _section(config, "SESSION")
    session_secret = session.get("secret", "").strip() if session is not None else ""

    server = _section(config, "SERVER")
    database = _section(config, "DATABASE")
    dev = _section(config, "DEV")

    db_path = Path("mini_app.sqlite3")
    if database is not None and database.get("path", "").strip():
        db_path = Path(database["path"].strip())

    return Config(
        telegram_token=telegram_token,
        session_secret=session_secret,
        db_path=db_path,
        recipes_telegram_token=telegram.get("recipes_bot_token", "").strip(),
        key_scheme=_parse_key_scheme(telegram.get("key_scheme", "")),
        init_data_max_age=_parse_int(telegram, "init_data_max_age", 0),
        webapp_url=telegram.get("webapp_url", "").strip(),
        recipes_webapp_url=telegram.get("recipes_webapp_url", "").strip(),
        notify_chat_id=notify_chat_id,
        session_ttl_days=_parse_int(session, "ttl_days", 30, minimum=1),
        cookie_secure=_parse_bool(session, "cookie_secure"),
        api_port=_parse_int(server, "api_port", 8080),
        cors_origin=(server.get("cors_origin", "").strip() if server is not None else "") or "*",
        max_body_bytes=_parse_int(server, "max_body_bytes", 65536, minimum=1024),
        dev_local_auth=_parse_bool(dev, "local_auth"),
        dev_tg_id=_parse_int(dev, "tg_id", 999999, minimum=1),
    )


def is_recipes_path(path: str) -> bool:
    return RECIPES_PATH_MARKER in path


def bot_token_for_path(config: Config, path: str) -> str:
    """Pick the bot whose Mini App the request came from.

    Pages under /recipes are opened from the recipes bot, everything else
    from the main bot. Returns "" if the chosen bot has no token.
    """
    if is_recipes_path(path):
        return config.recipes_telegram_token
    return config.telegram_token

"""HTTP API for the Telegram Mini App.

Exchanges verified Telegram initData for a session cookie and exposes the
current session's user. Uses aiohttp.

Authentication is via Telegram initData HMAC verification, then a signed
session cookie for every later request.
"""

import asyncio
import json
import sqlite3
import time

from aiohttp import web

from .config import Config, bot_token_for_path, is_recipes_path
from .init_data import is_fresh, verify_init_data
from .session import (
    SESSION_COOKIE, SessionConfigError, clear_session_cookie,
    issue_session_token, read_session_token, set_session_cookie,
)
from .users import User, UserStore


DEV_USERNAME = "local_dev"
DEV_FIRST_NAME = "Local"


def _fail(reason: str, status: int) -> web.Response:
    return web.json_response({"ok": False, "reason": reason}, status=status)


def _start_session(config: Config, user: User, body: dict) -> web.Response:
    """Build the success response carrying a fresh session cookie."""
    try:
        token = issue_session_token(user.id, config.session_secret, config.session_ttl_days)
    except SessionConfigError:
        print("[Auth] session secret is not configured")
        return _fail("NO_SESSION_SECRET", 500)

    response = web.json_response(body)
    set_session_cookie(response, token, config.cookie_secure, config.session_ttl_days)
    return response


async def _upsert_user(store: UserStore, tg_id: int, username: str | None, first_name: str | None) -> User | None:
    try:
        return await asyncio.to_thread(
            store.upsert_telegram_user, tg_id, username=username, first_name=first_name,
        )
    except (sqlite3.Error, OverflowError) as e:
        print(f"[DB] user upsert failed: {e}")
        return None


async def _read_json_body(request: web.Request) -> dict | None:
    """Return the JSON body as a dict ({} for non-object JSON), None if unparsable."""
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, RecursionError):
        return None
    return body if isinstance(body, dict) else {}


async def handle_auth(request: web.Request) -> web.Response:
    """POST /api/auth — verify initData and start a session.

    Body: {"initData": "<raw initData>", "path": "<page path>"}
    """
    config: Config = request.app["config"]
    store: UserStore = request.app["user_store"]

    if config.dev_local_auth:
        user = await _upsert_user(store, config.dev_tg_id, DEV_USERNAME, DEV_FIRST_NAME)
        if user is None:
            return _fail("DB_ERROR", 500)
        print(f"[Auth] dev login as tg_id={config.dev_tg_id}")
        return _start_session(config, user, {"ok": True, "dev": True})

    body = await _read_json_body(request)
    if body is None:
        return _fail("BAD_JSON", 400)

    init_data = body.get("initData", "")
    path = str(body.get("path") or "") or request.headers.get("Referer", "")

    bot_token = bot_token_for_path(config, path)
    if not bot_token:
        print("[Auth] no bot token configured for this Mini App")
        return _fail("NO_BOT_TOKEN", 500)

    result = verify_init_data(init_data, bot_token, config.key_scheme)
    if not result.ok:
        print(f"[Auth] rejected: {result.reason.value}")
        return _fail(result.reason.value, 401)

    if not is_fresh(result.auth_date, config.init_data_max_age):
        print(f"[Auth] rejected: EXPIRED_INITDATA (tg_id={result.user.id})")
        return _fail("EXPIRED_INITDATA", 401)

    tg_user = result.user
    user = await _upsert_user(store, tg_user.id, tg_user.username, tg_user.first_name)
    if user is None:
        return _fail("DB_ERROR", 500)

    response = _start_session(config, user, {"ok": True})
    if response.status == 200:
        response.headers["X-Bot-Variant"] = "B" if is_recipes_path(path) else "A"
        print(f"[Auth] session started for tg_id={tg_user.id}")
    return response


async def handle_logout(request: web.Request) -> web.Response:
    """POST /api/logout — drop the session cookie."""
    response = web.json_response({"ok": True})
    clear_session_cookie(response)
    return response


async def handle_me(request: web.Request) -> web.Response:
    """GET /api/me — return the user behind the session cookie."""
    config: Config = request.app["config"]
    store: UserStore = request.app["user_store"]

    try:
        uid = read_session_token(request.cookies.get(SESSION_COOKIE), config.session_secret)
    except SessionConfigError:
        return _fail("NO_SESSION_SECRET", 500)
    if uid is None:
        return _fail("NO_SESSION", 401)

    user = await asyncio.to_thread(store.get, uid)
    if user is None:
        return _fail("NO_USER", 401)
    return web.json_response({"ok": True, "user": user.as_profile()})


async def handle_health(request: web.Request) -> web.Response:
    """GET /api/health — simple health check, no auth required."""
    return web.json_response({"status": "ok", "time": int(time.time())})


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Add CORS headers for the Mini App frontend."""
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        response = await handler(request)

    allowed_origin = request.app.get("cors_origin", "*")
    response.headers["Access-Control-Allow-Origin"] = allowed_origin
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    # Browsers refuse credentialed requests against a wildcard origin
    if allowed_origin != "*":
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


@web.middleware
async def logging_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Log all incoming requests."""
    start = time.time()
    try:
        response = await handler(request)
        elapsed = (time.time() - start) * 1000
        print(f"[API] {request.method} {request.path} → {response.status} ({elapsed:.0f}ms)")
        return response
    except web.HTTPException as e:
        elapsed = (time.time() - start) * 1000
        print(f"[API] {request.method} {request.path} → {e.status} ({elapsed:.0f}ms)")
        raise
    except Exception as e:
        elapsed = (time.time() - start) * 1000
        print(f"[API] {request.method} {request.path} → ERROR: {e} ({elapsed:.0f}ms)")
        raise


def create_web_app(config: Config, user_store: UserStore) -> web.Application:
    """Create and configure the aiohttp web application."""
    app = web.Application(
        middlewares=[logging_middleware, cors_middleware],
        client_max_size=config.max_body_bytes,
    )
    app["config"] = config
    app["user_store"] = user_store
    app["cors_origin"] = config.cors_origin

    app.router.add_get("/api/health", handle_health)
    app.router.add_post("/api/auth", handle_auth)
    app.router.add_post("/api/logout", handle_logout)
    app.router.add_get("/api/me", handle_me)

    return app

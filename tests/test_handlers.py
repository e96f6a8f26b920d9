"""Tests for the Telegram bot handlers."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import InlineKeyboardMarkup

from task_mini_app.config import Config
from task_mini_app.handlers import (
    HELP_TEXT, build_webapp_keyboard, help_command, post_init, post_shutdown, start_command,
)


def _make_config(tmp_path: Path | None = None, **kwargs) -> Config:
    defaults = {
        "telegram_token": "1:main",
        "session_secret": "session-secret-for-tests-0123456789abcdef",
        "db_path": (tmp_path or Path(".")) / "app.sqlite3",
        "webapp_url": "https://example.com/",
    }
    defaults.update(kwargs)
    return Config(**defaults)


def _update_and_context(config: Config):
    update = MagicMock()
    update.message.reply_text = AsyncMock()
    context = SimpleNamespace(bot_data={"config": config})
    return update, context


def _button_urls(markup: InlineKeyboardMarkup) -> list[str]:
    return [row[0].web_app.url for row in markup.inline_keyboard]


class TestBuildWebappKeyboard:
    def test_main_only(self):
        markup = build_webapp_keyboard(_make_config())
        assert _button_urls(markup) == ["https://example.com/"]

    def test_main_and_recipes(self):
        config = _make_config(recipes_webapp_url="https://example.com/recipes")
        markup = build_webapp_keyboard(config)
        assert _button_urls(markup) == ["https://example.com/", "https://example.com/recipes"]

    def test_not_configured(self):
        assert build_webapp_keyboard(_make_config(webapp_url="")) is None


class TestCommands:
    @pytest.mark.asyncio
    async def test_start_sends_button(self):
        update, context = _update_and_context(_make_config())
        await start_command(update, context)
        args, kwargs = update.message.reply_text.call_args
        assert args == ("Tap to open:",)
        assert isinstance(kwargs["reply_markup"], InlineKeyboardMarkup)

    @pytest.mark.asyncio
    async def test_start_not_configured(self):
        update, context = _update_and_context(_make_config(webapp_url=""))
        await start_command(update, context)
        update.message.reply_text.assert_awaited_once_with("Mini App is not configured.")

    @pytest.mark.asyncio
    async def test_help(self):
        update, context = _update_and_context(_make_config(webapp_url=""))
        await help_command(update, context)
        update.message.reply_text.assert_awaited_once_with(HELP_TEXT, reply_markup=None)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_post_init_starts_api(self, tmp_path):
        config = _make_config(tmp_path, api_port=0, notify_chat_id=-100)
        app = SimpleNamespace(bot=MagicMock(), bot_data={"config": config})
        app.bot.send_message = AsyncMock()

        await post_init(app)
        try:
            app.bot.send_message.assert_awaited_once_with(-100, "Task Mini App is online!")
            assert "_api_runner" in app.bot_data
            assert config.db_path.exists()
        finally:
            await post_shutdown(app)

    @pytest.mark.asyncio
    async def test_notification_failure_is_not_fatal(self, tmp_path):
        config = _make_config(tmp_path, api_port=0, notify_chat_id=-100)
        app = SimpleNamespace(bot=MagicMock(), bot_data={"config": config})
        app.bot.send_message = AsyncMock(side_effect=RuntimeError("network down"))

        await post_init(app)
        try:
            assert "_api_runner" in app.bot_data
        finally:
            await post_shutdown(app)

    @pytest.mark.asyncio
    async def test_post_shutdown_without_runner(self):
        app = SimpleNamespace(bot_data={})
        await post_shutdown(app)

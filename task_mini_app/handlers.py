from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update, WebAppInfo
from telegram.ext import ContextTypes

from .config import Config
from .users import UserStore


HELP_TEXT = """Task Mini App

Tasks, recipes and workouts in one place.

Commands:
/start - Open the Mini App
/help - Show this message"""


def build_webapp_keyboard(config: Config) -> InlineKeyboardMarkup | None:
    """Buttons opening the configured Mini Apps, or None if none is set."""
    buttons = []
    if config.webapp_url:
        buttons.append([InlineKeyboardButton("Open tasks", web_app=WebAppInfo(url=config.webapp_url))])
    if config.recipes_webapp_url:
        buttons.append([InlineKeyboardButton("Open recipes", web_app=WebAppInfo(url=config.recipes_webapp_url))])
    if not buttons:
        return None
    return InlineKeyboardMarkup(buttons)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command — offer the Mini App buttons."""
    config: Config = context.bot_data["config"]
    keyboard = build_webapp_keyboard(config)
    if keyboard is None:
        await update.message.reply_text("Mini App is not configured.")
        return
    await update.message.reply_text("Tap to open:", reply_markup=keyboard)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    config: Config = context.bot_data["config"]
    await update.message.reply_text(HELP_TEXT, reply_markup=build_webapp_keyboard(config))


async def post_init(app) -> None:
    """Send startup notification and start the HTTP API."""
    config: Config = app.bot_data["config"]
    if config.notify_chat_id:
        try:
            await app.bot.send_message(config.notify_chat_id, "Task Mini App is online!")
        except Exception as e:
            print(f"Startup notification failed: {e}")

    from aiohttp import web as aio_web
    from .web_api import create_web_app

    store = UserStore(config.db_path)
    store.init()
    web_app = create_web_app(config, store)
    runner = aio_web.AppRunner(web_app)
    await runner.setup()
    site = aio_web.TCPSite(runner, "0.0.0.0", config.api_port)
    await site.start()
    app.bot_data["_api_runner"] = runner
    print(f"HTTP API started on port {config.api_port}")


async def post_shutdown(app) -> None:
    """Clean up the HTTP API server."""
    runner = app.bot_data.get("_api_runner")
    if runner:
        await runner.cleanup()

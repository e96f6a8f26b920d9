#!/usr/bin/env python

import argparse
import configparser

from telegram.ext import Application, CommandHandler

from task_mini_app.config import load_config
from task_mini_app.handlers import help_command, post_init, post_shutdown, start_command


def main():
    parser = argparse.ArgumentParser(description="Task Mini App bot and HTTP API")
    parser.add_argument("-c", "--config", type=str, default="config.ini", help="Path to config file")
    args = parser.parse_args()

    config_file = configparser.ConfigParser()
    if not config_file.read(args.config):
        parser.error(f"cannot read config file: {args.config}")
    config = load_config(config_file)

    app = (
        Application.builder()
        .token(config.telegram_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    app.bot_data["config"] = config

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))

    print("Bot started...")
    app.run_polling()


if __name__ == "__main__":
    main()

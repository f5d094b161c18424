from typing import Optional

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import Application, CommandHandler
from telegram.request import HTTPXRequest

from config.logger import logger
from core.errors import PublishSendError


class TelegramNotifier:
    """Channel client: sends/deletes the live message and listens for operator commands."""

    def __init__(self, token: str, chat_id: str, admin_user_id: Optional[str] = None, app: Optional[Application] = None):
        self.token = token
        self.chat_id = chat_id
        self.admin_user_id = admin_user_id
        self.app = app

        if self.app is None:
            # Bounded timeouts on every Telegram call
            trequest = HTTPXRequest(connection_pool_size=8, read_timeout=30, connect_timeout=30)

            self.app = (
                Application.builder()
                .token(self.token)
                .request(trequest)
                .build()
            )

    async def send(self, content: str) -> str:
        """Sends the notification and returns its message id."""
        try:
            message = await self.app.bot.send_message(
                chat_id=self.chat_id,
                text=content,
                parse_mode=ParseMode.HTML,
                disable_web_page_preview=True,
            )
        except TelegramError as e:
            raise PublishSendError(f"Telegram send failed: {e}") from e
        return str(message.message_id)

    async def delete_message(self, handle: str):
        """Raises TelegramError when the message is gone or cannot be deleted; the caller decides."""
        await self.app.bot.delete_message(chat_id=self.chat_id, message_id=int(handle))

    def is_admin(self, update: Update) -> bool:
        if not self.admin_user_id:
            return True
        user = update.effective_user
        return user is not None and str(user.id) == str(self.admin_user_id)

    async def start_listening(self, command_handlers: dict):
        """Registers command handlers ({"scan": handler, ...}) and starts polling for updates."""
        for cmd, handler in command_handlers.items():
            self.app.add_handler(CommandHandler(cmd, handler, block=False))

        logger.info("Telegram bot listening for commands...")
        await self.app.initialize()
        await self.app.start()
        await self.app.updater.start_polling()

    async def stop(self):
        if self.app.updater and self.app.updater.running:
            await self.app.updater.stop()
        if self.app.running:
            await self.app.stop()
        await self.app.shutdown()


async def reply(update: Update, text: str):
    if update.message:
        await update.message.reply_text(text, parse_mode=ParseMode.HTML)

"""
Telegram channel adapter (python-telegram-bot).

Telegram addresses are numeric ids rendered as strings; there are no
linked identifiers, so the identity resolver passes every target through.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from telegram import Update
from telegram.error import InvalidToken, TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from chatrelay.infra.backoff import DEFAULT_RECONNECT_POLICY, ReconnectPolicy
from chatrelay.infra.network_errors import is_recoverable_network_error

from .base import ChannelAdapter, ChannelNotConnectedError, InboundMessage
from .connection import ConnectionManager, DisconnectReason

logger = logging.getLogger(__name__)

MessageCallback = Callable[[InboundMessage], Awaitable[Any]]

_GROUP_CHAT_TYPES = ("group", "supergroup")


def _native_mentions(message: Any, bot_id: int | None, bot_username: str | None) -> list[str] | None:
    """Mention entities as ids; ``@bot`` usernames map to the bot id"""
    if not message.entities:
        return None

    bot_handle = f"@{bot_username}".lower() if bot_username else None
    mentions: list[str] = []
    for entity, text in message.parse_entities(["mention", "text_mention"]).items():
        if entity.type == "text_mention" and entity.user:
            mentions.append(str(entity.user.id))
        elif bot_handle and bot_id is not None and text.lower() == bot_handle:
            mentions.append(str(bot_id))
        else:
            mentions.append(text)
    return mentions or None


def telegram_update_to_inbound(
    update: Update,
    bot_id: int | None = None,
    bot_username: str | None = None,
) -> InboundMessage | None:
    """
    Normalize a Telegram update.

    Returns:
        InboundMessage, or None if the update carries no message
    """
    message = update.message or update.edited_message
    if message is None:
        return None

    chat = message.chat
    sender = message.from_user
    text = message.text or message.caption or ""
    is_group = chat.type in _GROUP_CHAT_TYPES

    attachments: list[str] = []
    if message.photo:
        attachments.append(message.photo[-1].file_id)
    if message.document:
        attachments.append(message.document.file_id)

    reply_sender = None
    if message.reply_to_message and message.reply_to_message.from_user:
        reply_sender = str(message.reply_to_message.from_user.id)

    conversation_key = str(chat.id)
    return InboundMessage(
        channel="telegram",
        conversation_key=conversation_key,
        sender_identity=str(sender.id) if sender else conversation_key,
        text=text,
        id=str(message.message_id),
        timestamp=message.date,
        is_group=is_group,
        group_id=conversation_key if is_group else None,
        native_mentions=_native_mentions(message, bot_id, bot_username),
        reply_to_sender_identity=reply_sender,
        sender_name=sender.full_name if sender else None,
        attachments=attachments,
        is_command=text.startswith("/"),
        raw=update,
    )


def should_retry_telegram(error: DisconnectReason) -> bool:
    """A rejected token will not fix itself"""
    if isinstance(error, InvalidToken):
        return False
    return is_recoverable_network_error(error)


class TelegramChannel(ChannelAdapter):
    """
    Long-polling Telegram bot.

    Connect failures and polling errors go through the ``ConnectionManager``,
    which rebuilds the application with backoff.
    """

    id = "telegram"
    label = "Telegram"

    def __init__(
        self,
        bot_token: str,
        on_message: MessageCallback,
        policy: ReconnectPolicy = DEFAULT_RECONNECT_POLICY,
    ):
        super().__init__()
        if not bot_token:
            raise ValueError("Telegram bot token not provided")
        self._bot_token = bot_token
        self._on_message = on_message
        self._app: Application | None = None
        self.bot_id: int | None = None
        self.bot_username: str | None = None
        self._connection_manager = ConnectionManager(
            self.id,
            connect=self._do_connect,
            policy=policy,
            should_retry=should_retry_telegram,
        )

    async def start(self) -> None:
        logger.info(f"[{self.id}] Starting Telegram channel...")
        if not await self._connection_manager.start():
            logger.error(
                f"[{self.id}] Telegram channel not connected "
                f"(state={self._connection_manager.state.value}): {self._connection_manager.last_error}"
            )

    async def _do_connect(self) -> None:
        if self._app:
            await self._do_disconnect()

        app = Application.builder().token(self._bot_token).build()
        app.add_handler(MessageHandler(filters.UpdateType.MESSAGES, self._handle_update))

        await app.initialize()
        self._app = app
        self.bot_id = app.bot.id
        self.bot_username = app.bot.username

        await app.start()
        await app.updater.start_polling(
            drop_pending_updates=True,
            allowed_updates=["message", "edited_message"],
            error_callback=self._handle_polling_error,
        )

        self._running = True
        logger.info(f"[{self.id}] Telegram channel connected as @{self.bot_username}")

    async def _do_disconnect(self) -> None:
        app, self._app = self._app, None
        self._running = False
        if app is None:
            return

        try:
            if app.updater and app.updater.running:
                await app.updater.stop()
            if app.running:
                await app.stop()
            await app.shutdown()
        except TelegramError as e:
            logger.warning(f"[{self.id}] Error during disconnect: {e}")

    def _handle_polling_error(self, error: TelegramError) -> None:
        self.on_disconnected(error)

    async def _handle_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        inbound = telegram_update_to_inbound(update, self.bot_id, self.bot_username)
        if inbound is None:
            return
        await self._on_message(inbound)

    async def stop(self) -> None:
        logger.info(f"[{self.id}] Stopping Telegram channel...")
        await self._connection_manager.stop()
        await self._do_disconnect()
        logger.info(f"[{self.id}] Telegram channel stopped")

    async def send_text(self, target: str, text: str, reply_to: str | None = None) -> str:
        if not self._app:
            raise ChannelNotConnectedError("Telegram channel not started")

        chat_id = int(target) if target.lstrip("-").isdigit() else target
        try:
            message = await self._app.bot.send_message(
                chat_id=chat_id,
                text=text,
                reply_to_message_id=int(reply_to) if reply_to else None,
            )
        except TelegramError as e:
            logger.warning(f"[{self.id}] Send to {target} failed: {e}")
            raise

        return str(message.message_id)


__all__ = [
    "TelegramChannel",
    "should_retry_telegram",
    "telegram_update_to_inbound",
]

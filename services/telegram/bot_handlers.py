"""Wire python-telegram-bot handlers to the update dispatcher.

Command recognition is left to `CommandHandler`, which matches `/cmd` and
`/cmd@<this bot>` case-insensitively and only on the message text, so a
photo caption is never taken for a command. Every other message, including
commands addressed to another bot, reaches the dispatcher as content.
"""

from __future__ import annotations

import logging
from typing import Callable, Coroutine, List

from telegram import Message, Update
from telegram.ext import Application, BaseHandler, CommandHandler, ContextTypes, MessageHandler, filters

from models.session_models import InboundMessage, PhotoVariant
from services.collector.dispatcher import UpdateDispatcher
from services.collector.message_classifier import Command

LOGGER = logging.getLogger(__name__)

Callback = Callable[[Update, ContextTypes.DEFAULT_TYPE], Coroutine]


def to_inbound_message(message: Message) -> InboundMessage:
	"""Build the transport-neutral view of a Telegram message.

	A photo caption is exposed as the message text.
	"""
	photos = tuple(
		PhotoVariant(
			file_id=size.file_id,
			width=size.width,
			height=size.height,
			file_unique_id=size.file_unique_id,
			file_size=size.file_size,
		)
		for size in message.photo
	)
	return InboundMessage(
		conversation_id=message.chat_id,
		message_id=message.message_id,
		text=message.text if message.text is not None else message.caption,
		photos=photos,
		date=message.date,
	)


def command_callback(dispatcher: UpdateDispatcher, command: Command) -> Callback:
	async def callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
		await dispatcher.handle_command(update.effective_chat.id, command)

	return callback


def content_callback(dispatcher: UpdateDispatcher) -> Callback:
	async def callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
		await dispatcher.handle_content(to_inbound_message(update.effective_message))

	return callback


async def log_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
	"""Log failures raised by handlers; the update loop keeps running."""
	update_id = update.update_id if isinstance(update, Update) else None
	LOGGER.error("Failed to handle update %s", update_id, exc_info=context.error)


def build_handlers(dispatcher: UpdateDispatcher) -> List[BaseHandler]:
	"""Return the handlers in matching order: one per command, then content."""
	handlers: List[BaseHandler] = [
		CommandHandler(command.value, command_callback(dispatcher, command), filters=filters.UpdateType.MESSAGE)
		for command in Command
	]
	handlers.append(MessageHandler(filters.UpdateType.MESSAGE, content_callback(dispatcher)))
	return handlers


def register_handlers(application: Application, dispatcher: UpdateDispatcher) -> None:
	application.add_handlers(build_handlers(dispatcher))
	application.add_error_handler(log_error)
	LOGGER.debug("Registered %d command handlers", len(Command))

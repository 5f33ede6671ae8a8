"""Outbound Telegram calls used by the collector.

`TelegramGateway` wraps a python-telegram-bot `Bot` and translates its
`TelegramError`s into the collector's error taxonomy so callers can react per
concern: resolution failures raise `ResourceResolutionError`, outbound sends
raise `DeliveryError` and command registration raises `PlatformError`.
"""

from __future__ import annotations

import logging
from typing import Hashable, Iterable, Tuple

from telegram import Bot, BotCommand
from telegram.error import TelegramError

from services.collector.message_classifier import COMMAND_DESCRIPTIONS, Command
from utils.errors import DeliveryError, PlatformError, ResourceResolutionError

LOGGER = logging.getLogger(__name__)

UPLOAD_TIMEOUT_SECONDS = 120.0


class TelegramGateway:
	"""Send messages and archives and resolve photo handles through a `Bot`."""

	def __init__(self, bot: Bot) -> None:
		self.bot = bot

	async def send_message(self, chat_id: Hashable, text: str) -> None:
		try:
			await self.bot.send_message(chat_id=chat_id, text=text)
		except TelegramError as exc:
			raise DeliveryError(f"sendMessage to {chat_id} failed: {exc}") from exc

	async def send_document(self, chat_id: Hashable, data: bytes, filename: str) -> None:
		"""Upload `data` to the conversation as a document named `filename`."""
		try:
			await self.bot.send_document(
				chat_id=chat_id,
				document=data,
				filename=filename,
				write_timeout=UPLOAD_TIMEOUT_SECONDS,
			)
		except TelegramError as exc:
			raise DeliveryError(f"sendDocument to {chat_id} failed: {exc}") from exc

	async def resolve_file_url(self, file_id: str) -> str:
		"""Return the download URL of a photo handle.

		The URL embeds the bot token and must not be logged.
		"""
		try:
			file = await self.bot.get_file(file_id)
		except TelegramError as exc:
			raise ResourceResolutionError(f"getFile failed for {file_id}: {exc}") from exc
		if not file.file_path:
			raise ResourceResolutionError(f"getFile returned no path for {file_id}")
		return file.file_path

	async def register_commands(
		self, descriptions: Iterable[Tuple[Command, str]] = COMMAND_DESCRIPTIONS
	) -> None:
		"""Publish the command menu shown by Telegram clients."""
		commands = [BotCommand(command.value, text) for command, text in descriptions]
		try:
			await self.bot.set_my_commands(commands)
		except TelegramError as exc:
			raise PlatformError(f"setMyCommands failed: {exc}") from exc

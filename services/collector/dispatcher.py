"""Dispatch bot commands and chat content to the collector state machine."""
from __future__ import annotations

import logging
from typing import Hashable, Optional

from models.archive_models import ArchiveResult
from models.session_models import Batch, InboundMessage
from services.collector.archive_pipeline import ArchivePipeline
from services.collector.background_jobs import BackgroundJobs
from services.collector.message_classifier import Command
from services.collector.session_store import SessionStore
from services.collector.state_machine import CollectorStateMachine, ContentAction
from services.telegram.gateway import TelegramGateway
from utils.errors import CollectorError, DeliveryError, NoContentError, UserInputError
from utils.naming import archive_file_name
from utils.settings import BOT_VERSION

LOGGER = logging.getLogger(__name__)

HELP_TEXT = (
	"Hello! I am a photo download bot.\n\n"
	"/startcollect - start collecting photos\n"
	"/stopcollect - stop and download everything as a zip\n"
	"/filename - set the zip file name\n"
	"/version - show the bot version"
)
COLLECT_STARTED_TEXT = (
	"✅ Collection started. Send photos or messages containing photos, "
	"then send /stopcollect to finish."
)
FILE_NAME_PROMPT = "Send me a file name and I will use it for the zip archive."
GENERIC_FAILURE_TEXT = "❌ Processing failed, please try again later."


class UpdateDispatcher:
	"""Route inbound commands and content for every conversation the bot is part of."""

	def __init__(
		self,
		store: SessionStore,
		telegram: TelegramGateway,
		pipeline: ArchivePipeline,
		jobs: BackgroundJobs,
	) -> None:
		self.store = store
		self.machine = CollectorStateMachine(store)
		self.telegram = telegram
		self.pipeline = pipeline
		self.jobs = jobs

	async def handle_command(self, chat_id: Hashable, command: Command) -> None:
		"""Apply a recognized command to the conversation and reply."""
		try:
			await self._handle_command(chat_id, command)
		except UserInputError as exc:
			LOGGER.info("Rejected /%s from %s: %s", command.value, chat_id, exc)
			await self._notify(chat_id, exc.user_message)
		except DeliveryError as exc:
			LOGGER.error("Failed to reply to %s: %s", chat_id, exc)

	async def handle_content(self, message: InboundMessage) -> None:
		"""Buffer a message or take it as the archive name, depending on the session."""
		chat_id = message.conversation_id
		try:
			await self._handle_content(chat_id, message)
		except UserInputError as exc:
			LOGGER.info("Rejected input from %s: %s", chat_id, exc)
			await self._notify(chat_id, exc.user_message)
		except DeliveryError as exc:
			LOGGER.error("Failed to reply to %s: %s", chat_id, exc)

	async def _handle_command(self, chat_id: Hashable, command: Command) -> None:
		if command in (Command.START, Command.HELP):
			await self.telegram.send_message(chat_id, HELP_TEXT)
		elif command is Command.VERSION:
			await self.telegram.send_message(chat_id, f"Current version: {BOT_VERSION}")
		elif command is Command.START_COLLECT:
			self.machine.start_collecting(chat_id)
			await self.telegram.send_message(chat_id, COLLECT_STARTED_TEXT)
		elif command is Command.STOP_COLLECT:
			batch = self.machine.stop(chat_id)
			self.jobs.spawn(self.process_batch(batch), name=f"archive-{chat_id}")
		elif command is Command.FILE_NAME:
			self.machine.request_file_name(chat_id)
			await self.telegram.send_message(chat_id, FILE_NAME_PROMPT)

	async def _handle_content(self, chat_id: Hashable, message: InboundMessage) -> None:
		result = self.machine.accept_content(chat_id, message)
		if result.action is ContentAction.FILE_NAME_SET:
			display = archive_file_name(result.archive_name, chat_id)
			await self.telegram.send_message(chat_id, f"✅ Archive name set to {display}")

	async def process_batch(self, batch: Batch) -> Optional[ArchiveResult]:
		"""Run the archive pipeline for `batch`, reporting failures to its conversation."""
		chat_id = batch.conversation_id
		try:
			return await self.pipeline.run(batch)
		except NoContentError as exc:
			LOGGER.info("Nothing to archive for %s: %s", chat_id, exc)
			await self._notify(chat_id, exc.user_message)
		except CollectorError as exc:
			LOGGER.error("Processing failed for %s: %s", chat_id, exc)
			await self._notify(chat_id, exc.user_message)
		except Exception:
			LOGGER.exception("Unexpected error while processing %s", chat_id)
			await self._notify(chat_id, GENERIC_FAILURE_TEXT)
		return None

	async def _notify(self, chat_id: Hashable, text: str) -> None:
		try:
			await self.telegram.send_message(chat_id, text)
		except DeliveryError as exc:
			LOGGER.error("Failed to notify %s: %s", chat_id, exc)

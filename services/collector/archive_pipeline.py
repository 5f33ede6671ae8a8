"""Resolve, download, archive and deliver the photos of a stopped batch.

`ArchivePipeline.run` is the single entry point. It works only on the Batch
it is given and never touches the session store, so a new collection can
start while a previous batch is still being archived.

Filesystem layout of one run under the configured work directory:

    temp_<conversation>_<uuid>/image_1.jpg ... image_N.jpg   (scratch area)
    temp_<conversation>_<uuid>.zip                            (archive)

Both are removed on every exit path once staging has begun.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles
import httpx

from models.archive_models import ArchiveResult, ResolvedPhoto, StagingArea
from models.session_models import Batch, PhotoReference
from services.collector.archive_writer import write_archive
from services.collector.message_classifier import select_photo
from services.telegram.gateway import TelegramGateway
from utils.errors import FetchError, NoContentError
from utils.naming import archive_file_name, photo_entry_name

LOGGER = logging.getLogger(__name__)

EMPTY_BATCH_MESSAGE = "ℹ️ You did not send any messages, nothing to process."
PROCESSING_MESSAGE = "⏳ Processing, please wait..."


class ArchivePipeline:
    """Turn a Batch into a ZIP archive delivered to its conversation."""

    def __init__(
        self,
        telegram: TelegramGateway,
        http_client: httpx.AsyncClient,
        work_dir: Path,
        max_concurrent_fetches: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Args:
            telegram: Client used to resolve photos and talk to the conversation.
            http_client: Client used for plain HTTP downloads of resolved photos.
            work_dir: Directory under which scratch areas and archives are staged.
            max_concurrent_fetches: Upper bound on parallel downloads; 0 means unbounded.
            clock: Source of the timestamp used in default archive names.
        """
        if max_concurrent_fetches < 0:
            raise ValueError("max_concurrent_fetches cannot be negative.")
        self.telegram = telegram
        self.http = http_client
        self.work_dir = Path(work_dir)
        self.max_concurrent_fetches = max_concurrent_fetches
        self.clock = clock

    async def run(self, batch: Batch) -> ArchiveResult:
        """Archive and deliver every photo in `batch`.

        Raises:
            NoContentError: If the batch is empty or holds no photos.
            ResourceResolutionError: If a photo cannot be resolved to a URL.
            FetchError: If any download fails.
            DeliveryError: If the archive or its acknowledgment cannot be sent.
        """
        chat_id = batch.conversation_id
        if not batch.messages:
            raise NoContentError(f"Batch for {chat_id} is empty", user_message=EMPTY_BATCH_MESSAGE)

        references = self.extract_references(batch)
        if not references:
            raise NoContentError(f"Batch for {chat_id} has no photos")

        await self.telegram.send_message(chat_id, PROCESSING_MESSAGE)
        photos = await self.resolve(references)

        staging = self._stage(chat_id)
        try:
            await self.fetch_all(photos, staging.scratch_dir)
            LOGGER.info("Downloaded %d photos to %s", len(photos), staging.scratch_dir.name)

            entries = await asyncio.to_thread(write_archive, staging.scratch_dir, staging.archive_path)
            file_name = archive_file_name(batch.archive_name, chat_id, self.clock())
            LOGGER.info("Created archive %s (%d entries) for %s", file_name, len(entries), chat_id)

            await self.telegram.send_message(
                chat_id, f"✅ Done! Downloaded {len(photos)} photos, sending the archive..."
            )
            data = await asyncio.to_thread(staging.archive_path.read_bytes)
            await self.telegram.send_document(chat_id, data, file_name)
            LOGGER.info("Sent archive %s to %s", file_name, chat_id)
        finally:
            await asyncio.to_thread(self._cleanup, staging)

        return ArchiveResult(
            conversation_id=chat_id,
            photo_count=len(photos),
            file_name=file_name,
            entries=entries,
        )

    @staticmethod
    def extract_references(batch: Batch) -> List[PhotoReference]:
        """Return the selected photo of every message that carries one, in order."""
        references = []
        for message in batch.messages:
            reference = select_photo(message.photos)
            if reference is not None:
                references.append(reference)
        return references

    async def resolve(self, references: List[PhotoReference]) -> List[ResolvedPhoto]:
        """Resolve each reference with one lookup call, preserving order."""
        resolved = []
        for index, reference in enumerate(references, start=1):
            url = await self.telegram.resolve_file_url(reference.file_id)
            resolved.append(ResolvedPhoto(index=index, file_id=reference.file_id, url=url))
        return resolved

    async def fetch_all(self, photos: List[ResolvedPhoto], scratch_dir: Path) -> None:
        """Download all photos concurrently into `scratch_dir`.

        The first failure cancels the remaining downloads and is re-raised
        once every task has finished, so nothing writes into the scratch
        area after this returns.
        """
        if self.max_concurrent_fetches:
            limiter = asyncio.Semaphore(self.max_concurrent_fetches)
        else:
            limiter = None
        tasks = [asyncio.create_task(self._fetch_one(photo, scratch_dir, limiter)) for photo in photos]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _fetch_one(
        self,
        photo: ResolvedPhoto,
        scratch_dir: Path,
        limiter: Optional[asyncio.Semaphore],
    ) -> Path:
        async with limiter if limiter is not None else contextlib.nullcontext():
            try:
                response = await self.http.get(photo.url)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                # The URL embeds the bot token; report the photo index instead.
                raise FetchError(f"Download of photo {photo.index} failed: {type(exc).__name__}") from exc
            target = scratch_dir / photo_entry_name(photo.index)
            async with aiofiles.open(target, "wb") as f:
                await f.write(response.content)
        return target

    def _stage(self, conversation_id) -> StagingArea:
        scratch_dir = self.work_dir / f"temp_{conversation_id}_{uuid.uuid4().hex}"
        scratch_dir.mkdir(parents=True, exist_ok=False)
        return StagingArea(scratch_dir=scratch_dir, archive_path=scratch_dir.with_name(f"{scratch_dir.name}.zip"))

    @staticmethod
    def _cleanup(staging: StagingArea) -> None:
        try:
            shutil.rmtree(staging.scratch_dir)
        except FileNotFoundError:
            pass
        except OSError:
            LOGGER.exception("Failed to remove scratch directory %s", staging.scratch_dir)
        try:
            staging.archive_path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            LOGGER.exception("Failed to remove archive %s", staging.archive_path)
        LOGGER.info("Cleaned up %s", staging.scratch_dir.name)

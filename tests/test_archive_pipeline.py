"""
Tests for the resolve/fetch/archive/deliver pipeline.
"""

import asyncio
import io
import zipfile
from datetime import datetime

import httpx
import pytest

from conftest import CHAT_ID, file_server, photo_message, text_message
from models.session_models import Batch
from services.collector.archive_pipeline import EMPTY_BATCH_MESSAGE, ArchivePipeline
from utils.errors import DeliveryError, FetchError, NoContentError, ResourceResolutionError

FIXED_NOW = datetime(2025, 1, 2, 3, 4)


def _pipeline(telegram, http_client, work_dir, **kwargs):
    return ArchivePipeline(telegram, http_client, work_dir, clock=lambda: FIXED_NOW, **kwargs)


def _batch(*messages, archive_name=None):
    return Batch(conversation_id=CHAT_ID, messages=tuple(messages), archive_name=archive_name)


def _archive_contents(data):
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}, archive.namelist()


@pytest.mark.asyncio
async def test_two_photos_produce_one_archive(telegram, work_dir):
    http_client = file_server({"a": b"first-bytes", "b": b"second-bytes"})
    pipeline = _pipeline(telegram, http_client, work_dir)

    result = await pipeline.run(_batch(photo_message(1, "a"), photo_message(2, "b")))

    assert result.photo_count == 2
    assert len(telegram.documents) == 1
    chat_id, data, filename = telegram.documents[0]
    assert chat_id == CHAT_ID
    assert filename == f"images_2025-01-02:03:04_{CHAT_ID}.zip"
    contents, order = _archive_contents(data)
    assert order == ["image_1.jpg", "image_2.jpg"]
    assert contents == {"image_1.jpg": b"first-bytes", "image_2.jpg": b"second-bytes"}
    assert any("2" in text and "Done" in text for text in telegram.texts())
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


@pytest.mark.asyncio
async def test_only_largest_variant_is_resolved(telegram, work_dir):
    http_client = file_server({"a": b"x"})
    await _pipeline(telegram, http_client, work_dir).run(_batch(photo_message(1, "a")))
    assert telegram.resolved == ["a"]
    await http_client.aclose()


@pytest.mark.asyncio
async def test_user_archive_name_is_used(telegram, work_dir):
    http_client = file_server({"a": b"x"})
    result = await _pipeline(telegram, http_client, work_dir).run(
        _batch(photo_message(1, "a"), archive_name="holiday")
    )
    assert result.file_name == "holiday.zip"
    assert telegram.documents[0][2] == "holiday.zip"
    await http_client.aclose()


@pytest.mark.asyncio
async def test_entry_order_follows_messages_not_completion(telegram, work_dir):
    delays = {"slow": 0.05, "fast": 0.0}

    async def handler(request):
        file_id = request.url.path.lstrip("/")
        await asyncio.sleep(delays[file_id])
        return httpx.Response(200, content=file_id.encode())

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    await _pipeline(telegram, http_client, work_dir).run(
        _batch(photo_message(1, "slow"), photo_message(2, "fast"))
    )

    contents, order = _archive_contents(telegram.documents[0][1])
    assert order == ["image_1.jpg", "image_2.jpg"]
    assert contents["image_1.jpg"] == b"slow"
    assert contents["image_2.jpg"] == b"fast"
    await http_client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("limit, expected_peak", [(0, 4), (1, 1), (2, 2)])
async def test_fetch_concurrency(telegram, work_dir, limit, expected_peak):
    in_flight = 0
    peak = 0

    async def handler(request):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.02)
        in_flight -= 1
        return httpx.Response(200, content=b"img")

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    messages = [photo_message(i, f"p{i}") for i in range(1, 5)]
    await _pipeline(telegram, http_client, work_dir, max_concurrent_fetches=limit).run(_batch(*messages))

    assert peak == expected_peak
    await http_client.aclose()


@pytest.mark.asyncio
async def test_empty_batch_is_no_content(telegram, work_dir):
    http_client = file_server({})
    with pytest.raises(NoContentError) as excinfo:
        await _pipeline(telegram, http_client, work_dir).run(_batch())
    assert excinfo.value.user_message == EMPTY_BATCH_MESSAGE
    assert telegram.messages == []
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


@pytest.mark.asyncio
async def test_batch_without_photos_does_no_work(telegram, work_dir):
    http_client = file_server({})
    with pytest.raises(NoContentError):
        await _pipeline(telegram, http_client, work_dir).run(_batch(text_message(1, "hi"), text_message(2, "there")))
    assert telegram.resolved == []
    assert telegram.messages == []
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


@pytest.mark.asyncio
async def test_resolution_failure_aborts_before_staging(telegram, work_dir):
    telegram.unresolvable.add("b")
    http_client = file_server({"a": b"x", "b": b"y"})
    with pytest.raises(ResourceResolutionError):
        await _pipeline(telegram, http_client, work_dir).run(_batch(photo_message(1, "a"), photo_message(2, "b")))
    assert telegram.documents == []
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


@pytest.mark.asyncio
async def test_fetch_failure_cleans_up_and_sends_nothing(telegram, work_dir):
    http_client = file_server({"a": b"x", "c": b"z"})
    messages = [photo_message(1, "a"), photo_message(2, "missing"), photo_message(3, "c")]
    with pytest.raises(FetchError):
        await _pipeline(telegram, http_client, work_dir).run(_batch(*messages))
    assert telegram.documents == []
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


@pytest.mark.asyncio
async def test_delivery_failure_still_cleans_up(telegram, work_dir):
    telegram.fail_documents = True
    http_client = file_server({"a": b"x"})
    with pytest.raises(DeliveryError):
        await _pipeline(telegram, http_client, work_dir).run(_batch(photo_message(1, "a")))
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


@pytest.mark.asyncio
async def test_concurrent_pipelines_use_distinct_scratch_areas(telegram, work_dir):
    seen_dirs = set()
    original_stage = ArchivePipeline._stage

    def recording_stage(self, conversation_id):
        staging = original_stage(self, conversation_id)
        seen_dirs.add(staging.scratch_dir)
        return staging

    http_client = file_server({"a": b"x"})
    pipeline = _pipeline(telegram, http_client, work_dir)
    pipeline._stage = recording_stage.__get__(pipeline)

    await asyncio.gather(
        pipeline.run(_batch(photo_message(1, "a"))),
        pipeline.run(Batch(conversation_id=7, messages=(photo_message(1, "a", chat_id=7),))),
        pipeline.run(_batch(photo_message(2, "a"))),
    )

    assert len(seen_dirs) == 3
    assert len(telegram.documents) == 3
    assert list(work_dir.iterdir()) == []
    await http_client.aclose()


def test_negative_fetch_limit_is_rejected(telegram, work_dir):
    with pytest.raises(ValueError):
        ArchivePipeline(telegram, None, work_dir, max_concurrent_fetches=-1)

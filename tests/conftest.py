"""Shared fixtures for collector tests."""

from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from models.session_models import InboundMessage, PhotoVariant
from services.collector.session_store import SessionStore
from services.collector.state_machine import CollectorStateMachine
from utils.errors import DeliveryError, ResourceResolutionError

CHAT_ID = 4242
FILE_HOST = "https://files.test"


class FakeTelegram:
    """In-memory stand-in for TelegramGateway recording outbound traffic."""

    def __init__(self) -> None:
        self.messages: List[Tuple[int, str]] = []
        self.documents: List[Tuple[int, bytes, str]] = []
        self.resolved: List[str] = []
        self.unresolvable: set = set()
        self.fail_documents = False

    async def send_message(self, chat_id, text):
        self.messages.append((chat_id, text))
        return {"message_id": len(self.messages)}

    async def send_document(self, chat_id, data, filename):
        if self.fail_documents:
            raise DeliveryError("sendDocument failed")
        self.documents.append((chat_id, data, filename))
        return {"message_id": len(self.documents)}

    async def resolve_file_url(self, file_id):
        if file_id in self.unresolvable:
            raise ResourceResolutionError(f"getFile failed for {file_id}")
        self.resolved.append(file_id)
        return f"{FILE_HOST}/{file_id}"

    def texts(self, chat_id: int = CHAT_ID) -> List[str]:
        return [text for cid, text in self.messages if cid == chat_id]


def photo_message(
    message_id: int,
    file_id: Optional[str] = None,
    chat_id: int = CHAT_ID,
    caption: Optional[str] = None,
) -> InboundMessage:
    """Build a message carrying a small and a large variant of one photo."""
    file_id = file_id or f"photo-{message_id}"
    return InboundMessage(
        conversation_id=chat_id,
        message_id=message_id,
        text=caption,
        photos=(
            PhotoVariant(file_id=f"{file_id}-thumb", width=90, height=60),
            PhotoVariant(file_id=file_id, width=1280, height=853),
        ),
    )


def text_message(message_id: int, text: Optional[str], chat_id: int = CHAT_ID) -> InboundMessage:
    return InboundMessage(conversation_id=chat_id, message_id=message_id, text=text)


def file_server(contents: Dict[str, bytes]) -> httpx.AsyncClient:
    """Return an AsyncClient serving `contents` keyed by file id; unknown ids 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        file_id = request.url.path.lstrip("/")
        if file_id not in contents:
            return httpx.Response(404)
        return httpx.Response(200, content=contents[file_id])

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def machine(store):
    return CollectorStateMachine(store)


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path

"""Response models for the Telegram webhook endpoint."""

from pydantic import BaseModel


class WebhookAck(BaseModel):
	ok: bool = True
	update_id: int

"""FastAPI route receiving Telegram webhook updates."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Header, HTTPException, Request

from controllers.webhook_controller import handle_webhook
from models.webhook_models import WebhookAck

router = APIRouter(prefix="/telegram")


@router.post("/webhook", response_model=WebhookAck)
async def telegram_webhook_route(
	request: Request,
	payload: Dict[str, Any] = Body(...),
	x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
):
	try:
		return await handle_webhook(request, payload, x_telegram_bot_api_secret_token)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))

"""Webhook entry point handing Telegram updates to the bot application."""

from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from telegram import Update
from telegram.ext import Application

from models.webhook_models import WebhookAck


def _check_secret(expected: Optional[str], provided: Optional[str]) -> None:
	if expected and not secrets.compare_digest(expected, provided or ""):
		raise HTTPException(status_code=401, detail="Invalid webhook secret token")


async def handle_webhook(request: Request, payload: Dict[str, Any], secret_token: Optional[str]) -> WebhookAck:
	"""Queue a webhook update for the application's handlers."""
	settings = request.app.state.settings
	if settings.mode != "webhook":
		raise HTTPException(status_code=404, detail="Webhook mode is disabled")
	_check_secret(settings.webhook_secret, secret_token)

	if not isinstance(payload.get("update_id"), int):
		raise HTTPException(status_code=400, detail="Update is missing update_id")
	application: Application = request.app.state.application
	try:
		update = Update.de_json(payload, application.bot)
	except (KeyError, TypeError, ValueError) as exc:
		raise HTTPException(status_code=400, detail="Malformed update") from exc

	await application.update_queue.put(update)
	return WebhookAck(update_id=update.update_id)

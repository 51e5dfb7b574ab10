"""
Telegram Webhook Endpoint.

Receives updates from Telegram. Requests must carry the secret token
registered with setWebhook; anything else gets a 404 so the endpoint
looks absent to scanners.

Telegram is answered right away and the update is handled in the
background, so slow extraction never makes Telegram retry the delivery.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from policybot.config import settings
from policybot.core.flow.router import ContentRouter, get_router
from policybot.models.telegram import TelegramUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhook"])


async def verify_secret_token(
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
) -> None:
    """Reject requests without the expected secret token header."""
    expected = settings.secret_token
    provided = x_telegram_bot_api_secret_token or ""

    if not expected or not hmac.compare_digest(provided, expected):
        logger.warning("Webhook request with invalid secret token")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    summary="Telegram webhook",
    dependencies=[Depends(verify_secret_token)],
)
async def webhook(
    update: TelegramUpdate,
    background_tasks: BackgroundTasks,
    content_router: ContentRouter = Depends(get_router),
) -> dict:
    """
    Accept a Telegram update.

    Returns 200 as soon as the update is validated; routing runs after
    the response is sent.
    """
    message = update.message
    logger.debug(f"Update {update.update_id} from user={message.user_id}")

    background_tasks.add_task(content_router.handle_inbound_message, message.user_id, message)

    return {"ok": True}

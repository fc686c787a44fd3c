"""
Inbound chat webhooks

Both providers deliver user replies here. Only "PAID ..." replies are
acted upon; everything else is acknowledged with an empty 200 so the
provider does not retry.
"""

import json

import structlog
from fastapi import APIRouter, Depends, Form, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from finance_tracker.api.routes import get_service
from finance_tracker.models.ledger import Channel
from finance_tracker.orchestrator import LedgerService
from finance_tracker.subscriptions import extract_line_messages, validate_line_signature


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks")


@router.post("/twilio")
async def twilio_webhook(
    sender: str = Form("", alias="From"),
    body: str = Form("", alias="Body"),
    service: LedgerService = Depends(get_service),
):
    ack = await service.acknowledge_payment(Channel.WHATSAPP, sender, body)
    if ack:
        logger.info("payment_recorded", subscription_id=ack.subscription_id, channel="whatsapp")
    return Response(status_code=200)


@router.post("/line")
async def line_webhook(request: Request, service: LedgerService = Depends(get_service)):
    raw_body = await request.body()
    signature = request.headers.get("x-line-signature", "")
    secret = service.settings.line.channel_secret

    if not validate_line_signature(raw_body, signature, secret):
        await service.audit_logger.log_webhook_rejected("line")
        return PlainTextResponse("Bad signature", status_code=401)

    try:
        payload = json.loads(raw_body or b"{}")
        if not isinstance(payload, dict):
            raise ValueError("payload is not an object")
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    for user_id, text in extract_line_messages(payload):
        ack = await service.acknowledge_payment(Channel.LINE, user_id, text)
        if ack:
            logger.info("payment_recorded", subscription_id=ack.subscription_id, channel="line")
    return Response(status_code=200)

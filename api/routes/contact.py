"""
api/routes/contact.py -- Contact form submissions.

Routes:
  POST /send-data   -- {name, email, number, msg}; requires a signed-in account

The path sits outside /api/, so the write guard in api/main.py does not cover
it; the get_current_user dependency answers 401 for anonymous posts instead.
Admins read submissions through GET /api/admin/contacts.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import ContactIn, ContactOut
from auth.dependencies import get_current_user
from auth.models import Account
from core.errors import ValidationError
from stats.store import StatsStore

logger = logging.getLogger("f1stats.contact")

router = APIRouter()


@router.post("/send-data")
def send_contact(body: ContactIn, request: Request, account: Account = Depends(get_current_user)) -> dict:
    if not body.message:
        raise ValidationError("Message is required")
    stats: StatsStore = request.app.state.stats_store
    saved = stats.create_contact(body.to_contact(submitted_by=account.id))
    logger.info("Contact message %s received from account %s", saved.id, account.id)
    return {"success": True, "status": "success", "saved": ContactOut.from_contact(saved).dump()}

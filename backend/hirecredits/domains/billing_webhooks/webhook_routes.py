# Payment provider webhooks: credit pack purchases.
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...components.credits import ledger
from ...components.credits.packs import resolve_pack, resolve_pack_by_variant, verify_lemon_signature
from ...models.company import Company
from ...models.credit_ledger import LedgerReason
from ...platform.config import settings
from ...platform.database import get_db

logger = logging.getLogger("hirecredits.webhooks")

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _nested_get(payload: dict[str, Any], *path: str) -> Any:
    current: Any = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _resolve_credits(custom: dict[str, Any], data: dict[str, Any]) -> tuple[int | None, str | None]:
    pack_id = custom.get("pack_id")
    credits: int | None = None
    credits_raw = custom.get("credits")
    if credits_raw is not None:
        try:
            credits = int(credits_raw)
        except (TypeError, ValueError):
            credits = None
    if credits is None and pack_id:
        pack = resolve_pack(str(pack_id))
        if pack:
            credits = int(pack["credits"])
    if credits is None:
        attributes = data.get("attributes") or {}
        variant_id = (
            _nested_get(attributes, "first_order_item", "variant_id")
            or _nested_get(data, "relationships", "variant", "data", "id")
        )
        if variant_id:
            resolved = resolve_pack_by_variant(str(variant_id))
            if resolved:
                pack_id, pack = resolved
                credits = int(pack["credits"])
    return credits, (str(pack_id) if pack_id else None)


@router.post("/lemon")
async def lemon_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Lemon Squeezy order webhooks and credit the company balance once per order."""
    if settings.MVP_DISABLE_LEMON:
        raise HTTPException(status_code=503, detail="Lemon integration is disabled for MVP")
    if not settings.LEMON_WEBHOOK_SECRET:
        raise HTTPException(status_code=503, detail="Lemon webhook secret is not configured")

    payload_raw = await request.body()
    signature = request.headers.get("X-Signature", "")
    if not verify_lemon_signature(payload=payload_raw, signature=signature, secret=settings.LEMON_WEBHOOK_SECRET):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    payload = await request.json()
    event_name = _nested_get(payload, "meta", "event_name") or payload.get("event_name")
    data = payload.get("data") or {}
    attributes = data.get("attributes") or {}

    status = str(attributes.get("status") or "").lower()
    if event_name not in {"order_created", "order_paid"} and status not in {"paid"}:
        return {"status": "ignored", "event_name": event_name}

    custom = (
        _nested_get(payload, "meta", "custom_data")
        or attributes.get("custom_data")
        or _nested_get(attributes, "checkout_data", "custom")
        or {}
    )
    company_id_raw = custom.get("company_id")
    if not company_id_raw:
        raise HTTPException(status_code=400, detail="company_id missing in webhook payload")
    try:
        company_id = int(company_id_raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Invalid company_id in webhook payload") from exc

    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")

    credits, pack_id = _resolve_credits(custom, data)
    if not credits or credits <= 0:
        raise HTTPException(status_code=400, detail="Unable to resolve credits for webhook event")

    order_ref = str(data.get("id") or _nested_get(attributes, "identifier") or "")
    if not order_ref:
        raise HTTPException(status_code=400, detail="Unable to resolve webhook order reference")

    try:
        entry, created = ledger.credit(
            db,
            company.id,
            credits,
            reason=LedgerReason.PURCHASE,
            external_ref=f"lemon:order:{order_ref}",
            note=f"Credit pack purchase ({pack_id or 'custom'})",
            metadata={"event_name": event_name, "pack_id": pack_id, "credits": credits},
        )
        if created:
            db.commit()
    except Exception:
        db.rollback()
        raise
    if not created:
        logger.info("Duplicate Lemon order %s ignored", order_ref, extra={"company_id": company.id})
    return {
        "status": "received",
        "credited": bool(created),
        "credits": credits,
        "balance_after": entry.balance_after,
    }

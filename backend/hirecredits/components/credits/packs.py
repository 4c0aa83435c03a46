from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any

from ...platform.config import settings


def credit_pack_catalog() -> dict[str, dict[str, Any]]:
    try:
        raw = json.loads(settings.LEMON_PACKS_JSON or "{}")
    except ValueError:
        raw = {}
    if not isinstance(raw, dict):
        return {}
    output: dict[str, dict[str, Any]] = {}
    for pack_id, pack in raw.items():
        if not isinstance(pack, dict):
            continue
        variant_id = str(pack.get("variant_id") or "").strip()
        try:
            credits = int(pack.get("credits") or 0)
        except (TypeError, ValueError):
            credits = 0
        if not variant_id or credits <= 0:
            continue
        output[str(pack_id)] = {
            "variant_id": variant_id,
            "credits": credits,
            "label": str(pack.get("label") or pack_id),
        }
    return output


def resolve_pack(pack_id: str) -> dict[str, Any] | None:
    return credit_pack_catalog().get(str(pack_id))


def resolve_pack_by_variant(variant_id: str) -> tuple[str, dict[str, Any]] | None:
    target = str(variant_id or "").strip()
    for pack_id, pack in credit_pack_catalog().items():
        if str(pack.get("variant_id")) == target:
            return pack_id, pack
    return None


def verify_lemon_signature(*, payload: bytes, signature: str, secret: str) -> bool:
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)

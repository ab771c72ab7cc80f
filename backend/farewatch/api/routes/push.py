"""Push notification registration: device tokens for price-drop and hold alerts."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from farewatch.db.session import get_db
from farewatch.models.push_token import PushToken

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    owner_id: str = Field("default", min_length=1, max_length=64)
    device_token: str = Field(..., min_length=1, max_length=256, description="APNs device token (hex string)")
    platform: str = Field(default="ios", pattern="^(ios|android)$")


@router.post("/push/register")
def register_push_token(body: RegisterPushBody, db: Session = Depends(get_db)):
    """
    Register a device for an owner's watch alerts.
    Idempotent: same token is upserted (owner and updated_at refreshed), so a device that
    changes hands follows its new owner.
    """
    token_str = body.device_token.strip()
    owner_id = body.owner_id.strip()
    existing = db.query(PushToken).filter(PushToken.device_token == token_str).first()
    if existing:
        existing.owner_id = owner_id
        existing.updated_at = datetime.now(timezone.utc)
        db.commit()
        return {"ok": True, "message": "Token already registered"}
    db.add(PushToken(owner_id=owner_id, device_token=token_str, platform=body.platform))
    db.commit()
    logger.info("Registered push token for owner=%s platform=%s", owner_id, body.platform)
    return {"ok": True, "message": "Token registered"}

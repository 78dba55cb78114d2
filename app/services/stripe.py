import stripe
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
import logging

from app.core.config import settings
from app.core.cache import cache
from app.services.enrollment import enrollment_service

logger = logging.getLogger(__name__)

stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeService:
    """Consumes Stripe payment confirmations. Checkout sessions are created elsewhere."""

    def construct_event(self, payload: bytes, sig_header: Optional[str]):
        try:
            return stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid signature: {e}")

    @staticmethod
    def _metadata_int(metadata: Dict[str, Any], *keys: str) -> int:
        for key in keys:
            value = metadata.get(key)
            if value not in (None, ""):
                try:
                    return int(value)
                except (TypeError, ValueError):
                    break
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Checkout session metadata is missing a valid {keys[0]}."
        )

    async def handle_checkout_session_completed(self, db: Session, event) -> Dict[str, Any]:
        session = event["data"]["object"]
        if session.get("payment_status") not in (None, "paid", "no_payment_required"):
            logger.info(f"Checkout session {session.get('id')} not paid yet ({session.get('payment_status')}), ignoring")
            return {"applied": False}

        metadata = session.get("metadata") or {}
        user_id = self._metadata_int(metadata, "userId", "user_id")
        course_id = self._metadata_int(metadata, "courseId", "course_id")

        enrollment = enrollment_service.confirm_premium_enrollment(
            db,
            user_id=user_id,
            course_id=course_id,
            amount=session.get("amount_total"),
            currency=session.get("currency") or "usd",
            external_reference=session.get("id"),
        )
        await cache.invalidate_user_cache(user_id)
        return {"applied": True, "enrollment_id": enrollment.id}

    async def handle_event(self, db: Session, event) -> Dict[str, Any]:
        event_type = event["type"]
        if event_type in ("checkout.session.completed", "checkout.session.async_payment_succeeded"):
            return await self.handle_checkout_session_completed(db, event)

        logger.info(f"Unhandled Stripe event type {event_type}")
        return {"applied": False}


stripe_service = StripeService()

from fastapi import APIRouter, Request, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.stripe import stripe_service

router = APIRouter()

@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()
    sig_header = request.headers.get('stripe-signature')

    event = stripe_service.construct_event(payload, sig_header)
    result = await stripe_service.handle_event(db, event)

    return {"status": "success", **result}

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from storefront.exceptions import ValidationError
from storefront.utils.rate_limit import optional_rate_limit
from .checkout import CheckoutInitiator
from .dependencies import get_checkout_initiator, get_webhook_handler
from .webhook import WebhookHandler

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Payments API"])

# module storefront.payments.views
@router.post("/api/create-checkout-session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout_session(request: Request, initiator: CheckoutInitiator = Depends(get_checkout_initiator)):
    """
    Crée une session Checkout Stripe pour un jeu.
    - Entrée JSON: { "gameId": "<id>", "accessToken": "<jwt Supabase>" }
      (accessToken peut aussi venir de l’en-tête Authorization: Bearer)
    - Réponses: 200 {sessionId}; 400 champs manquants; 401 session invalide;
      404 jeu inconnu; 502 erreur Stripe; 500 configuration
    """
    try:
        body: Dict[str, Any] = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    game_id = str(body.get("gameId") or "").strip()
    access_token = str(body.get("accessToken") or "").strip()
    if not access_token:
        auth = request.headers.get("Authorization", "")
        if auth.lower().startswith("bearer "):
            access_token = auth[7:].strip()
    if not game_id or not access_token:
        raise ValidationError("Missing gameId or accessToken", public_message="Missing gameId or accessToken")

    origin = str(request.base_url).rstrip("/")
    # appels Supabase/Stripe bloquants: exécutés hors de la boucle asyncio
    session_id = await run_in_threadpool(initiator.create_session, game_id, access_token, origin=origin)
    return JSONResponse({"sessionId": session_id})

@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(request: Request, handler: WebhookHandler = Depends(get_webhook_handler)):
    """
    Webhook Stripe (Checkout): consomme checkout.session.completed pour créditer la licence.
    - Signature: vérifiée sur le corps brut (jamais re-sérialisé) avec STRIPE_WEBHOOK_SECRET
    - Réponses: 200 {"received": true}; 400 signature/secret; 500 échec de réconciliation (Stripe relivre)
    """
    raw_body = await request.body()
    signature = request.headers.get("stripe-signature")
    result = await run_in_threadpool(handler.handle, raw_body, signature)
    return JSONResponse(result)

import stripe
from core.config import settings
from utils.errors import ValidationError, InternalError
from utils.timing import timeit
import logging

logger = logging.getLogger(__name__)

@timeit("create_payment_intent")
async def create_payment_intent(amount) -> dict:
    """Create a card PaymentIntent; amount is in the smallest currency unit (e.g. LKR 500 = 50000)."""
    if amount in (None, ""):
        raise ValidationError("Amount is required")
    try:
        amount = int(amount)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a whole number in the smallest currency unit")
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    if not settings.STRIPE_SECRET_KEY:
        raise InternalError("Stripe secret key missing (STRIPE_SECRET_KEY)")

    try:
        intent = stripe.PaymentIntent.create(
            api_key=settings.STRIPE_SECRET_KEY,
            amount=amount,
            currency=settings.STRIPE_CURRENCY,
            payment_method_types=["card"],
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe PaymentIntent creation failed: {e}")
        raise InternalError(getattr(e, "user_message", None) or str(e))

    logger.info(f"Created PaymentIntent {intent.id} for {amount} {settings.STRIPE_CURRENCY}")
    return {"clientSecret": intent.client_secret}

"""Which gateway the checkout should offer: first ready one in the order xendit, paypal, midtrans."""
from sqlmodel import Session

from agency.services.payments import midtrans, paypal, xendit

PREFERENCE = ("xendit", "paypal", "midtrans")


def providers_readiness(db: Session) -> dict[str, bool]:
    midtrans_env = midtrans.resolve_active_env(db)
    paypal_env = paypal.active_env(db)
    return {
        "xendit": xendit.is_ready(db),
        "paypal": paypal.is_enabled(db) and paypal.is_env_ready(db, paypal_env),
        "midtrans": midtrans.is_enabled(db) and midtrans.is_env_ready(db, midtrans_env),
    }


def payment_provider(db: Session) -> dict:
    ready = providers_readiness(db)
    preferred = next((name for name in PREFERENCE if ready[name]), None)
    return {"ok": True, "provider": preferred, "providers": ready}

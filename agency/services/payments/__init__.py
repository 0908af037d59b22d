from .base import PaymentError

__all__ = ["PaymentError"]

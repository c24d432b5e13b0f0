"""
Support Escalation
Hands a shopper whose payment could not be confirmed over to human support
"""
import os
from typing import Optional
from urllib.parse import quote
from dotenv import load_dotenv

load_dotenv()

DEFAULT_SUPPORT_NUMBER = "+8801775777308"

SUPPORT_MESSAGE_TEMPLATE = (
    "Hello, I made a payment but it could not be confirmed at checkout. "
    "Transaction ID: {transaction_id}. "
    "Sorry for the trouble, please help me complete my order."
)


def get_support_number() -> str:
    """WhatsApp number of the support desk"""
    return os.getenv("SUPPORT_WHATSAPP_NUMBER", DEFAULT_SUPPORT_NUMBER)


def build_support_message(failed_transaction_id: Optional[str]) -> str:
    """Fixed-template support message embedding the failed transaction id"""
    transaction_id = (failed_transaction_id or "").strip() or "N/A"
    return SUPPORT_MESSAGE_TEMPLATE.format(transaction_id=transaction_id)


def build_support_link(
    failed_transaction_id: Optional[str],
    support_number: Optional[str] = None
) -> str:
    """
    WhatsApp deep link pre-filled with the support message.

    Pure: the same transaction id always yields the same link.
    """
    number = "".join(ch for ch in (support_number or get_support_number()) if ch.isdigit())
    message = build_support_message(failed_transaction_id)
    return f"https://wa.me/{number}?text={quote(message, safe='')}"

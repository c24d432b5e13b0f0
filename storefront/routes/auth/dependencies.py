import os
import hmac
from typing import Optional, Dict
from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader
from motor.motor_asyncio import AsyncIOMotorDatabase
from dotenv import load_dotenv

from storefront.database import Database
from storefront.services.payment.backend import PaymentBackend
from storefront.services.payment.mongo_backend import MongoPaymentBackend
from storefront.services.payment.attempt_store import attempt_store, PaymentAttemptStore

load_dotenv()


async def get_database():
    """Database dependency"""
    return Database.get_db()


async def get_payment_backend(
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> PaymentBackend:
    """Checkout collaborators dependency"""
    return MongoPaymentBackend(db)


def get_attempt_store() -> PaymentAttemptStore:
    """Payment attempt store dependency"""
    return attempt_store


admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)
ingest_key_header = APIKeyHeader(name="X-Ingest-Key", auto_error=False)


def _keys_match(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode(), expected.encode())


def get_admin_keys() -> Dict[str, str]:
    """
    Admin API keys by reviewer name.

    ADMIN_API_KEYS holds "name:key" pairs separated by commas; a bare
    ADMIN_API_KEY is accepted as the reviewer "admin".
    """
    keys: Dict[str, str] = {}
    for entry in os.getenv("ADMIN_API_KEYS", "").split(","):
        name, _, key = entry.strip().partition(":")
        if name and key:
            keys[name.strip()] = key.strip()
    shared_key = os.getenv("ADMIN_API_KEY")
    if shared_key:
        keys.setdefault("admin", shared_key)
    return keys


async def require_admin_key(api_key: Optional[str] = Depends(admin_key_header)) -> str:
    """Admin review actions require X-Admin-Key; returns the reviewer name"""
    if api_key:
        for reviewer, expected in get_admin_keys().items():
            if _keys_match(api_key, expected):
                return reviewer
    raise HTTPException(status_code=401, detail="Invalid admin key")


async def require_ingest_key(api_key: Optional[str] = Depends(ingest_key_header)) -> str:
    """SMS forwarding requires X-Ingest-Key"""
    expected = os.getenv("SMS_INGEST_KEY")
    if not api_key or not expected or not _keys_match(api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid ingest key")
    return "sms-monitor"

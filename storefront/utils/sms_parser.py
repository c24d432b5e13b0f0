"""
Payment SMS Parser
Extracts transaction details from mobile-wallet confirmation messages, e.g.

    "You have received Tk 500.00 from 01954723595. Fee Tk 0.00.
     Balance Tk 510.00. TrxID CI131K7A2D at 01/09/2025 11:32"
"""
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

TRXID_PATTERN = re.compile(r"TrxID\s+([A-Z0-9]{8,15})", re.IGNORECASE)
REF_PATTERN = re.compile(r"Ref\s+([A-Z0-9]{5,15})", re.IGNORECASE)

# "Tk 500.00" / "BDT 1,234.56"; balance and fee are matched separately
AMOUNT_PATTERN = re.compile(r"(?<!Balance )(?<!Fee )(?:Tk|BDT)\s*([\d,]+(?:\.\d+)?)", re.IGNORECASE)
BALANCE_PATTERN = re.compile(r"Balance\s*(?:Tk|BDT)?\s*([\d,]+(?:\.\d+)?)", re.IGNORECASE)
FEE_PATTERN = re.compile(r"Fee\s*(?:Tk|BDT)?\s*([\d,]+(?:\.\d+)?)", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"from\s*(\d{11})", re.IGNORECASE)
DATE_PATTERN = re.compile(r"at\s*(\d{2}/\d{2}/\d{4}\s+\d{1,2}:\d{2})", re.IGNORECASE)

WALLET_KEYWORDS = (
    ("bkash", ("bkash", "b-kash")),
    ("nagad", ("nagad",)),
    ("rocket", ("rocket", "dbbl", "dutch-bangla")),
)


@dataclass
class ParsedSMS:
    """Fields recovered from one wallet SMS"""
    transaction_id: Optional[str]
    wallet_type: str
    amount: Optional[Decimal] = None
    balance: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    sender_phone: Optional[str] = None
    transaction_date: Optional[datetime] = None


def _extract_number(pattern: re.Pattern, text: str) -> Optional[Decimal]:
    match = pattern.search(text)
    if not match:
        return None
    try:
        return Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None


def extract_transaction_id(message: str) -> Optional[str]:
    """TrxID first, then Ref numbers"""
    for pattern in (TRXID_PATTERN, REF_PATTERN):
        match = pattern.search(message)
        if match:
            return match.group(1).strip().upper()
    return None


def detect_wallet_type(message: str, sender: Optional[str] = None) -> str:
    haystack = f"{sender or ''} {message}".lower()
    for wallet, keywords in WALLET_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return wallet
    return "unknown"


def _extract_date(message: str) -> Optional[datetime]:
    match = DATE_PATTERN.search(message)
    if not match:
        return None
    try:
        return datetime.strptime(" ".join(match.group(1).split()), "%d/%m/%Y %H:%M")
    except ValueError:
        return None


def parse_payment_sms(message: str, sender: Optional[str] = None) -> ParsedSMS:
    """Parse a wallet confirmation SMS; missing fields come back as None"""
    phone = PHONE_PATTERN.search(message)
    return ParsedSMS(
        transaction_id=extract_transaction_id(message),
        wallet_type=detect_wallet_type(message, sender),
        amount=_extract_number(AMOUNT_PATTERN, message),
        balance=_extract_number(BALANCE_PATTERN, message),
        fee=_extract_number(FEE_PATTERN, message),
        sender_phone=phone.group(1) if phone else None,
        transaction_date=_extract_date(message),
    )

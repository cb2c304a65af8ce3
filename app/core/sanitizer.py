"""Redaction helpers for payloads that may carry card data or credentials.

Used before anything reaches the gateway audit table or the process logs.
Field names are matched case-insensitively, so both the provider's
PascalCase keys (``CardNumber``) and our own snake_case keys are covered.
"""
from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = frozenset(
    {
        "merchantkey",
        "merchant_key",
        "merchantid",
        "merchant_id",
        "clientsecret",
        "client_secret",
        "prod_client_secret",
        "dev_client_secret",
        "certificate",
        "certificate_password",
        "password",
        "token",
        "cardtoken",
        "cardnumber",
        "card_number",
        "number",
        "securitycode",
        "security_code",
        "cvv",
        "holder",
        "expirationdate",
        "expiration_date",
        "authorization",
    }
)

# Some keys are sensitive only inside a card block (boletos also carry ExpirationDate)
_CARD_ONLY_FIELDS = frozenset({"expirationdate", "expiration_date", "holder", "number"})
_CARD_CONTAINERS = frozenset({"creditcard", "debitcard", "card", "credit_card"})

_CARD_PATTERN = re.compile(r"\b(?:\d[ -]?){12,15}(\d{4})\b")
_CPF_PATTERN = re.compile(r"\b\d{3}\.?\d{3}\.?\d{3}-?(\d{2})\b")
_BEARER_PATTERN = re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)


def sanitize_text(value: str) -> str:
    """Mask card numbers, CPFs and bearer tokens inside free text."""
    masked = _CARD_PATTERN.sub(lambda m: f"**** **** **** {m.group(1)}", value)
    masked = _CPF_PATTERN.sub(lambda m: f"***.***.***-{m.group(1)}", masked)
    return _BEARER_PATTERN.sub(f"Bearer {REDACTED}", masked)


def _is_sensitive(key: str, in_card: bool) -> bool:
    lowered = key.lower()
    if lowered not in SENSITIVE_FIELDS:
        return False
    if lowered in _CARD_ONLY_FIELDS:
        return in_card
    return True


def sanitize_payload(data: Any, *, _in_card: bool = False) -> Any:
    """Return a redacted deep copy of ``data``.

    Dicts and lists are walked recursively; strings are passed through
    :func:`sanitize_text`; other scalars are returned unchanged.
    """
    if isinstance(data, dict):
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            key_str = str(key)
            if _is_sensitive(key_str, _in_card) and value is not None:
                cleaned[key_str] = REDACTED
                continue
            child_in_card = _in_card or key_str.lower() in _CARD_CONTAINERS
            cleaned[key_str] = sanitize_payload(value, _in_card=child_in_card)
        return cleaned
    if isinstance(data, (list, tuple)):
        return [sanitize_payload(item, _in_card=_in_card) for item in data]
    if isinstance(data, str):
        return sanitize_text(data)
    return data

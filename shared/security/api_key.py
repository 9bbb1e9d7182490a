"""
Internal API keys used by back-office callers (fulfilment, warehouse tooling)
for endpoints that are not tied to a buyer or seller, such as order status
updates and payment transaction lookups.

INTERNAL_API_KEY may hold several comma-separated keys so a key can be
rotated without downtime. When unset, startup continues with an insecure
default and a warning.
"""
import os
import secrets
import warnings

INTERNAL_API_KEYS: tuple[str, ...] = tuple(
    key.strip() for key in os.getenv("INTERNAL_API_KEY", "").split(",") if key.strip()
)

if not INTERNAL_API_KEYS:
    warnings.warn(
        "INTERNAL_API_KEY is not set. Back-office endpoints accept an insecure "
        "default key. Set this env var in production!",
        stacklevel=2,
    )
    INTERNAL_API_KEYS = ("insecure-default-change-me",)


def verify_api_key(provided_key: str | None) -> bool:
    if not provided_key:
        return False
    # Constant time across all keys
    matched = False
    for key in INTERNAL_API_KEYS:
        matched |= secrets.compare_digest(provided_key.encode(), key.encode())
    return matched

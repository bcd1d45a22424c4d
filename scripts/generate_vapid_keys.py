#!/usr/bin/env python3
"""Generate a VAPID key pair for web push.

Prints the values to put in the environment (or .env):

    VAPID_PUBLIC_KEY   -> also served to browsers by /api/v1/notifications/vapid-public-key
    VAPID_PRIVATE_KEY  -> used by the push transport to sign requests

Usage:
    python scripts/generate_vapid_keys.py
"""

import base64

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def main() -> None:
    vapid = Vapid()
    vapid.generate_keys()

    public_raw = vapid.public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    private_raw = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")

    print(f"VAPID_PUBLIC_KEY={_b64url(public_raw)}")
    print(f"VAPID_PRIVATE_KEY={_b64url(private_raw)}")


if __name__ == "__main__":
    main()

"""Sign a sample Stripe event and POST it to a running payments service.

Useful for exercising the webhook path without the Stripe CLI.
"""

import argparse
import hashlib
import hmac
import json
import time
from pathlib import Path
from uuid import uuid4

import httpx


def sign(payload: bytes, secret: str, timestamp: int) -> str:
    """Build a `stripe-signature` header value for `payload`."""

    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def sample_event(event_type: str, order_id: str) -> dict:
    """Minimal event carrying the fields the dispatcher reads."""

    return {
        "id": f"evt_{uuid4().hex[:24]}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": f"ch_{uuid4().hex[:24]}",
                "object": "charge",
                "metadata": {"orderId": order_id},
                "receipt_url": "https://pay.stripe.com/receipts/test",
            }
        },
    }


def main() -> None:
    """Parse CLI args, sign one event, print the service response."""

    parser = argparse.ArgumentParser(description="Send a signed test webhook.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--secret", required=True, help="Webhook endpoint secret (whsec_...)")
    parser.add_argument("--type", dest="event_type", default="charge.succeeded")
    parser.add_argument("--order-id", default="ord-test")
    parser.add_argument("--file", dest="json_file", default=None, help="Send this JSON event instead")
    parser.add_argument("--tamper", action="store_true", help="Corrupt the signature")
    args = parser.parse_args()

    if args.json_file:
        payload = Path(args.json_file).read_bytes()
    else:
        payload = json.dumps(sample_event(args.event_type, args.order_id)).encode("utf-8")

    header = sign(payload, args.secret, int(time.time()))
    if args.tamper:
        header = header[:-4] + "0000"

    resp = httpx.post(
        f"{args.base_url}/payments/webhook",
        content=payload,
        headers={"stripe-signature": header, "content-type": "application/json"},
        timeout=10.0,
    )
    print(f"status={resp.status_code}")
    print(resp.text)


if __name__ == "__main__":
    main()

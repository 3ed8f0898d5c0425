"""VNPay signing helper.

VNPay authenticates redirects and IPN callbacks with an HMAC-SHA512 over the
request parameters:

    1. Drop the hash fields, sort the remaining keys lexicographically.
    2. Join them as an unencoded ``key=value&key=value`` string.
    3. ``hex(HMAC-SHA512(hash_secret, string))`` is ``vnp_SecureHash``.

Both directions are pure functions of the parameter map plus configuration;
there is no state and nothing is retried.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode
from zoneinfo import ZoneInfo

from thumua_marketplace.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Mapping

VNP_VERSION = "2.1.0"
VNP_COMMAND = "pay"
VNP_CURRENCY = "VND"
HASH_FIELD = "vnp_SecureHash"
HASH_TYPE_FIELD = "vnp_SecureHashType"
DATE_FORMAT = "%Y%m%d%H%M%S"


def build_sign_data(params: Mapping[str, object]) -> str:
    """Serialize parameters as the sorted, unencoded string VNPay signs."""
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def sign(secret: str, data: str) -> str:
    return hmac.new(secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha512).hexdigest()


class VNPayClient:
    """Builds signed payment URLs and checks gateway callbacks."""

    def __init__(
        self,
        tmn_code: str | None = None,
        hash_secret: str | None = None,
        payment_url: str | None = None,
        return_url: str | None = None,
        timezone: str | None = None,
        expire_minutes: int | None = None,
    ) -> None:
        settings = get_settings()
        self.tmn_code = tmn_code if tmn_code is not None else settings.vnpay_tmn_code
        self.hash_secret = hash_secret if hash_secret is not None else settings.vnpay_hash_secret
        self.payment_url = payment_url or settings.vnpay_url
        self.return_url = return_url or settings.vnpay_return_url
        self.tz = ZoneInfo(timezone or settings.vnpay_timezone)
        self.expire_minutes = expire_minutes or settings.vnpay_expire_minutes

    def format_date(self, moment: datetime) -> str:
        """Render a timestamp as ``yyyyMMddHHmmss`` in the gateway's timezone."""
        return moment.astimezone(self.tz).strftime(DATE_FORMAT)

    def build_payment_params(
        self,
        order_id: str,
        amount: int,
        description: str,
        ip_addr: str = "127.0.0.1",
        order_type: str = "other",
        locale: str = "vn",
        now: datetime | None = None,
    ) -> dict[str, str]:
        """Return the signed parameter map for a payment redirect."""
        created = now or datetime.now(UTC)
        params: dict[str, str] = {
            "vnp_Version": VNP_VERSION,
            "vnp_Command": VNP_COMMAND,
            "vnp_TmnCode": self.tmn_code,
            "vnp_Locale": locale,
            "vnp_CurrCode": VNP_CURRENCY,
            "vnp_TxnRef": str(order_id),
            "vnp_OrderInfo": description,
            "vnp_OrderType": order_type,
            # The gateway expects the amount in hundredths of a dong.
            "vnp_Amount": str(int(amount) * 100),
            "vnp_ReturnUrl": self.return_url,
            "vnp_IpAddr": ip_addr,
            "vnp_CreateDate": self.format_date(created),
            "vnp_ExpireDate": self.format_date(
                created + timedelta(minutes=self.expire_minutes)
            ),
        }
        params[HASH_FIELD] = sign(self.hash_secret, build_sign_data(params))
        return params

    def create_payment_url(
        self,
        order_id: str,
        amount: int,
        description: str,
        ip_addr: str = "127.0.0.1",
        **kwargs,
    ) -> str:
        """Return the full gateway redirect URL for an order.

        The signature covers the raw values; the URL itself is percent-encoded
        so descriptions containing ``&`` or spaces survive the redirect.
        """
        params = self.build_payment_params(order_id, amount, description, ip_addr, **kwargs)
        return f"{self.payment_url}?{urlencode(params, quote_via=quote)}"

    def verify_return_url(self, params: Mapping[str, object]) -> bool:
        """Recompute the signature of a callback and compare it to the one received.

        The caller's mapping is left untouched.
        """
        received = params.get(HASH_FIELD)
        if not received:
            return False
        unsigned = {
            key: value
            for key, value in params.items()
            if key not in (HASH_FIELD, HASH_TYPE_FIELD)
        }
        expected = sign(self.hash_secret, build_sign_data(unsigned))
        return hmac.compare_digest(expected.encode("utf-8"), str(received).encode("utf-8"))

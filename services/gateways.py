"""HTTP clients for the two external payment gateways.

VietQR renders a bank-transfer QR code and later posts the result to our
callback; PayOS hosts a checkout page and redirects the buyer back with the
result in the query string. Both expose a status endpoint the poller uses.
Every call has a timeout and every failure surfaces as ``GatewayError``.
"""

from core.imports import requests, hashlib, hmac
from core.errors import GatewayError

SUCCESS = "success"
FAILURE = "failure"

VIETQR_SUCCESS_CODES = ("SUCCESS",)
PAYOS_SUCCESS_CODES = ("PAID", "SUCCESS", "00")
IN_PROGRESS_CODES = ("PENDING", "PROCESSING")

SIGNED_FIELDS = ("amount", "cancelUrl", "description", "orderCode", "returnUrl")


def callback_outcome(status, success_codes):
    """Anything not explicitly successful counts as a failure."""
    return SUCCESS if status is not None and str(status).upper() in success_codes else FAILURE


def poll_outcome(status, success_codes):
    """Like ``callback_outcome`` but returns None while the gateway is still waiting."""
    if str(status).upper() in IN_PROGRESS_CODES:
        return None
    return callback_outcome(status, success_codes)


def build_signature(data, checksum_key):
    raw = "&".join(f"{field}={data[field]}" for field in SIGNED_FIELDS)
    return hmac.new(checksum_key.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


def _call(gateway, method, url, **kwargs):
    try:
        response = requests.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()
    except requests.Timeout:
        raise GatewayError(f"{gateway} did not answer in time")
    except requests.RequestException as e:
        raise GatewayError(f"Error communicating with {gateway}: {e}")
    except ValueError:
        raise GatewayError(f"{gateway} returned a malformed response")


def _unwrap(gateway, body):
    if not isinstance(body, dict):
        raise GatewayError(f"{gateway} returned a malformed response")
    if body.get("code") != "00":
        raise GatewayError(f"{gateway} rejected the request: {body.get('desc') or body.get('code')}")
    data = body.get("data")
    if not isinstance(data, dict):
        raise GatewayError(f"{gateway} response is missing data")
    return data


class VietQRGateway:
    name = "VietQR"

    def __init__(self, config):
        self.account_no = config.get("BANK_ACCOUNT_NO")
        self.account_name = config.get("BANK_ACCOUNT_NAME")
        self.acq_id = config.get("BANK_ACQ_ID")
        self.client_id = config.get("VIETQR_CLIENT_ID")
        self.api_key = config.get("VIETQR_API_KEY")
        self.api_url = config.get("VIETQR_API_URL")
        self.status_url = config.get("VIETQR_STATUS_API_URL")
        self.timeout = config.get("GATEWAY_TIMEOUT", 10)

    def is_configured(self):
        return all([self.account_no, self.account_name, self.acq_id, self.client_id, self.api_key])

    def _headers(self):
        return {"x-client-id": self.client_id, "x-api-key": self.api_key}

    def generate(self, order_id, amount, callback_url):
        payload = {
            "accountNo": self.account_no,
            "accountName": self.account_name,
            "acqId": int(self.acq_id),
            "amount": amount,
            "addInfo": str(order_id),
            "format": "text",
            "template": "compact",
            "callbackUrl": callback_url,
        }
        body = _call(self.name, "POST", self.api_url, json=payload, headers=self._headers(), timeout=self.timeout)
        data = _unwrap(self.name, body)
        if not data.get("qrDataURL"):
            raise GatewayError("VietQR returned no QR data")
        return data

    def fetch_status(self, payment):
        """Return ``(status, transaction_id)`` as reported by the gateway."""
        url = f"{self.status_url}/{payment.order_id}"
        body = _call(self.name, "GET", url, headers=self._headers(), timeout=self.timeout)
        data = _unwrap(self.name, body)
        if not data.get("status"):
            raise GatewayError("VietQR status response has no status")
        return data["status"], data.get("transactionId")

    def outcome(self, status):
        return poll_outcome(status, VIETQR_SUCCESS_CODES)


class PayOSGateway:
    name = "PayOS"

    def __init__(self, config):
        self.client_id = config.get("PAYOS_CLIENT_ID")
        self.api_key = config.get("PAYOS_API_KEY")
        self.checksum_key = config.get("PAYOS_CHECKSUM_KEY")
        self.api_url = config.get("PAYOS_API_URL")
        self.timeout = config.get("GATEWAY_TIMEOUT", 10)

    def is_configured(self):
        return all([self.client_id, self.api_key, self.checksum_key])

    def _headers(self):
        return {"x-client-id": self.client_id, "x-api-key": self.api_key}

    def create_payment_request(self, order_code, amount, description, return_url, cancel_url):
        payload = {
            "orderCode": order_code,
            "amount": amount,
            "description": description,
            "returnUrl": return_url,
            "cancelUrl": cancel_url,
        }
        payload["signature"] = build_signature(payload, self.checksum_key)

        body = _call(self.name, "POST", self.api_url, json=payload, headers=self._headers(), timeout=self.timeout)
        data = _unwrap(self.name, body)
        if not data.get("checkoutUrl"):
            raise GatewayError("PayOS returned no checkout URL")
        return data["checkoutUrl"]

    def fetch_status(self, payment):
        url = f"{self.api_url}/{payment.transaction_id}"
        body = _call(self.name, "GET", url, headers=self._headers(), timeout=self.timeout)
        data = _unwrap(self.name, body)
        if not data.get("status"):
            raise GatewayError("PayOS status response has no status")
        return data["status"], None

    def outcome(self, status):
        return poll_outcome(status, PAYOS_SUCCESS_CODES)


GATEWAYS = {
    "VietQR": VietQRGateway,
    "PayOS": PayOSGateway,
}


def get_gateway(method, config):
    """Gateway client for a payment method, or None for cash on delivery."""
    gateway_class = GATEWAYS.get(method)
    return gateway_class(config) if gateway_class else None

"""Provider error type and operator-facing hints."""

import re

import httpx

_PROVIDER_URLS = {
    "hetzner": {
        "token": "https://console.hetzner.cloud/projects -> API Tokens",
        "billing": "https://console.hetzner.cloud/billing",
    },
    "digitalocean": {
        "token": "https://cloud.digitalocean.com/account/api/tokens",
        "billing": "https://cloud.digitalocean.com/account/billing",
    },
    "vultr": {
        "token": "https://my.vultr.com/settings/#settingsapi",
        "billing": "https://my.vultr.com/billing",
    },
    "linode": {
        "token": "https://cloud.linode.com/profile/tokens",
        "billing": "https://cloud.linode.com/account/billing",
    },
}

DISPLAY_NAMES = {
    "hetzner": "Hetzner Cloud",
    "digitalocean": "DigitalOcean",
    "vultr": "Vultr",
    "linode": "Linode (Akamai)",
}


class ProviderError(Exception):
    """Error raised by a provider adapter.

    Carries only the scrubbed, human-readable message and the HTTP status
    code. Never holds a reference to the outbound request.
    """

    def __init__(self, message, status_code=None, network_error=False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.network_error = network_error


def extract_error_message(body) -> str:
    """Pull a human-readable message out of a vendor error body.

    Recognized shapes:
        {"error": {"message": ...}}        Hetzner
        {"message": ...}                   DigitalOcean
        {"error": "..."}                   Vultr
        {"errors": [{"reason": ...}, ...]} Linode
    """
    if isinstance(body, str):
        return body.strip()
    if not isinstance(body, dict):
        return ""

    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error

    if isinstance(body.get("message"), str):
        return body["message"]

    errors = body.get("errors")
    if isinstance(errors, list):
        reasons = [e["reason"] for e in errors if isinstance(e, dict) and isinstance(e.get("reason"), str)]
        return ", ".join(reasons)

    return ""


def response_error_message(response: httpx.Response) -> str:
    """Vendor message from an error response, or a transport-level fallback."""
    try:
        message = extract_error_message(response.json())
    except ValueError:
        message = ""
    if message:
        return message
    return f"Request failed with status code {response.status_code} ({response.reason_phrase})"


def get_provider_display_name(provider: str) -> str:
    return DISPLAY_NAMES.get(provider, provider)


def map_provider_error(error, provider: str) -> str:
    """Return an actionable hint for a provider failure, or "" when none applies."""
    urls = _PROVIDER_URLS.get(provider, {})
    display_name = get_provider_display_name(provider)

    if isinstance(error, ProviderError):
        status = error.status_code
        if status in (401, 403):
            return f"API token is invalid or expired. Generate a new Read & Write token from {token_url(provider)}"
        if status == 402:
            return f"Insufficient account balance. Add funds at {urls.get('billing', 'your provider billing page')}"
        if status == 404:
            return "Resource not found. The server may have been deleted or the ID is incorrect."
        if status == 409:
            return "Resource conflict. This name or resource may already be in use."
        if status == 422:
            return "Invalid request parameters. Please check your input and try again."
        if status == 429:
            return f"{display_name} rate limit exceeded. Wait a moment and try again."
        if status and status >= 500:
            return f"{display_name} API is experiencing issues (HTTP {status}). Try again later."
        if error.network_error:
            return f"Cannot reach {display_name} API. Check your internet connection."

    message = str(error)
    if re.search(r"insufficient.*(balance|fund|credit)", message, re.IGNORECASE):
        return f"Insufficient account balance. Add funds at {urls.get('billing', 'your provider billing page')}"
    if re.search(r"unavailable|not available|sold out", message, re.IGNORECASE):
        return "This server type is not available in the selected region. Try a different size or region."
    return ""


def token_url(provider: str) -> str:
    return _PROVIDER_URLS.get(provider, {}).get("token", "your provider dashboard")

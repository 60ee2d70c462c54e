import logging
import os

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.resend.com/emails"


def send_email(
    to: str,
    subject: str,
    text: str,
    *,
    html: str | None = None,
    api_url: str | None = None,
    api_key: str | None = None,
    sender: str | None = None,
) -> dict:
    """Send one email through the transactional mail HTTP API.

    Credentials resolve as explicit args > env. Raises RuntimeError with the
    provider's error details when the request is refused.
    """
    api_url = api_url or os.getenv("MAILER_API_URL") or DEFAULT_API_URL
    api_key = api_key or os.getenv("MAILER_API_KEY")
    sender = sender or os.getenv("MAILER_FROM", "Carrymatch <noreply@carrymatch.local>")
    if not api_key:
        raise RuntimeError("Mailer credentials are not configured")
    if not to:
        raise ValueError("Recipient address is required")

    data = {"from": sender, "to": [to], "subject": subject, "text": text}
    if html:
        data["html"] = html
    resp = requests.post(
        api_url,
        json=data,
        headers={"Authorization": f"Bearer {api_key}"},
        timeout=15,
    )
    try:
        resp.raise_for_status()
    except requests.HTTPError as e:  # Surface provider error details to caller
        try:
            payload = resp.json()
            err = payload.get("error") or payload
            msg = err.get("message") if isinstance(err, dict) else str(err)
            details = f"Mailer API error (HTTP {resp.status_code}): {msg or e}"
        except ValueError:
            details = f"HTTP {resp.status_code}: {resp.text[:500]}"
        raise RuntimeError(details) from e
    logger.info("Email '%s' sent to %s", subject, to)
    try:
        return resp.json()
    except ValueError:
        return {}

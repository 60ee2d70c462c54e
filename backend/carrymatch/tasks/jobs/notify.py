import logging

from carrymatch.integrations.mailer.client import send_email
from carrymatch.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def render_match_email(payload: dict) -> tuple[str, str]:
    """Subject and plain-text body for a notification payload (match event or shipment alert)."""
    subject = payload.get("title") or "Carrymatch"
    lines = [payload.get("body") or ""]
    route = payload.get("route_description")
    if route:
        lines.append(f"Trajet : {route}")
    app_url = (payload.get("app_url") or "").rstrip("/")
    if app_url and payload.get("match_id") is not None:
        lines.append(f"Voir la mise en relation : {app_url}/matches/{payload['match_id']}")
    elif app_url and payload.get("shipment_request_id") is not None:
        lines.append(f"Voir la demande : {app_url}/shipments/{payload['shipment_request_id']}")
    return subject, "\n\n".join(line for line in lines if line)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_match_notification_email(self, payload: dict) -> dict:
    recipient = payload.get("recipient_email")
    if not recipient:
        logger.warning("Notification %s for user %s has no recipient email", payload.get("event"), payload.get("recipient_id"))
        return {"sent": False}
    subject, text = render_match_email(payload)
    try:
        result = send_email(recipient, subject, text)
    except RuntimeError as exc:
        logger.error("Email for match %s (%s) failed: %s", payload.get("match_id"), payload.get("event"), exc)
        raise self.retry(exc=exc)
    return {"sent": True, "result": result}

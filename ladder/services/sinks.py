"""Notification sinks: hand planned events to whatever delivers them."""
import json
import logging

import requests

from ladder.app import db
from ladder.errors import NotificationDeliveryError
from ladder.models import Notification

logger = logging.getLogger(__name__)


class OutboxNotificationSink:
    """Queue events as Notification rows in the caller's transaction.

    An external mailer reads ``queued`` rows, renders the email and marks
    them ``sent`` or ``failed``.
    """

    def deliver(self, event):
        db.session.add(Notification(
            notif_type=event.type,
            challenge_id=event.challenge_id,
            recipients=json.dumps([dict(r) for r in event.recipients]),
            payload=json.dumps(dict(event.payload)),
            status='queued',
        ))


class WebhookNotificationSink:
    """POST each event as JSON to a delivery service."""

    def __init__(self, url, timeout=10, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def deliver(self, event):
        try:
            response = self.session.post(self.url, json=event.to_dict(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NotificationDeliveryError(
                f'Webhook delivery of {event.type} for challenge {event.challenge_id} failed: {exc}'
            ) from exc
        logger.debug('Delivered %s for challenge %s to %s', event.type, event.challenge_id, self.url)


def sink_from_config(config):
    url = str(config.get('NOTIFICATION_WEBHOOK_URL') or '').strip()
    if url:
        return WebhookNotificationSink(url, timeout=config.get('NOTIFICATION_WEBHOOK_TIMEOUT', 10))
    return OutboxNotificationSink()

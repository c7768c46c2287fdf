import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class FcmGateway:
    """Push gateway client for the FCM legacy HTTP endpoint."""

    def __init__(self, endpoint=None, server_key=None, timeout=None, session=None):
        self.endpoint = endpoint or settings.FCM_ENDPOINT
        self.server_key = settings.FCM_SERVER_KEY if server_key is None else server_key
        self.timeout = timeout or settings.FCM_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @staticmethod
    def build_payload(token, title, body, data):
        return {
            "to": token,
            "notification": {
                "title": title,
                "body": body,
                "sound": "default",
                "badge": 1,
            },
            "data": {key: str(value) for key, value in (data or {}).items()},
            "priority": "high",
        }

    def send(self, token, title, body, data=None):
        """Returns True when the gateway accepted the message."""
        if not self.server_key:
            logger.error("FCM_SERVER_KEY is not configured, cannot push")
            return False
        try:
            response = self.session.post(
                self.endpoint,
                json=self.build_payload(token, title, body, data),
                headers={
                    "Authorization": f"key={self.server_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Push gateway request failed: {e}")
            return False

        if response.status_code != 200:
            logger.warning(
                f"Push gateway rejected message: {response.status_code} {response.text[:200]}"
            )
            return False
        return True

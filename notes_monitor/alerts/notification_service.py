"""Notification transports for alerts.

Notifications are fire-and-forget: a transport failure is logged and never
undoes the alert state change that caused it.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

_SEVERITY_ICONS = {
    "CRITICAL": ":rotating_light:",
    "ERROR": ":x:",
    "WARNING": ":warning:",
}


class Notifier(Protocol):
    def notify(self, component: str, severity: str, alert_type: str, message: str) -> bool:
        ...


class LoggingNotifier:
    """Writes alerts to the log; the default when no webhook is configured."""

    def notify(self, component: str, severity: str, alert_type: str, message: str) -> bool:
        logger.warning(
            "alert_logged severity=%s component=%s alert_type=%s message=%s",
            severity,
            component,
            alert_type,
            message,
        )
        return True


class WebhookNotifier:
    """Posts a Slack-compatible JSON payload to a webhook URL."""

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    @staticmethod
    def build_payload(component: str, severity: str, alert_type: str, message: str) -> dict:
        icon = _SEVERITY_ICONS.get(severity.upper(), ":information_source:")
        return {
            "text": f"{icon} [{severity}] {component}: {message}",
            "component": component,
            "severity": severity,
            "alert_type": alert_type,
            "message": message,
        }

    def notify(self, component: str, severity: str, alert_type: str, message: str) -> bool:
        try:
            response = self._session.post(
                self._url,
                json=self.build_payload(component, severity, alert_type, message),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error("notify_failed component=%s alert_type=%s err=%s", component, alert_type, e)
            return False

        if response.ok:
            logger.info("notify_sent component=%s alert_type=%s", component, alert_type)
            return True
        logger.warning(
            "notify_rejected component=%s alert_type=%s status=%s body=%s",
            component,
            alert_type,
            response.status_code,
            response.text,
        )
        return False


def build_notifier(webhook_url: Optional[str], timeout: float = 5.0) -> Notifier:
    if webhook_url:
        return WebhookNotifier(webhook_url, timeout=timeout)
    return LoggingNotifier()

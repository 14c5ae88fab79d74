"""Mattermost incoming-webhook notifications."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class WebhookEvent(str, Enum):
    NEW_LEAD = "new_lead"
    DEAL_STATUS_CHANGED = "deal_status_changed"
    ONE_TO_ONE_SCHEDULED = "one_to_one_scheduled"
    AFFILIATE_JOINED = "affiliate_joined"
    MEETING_COMPLETED = "meeting_completed"
    DOCUMENT_UPLOADED = "document_uploaded"
    REFERRAL_SUBMITTED = "referral_submitted"
    PROPOSAL_SUBMITTED = "proposal_submitted"
    NDA_SENT = "nda_sent"
    NDA_COMPLETED = "nda_completed"
    PLAYBOOK_GENERATED = "playbook_generated"
    MESSAGE = "message"


DEFAULT_DISABLED_EVENTS = frozenset({WebhookEvent.DOCUMENT_UPLOADED})


def _text(key: str, default: str = "N/A") -> Callable[[Mapping[str, Any]], str]:
    return lambda data: str(data.get(key) or default)


def _money(key: str, default: str = "TBD") -> Callable[[Mapping[str, Any]], str]:
    def render(data: Mapping[str, Any]) -> str:
        value = data.get(key)
        if not value:
            return default
        try:
            return f"${float(value):,.0f}"
        except (TypeError, ValueError):
            return str(value)

    return render


EventField = Tuple[str, Callable[[Mapping[str, Any]], str]]

# heading, attachment color, footer, fields
EVENT_FORMATS: Dict[WebhookEvent, Tuple[str, str, str, List[EventField]]] = {
    WebhookEvent.NEW_LEAD: (
        "New Lead Created",
        "#36a64f",
        "Lead Management",
        [("Company", _text("company")), ("Contact", _text("contact")), ("Source", _text("source")), ("Value", _money("value"))],
    ),
    WebhookEvent.DEAL_STATUS_CHANGED: (
        "Deal Status Updated",
        "#f2c744",
        "Pipeline",
        [
            ("Deal", _text("deal_name")),
            ("New Status", _text("new_status")),
            ("Previous Status", _text("previous_status")),
            ("Value", _money("value", "N/A")),
        ],
    ),
    WebhookEvent.ONE_TO_ONE_SCHEDULED: (
        "One-to-One Meeting Scheduled",
        "#0066cc",
        "Affiliate Networking",
        [("Initiator", _text("initiator")), ("Partner", _text("partner")), ("Date", _text("date")), ("Location", _text("location", "Virtual"))],
    ),
    WebhookEvent.AFFILIATE_JOINED: (
        "New Affiliate Joined",
        "#9b59b6",
        "Affiliate Network",
        [("Name", _text("name")), ("Business", _text("business")), ("Specialty", _text("specialty")), ("Location", _text("location"))],
    ),
    WebhookEvent.MEETING_COMPLETED: (
        "Meeting Completed",
        "#2ecc71",
        "Meetings",
        [
            ("Meeting", _text("title")),
            ("Participants", _text("participants")),
            ("Duration", lambda d: f"{d['duration']} min" if d.get("duration") else "N/A"),
            ("Referrals Discussed", _text("referrals_discussed", "0")),
        ],
    ),
    WebhookEvent.DOCUMENT_UPLOADED: (
        "Document Uploaded",
        "#3498db",
        "Documents",
        [("Document", _text("name")), ("Project", _text("project")), ("Uploaded By", _text("uploaded_by")), ("Size", _text("size"))],
    ),
    WebhookEvent.REFERRAL_SUBMITTED: (
        "New Referral Submitted",
        "#e74c3c",
        "Referral Network",
        [
            ("From", _text("referrer")),
            ("To", _text("recipient")),
            ("Prospect", _text("prospect")),
            ("Company", _text("company")),
            ("Est. Value", _money("value")),
        ],
    ),
    WebhookEvent.PROPOSAL_SUBMITTED: (
        "Proposal Submitted",
        "#0066cc",
        "Proposals",
        [("Proposal", _text("name")), ("Type", _text("document_type")), ("Submitted By", _text("submitted_by")), ("Status", _text("status"))],
    ),
    WebhookEvent.NDA_SENT: (
        "NDA Sent for Signature",
        "#f2c744",
        "Agreements",
        [("Document", _text("document_id")), ("Recipient", _text("recipient_name")), ("Email", _text("recipient_email"))],
    ),
    WebhookEvent.NDA_COMPLETED: (
        "NDA Fully Executed",
        "#2ecc71",
        "Agreements",
        [("Document", _text("document_id")), ("Signed By", _text("signed_by")), ("Countersigned By", _text("countersigned_by"))],
    ),
    WebhookEvent.PLAYBOOK_GENERATED: (
        "Traction Playbook Generated",
        "#9b59b6",
        "Traction",
        [("Quarter", _text("quarter")), ("Meeting", _text("meeting_slot")), ("Checklists", _text("checklists", "0"))],
    ),
}


class NotificationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    skipped: bool = False


class Notifier(Protocol):
    async def send(self, event: WebhookEvent | str, data: Mapping[str, Any]) -> NotificationResult:
        ...


class MattermostNotifier:
    """Post formatted event messages to a Mattermost incoming webhook.

    ``send`` reports failures in the returned result and never raises.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        username: str = "Portal Bot",
        enabled_events: Optional[Iterable[WebhookEvent | str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.webhook_url = webhook_url
        self.username = username
        if enabled_events is None:
            self.enabled_events = {e for e in WebhookEvent if e not in DEFAULT_DISABLED_EVENTS}
        else:
            self.enabled_events = {WebhookEvent(e) for e in enabled_events}
        self._client = client
        self._timeout = timeout

    def is_enabled(self, event: WebhookEvent | str) -> bool:
        return WebhookEvent(event) in self.enabled_events

    def build_message(self, event: WebhookEvent | str, data: Mapping[str, Any]) -> Dict[str, Any]:
        event = WebhookEvent(event)
        base: Dict[str, Any] = {"username": self.username, "icon_emoji": ":rocket:"}
        if event is WebhookEvent.MESSAGE:
            message = {**base, "text": f"### Message from {self.username}\n\n{data.get('message') or 'No message provided'}"}
            details = data.get("details") or {}
            if details:
                message["attachments"] = [
                    {
                        "color": "#0066cc",
                        "fields": [{"title": k, "value": str(v), "short": True} for k, v in details.items()],
                    }
                ]
            return message

        if event not in EVENT_FORMATS:
            return {**base, "text": f"### Notification\n\n{json.dumps(dict(data), indent=2, default=str)}"}

        heading, color, footer, fields = EVENT_FORMATS[event]
        return {
            **base,
            "text": f"### {heading}",
            "attachments": [
                {
                    "color": color,
                    "fields": [{"title": title, "value": render(data), "short": True} for title, render in fields],
                    "footer": f"{self.username} • {footer}",
                }
            ],
        }

    async def send(self, event: WebhookEvent | str, data: Mapping[str, Any]) -> NotificationResult:
        try:
            event = WebhookEvent(event)
        except ValueError:
            return NotificationResult(success=False, error=f"Unknown event type: {event}")
        if not self.webhook_url:
            return NotificationResult(success=False, error="Mattermost webhook URL is not configured")
        if not self.is_enabled(event):
            logger.debug(f"Skipping disabled Mattermost event {event.value}")
            return NotificationResult(success=True, skipped=True)

        message = self.build_message(event, data)
        try:
            if self._client is not None:
                response = await self._client.post(self.webhook_url, json=message)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.webhook_url, json=message)
        except httpx.HTTPError as e:
            logger.warning(f"Mattermost webhook for {event.value} failed: {e}")
            return NotificationResult(success=False, error=str(e) or e.__class__.__name__)

        if response.is_error:
            logger.warning(f"Mattermost webhook for {event.value} returned HTTP {response.status_code}")
            return NotificationResult(success=False, error=f"HTTP {response.status_code}: {response.text}")
        return NotificationResult(success=True)

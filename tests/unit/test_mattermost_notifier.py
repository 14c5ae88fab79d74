import json

import httpx
import pytest

from portalflow.integrations.mattermost import MattermostNotifier, WebhookEvent

WEBHOOK = "https://chat.test/hooks/abc"


def _notifier(handler, posted=None, **kwargs) -> MattermostNotifier:
    def recording(request: httpx.Request) -> httpx.Response:
        if posted is not None:
            posted.append(json.loads(request.content))
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return MattermostNotifier(WEBHOOK, client=client, **kwargs)


def test_build_message_formats_fields():
    notifier = MattermostNotifier(WEBHOOK)
    message = notifier.build_message(
        WebhookEvent.NEW_LEAD, {"company": "Acme", "contact": "Jo", "value": 125000}
    )
    assert message["text"] == "### New Lead Created"
    attachment = message["attachments"][0]
    fields = {f["title"]: f["value"] for f in attachment["fields"]}
    assert fields == {"Company": "Acme", "Contact": "Jo", "Source": "N/A", "Value": "$125,000"}
    assert attachment["footer"].endswith("Lead Management")


def test_build_plain_message_with_details():
    message = MattermostNotifier(WEBHOOK, username="Ops").build_message(
        "message", {"message": "Deploy done", "details": {"env": "prod"}}
    )
    assert message["text"] == "### Message from Ops\n\nDeploy done"
    assert message["attachments"][0]["fields"] == [{"title": "env", "value": "prod", "short": True}]


def test_non_numeric_value_is_passed_through():
    message = MattermostNotifier(WEBHOOK).build_message(WebhookEvent.REFERRAL_SUBMITTED, {"value": "about 5k"})
    fields = {f["title"]: f["value"] for f in message["attachments"][0]["fields"]}
    assert fields["Est. Value"] == "about 5k"


@pytest.mark.asyncio
async def test_send_posts_to_webhook():
    posted = []
    notifier = _notifier(lambda request: httpx.Response(200, text="ok"), posted)
    result = await notifier.send("proposal_submitted", {"name": "Grant A", "status": "pending_signature"})
    assert result.success and not result.skipped
    assert posted[0]["username"] == "Portal Bot"
    assert posted[0]["text"] == "### Proposal Submitted"


@pytest.mark.asyncio
async def test_send_reports_http_errors():
    notifier = _notifier(lambda request: httpx.Response(500, text="boom"))
    result = await notifier.send(WebhookEvent.NDA_SENT, {})
    assert not result.success
    assert result.error == "HTTP 500: boom"


@pytest.mark.asyncio
async def test_send_reports_transport_errors():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await _notifier(unreachable).send(WebhookEvent.NDA_SENT, {})
    assert not result.success
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_disabled_and_unknown_events():
    posted = []
    notifier = _notifier(lambda request: httpx.Response(200), posted)
    skipped = await notifier.send(WebhookEvent.DOCUMENT_UPLOADED, {"name": "spec.pdf"})
    assert skipped.success and skipped.skipped
    unknown = await notifier.send("party", {})
    assert not unknown.success
    assert unknown.error == "Unknown event type: party"
    assert posted == []


@pytest.mark.asyncio
async def test_enabled_events_override():
    notifier = _notifier(lambda request: httpx.Response(200), enabled_events=["nda_sent"])
    assert notifier.is_enabled("nda_sent")
    assert not notifier.is_enabled(WebhookEvent.NEW_LEAD)
    assert (await notifier.send("new_lead", {})).skipped


@pytest.mark.asyncio
async def test_missing_webhook_url():
    result = await MattermostNotifier(None).send(WebhookEvent.MESSAGE, {"message": "hi"})
    assert not result.success
    assert result.error == "Mattermost webhook URL is not configured"

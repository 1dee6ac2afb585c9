import pytest

from conftest import signup
from leadconvert.integrations import email as email_integration
from leadconvert.integrations import whatsapp

pytestmark = pytest.mark.asyncio


@pytest.fixture
def providers(monkeypatch):
    outbox = []

    async def fake_send_message(phone, body):
        outbox.append(("whatsapp", phone, body))
        return {"external_id": "SM900", "delivery_status": "queued"}

    async def fake_send_email(to, subject, html_body):
        outbox.append(("email", to, html_body))
        return {"message_id": "<m1@example.com>"}

    monkeypatch.setattr(whatsapp, "send_message", fake_send_message)
    monkeypatch.setattr(email_integration, "send_email", fake_send_email)
    return outbox


async def test_end_to_end_flow(client, providers):
    await signup(client, "agent@example.com")

    # Create a lead; it is scored immediately
    created = await client.post(
        "/leads",
        json={
            "name": "Nia",
            "email": "nia@example.com",
            "phone": "+44 7700 900123",
            "source": "web_form",
            "initialMessage": "I am very interested in buying",
            "tags": ["inbound"],
        },
    )
    assert created.status_code == 201, created.text
    lead = created.json()
    assert lead["leadScore"] == 20
    assert lead["status"] == "new"
    assert lead["phone"] == "+447700900123"

    duplicate = await client.post("/leads", json={"name": "Nia", "email": "nia@example.com"})
    assert duplicate.status_code == 400

    listed = await client.get("/leads")
    assert [item["id"] for item in listed.json()] == [lead["id"]]

    insights = await client.get(f"/analytics/insights/lead/{lead['id']}")
    assert len(insights.json()) == 1
    assert insights.json()[0]["recommendedActions"][0]["action"] == "Follow Up"

    # Inbound interaction moves the lead to contacted and rescores it
    interaction = await client.post(
        "/interactions",
        json={
            "leadId": lead["id"],
            "channel": "phone",
            "direction": "inbound",
            "content": "Call me back",
            "sentiment": "positive",
            "intentScore": 80,
        },
    )
    assert interaction.status_code == 201
    refreshed = (await client.get(f"/leads/{lead['id']}")).json()
    assert refreshed["status"] == "contacted"
    assert refreshed["leadScore"] == 80
    assert refreshed["lastInteractionChannel"] == "phone"

    # Status cannot move backwards without reopening
    backwards = await client.patch(f"/leads/{lead['id']}", json={"status": "new"})
    assert backwards.status_code == 400
    reopened = await client.patch(f"/leads/{lead['id']}", json={"status": "new", "reopen": True})
    assert reopened.json()["status"] == "new"
    clamped = await client.patch(f"/leads/{lead['id']}", json={"leadScore": 250})
    assert clamped.json()["leadScore"] == 100

    # Outbound messaging
    wa = await client.post("/messaging/whatsapp", json={"leadId": lead["id"], "message": "Hello Nia"})
    assert wa.status_code == 200
    assert wa.json()["messageSid"] == "SM900"
    mail = await client.post(
        "/messaging/email", json={"leadId": lead["id"], "subject": "Welcome", "message": "<p>Hi</p>"}
    )
    assert mail.status_code == 200
    assert "/webhooks/email-tracker/" in providers[-1][2]

    conversations = await client.get("/interactions/conversations")
    channels = {item["channel"] for item in conversations.json()}
    assert channels == {"phone", "whatsapp", "email"}

    whatsapp_only = await client.get(f"/interactions/lead/{lead['id']}", params={"channel": "whatsapp"})
    assert [item["content"] for item in whatsapp_only.json()] == ["Hello Nia"]

    # Engagement tracking is public
    click = await client.post(f"/interactions/track/link-click/{lead['id']}", json={"url": "https://x.io", "eventId": "c1"})
    assert click.json() == {"message": "OK", "recorded": True}
    again = await client.post(f"/interactions/track/link-click/{lead['id']}", json={"url": "https://x.io", "eventId": "c1"})
    assert again.json() == {"message": "OK", "recorded": False}

    dashboard = await client.get("/analytics/dashboard")
    assert dashboard.status_code == 200
    assert dashboard.json()["leadCounts"]["total"] == 1

    score = await client.get("/scores/me")
    # create_lead 30 + interaction 25 + two update_lead 15
    assert score.json()["score"] == 85
    assert len(score.json()["activities"]) == 4

    board = await client.get("/scores/leaderboard")
    assert board.json()[0]["score"] == 85

    recorded = await client.post("/scores/activities", json={"type": "interaction", "description": "Called lead"})
    assert recorded.json()["score"] == 110


async def test_unknown_lead_returns_404_message(client):
    await signup(client, "solo@example.com")

    response = await client.get("/leads/999")
    outreach = await client.post("/messaging/outreach", json={"leadId": 999, "channel": "email"})

    assert response.status_code == 404
    assert response.json() == {"message": "Lead not found"}
    assert outreach.status_code == 404


async def test_delete_lead_cascades_to_interactions(client, make_client):
    admin = await make_client()
    await signup(admin, "root@example.com", role="admin")
    created = await admin.post("/leads", json={"name": "Temp", "email": "temp@example.com"})
    lead_id = created.json()["id"]
    await admin.post(
        "/interactions",
        json={"leadId": lead_id, "channel": "email", "direction": "outbound", "content": "hi"},
    )

    deleted = await admin.delete(f"/leads/{lead_id}")
    remaining = await admin.get("/interactions")

    assert deleted.json() == {"message": "Lead deleted"}
    assert [item for item in remaining.json() if item["leadId"] == lead_id] == []

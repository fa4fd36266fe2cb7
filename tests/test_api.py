from datetime import datetime, timedelta, timezone

from conftest import FakeQueue
from callpipe.extensions import db, rq
from callpipe.models import Call

FORM = {
    "AccountSid": "ACtest",
    "CallSid": "CA1",
    "RecordingSid": "RE1",
    "RecordingStatus": "completed",
    "RecordingUrl": "https://api.twilio.com/2010-04-01/Accounts/ACtest/Recordings/RE1",
    "RecordingDuration": "45",
    "From": "+15551234567",
    "To": "+15557654321",
}
URL = "/webhooks/twilio/recording"


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}


def test_webhook_enqueues_once(client):
    queue = FakeQueue()
    rq.use(queue)
    first = client.post(URL, data=FORM)
    second = client.post(URL, data=FORM)

    assert first.status_code == 200
    assert first.get_json() == {"ok": True, "jobId": "RE1", "duplicated": False}
    assert second.status_code == 200
    assert second.get_json()["duplicated"] is True
    assert len(queue.jobs) == 1
    job = queue.jobs[0]["args"][0]
    assert job["durationSec"] == 45
    assert job["publicWebhookUrl"].endswith(URL)
    assert "RecordingSid=RE1" in job["rawBody"]


def test_webhook_ignores_incomplete_recordings(client):
    queue = FakeQueue()
    rq.use(queue)
    resp = client.post(URL, data=dict(FORM, RecordingStatus="in-progress"))
    assert resp.get_json() == {"ok": True, "ignored": True}
    assert queue.jobs == []


def test_webhook_rejects_missing_fields(client):
    rq.use(FakeQueue())
    resp = client.post(URL, data={k: v for k, v in FORM.items() if k != "CallSid"})
    assert resp.status_code == 400


def test_webhook_backend_unavailable(client):
    resp = client.post(URL, data=FORM)
    assert resp.status_code == 503
    assert resp.get_json()["error"] == "backend_unavailable"


def _call(sid, minutes_ago, status="completed"):
    return Call(
        external_id=sid,
        started_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        from_number="+1555",
        duration_sec=10,
        language="English",
        summary=f"summary {sid}",
        status=status,
    )


def test_calls_lists_completed_newest_first(client):
    db.session.add_all([_call("CA1", 30), _call("CA2", 10), _call("CA3", 20), _call("CA4", 5, status="failed")])
    db.session.commit()

    rows = client.get("/calls").get_json()
    assert [r["external_id"] for r in rows] == ["CA2", "CA3", "CA1"]

    rows = client.get("/calls?limit=1&offset=1").get_json()
    assert [r["external_id"] for r in rows] == ["CA3"]


def test_calls_limit_is_clamped(client):
    db.session.add_all([_call(f"CA{i}", i) for i in range(60)])
    db.session.commit()
    assert len(client.get("/calls?limit=0").get_json()) == 1
    assert len(client.get("/calls?limit=500").get_json()) == 50
    assert len(client.get("/calls?limit=abc").get_json()) == 6
    assert len(client.get("/calls?offset=-4").get_json()) == 6

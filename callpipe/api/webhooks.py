# callpipe/api/webhooks.py
from datetime import datetime, timezone
from flask import Blueprint, request, jsonify, current_app
from ..jobs.producer import enqueue_recording_job, BACKEND_UNAVAILABLE, VALIDATION_FAILED

bp = Blueprint("webhooks", __name__)

TWILIO_RECORDING_PATH = "/webhooks/twilio/recording"


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def job_payload_from_form(form, raw_body=None, public_webhook_url=None):
    """Build the queue payload from Twilio's recording status callback fields."""
    return {
        "accountSid": form.get("AccountSid"),
        "callSid": form.get("CallSid"),
        "recordingSid": form.get("RecordingSid"),
        "recordingStatus": form.get("RecordingStatus"),
        "receivedAt": datetime.now(timezone.utc).isoformat(),
        "rawBody": raw_body,
        "publicWebhookUrl": public_webhook_url,
        "recordingUrl": form.get("RecordingUrl"),
        "durationSec": _int_or_none(form.get("RecordingDuration")),
        "fromNumber": form.get("From"),
        "toNumber": form.get("To"),
        "direction": form.get("Direction"),
    }


@bp.route(TWILIO_RECORDING_PATH, methods=["POST"])
def recording_status():
    # signature verification happens upstream of this service
    # read the raw body before form parsing consumes the stream
    raw_body = request.get_data(cache=True, as_text=True)
    form = request.form
    for key in ("AccountSid", "CallSid", "RecordingSid", "RecordingStatus"):
        if not form.get(key):
            return jsonify({"ok": False, "error": "validation_failed"}), 400

    recording_sid = form.get("RecordingSid")
    current_app.logger.info("recording webhook received sid=%s status=%s call=%s",
                            recording_sid, form.get("RecordingStatus"), form.get("CallSid"))
    if form.get("RecordingStatus") != "completed":
        return jsonify({"ok": True, "ignored": True}), 200

    base = current_app.config.get("PUBLIC_WEBHOOK_URL") or request.host_url
    payload = job_payload_from_form(
        form,
        raw_body=raw_body,
        public_webhook_url=base.rstrip("/") + TWILIO_RECORDING_PATH,
    )
    result = enqueue_recording_job(payload)
    if result.outcome == VALIDATION_FAILED:
        return jsonify({"ok": False, "error": "validation_failed"}), 400
    if result.outcome == BACKEND_UNAVAILABLE:
        return jsonify({"ok": False, "error": "backend_unavailable"}), 503

    current_app.logger.info("recording job enqueued job_id=%s duplicated=%s", result.job_id, result.duplicated)
    return jsonify({"ok": True, "jobId": result.job_id, "duplicated": result.duplicated}), 200

"""Enqueue a synthetic recording job, bypassing the webhook.

Usage:
  python scripts/enqueue_test_job.py --recording-url https://api.twilio.com/.../Recordings/RE...
  python scripts/enqueue_test_job.py --recording-sid RE123 --call-sid CA123 --duration 45
"""

import argparse
import os
import sys
import uuid
from datetime import datetime, timezone

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from callpipe import create_app
from callpipe.jobs.producer import enqueue_recording_job


def random_sid(prefix):
    return (prefix + uuid.uuid4().hex)[:34]


def build_payload(args, app):
    account_sid = args.account_sid or app.config.get("TWILIO_ACCOUNT_SID") or "AC_TEST"
    call_sid = args.call_sid or random_sid("CA")
    recording_sid = args.recording_sid or random_sid("RE")
    return {
        "accountSid": account_sid,
        "callSid": call_sid,
        "recordingSid": recording_sid,
        "recordingStatus": "completed",
        "receivedAt": datetime.now(timezone.utc).isoformat(),
        "recordingUrl": args.recording_url or os.environ.get("RECORDING_URL"),
        "fromNumber": args.from_number,
        "toNumber": args.to_number,
        "durationSec": args.duration,
        "publicWebhookUrl": app.config.get("PUBLIC_WEBHOOK_URL") or "http://localhost:8080",
        "rawBody": {
            "AccountSid": account_sid,
            "CallSid": call_sid,
            "RecordingSid": recording_sid,
            "RecordingStatus": "completed",
            "RecordingDuration": str(args.duration),
            "From": args.from_number,
            "To": args.to_number,
        },
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Enqueue a test recording job")
    parser.add_argument("--account-sid")
    parser.add_argument("--call-sid")
    parser.add_argument("--recording-sid")
    parser.add_argument("--recording-url")
    parser.add_argument("--from", dest="from_number", default="+15551234567")
    parser.add_argument("--to", dest="to_number", default="+15557654321")
    parser.add_argument("--duration", type=int, default=45)
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        payload = build_payload(args, app)
        result = enqueue_recording_job(payload)
        print("[enqueue]", result._asdict(), "recordingSid=", payload["recordingSid"])
        return 0 if result.ok else 1


if __name__ == '__main__':
    sys.exit(main())

import json
import logging

from qctoken.core.logger import JsonFormatter, mask_secret
from qctoken.core.monitoring import _scrub_event


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("qctoken.test", logging.INFO, __file__, 1, "refreshed %s", ("app-1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_masks_sensitive_extras():
    payload = json.loads(JsonFormatter().format(_record(refresh_token="rt-0123456789abcdef", credential_id=7)))

    assert payload["message"] == "refreshed app-1"
    assert payload["extra"]["credential_id"] == 7
    assert payload["extra"]["refresh_token"] == "rt-012..."


def test_mask_secret_handles_empty_values():
    assert mask_secret(None) == "<empty>"
    assert mask_secret("abcdefghijkl", visible=4) == "abcd..."


def test_sentry_events_are_scrubbed():
    event = {
        "request": {
            "data": {"app_id": "app-1", "app_secret": "s3cret"},
            "headers": {"Authorization": "Bearer abc"},
        }
    }

    scrubbed = _scrub_event(event, {})

    assert scrubbed["request"]["data"] == {"app_id": "app-1", "app_secret": "[Filtered]"}
    assert scrubbed["request"]["headers"]["Authorization"] == "[Filtered]"

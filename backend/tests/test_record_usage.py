from types import SimpleNamespace

from backend.examples import record_usage


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


def test_record_usage_posts_event_then_reads_analytics(monkeypatch, capsys):
    calls = []

    def fake_post(url, json, timeout):
        calls.append(SimpleNamespace(method="POST", url=url, json=json, headers=None))
        return FakeResponse({"id": "evt-1", **json})

    def fake_get(url, headers, timeout):
        calls.append(SimpleNamespace(method="GET", url=url, json=None, headers=headers))
        return FakeResponse({"total_usage": 1})

    monkeypatch.setattr(record_usage.requests, "post", fake_post)
    monkeypatch.setattr(record_usage.requests, "get", fake_get)

    record_usage.main(["--api-url", "http://api.test", "--tool", "merge-pdf", "--processing-time", "42", "--failed"])

    post, get = calls
    assert post.url == "http://api.test/api/analytics/tool-usage"
    assert post.json["tool_name"] == "merge-pdf"
    assert post.json["processing_time"] == 42
    assert post.json["success"] is False
    assert post.json["session_id"].startswith("cli-")
    assert get.url == "http://api.test/api/admin/analytics"
    assert get.headers == {"user-role": "admin"}
    assert "Analytics:" in capsys.readouterr().out

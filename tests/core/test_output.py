"""Tests for Output helper."""

import json

from jobtrace.core.output import Output


class TestOutput:
    """Tests for Output class."""

    def test_emit_merges_data(self):
        output = Output()
        output.emit({"mode": "live"})
        output.emit({"jobs": []})
        assert output.data == {"mode": "live", "jobs": []}

    def test_warnings_deduplicated(self):
        output = Output()
        output.warning("-n (namespace) is ignored in offline mode.")
        output.warning("-n (namespace) is ignored in offline mode.")
        assert len(output.warnings) == 1

    def test_to_json(self):
        output = Output()
        output.emit({"summary": {"requested": 1, "found": 0, "missing": [4]}})
        output.error("boom")
        payload = json.loads(output.to_json())
        assert payload["summary"]["missing"] == [4]
        assert payload["errors"] == ["boom"]
        assert payload["warnings"] == []

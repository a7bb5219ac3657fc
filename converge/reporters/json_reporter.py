"""
JSON run report generator.
"""
import json
from datetime import datetime, timezone

from converge import __version__
from converge.engine.report import RunReport


def build_report(report: RunReport, source_path: str) -> str:
    data = {
        "meta": {
            "generated": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "source": source_path,
            "tool": "converge",
            "version": __version__,
        },
    }
    data.update(report.to_dict())
    return json.dumps(data, indent=2)

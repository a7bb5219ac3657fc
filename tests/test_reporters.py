"""
Reporter tests: JSON structure, Markdown tables and the Mermaid graph.
"""
import json

from converge.engine.graph import build_graph
from converge.engine.report import RunReport
from converge.models.outcome import Outcome, ResourceResult, RunStatus
from converge.models.resource import Resource, ResourceId, ResourceKind
from converge.reporters import json_reporter, markdown


def _rid(ref):
    return ResourceId.parse(ref)


def _report(dry_run=False):
    resources = [
        Resource(ResourceKind.PACKAGE, "git"),
        Resource(ResourceKind.VCS_CHECKOUT, "/srv/app", {"source": "x"}, dependencies=[_rid("Package[git]")],
                 notifies=[_rid("Service[app]")]),
        Resource(ResourceKind.SERVICE, "app", {"command": "run"}, dependencies=[_rid("Package[git]")]),
        Resource(ResourceKind.USER, "web", dependencies=[_rid("Package[git]")]),
    ]
    graph = build_graph(resources)
    order = [_rid("Package[git]"), _rid("VcsCheckout[/srv/app]"), _rid("Service[app]"), _rid("User[web]")]
    results = {
        order[0]: ResourceResult(order[0], Outcome.UNCHANGED),
        order[1]: ResourceResult(order[1], Outcome.CHANGED, reason="not checked out", noop=dry_run),
        order[2]: ResourceResult(order[2], Outcome.FAILED, reason="refresh failed: spawn error",
                                 refreshed_by=[order[1]]),
        order[3]: ResourceResult(order[3], Outcome.SKIPPED, reason="dependency Service[app] failed"),
    }
    return RunReport(order=order, results=results, source="site.yaml", dry_run=dry_run, graph=graph)


class TestRunReport:
    def test_status_and_counts(self):
        report = _report()
        assert report.status == RunStatus.FAILURE
        assert report.exit_code == 1
        assert report.counts == {"Unchanged": 1, "Changed": 1, "Failed": 1, "Skipped": 1}

    def test_empty_run_is_success(self):
        report = RunReport()
        assert report.status == RunStatus.SUCCESS
        assert report.exit_code == 0


class TestJsonReporter:
    def setup_method(self):
        self.data = json.loads(json_reporter.build_report(_report(), "site.yaml"))

    def test_meta(self):
        assert self.data["meta"]["source"] == "site.yaml"
        assert self.data["meta"]["tool"] == "converge"

    def test_results_follow_order(self):
        assert [r["resource"] for r in self.data["results"]] == self.data["order"]
        assert self.data["order"][0] == "Package[git]"

    def test_result_fields(self):
        service = self.data["results"][2]
        assert service["kind"] == "Service"
        assert service["title"] == "app"
        assert service["outcome"] == "Failed"
        assert service["refreshed"] is False
        assert service["refreshed_by"] == ["VcsCheckout[/srv/app]"]

    def test_status(self):
        assert self.data["status"] == "Failure"
        assert self.data["dry_run"] is False


class TestMarkdownReporter:
    def test_sections(self):
        text = markdown.build_report(_report(), "site.yaml")
        assert text.startswith("# Convergence Report")
        assert "**Status: Failure** across **4 resources**" in text
        assert "## Resources" in text
        assert "```mermaid" in text

    def test_problem_table_lists_failed_and_skipped(self):
        text = markdown.build_report(_report(), "site.yaml")
        assert "| `Service[app]` | 🔴 Failed | refresh failed: spawn error |" in text
        assert "| `User[web]` | 🟡 Skipped | dependency Service[app] failed |" in text
        assert "All resources converged." not in text

    def test_ascii_mode(self):
        text = markdown.build_report(_report(), "site.yaml", ascii_mode=True)
        assert "[x] Failed" in text
        assert "[+] Changed" in text
        assert "🔴" not in text

    def test_dry_run_marks_noop(self):
        text = markdown.build_report(_report(dry_run=True), "site.yaml")
        assert "**Mode:** dry run" in text
        assert "🟢 Changed (noop)" in text

    def test_mermaid_edges(self):
        text = markdown.build_report(_report(), "site.yaml")
        assert 'VcsCheckout__srv_app_["VcsCheckout[/srv/app]"]' in text
        assert "Package_git_ -->|require| VcsCheckout__srv_app_" in text
        assert "VcsCheckout__srv_app_ -->|notify| Service_app_" in text
        assert "style Service_app_ fill:#ff4444" in text

    def test_mermaid_without_graph(self):
        report = _report()
        report.graph = None
        text = markdown.build_report(report, "site.yaml")
        assert "-->" not in text

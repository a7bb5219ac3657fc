import json
import os
import subprocess
import sys

from click.testing import CliRunner

from converge import __version__
from converge.cli import EXIT_MALFORMED, cli

from conftest import FIXTURES, make_host

SITE = os.path.join(FIXTURES, "site.yaml")


def _site_host():
    host = make_host()
    host.vcs.remote[("git@example.com:shop/app.git", "main")] = "a" * 40
    host.commands.effects["python3 -m venv /srv/shop/venv"] = (
        lambda: host.filesystem.write("/srv/shop/venv/bin/python", "")
    )
    return host


def _invoke(args, host=None):
    return CliRunner().invoke(cli, args, obj={"host": host} if host else {})


def test_module_execution():
    """Test that 'python -m converge' works."""
    result = subprocess.run(
        [sys.executable, "-m", "converge", "--help"],
        capture_output=True,
        text=True
    )
    assert result.returncode == 0
    assert "converge" in result.stdout
    assert "--dry-run" in result.stdout


def test_version():
    result = _invoke(["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_successful_run_exits_zero(tmp_path):
    out = tmp_path / "report.json"
    result = _invoke(["--input", SITE, "--format", "json", "--output", str(out)], _site_host())
    assert result.exit_code == 0, result.output

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["status"] == "Success"
    assert data["meta"]["tool"] == "converge"
    assert data["summary"]["Failed"] == 0
    assert len(data["results"]) == 11
    assert data["order"][0] == "Package[git]"
    service = next(r for r in data["results"] if r["resource"] == "Service[shop]")
    assert service["refreshed"] is True
    assert service["refreshed_by"] == ["File[/srv/shop/app/shop/local_settings.py]"]


def test_failed_resource_exits_one(tmp_path):
    host = _site_host()
    host.packages.unavailable.add("git")
    out = tmp_path / "report.json"
    result = _invoke(["-i", SITE, "--format", "json", "-o", str(out)], host)
    assert result.exit_code == 1

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["status"] == "Failure"
    outcomes = {r["resource"]: r["outcome"] for r in data["results"]}
    assert outcomes["Package[git]"] == "Failed"
    assert outcomes["VcsCheckout[/srv/shop/app]"] == "Skipped"
    assert outcomes["DbDatabase[shop]"] == "Changed"


def test_cycle_exits_two():
    host = make_host()
    result = _invoke(["--input", os.path.join(FIXTURES, "cycle.json")], host)
    assert result.exit_code == EXIT_MALFORMED
    assert "dependency cycle" in result.output
    assert host.users.users == {}


def test_missing_input_exits_two(tmp_path):
    result = _invoke(["--input", str(tmp_path / "missing.yaml")], make_host())
    assert result.exit_code == EXIT_MALFORMED
    assert "Invalid declaration" in result.output


def test_unknown_only_id_exits_two():
    result = _invoke(["-i", SITE, "--only", "Service[nope]"], _site_host())
    assert result.exit_code == EXIT_MALFORMED
    assert "Service[nope]" in result.output


def test_empty_only_exits_two():
    for value in ("", " , "):
        host = _site_host()
        result = _invoke(["-i", SITE, "--only", value], host)
        assert result.exit_code == EXIT_MALFORMED
        assert "no resource ids given" in result.output
        assert host.packages.installed == {}
        assert host.filesystem.entries == {}


def test_unwritable_output_exits_one(tmp_path):
    out = tmp_path / "missing-dir" / "report.md"
    result = _invoke(["-i", SITE, "-o", str(out)], _site_host())
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Cannot write report" in result.output
    assert not out.exists()


def test_only_runs_selection(tmp_path):
    host = _site_host()
    out = tmp_path / "report.json"
    result = _invoke(
        ["-i", SITE, "--only", "User[shop],DbDatabase[shop]", "--format", "json", "-o", str(out)], host
    )
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["order"] == ["DbDatabase[shop]", "User[shop]"]
    assert host.supervisor.configs == {}


def test_dry_run_changes_nothing(tmp_path):
    host = _site_host()
    out = tmp_path / "report.md"
    result = _invoke(["-i", SITE, "--dry-run", "-o", str(out)], host)
    assert result.exit_code == 0, result.output
    assert host.filesystem.entries == {}
    assert host.database.databases == {}
    text = out.read_text(encoding="utf-8")
    assert "**Mode:** dry run" in text
    assert "(noop)" in text


def test_summary_only_writes_no_report(tmp_path):
    out = tmp_path / "report.md"
    result = _invoke(["-i", SITE, "--summary", "-o", str(out)], _site_host())
    assert result.exit_code == 0
    assert "Convergence Summary" in result.output
    assert not out.exists()


def test_markdown_encoding_and_newline(tmp_path):
    """Test that Markdown report is written with UTF-8 and LF."""
    output_file = tmp_path / "report.md"

    result = _invoke(["-i", SITE, "--output", str(output_file)], _site_host())
    assert result.exit_code == 0

    # Read file in binary to check for LF
    with open(output_file, "rb") as f:
        content = f.read()
        assert b"\r\n" not in content
        assert b"\n" in content

    text = content.decode("utf-8")
    assert "🟢 Changed" in text


def test_converges_a_real_directory(tmp_path):
    """Run against the local host: files and commands only."""
    marker = tmp_path / "initialised"
    declaration = tmp_path / "local.yaml"
    declaration.write_text(
        "vars:\n"
        "  greeting: hello\n"
        "resources:\n"
        f"  - type: File\n    title: {tmp_path}/motd\n    template: motd.j2\n    mode: '0640'\n"
        "    notify: Exec[init]\n"
        f"  - type: Exec\n    title: init\n    command: touch {marker}\n    creates: {marker}\n",
        encoding="utf-8",
    )
    (tmp_path / "motd.j2").write_text("{{ greeting }}, world\n", encoding="utf-8")

    first = _invoke(["-i", str(declaration), "--summary"])
    assert first.exit_code == 0, first.output
    assert (tmp_path / "motd").read_text(encoding="utf-8") == "hello, world\n"
    assert marker.exists()
    assert os.stat(tmp_path / "motd").st_mode & 0o777 == 0o640

    out = tmp_path / "second.json"
    second = _invoke(["-i", str(declaration), "--format", "json", "-o", str(out)])
    assert second.exit_code == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["summary"]["Unchanged"] == 2

import asyncio
import json
from functools import partial

import httpx
import pytest

import m365_drive_scanner.__main__ as cli
from m365_drive_scanner.config import ConfigError
import m365_drive_scanner.graph.client as graph_client_module
from m365_drive_scanner.graph.client import GraphClient
from m365_drive_scanner.safety.guardian import SafetyGuardian, SafetyViolation


def test_cli_flags_override_defaults(tmp_path):
    args = cli.parse_args([
        "--drive-id", "d1", "--max-depth", "2", "--workers", "3",
        "--timeout", "30", "--rollup", "-o", str(tmp_path),
    ])
    config = cli.build_config(args)

    assert config.target.drive_id == "d1"
    assert config.scan.max_depth == 2
    assert config.scan.workers == 3
    assert config.scan.timeout_seconds == 30.0
    assert config.scan.rollup
    assert config.output.scan_dir == tmp_path


def test_cli_requires_a_target():
    with pytest.raises(ConfigError):
        cli.build_config(cli.parse_args([]))


def test_cli_rejects_negative_depth():
    with pytest.raises(ConfigError):
        cli.build_config(cli.parse_args(["--drive-id", "d1", "--max-depth", "-1"]))


def test_missing_token_exits_with_error(monkeypatch, capsys):
    monkeypatch.delenv("M365_ACCESS_TOKEN", raising=False)
    code = asyncio.run(cli.main_async(["--drive-id", "d1"]))

    assert code == 1
    assert "No access token" in capsys.readouterr().out


def test_end_to_end_scan_writes_json(monkeypatch, tmp_path):
    listings = {
        "/v1.0/drives/d1/root/children": [
            {"id": "A", "name": "Projects", "folder": {}},
            {"id": "f0", "name": "readme.md", "size": 40},
            {"id": "n0", "name": "~$lock.docx", "size": 1},
        ],
        "/v1.0/drives/d1/items/A/children": [
            {"id": "f1", "name": "plan.docx", "size": 300},
        ],
    }

    def handler(request):
        return httpx.Response(200, json={"value": listings.get(request.url.path, [])})

    monkeypatch.setattr(
        cli, "GraphClient", partial(GraphClient, transport=httpx.MockTransport(handler))
    )
    code = asyncio.run(cli.main_async([
        "--drive-id", "d1", "--access-token", "tok", "--rollup",
        "--root-item", "root", "-o", str(tmp_path),
    ]))

    assert code == 0
    exported = list(tmp_path.glob("drive_scan_*.json"))
    assert len(exported) == 1
    data = json.loads(exported[0].read_text(encoding="utf-8"))
    assert data["folder_sizes"] == {"root": 40, "root/Projects": 300}
    assert data["folder_sizes_rolled_up"]["root"] == 340
    assert data["summary"]["file_count"] == 2
    assert data["summary"]["noise_skipped"] == 1
    assert data["safety_audit"]["status"] == "CLEAN"
    assert data["metadata"]["target"]["drive_id"] == "d1"


def test_unreachable_graph_during_resolution_exits_cleanly(monkeypatch, tmp_path, capsys):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(graph_client_module, "INITIAL_BACKOFF_SECONDS", 0.0)
    monkeypatch.setattr(graph_client_module, "MAX_RETRIES", 0)
    monkeypatch.setattr(
        cli, "GraphClient", partial(GraphClient, transport=httpx.MockTransport(handler))
    )
    code = asyncio.run(cli.main_async([
        "--site-url", "https://contoso.sharepoint.com/sites/HR",
        "--access-token", "tok", "-o", str(tmp_path),
    ]))

    assert code == 1
    assert "connection refused" in capsys.readouterr().out
    assert not list(tmp_path.glob("drive_scan_*.json"))


def test_safety_violation_exits_cleanly(monkeypatch, tmp_path, capsys):
    def refuse(self, method, url, body=None):
        raise SafetyViolation(f"SAFETY VIOLATION: blocked {method} {url}")

    monkeypatch.setattr(SafetyGuardian, "validate_request", refuse)
    code = asyncio.run(cli.main_async([
        "--site-url", "https://contoso.sharepoint.com/sites/HR",
        "--access-token", "tok", "-o", str(tmp_path),
    ]))

    assert code == 1
    assert "SAFETY VIOLATION" in capsys.readouterr().out

import pytest

from m365_drive_scanner.safety.guardian import SafetyGuardian, SafetyViolation

GRAPH = "https://graph.microsoft.com/v1.0"


def test_get_is_always_allowed():
    guardian = SafetyGuardian()
    assert guardian.validate_request("get", f"{GRAPH}/drives/d1/root/children")
    assert guardian.checks_performed == 1


@pytest.mark.parametrize("site", ["Restore", "Copy", "Invite", "Follow"])
def test_reads_of_sites_named_like_actions_are_allowed(site):
    guardian = SafetyGuardian()
    assert guardian.validate_request("GET", f"{GRAPH}/sites/contoso.sharepoint.com:/sites/{site}")
    assert guardian.violations == []


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
def test_write_methods_are_blocked(method):
    guardian = SafetyGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_request(method, f"{GRAPH}/drives/d1/items/01ABC")
    assert guardian.get_audit_record()["status"] == "VIOLATIONS_DETECTED"
    assert guardian.violations[0]["reason"] == "Write HTTP method blocked"


def test_batch_post_is_blocked():
    with pytest.raises(SafetyViolation):
        SafetyGuardian().validate_request("POST", f"{GRAPH}/$batch", {"requests": []})


@pytest.mark.parametrize("action", ["createLink", "invite", "checkout", "permanentDelete"])
def test_drive_actions_are_blocked(action):
    guardian = SafetyGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_request("POST", f"{GRAPH}/drives/d1/items/01ABC/{action}")
    assert guardian.violations[0]["reason"] == "Blocked drive action URL"


def test_clean_audit_record():
    guardian = SafetyGuardian()
    guardian.validate_request("GET", f"{GRAPH}/sites/root")
    record = guardian.get_audit_record()

    assert record["status"] == "CLEAN"
    assert record["checks_performed"] == 1
    assert record["violations"] == []

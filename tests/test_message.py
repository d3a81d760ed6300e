import json

import pytest

from ofborg.commentparser import Subset
from ofborg.message import (
    BuildJob,
    BuildLogMsg,
    BuildResult,
    BuildStatus,
    Conclusion,
    EvaluationJob,
    MessageError,
    Pr,
    Repo,
    buildjob_from,
    evaluationjob_from,
)

REPO_JSON = (
    '{"owner":"NixOS","name":"nixpkgs","full_name":"NixOS/nixpkgs",'
    '"clone_url":"https://example.com/nixos/nixpkgs.git"}'
)
PR_JSON = (
    '{"target_branch":"master","number":42,'
    '"head_sha":"0000000000000000000000000000000000000000"}'
)


def test_v1_serialization():
    text = (
        '{"tag":"V1","repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":["unpacking sources"],'
        '"attempt_id":"attempt-id-foo","request_id":"bogus-request-id",'
        '"status":"Success","skipped_attrs":["AAAAAASomeThingsFailToEvaluate"],'
        '"attempted_attrs":["hello"]}'
    )
    result = BuildResult.from_json(text)
    assert result.status() == BuildStatus.SUCCESS
    assert result.to_json() == text


def test_legacy_serialization():
    text = (
        '{"repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":["unpacking sources"],'
        '"attempt_id":"attempt-id-foo","request_id":"bogus-request-id",'
        '"success":true,"status":"Success",'
        '"skipped_attrs":["AAAAAASomeThingsFailToEvaluate"],"attempted_attrs":["hello"]}'
    )
    result = BuildResult.from_json(text)
    assert result.status() == BuildStatus.SUCCESS
    assert result.to_json() == text


def test_legacy_none_serialization():
    text = (
        '{"repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":[],'
        '"attempt_id":"attempt-id-foo","request_id":"bogus-request-id"}'
    )
    expected = (
        '{"repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":[],'
        '"attempt_id":"attempt-id-foo","request_id":"bogus-request-id",'
        '"success":null,"status":null,"skipped_attrs":null,"attempted_attrs":null}'
    )
    result = BuildResult.from_json(text)
    assert result.status() == BuildStatus.SKIPPED
    assert result.to_json() == expected


def test_legacy_no_status_serialization():
    text = (
        '{"repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":["unpacking sources"],'
        '"attempt_id":"attempt-id-foo","request_id":"bogus-request-id",'
        '"success":true,"status":null,'
        '"skipped_attrs":["AAAAAASomeThingsFailToEvaluate"],"attempted_attrs":["hello"]}'
    )
    result = BuildResult.from_json(text)
    assert result.status() == BuildStatus.SUCCESS
    assert result.to_json() == text


def test_legacy_failure_from_success_flag():
    text = (
        '{"repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":[],'
        '"attempt_id":"a","request_id":"r","success":false}'
    )
    assert BuildResult.from_json(text).status() == BuildStatus.FAILURE


def test_v1_without_status_falls_back_to_legacy():
    text = (
        '{"tag":"V1","repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":[],"attempt_id":"a","request_id":"r"}'
    )
    result = BuildResult.from_json(text)
    assert result.v1 is False
    assert result.status() == BuildStatus.SKIPPED
    assert "tag" not in json.loads(result.to_json())


def test_unexpected_error_round_trip():
    status = BuildStatus.unexpected_error("boom")
    result = BuildResult(
        repo=Repo.from_dict(json.loads(REPO_JSON)),
        pr=Pr.from_dict(json.loads(PR_JSON)),
        system="x86_64-linux",
        output=[],
        attempt_id="a",
        request_id="r",
        build_status=status,
        v1=True,
    )
    decoded = BuildResult.from_json(result.to_json())
    assert decoded.status() == status
    assert json.loads(result.to_json())["status"] == {"UnexpectedError": {"err": "boom"}}


def test_legacy_view_carries_status():
    text = (
        '{"tag":"V1","repo":' + REPO_JSON + ',"pr":' + PR_JSON + ','
        '"system":"x86_64-linux","output":["x"],"attempt_id":"a","request_id":"r",'
        '"status":"TimedOut"}'
    )
    legacy = BuildResult.from_json(text).legacy()
    assert legacy.status == BuildStatus.TIMED_OUT
    assert legacy.output == ["x"]
    assert legacy.pr.number == 42


def test_build_result_rejects_missing_fields():
    with pytest.raises(MessageError):
        BuildResult.from_json('{"tag":"V1","status":"Success"}')


@pytest.mark.parametrize(
    "status,description,conclusion",
    [
        (BuildStatus.SKIPPED, "No attempt", Conclusion.SKIPPED),
        (BuildStatus.SUCCESS, "Success", Conclusion.SUCCESS),
        (BuildStatus.FAILURE, "Failure", Conclusion.NEUTRAL),
        (
            BuildStatus.HASH_MISMATCH,
            "A fixed output derivation's hash was incorrect",
            Conclusion.FAILURE,
        ),
        (BuildStatus.TIMED_OUT, "Timed out, unknown build status", Conclusion.NEUTRAL),
        (BuildStatus.unexpected_error("oops"), "Unexpected error: oops", Conclusion.NEUTRAL),
    ],
)
def test_status_descriptions(status, description, conclusion):
    assert status.describe() == description
    assert status.conclusion() == conclusion


def _repo():
    return Repo(
        owner="NixOS",
        name="ofborg",
        full_name="NixOS/ofborg",
        clone_url="https://example.com/nixos/ofborg.git",
    )


def test_buildjob_defaults():
    pr = Pr(number=42, head_sha="6dd9f0265d52b946dd13daf996f30b64e4edb446", target_branch="scratch")
    job = BuildJob.create(_repo(), pr, Subset.NIXPKGS, ["success"], None, None, "bogus-request-id")
    assert job.logs == ("logs", "nixos/ofborg.42")
    assert job.statusreport == ("build-results", None)
    assert job.subset == Subset.NIXPKGS


def test_buildjob_round_trip():
    pr = Pr(number=42, head_sha="6dd9f0265d52b946dd13daf996f30b64e4edb446")
    job = BuildJob.create(
        _repo(), pr, Subset.NIXOS, ["tests.foo"], (None, "scratch"), None, "req"
    )
    decoded = buildjob_from(job.to_json().encode("utf-8"))
    assert decoded == job
    assert job.to_dict()["logs"] == [None, "scratch"]


def test_buildjob_rejects_bad_subset():
    data = BuildJob.create(
        _repo(), Pr(number=1, head_sha="x"), Subset.NIXPKGS, [], None, None, "r"
    ).to_dict()
    data["subset"] = "Debian"
    with pytest.raises(MessageError):
        buildjob_from(json.dumps(data))


def test_evaluationjob():
    job = evaluationjob_from(b'{"repo":' + REPO_JSON.encode() + b',"pr":' + PR_JSON.encode() + b"}")
    assert job.is_nixpkgs() is True
    assert job.pr.target_branch == "master"
    other = EvaluationJob(repo=_repo(), pr=job.pr)
    assert other.is_nixpkgs() is False


def test_evaluationjob_invalid_json():
    with pytest.raises(MessageError):
        evaluationjob_from(b"{not json")


def test_build_log_msg_round_trip():
    msg = BuildLogMsg(
        system="x86_64-linux", identity="me", attempt_id="a", line_number=3, output="hi"
    )
    assert BuildLogMsg.from_dict(msg.to_dict()) == msg
    with pytest.raises(MessageError):
        BuildLogMsg.from_dict({**msg.to_dict(), "line_number": -3})
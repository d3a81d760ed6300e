import pytest

from ofborg.commitstatus import (
    CommitStatus,
    CommitStatusError,
    ExpiredCredentials,
    MissingSha,
    classify_error,
)


class FakeApi:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def create(self, sha, *, state, context, description, target_url):
        self.calls.append((sha, state, context, description, target_url))
        if self.error is not None:
            raise self.error


class ApiFault(Exception):
    def __init__(self, status_code, message):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def test_set_sends_fields():
    api = FakeApi()
    status = CommitStatus(api, "abc123", "ctx", "desc", "http://localhost/log")
    status.set("pending")
    assert api.calls == [("abc123", "pending", "ctx", "desc", "http://localhost/log")]


def test_missing_url_becomes_empty():
    api = FakeApi()
    status = CommitStatus(api, "abc123", "ctx", "desc")
    status.set("success")
    assert api.calls[0][4] == ""


def test_long_description_truncated():
    api = FakeApi()
    long_text = "x" * 300
    status = CommitStatus(api, "abc123", "ctx", long_text)
    status.set("failure")
    sent = api.calls[0][3]
    assert len(sent) == 140
    assert long_text.startswith(sent)
    assert status.description == long_text


def test_set_with_description_updates():
    api = FakeApi()
    status = CommitStatus(api, "abc123", "ctx", "old")
    status.set_with_description("new", "error")
    assert status.description == "new"
    assert api.calls[0][3] == "new"


def test_unknown_state_rejected():
    status = CommitStatus(FakeApi(), "abc123", "ctx", "desc")
    with pytest.raises(ValueError):
        status.set("bogus")


def test_classify_expired_credentials():
    err = classify_error(401, "Bad credentials")
    assert type(err) is ExpiredCredentials
    assert str(err) == "Bad credentials"


def test_classify_missing_sha():
    err = classify_error(422, "No commit found for SHA: abc")
    assert type(err) is MissingSha
    assert str(err) == "No commit found for SHA: abc"


@pytest.mark.parametrize(
    "code,message",
    [(401, "Other"), (422, "Something else"), (500, "Bad credentials"), (None, "boom")],
)
def test_classify_other(code, message):
    err = classify_error(code, message)
    assert type(err) is CommitStatusError
    assert str(err) == message


def test_api_error_is_classified():
    api = FakeApi(ApiFault(401, "Bad credentials"))
    status = CommitStatus(api, "abc123", "ctx", "desc")
    with pytest.raises(ExpiredCredentials):
        status.set("success")


def test_plain_api_error_wrapped():
    api = FakeApi(RuntimeError("network down"))
    status = CommitStatus(api, "abc123", "ctx", "desc")
    with pytest.raises(CommitStatusError) as info:
        status.set("success")
    assert str(info.value) == "network down"
    assert isinstance(info.value.__cause__, RuntimeError)
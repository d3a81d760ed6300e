"""Report commit statuses to the code host, classifying its errors."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Optional

log = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 140

STATES = frozenset({"pending", "success", "error", "failure"})


class CommitStatusError(Exception):
    """Setting a commit status failed."""


class ExpiredCredentials(CommitStatusError):
    """The credentials used to set the status were rejected."""


class MissingSha(CommitStatusError):
    """The commit the status was for does not exist."""


def classify_error(status_code: Optional[int], message: str) -> CommitStatusError:
    """Turn an API failure into the matching CommitStatusError."""
    if status_code == HTTPStatus.UNAUTHORIZED and message == "Bad credentials":
        return ExpiredCredentials(message)
    if status_code == HTTPStatus.UNPROCESSABLE_ENTITY and message.startswith(
        "No commit found for SHA:"
    ):
        return MissingSha(message)
    return CommitStatusError(message)


class CommitStatus:
    """A status context on one commit.

    ``api`` must provide ``create(sha, *, state, context, description, target_url)``;
    errors it raises may carry ``status_code`` and ``message`` attributes.
    """

    def __init__(
        self,
        api: Any,
        sha: str,
        context: str,
        description: str,
        url: Optional[str] = None,
    ) -> None:
        self.api = api
        self.sha = sha
        self.context = context
        self.description = description
        self.url = ""
        self.set_url(url)

    def set_url(self, url: Optional[str]) -> None:
        self.url = url or ""

    def set_description(self, description: str) -> None:
        self.description = description

    def set_with_description(self, description: str, state: str) -> None:
        self.set_description(description)
        self.set(state)

    def set(self, state: str) -> None:
        """Publish the status; raises CommitStatusError when the API call fails."""
        if state not in STATES:
            raise ValueError(f"unknown commit status state: {state!r}")

        description = self.description
        if len(description) >= MAX_DESCRIPTION_LENGTH:
            log.warning("description is over 140 char; truncating: %r", description)
            description = description[:MAX_DESCRIPTION_LENGTH]

        try:
            self.api.create(
                self.sha,
                state=state,
                context=self.context,
                description=description,
                target_url=self.url,
            )
        except CommitStatusError:
            raise
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            message = getattr(e, "message", None)
            if not isinstance(message, str):
                message = str(e)
            raise classify_error(status_code, message) from e
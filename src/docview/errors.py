"""Error taxonomy shared by the rule engine, policy and façades."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


Issue = Dict[str, Any]


def issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


@dataclass
class DocViewError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


@dataclass
class ValidationError(DocViewError):
    issues: List[Issue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, issues: List[Issue]) -> "ValidationError":
        first = issues[0] if issues else issue("VALIDATION_FAILED", "validation failed")
        return cls(first["code"], first["message"], first.get("path"), list(issues))


@dataclass
class NotFoundError(DocViewError):
    pass


@dataclass
class HTTPError(DocViewError):
    status_code: int | None = None
    body: Any = None


@dataclass
class EnvelopeError(DocViewError):
    body: Any = None


def raise_for_issues(issues: List[Issue]) -> None:
    """Raise for a non-empty issue list.

    A list made only of PROPERTY_NOT_FOUND issues raises ``NotFoundError``;
    anything else raises ``ValidationError`` carrying every issue.
    """
    if not issues:
        return
    if all(item.get("code") == "PROPERTY_NOT_FOUND" for item in issues):
        first = issues[0]
        raise NotFoundError(first["code"], first["message"], first.get("path"))
    raise ValidationError.from_issues(issues)

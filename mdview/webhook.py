"""Defaulting and validation of MarkdownView objects."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mdview.types import GROUP_VERSION, KIND, MarkdownView

log = logging.getLogger("markdownview-resource")

DEFAULT_VIEWER_IMAGE = "peaceiris/mdbook:latest"
SUMMARY_FILE = "SUMMARY.md"
MIN_REPLICAS = 1
MAX_REPLICAS = 5


class ErrorType(str, Enum):
    """Kind of a field error."""

    INVALID = "Invalid value"
    REQUIRED = "Required value"


@dataclass(frozen=True)
class FieldError:
    """A problem with one field of an object."""

    type: ErrorType
    path: str
    detail: str = ""
    value: Any = None

    def __str__(self) -> str:
        body = self.type.value
        if self.type is ErrorType.INVALID:
            shown = json.dumps(self.value) if isinstance(self.value, str) else str(self.value)
            body = f"{body}: {shown}"
        if self.detail:
            body = f"{body}: {self.detail}"
        return f"{self.path}: {body}"


class InvalidError(ValueError):
    """Raised when an object fails validation."""

    def __init__(self, kind: str, group: str, name: str, errors: list[FieldError]):
        self.kind = kind
        self.group = group
        self.name = name
        self.errors = list(errors)
        messages = list(dict.fromkeys(str(e) for e in self.errors))
        if len(messages) == 1:
            summary = messages[0]
        else:
            summary = "[" + ", ".join(messages) + "]"
        qualified = f"{kind}.{group}" if group else kind
        super().__init__(f"{qualified} {json.dumps(name)} is invalid: {summary}")


def default(view: MarkdownView) -> None:
    """Fill in defaults on the view in place."""
    log.info("default name=%s", view.metadata.name)
    if not view.spec.viewer_image:
        view.spec.viewer_image = DEFAULT_VIEWER_IMAGE


def _validate(view: MarkdownView) -> list[str]:
    errors: list[FieldError] = []
    replicas = view.spec.replicas
    if not MIN_REPLICAS <= replicas <= MAX_REPLICAS:
        errors.append(
            FieldError(
                ErrorType.INVALID,
                "spec.replicas",
                "replicas must be in the range of 1 to 5.",
                replicas,
            )
        )
    if SUMMARY_FILE not in view.spec.markdowns:
        errors.append(
            FieldError(ErrorType.REQUIRED, "spec.markdowns", "markdowns must have SUMMARY.md.")
        )
    if errors:
        err = InvalidError(KIND, GROUP_VERSION.group, view.metadata.name, errors)
        log.error("validation error name=%s: %s", view.metadata.name, err)
        raise err
    return []


def validate_create(view: MarkdownView) -> list[str]:
    """Check a view about to be created; return warnings or raise InvalidError."""
    log.info("validate create name=%s", view.metadata.name)
    return _validate(view)


def validate_update(view: MarkdownView, old: MarkdownView) -> list[str]:
    """Check a view about to replace old; return warnings or raise InvalidError."""
    log.info("validate update name=%s", view.metadata.name)
    return _validate(view)


def validate_delete(view: MarkdownView) -> list[str]:
    """Check a view about to be deleted; deletion is always allowed."""
    log.info("validate delete name=%s", view.metadata.name)
    return []
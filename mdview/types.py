"""Resource types of the view.zoetrope.github.io/v1 API group."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


@dataclass(frozen=True)
class GroupVersion:
    """An API group together with one of its versions."""

    group: str
    version: str

    def __str__(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"


GROUP_VERSION = GroupVersion(group="view.zoetrope.github.io", version="v1")
KIND = "MarkdownView"
LIST_KIND = "MarkdownViewList"

TYPE_MARKDOWN_VIEW_AVAILABLE = "Available"
TYPE_MARKDOWN_VIEW_DEGRADED = "Degraded"

# Value the resource schema fills in when spec.replicas is left out.
DEFAULT_REPLICAS = 1


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class ObjectMeta:
    """Identity and bookkeeping fields shared by all stored objects."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    generation: int = 0
    resource_version: str = ""
    deletion_timestamp: datetime | None = None


def _meta_to_dict(meta: ObjectMeta) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if meta.name:
        out["name"] = meta.name
    if meta.namespace:
        out["namespace"] = meta.namespace
    if meta.labels:
        out["labels"] = dict(meta.labels)
    if meta.annotations:
        out["annotations"] = dict(meta.annotations)
    if meta.generation:
        out["generation"] = meta.generation
    if meta.resource_version:
        out["resourceVersion"] = meta.resource_version
    if meta.deletion_timestamp is not None:
        out["deletionTimestamp"] = _format_time(meta.deletion_timestamp)
    return out


def _meta_from_dict(data: Mapping[str, Any]) -> ObjectMeta:
    deletion = data.get("deletionTimestamp")
    return ObjectMeta(
        name=data.get("name", ""),
        namespace=data.get("namespace", ""),
        labels=dict(data.get("labels") or {}),
        annotations=dict(data.get("annotations") or {}),
        generation=int(data.get("generation", 0)),
        resource_version=str(data.get("resourceVersion", "")),
        deletion_timestamp=_parse_time(deletion) if deletion else None,
    )


class ConditionStatus(str, Enum):
    """Status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


@dataclass
class Condition:
    """One observation of an aspect of an object's state."""

    type: str
    status: ConditionStatus
    reason: str
    message: str = ""
    observed_generation: int = 0
    last_transition_time: datetime | None = None


def _condition_to_dict(cond: Condition) -> dict[str, Any]:
    out: dict[str, Any] = {"type": cond.type, "status": ConditionStatus(cond.status).value}
    if cond.observed_generation:
        out["observedGeneration"] = cond.observed_generation
    if cond.last_transition_time is not None:
        out["lastTransitionTime"] = _format_time(cond.last_transition_time)
    out["reason"] = cond.reason
    out["message"] = cond.message
    return out


def _condition_from_dict(data: Mapping[str, Any]) -> Condition:
    moment = data.get("lastTransitionTime")
    return Condition(
        type=data["type"],
        status=ConditionStatus(data["status"]),
        reason=data.get("reason", ""),
        message=data.get("message", ""),
        observed_generation=int(data.get("observedGeneration", 0)),
        last_transition_time=_parse_time(moment) if moment else None,
    )


def find_status_condition(conditions: list[Condition], condition_type: str) -> Condition | None:
    """Return the condition of the given type, or None."""
    return next((c for c in conditions if c.type == condition_type), None)


def set_status_condition(conditions: list[Condition], condition: Condition) -> bool:
    """Add or update a condition in place; return whether anything changed.

    The transition time moves only when the status changes.
    """
    existing = find_status_condition(conditions, condition.type)
    if existing is None:
        added = dataclasses.replace(condition)
        if added.last_transition_time is None:
            added.last_transition_time = _now()
        conditions.append(added)
        return True

    changed = False
    if existing.status != condition.status:
        existing.status = condition.status
        existing.last_transition_time = condition.last_transition_time or _now()
        changed = True
    if existing.reason != condition.reason:
        existing.reason = condition.reason
        changed = True
    if existing.message != condition.message:
        existing.message = condition.message
        changed = True
    if existing.observed_generation != condition.observed_generation:
        existing.observed_generation = condition.observed_generation
        changed = True
    return changed


@dataclass
class MarkdownViewSpec:
    """Desired state of a MarkdownView.

    markdowns maps file names to markdown content; replicas is the number
    of viewers; viewer_image is the viewer's container image.
    """

    markdowns: dict[str, str] = field(default_factory=dict)
    replicas: int = DEFAULT_REPLICAS
    viewer_image: str = ""


@dataclass
class MarkdownViewStatus:
    """Observed state of a MarkdownView."""

    conditions: list[Condition] = field(default_factory=list)


@dataclass
class MarkdownView:
    """A set of markdown files served by a viewer deployment."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: MarkdownViewSpec = field(default_factory=MarkdownViewSpec)
    status: MarkdownViewStatus = field(default_factory=MarkdownViewStatus)

    def to_dict(self) -> dict[str, Any]:
        """Serialise into the resource's document form."""
        spec: dict[str, Any] = {}
        if self.spec.markdowns:
            spec["markdowns"] = dict(self.spec.markdowns)
        if self.spec.replicas:
            spec["replicas"] = self.spec.replicas
        if self.spec.viewer_image:
            spec["viewerImage"] = self.spec.viewer_image
        status: dict[str, Any] = {}
        if self.status.conditions:
            status["conditions"] = [_condition_to_dict(c) for c in self.status.conditions]
        return {
            "apiVersion": str(GROUP_VERSION),
            "kind": KIND,
            "metadata": _meta_to_dict(self.metadata),
            "spec": spec,
            "status": status,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MarkdownView:
        """Build a MarkdownView from its document form."""
        kind = data.get("kind")
        if kind is not None and kind != KIND:
            raise ValueError(f"expected kind {KIND!r}, got {kind!r}")
        api_version = data.get("apiVersion")
        if api_version is not None and api_version != str(GROUP_VERSION):
            raise ValueError(f"expected apiVersion {str(GROUP_VERSION)!r}, got {api_version!r}")
        spec_data = data.get("spec") or {}
        status_data = data.get("status") or {}
        return cls(
            metadata=_meta_from_dict(data.get("metadata") or {}),
            spec=MarkdownViewSpec(
                markdowns={str(k): str(v) for k, v in (spec_data.get("markdowns") or {}).items()},
                replicas=int(spec_data.get("replicas", DEFAULT_REPLICAS)),
                viewer_image=spec_data.get("viewerImage", ""),
            ),
            status=MarkdownViewStatus(
                conditions=[_condition_from_dict(c) for c in status_data.get("conditions") or []]
            ),
        )


@dataclass
class MarkdownViewList:
    """A list of MarkdownView objects."""

    items: list[MarkdownView] = field(default_factory=list)
    resource_version: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialise into the list's document form."""
        metadata: dict[str, Any] = {}
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": str(GROUP_VERSION),
            "kind": LIST_KIND,
            "metadata": metadata,
            "items": [item.to_dict() for item in self.items],
        }
"""Reconciliation of MarkdownView objects into ConfigMaps, Deployments and Services."""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from mdview.types import (
    KIND,
    TYPE_MARKDOWN_VIEW_AVAILABLE,
    TYPE_MARKDOWN_VIEW_DEGRADED,
    Condition,
    ConditionStatus,
    MarkdownView,
    set_status_condition,
)

log = logging.getLogger(__name__)

FIELD_MANAGER = "markdown-view-controller"
DEFAULT_VIEWER_IMAGE = "peaceiris/mdbook:latest"
CONFIG_MAP = "ConfigMap"
DEPLOYMENT = "Deployment"
SERVICE = "Service"

_API_VERSIONS = {CONFIG_MAP: "v1", SERVICE: "v1", DEPLOYMENT: "apps/v1"}


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""

    def __init__(self, kind: str, key: ObjectKey):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


@dataclass(frozen=True)
class ObjectKey:
    """Namespace and name identifying a stored object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass(frozen=True)
class Request:
    """A request to reconcile the object with the given namespace and name."""

    namespace: str
    name: str

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)


@dataclass(frozen=True)
class Result:
    """Outcome of one reconciliation."""

    requeue: bool = False
    requeue_after: float = 0.0


class OperationResult(str, Enum):
    """What create_or_update did to the stored object."""

    NONE = "unchanged"
    CREATED = "created"
    UPDATED = "updated"


def _key_of(obj: Any) -> ObjectKey:
    if isinstance(obj, MarkdownView):
        key = ObjectKey(obj.metadata.namespace, obj.metadata.name)
    else:
        meta = obj.get("metadata") or {}
        key = ObjectKey(meta.get("namespace", ""), meta.get("name", ""))
    if not key.name:
        raise ValueError("object has no name")
    return key


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for name, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(name), dict):
            merged[name] = _deep_merge(merged[name], value)
        else:
            merged[name] = copy.deepcopy(value)
    return merged


class InMemoryClient:
    """An object store with the operations the reconciler needs.

    MarkdownView objects are stored as MarkdownView instances; every other
    kind is stored in document (dict) form. Objects handed out are copies.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, ObjectKey], Any] = {}
        self._revisions = itertools.count(1)

    def _stamp(self, obj: Any) -> None:
        revision = str(next(self._revisions))
        if isinstance(obj, MarkdownView):
            obj.metadata.resource_version = revision
        else:
            obj.setdefault("metadata", {})["resourceVersion"] = revision

    def get(self, kind: str, key: ObjectKey) -> Any:
        """Return a copy of the stored object or raise NotFoundError."""
        try:
            return copy.deepcopy(self._objects[(kind, key)])
        except KeyError:
            raise NotFoundError(kind, key) from None

    def create(self, kind: str, obj: Any) -> None:
        """Store a new object; raise ValueError if it already exists."""
        key = _key_of(obj)
        if (kind, key) in self._objects:
            raise ValueError(f"{kind} {key} already exists")
        stored = copy.deepcopy(obj)
        if isinstance(stored, MarkdownView):
            stored.metadata.generation = 1
        self._stamp(stored)
        self._objects[(kind, key)] = stored

    def update(self, kind: str, obj: Any) -> None:
        """Replace an existing object; a MarkdownView keeps its stored status."""
        key = _key_of(obj)
        try:
            current = self._objects[(kind, key)]
        except KeyError:
            raise NotFoundError(kind, key) from None
        stored = copy.deepcopy(obj)
        if isinstance(stored, MarkdownView):
            stored.status = copy.deepcopy(current.status)
            stored.metadata.generation = current.metadata.generation
            if stored.spec != current.spec:
                stored.metadata.generation += 1
        self._stamp(stored)
        self._objects[(kind, key)] = stored

    def delete(self, kind: str, key: ObjectKey) -> None:
        """Remove an object or raise NotFoundError."""
        try:
            del self._objects[(kind, key)]
        except KeyError:
            raise NotFoundError(kind, key) from None

    def apply(self, kind: str, obj: dict[str, Any], field_manager: str) -> None:
        """Create or merge a document, recording it as owned by field_manager."""
        if obj.get("kind", kind) != kind:
            raise ValueError(f"expected kind {kind!r}, got {obj.get('kind')!r}")
        key = _key_of(obj)
        applied = copy.deepcopy(obj)
        applied.get("metadata", {}).pop("managedFields", None)
        current = self._objects.get((kind, key))
        merged = _deep_merge(current, applied) if current is not None else copy.deepcopy(applied)
        entries = [
            entry
            for entry in merged["metadata"].get("managedFields", [])
            if entry.get("manager") != field_manager
        ]
        entries.append({"manager": field_manager, "operation": "Apply", "applied": applied})
        merged["metadata"]["managedFields"] = entries
        self._stamp(merged)
        self._objects[(kind, key)] = merged

    def update_status(self, view: MarkdownView) -> None:
        """Replace only the status of a stored MarkdownView."""
        key = _key_of(view)
        try:
            current = self._objects[(KIND, key)]
        except KeyError:
            raise NotFoundError(KIND, key) from None
        current.status = copy.deepcopy(view.status)
        self._stamp(current)


class _Client(Protocol):
    def get(self, kind: str, key: ObjectKey) -> Any: ...
    def create(self, kind: str, obj: Any) -> None: ...
    def update(self, kind: str, obj: Any) -> None: ...
    def apply(self, kind: str, obj: dict[str, Any], field_manager: str) -> None: ...
    def update_status(self, view: MarkdownView) -> None: ...


def create_or_update(
    client: _Client,
    kind: str,
    key: ObjectKey,
    mutate: Callable[[dict[str, Any]], None],
) -> OperationResult:
    """Fetch or start the document at key, let mutate edit it, and store it if needed."""
    try:
        obj = client.get(kind, key)
    except NotFoundError:
        obj = {
            "apiVersion": _API_VERSIONS.get(kind, "v1"),
            "kind": kind,
            "metadata": {"name": key.name, "namespace": key.namespace},
        }
        _mutate(mutate, obj, key)
        client.create(kind, obj)
        return OperationResult.CREATED

    before = copy.deepcopy(obj)
    _mutate(mutate, obj, key)
    if obj == before:
        return OperationResult.NONE
    client.update(kind, obj)
    return OperationResult.UPDATED


def _mutate(mutate: Callable[[dict[str, Any]], None], obj: dict[str, Any], key: ObjectKey) -> None:
    mutate(obj)
    if _key_of(obj) != key:
        raise ValueError("mutate must not change the object's name or namespace")


def _labels(view: MarkdownView) -> dict[str, str]:
    return {
        "app.kubernetes.io/name": "mdbook",
        "app.kubernetes.io/instance": view.metadata.name,
        "app.kubernetes.io/created-by": FIELD_MANAGER,
    }


def _http_probe() -> dict[str, Any]:
    return {"httpGet": {"port": "http", "path": "/", "scheme": "HTTP"}}


def deployment_manifest(view: MarkdownView) -> dict[str, Any]:
    """The Deployment configuration that serves the view's markdowns."""
    image = view.spec.viewer_image or DEFAULT_VIEWER_IMAGE
    return {
        "apiVersion": "apps/v1",
        "kind": DEPLOYMENT,
        "metadata": {
            "name": f"viewer-{view.metadata.name}",
            "namespace": view.metadata.namespace,
            "labels": _labels(view),
        },
        "spec": {
            "replicas": view.spec.replicas,
            "selector": {"matchLabels": _labels(view)},
            "template": {
                "metadata": {"labels": _labels(view)},
                "spec": {
                    "containers": [
                        {
                            "name": "mdbook",
                            "image": image,
                            "imagePullPolicy": "IfNotPresent",
                            "command": ["mdbook"],
                            "args": ["serve", "--hostname", "0.0.0.0"],
                            "volumeMounts": [{"name": "markdowns", "mountPath": "/book/src"}],
                            "ports": [
                                {"name": "http", "protocol": "TCP", "containerPort": 3000}
                            ],
                            "livenessProbe": _http_probe(),
                            "readinessProbe": _http_probe(),
                        }
                    ],
                    "volumes": [
                        {
                            "name": "markdowns",
                            "configMap": {"name": f"markdowns-{view.metadata.name}"},
                        }
                    ],
                },
            },
        },
    }


def service_manifest(view: MarkdownView) -> dict[str, Any]:
    """The Service configuration exposing the view's viewer."""
    return {
        "apiVersion": "v1",
        "kind": SERVICE,
        "metadata": {
            "name": f"viewer-{view.metadata.name}",
            "namespace": view.metadata.namespace,
            "labels": _labels(view),
        },
        "spec": {
            "selector": _labels(view),
            "type": "ClusterIP",
            "ports": [{"protocol": "TCP", "port": 80, "targetPort": 3000}],
        },
    }


def extract_managed(obj: dict[str, Any], field_manager: str) -> dict[str, Any]:
    """Return the configuration field_manager last applied to obj, or {}."""
    entries = (obj.get("metadata") or {}).get("managedFields") or []
    for entry in entries:
        if entry.get("manager") == field_manager and entry.get("operation") == "Apply":
            return copy.deepcopy(entry.get("applied", {}))
    return {}


@dataclass
class MarkdownViewReconciler:
    """Brings the objects behind a MarkdownView in line with its spec."""

    client: _Client

    def reconcile(self, request: Request) -> Result:
        """Reconcile the MarkdownView named by request."""
        try:
            view = self.client.get(KIND, request.key)
        except NotFoundError:
            return Result()
        except Exception:
            log.exception("unable to get MarkdownView name=%s", request.key)
            raise

        if view.metadata.deletion_timestamp is not None:
            return Result()

        for step in (self._reconcile_config_map, self._reconcile_deployment, self._reconcile_service):
            try:
                step(view)
            except Exception:
                try:
                    self._update_status(view)
                except Exception:
                    log.exception("unable to update status")
                raise

        return self._update_status(view)

    def _reconcile_config_map(self, view: MarkdownView) -> None:
        key = ObjectKey(view.metadata.namespace, f"markdowns-{view.metadata.name}")

        def mutate(cm: dict[str, Any]) -> None:
            data = cm.setdefault("data", {})
            data.update(view.spec.markdowns)

        try:
            op = create_or_update(self.client, CONFIG_MAP, key, mutate)
        except Exception:
            log.exception("unable to create or update ConfigMap")
            raise
        if op is not OperationResult.NONE:
            log.info("reconcile ConfigMap successfully op=%s", op.value)

    def _apply_if_changed(self, kind: str, desired: dict[str, Any], view: MarkdownView) -> None:
        key = _key_of(desired)
        try:
            current = self.client.get(kind, key)
        except NotFoundError:
            current = {}
        if desired == extract_managed(current, FIELD_MANAGER):
            return
        try:
            self.client.apply(kind, desired, FIELD_MANAGER)
        except Exception:
            log.exception("unable to create or update %s", kind)
            raise
        log.info("reconcile %s successfully name=%s", kind, view.metadata.name)

    def _reconcile_deployment(self, view: MarkdownView) -> None:
        self._apply_if_changed(DEPLOYMENT, deployment_manifest(view), view)

    def _reconcile_service(self, view: MarkdownView) -> None:
        self._apply_if_changed(SERVICE, service_manifest(view), view)

    def _mark_missing(self, view: MarkdownView, what: str) -> None:
        conditions = view.status.conditions
        set_status_condition(
            conditions,
            Condition(
                type=TYPE_MARKDOWN_VIEW_DEGRADED,
                status=ConditionStatus.TRUE,
                reason="Reconciling",
                message=f"{what} not found",
            ),
        )
        set_status_condition(
            conditions,
            Condition(
                type=TYPE_MARKDOWN_VIEW_AVAILABLE,
                status=ConditionStatus.FALSE,
                reason="Reconciling",
            ),
        )

    def _update_status(self, view: MarkdownView) -> Result:
        conditions = view.status.conditions
        set_status_condition(
            conditions,
            Condition(type=TYPE_MARKDOWN_VIEW_AVAILABLE, status=ConditionStatus.TRUE, reason="OK"),
        )
        set_status_condition(
            conditions,
            Condition(type=TYPE_MARKDOWN_VIEW_DEGRADED, status=ConditionStatus.FALSE, reason="OK"),
        )

        namespace, name = view.metadata.namespace, view.metadata.name
        checks = (
            (CONFIG_MAP, ObjectKey(namespace, f"markdowns-{name}")),
            (SERVICE, ObjectKey(namespace, f"viewer-{name}")),
        )
        for kind, key in checks:
            try:
                self.client.get(kind, key)
            except NotFoundError:
                self._mark_missing(view, kind)

        try:
            deployment = self.client.get(DEPLOYMENT, ObjectKey(namespace, f"viewer-{name}"))
        except NotFoundError:
            deployment = {}
            self._mark_missing(view, DEPLOYMENT)

        result = Result()
        available = (deployment.get("status") or {}).get("availableReplicas", 0)
        if available == 0:
            set_status_condition(
                conditions,
                Condition(
                    type=TYPE_MARKDOWN_VIEW_AVAILABLE,
                    status=ConditionStatus.FALSE,
                    reason="Unavailable",
                    message="AvailableReplicas is 0",
                ),
            )
            result = Result(requeue=True)

        self.client.update_status(view)
        return result
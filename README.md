# mdview

`mdview` models a `MarkdownView` resource (group version
`view.zoetrope.github.io/v1`) that describes a set of markdown files to be
served as an mdBook site, together with the logic around it: defaulting and
validation on admission, a reconciler that derives the objects that serve the
site, and parsing of the controller manager's options. It has no runtime
dependencies.

## Modules

- **`mdview.types`**: the resource schema.
  - `MarkdownView` with `metadata` (`ObjectMeta`), `spec` (`MarkdownViewSpec`:
    `markdowns`, `replicas` defaulting to 1, `viewer_image`) and `status`
    (`MarkdownViewStatus`, a list of `Condition`).
  - `MarkdownView.to_dict()` and `MarkdownView.from_dict()` convert to and from
    the document form (`apiVersion`, `kind`, `metadata`, `spec`, `status`).
    `from_dict` raises `ValueError` on a wrong `kind` or `apiVersion`.
  - `MarkdownViewList.to_dict()` serialises a list of views.
  - `GroupVersion`, whose `str()` is `group/version`.
  - `Condition` and `ConditionStatus` (`True`, `False`, `Unknown`).
    `set_status_condition(conditions, condition)` adds or updates a condition
    in place, keeps each type at most once, moves the transition time only when
    the status changes, and returns whether anything changed.
    `find_status_condition(conditions, condition_type)` returns the matching
    condition or `None`.
- **`mdview.webhook`**: admission logic.
  - `default(view)` sets the viewer image to `peaceiris/mdbook:latest` when it
    is empty.
  - `validate_create(view)` and `validate_update(view, old)` raise
    `InvalidError` when `replicas` is outside 1 to 5 or when `markdowns` has no
    `SUMMARY.md`. The error carries one `FieldError` per problem in `errors`.
    When the view is valid they return an empty list of warnings.
  - `validate_delete(view)` always admits.
- **`mdview.controller`**: reconciliation.
  - `MarkdownViewReconciler(client).reconcile(Request(namespace, name))`
    returns a `Result`.
  - `InMemoryClient` is an object store with `get`, `create`, `update`,
    `delete`, `apply` and `update_status`. A missing object raises
    `NotFoundError`.
  - `create_or_update`, `deployment_manifest`, `service_manifest` and
    `extract_managed` are the helpers the reconciler uses.
- **`mdview.options`**: `parse_options(argv, environ)` builds `ManagerOptions`
  from command-line flags and the environment.

## Defaulting and validating a resource

```python
from mdview.types import MarkdownView
from mdview.webhook import InvalidError, default, validate_create

view = MarkdownView.from_dict({
    "apiVersion": "view.zoetrope.github.io/v1",
    "kind": "MarkdownView",
    "metadata": {"name": "sample", "namespace": "default"},
    "spec": {
        "markdowns": {"SUMMARY.md": "# Summary\n- [Page](page1.md)\n", "page1.md": "# Page 1\n"},
        "replicas": 1,
    },
})

default(view)
print(view.spec.viewer_image)  # peaceiris/mdbook:latest

view.spec.replicas = 9
try:
    validate_create(view)
except InvalidError as err:
    print(err)  # MarkdownView.view.zoetrope.github.io "sample" is invalid: spec.replicas: ...
```

## What a reconcile pass does

For a `MarkdownView` named `<name>`:

- A view that is missing, or that has a deletion timestamp, is left alone and
  an empty `Result` is returned.
- A ConfigMap `markdowns-<name>` is created or updated so that its `data`
  holds every markdown file.
- A Deployment `viewer-<name>` is applied with the field manager
  `markdown-view-controller`. It runs `mdbook serve --hostname 0.0.0.0` on
  container port 3000, mounts the ConfigMap at `/book/src`, and has HTTP
  liveness and readiness probes. The image is the view's `viewer_image`, or
  `peaceiris/mdbook:latest` when that is empty.
- A ClusterIP Service `viewer-<name>` is applied, mapping port 80 to 3000.
- A Deployment or Service is applied again only when the manifest differs
  from what the field manager last applied.
- The status gets `Available` and `Degraded` conditions. A missing ConfigMap,
  Service or Deployment marks the view degraded. A Deployment whose
  `status.availableReplicas` is 0 or absent makes it unavailable, and the
  `Result` then has `requeue=True`.
- If a step fails, the status is still updated and the error is raised.

Every derived object carries the labels `app.kubernetes.io/name: mdbook`,
`app.kubernetes.io/instance: <name>` and
`app.kubernetes.io/created-by: markdown-view-controller`.

```python
from mdview.controller import InMemoryClient, MarkdownViewReconciler, Request
from mdview.types import KIND

client = InMemoryClient()
client.create(KIND, view)
result = MarkdownViewReconciler(client).reconcile(Request("default", "sample"))
print(result.requeue)  # True: nothing sets availableReplicas in the in-memory store
```

The reconciler accepts any client with the same `get`, `create`, `update`,
`apply` and `update_status` methods as `InMemoryClient`.

## Manager options

`parse_options(argv=None, environ=None)` understands these flags, written with
one or two leading dashes:

- `--metrics-bind-address` (default `0`, meaning metrics are disabled)
- `--health-probe-bind-address` (default `:8081`)
- `--leader-elect`, `--metrics-secure` (default true), `--enable-http2` and
  `--zap-devel` (default true). Each is given alone or as `--flag=true|false`.
- `--zap-encoder`, `--zap-log-level`, `--zap-stacktrace-level` and
  `--zap-time-encoding`

Invalid flags end the program with exit status 2.

Unless `--enable-http2` is given, `disable_http2` is added to the TLS options.
It restricts a `TLSConfig` to `http/1.1`, and `ManagerOptions.apply_tls`
runs those options over a configuration. Secure metrics set an
authentication-and-authorization filter on `MetricsOptions`.
`ManagerOptions.webhooks_enabled()` is true unless `ENABLE_WEBHOOKS` is
exactly `false`.

## What this package does not do

There is no command and no running manager. The package does not connect to a
cluster's API server or watch resources. It does not serve admission webhooks,
metrics or health probes over HTTP, and it does not perform leader election.
`InMemoryClient` is the only object store it provides. `ManagerOptions` only
describes how a manager would be configured.
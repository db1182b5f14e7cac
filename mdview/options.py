"""Command-line and environment options for the controller manager."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

log = logging.getLogger("setup")

LEADER_ELECTION_ID = "3ca5b296.zoetrope.github.io"
FILTER_AUTHN_AUTHZ = "authentication-and-authorization"
HTTP1_PROTOCOL = "http/1.1"

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}
_LOG_LEVEL_NAMES = {"debug", "info", "error", "panic"}
_ENCODERS = ("json", "console")
_STACKTRACE_LEVELS = ("info", "error", "panic")
_TIME_ENCODINGS = ("epoch", "millis", "nano", "iso8601", "rfc3339", "rfc3339nano")


@dataclass
class TLSConfig:
    """The parts of a TLS server configuration the options can change."""

    next_protos: list[str] = field(default_factory=list)


TLSOption = Callable[[TLSConfig], None]


def disable_http2(config: TLSConfig) -> None:
    """Restrict a TLS configuration to HTTP/1.1."""
    log.info("disabling http/2")
    config.next_protos = [HTTP1_PROTOCOL]


@dataclass
class MetricsOptions:
    """How the metrics endpoint is served."""

    bind_address: str = "0"
    secure_serving: bool = True
    tls_opts: list[TLSOption] = field(default_factory=list)
    filter_provider: str | None = None

    @property
    def enabled(self) -> bool:
        """Whether the metrics endpoint is served at all."""
        return self.bind_address != "0"


@dataclass
class ManagerOptions:
    """Everything the controller manager is started with."""

    metrics: MetricsOptions = field(default_factory=MetricsOptions)
    health_probe_bind_address: str = ":8081"
    leader_election: bool = False
    leader_election_id: str = LEADER_ELECTION_ID
    enable_http2: bool = False
    tls_opts: list[TLSOption] = field(default_factory=list)
    development: bool = True
    log_level: str | None = None
    log_encoder: str | None = None
    stacktrace_level: str | None = None
    time_encoding: str | None = None
    enable_webhooks_env: str | None = None

    def webhooks_enabled(self) -> bool:
        """Webhooks run unless ENABLE_WEBHOOKS is exactly "false"."""
        return self.enable_webhooks_env != "false"

    def apply_tls(self, config: TLSConfig) -> TLSConfig:
        """Run every TLS option over config and return it."""
        for option in self.tls_opts:
            option(config)
        return config


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _parse_log_level(text: str) -> str:
    if text in _LOG_LEVEL_NAMES:
        return text
    try:
        level = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid log level {text!r}") from None
    if level <= 0:
        raise argparse.ArgumentTypeError("log level must be greater than zero")
    return text


def _names(name: str) -> tuple[str, str]:
    return f"-{name}", f"--{name}"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manager", allow_abbrev=False)
    parser.add_argument(
        *_names("metrics-bind-address"),
        dest="metrics_addr",
        default="0",
        help="The address the metrics endpoint binds to. Use :8443 for HTTPS or :8080 "
        "for HTTP, or leave as 0 to disable the metrics service.",
    )
    parser.add_argument(
        *_names("health-probe-bind-address"),
        dest="probe_addr",
        default=":8081",
        help="The address the probe endpoint binds to.",
    )
    bool_flags = (
        ("leader-elect", "leader_elect", False,
         "Enable leader election for controller manager. Enabling this will ensure "
         "there is only one active controller manager."),
        ("metrics-secure", "metrics_secure", True,
         "If set, the metrics endpoint is served securely via HTTPS. "
         "Use --metrics-secure=false to use HTTP instead."),
        ("enable-http2", "enable_http2", False,
         "If set, HTTP/2 will be enabled for the metrics and webhook servers"),
        ("zap-devel", "zap_devel", True,
         "Development mode defaults (encoder=console, log level=debug, "
         "stacktrace level=warn)."),
    )
    for name, dest, default, help_text in bool_flags:
        parser.add_argument(
            *_names(name),
            dest=dest,
            nargs="?",
            const=True,
            default=default,
            type=_parse_bool,
            help=help_text,
        )
    parser.add_argument(*_names("zap-encoder"), dest="zap_encoder", choices=_ENCODERS)
    parser.add_argument(*_names("zap-log-level"), dest="zap_log_level", type=_parse_log_level)
    parser.add_argument(
        *_names("zap-stacktrace-level"), dest="zap_stacktrace_level", choices=_STACKTRACE_LEVELS
    )
    parser.add_argument(
        *_names("zap-time-encoding"), dest="zap_time_encoding", choices=_TIME_ENCODINGS
    )
    return parser


def parse_options(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> ManagerOptions:
    """Build the manager options from command-line flags and the environment.

    Invalid flags end the program with exit status 2.
    """
    if argv is None:
        argv = []
    if environ is None:
        environ = os.environ
    args = _build_parser().parse_args(list(argv))

    tls_opts: list[TLSOption] = []
    if not args.enable_http2:
        tls_opts.append(disable_http2)

    metrics = MetricsOptions(
        bind_address=args.metrics_addr,
        secure_serving=args.metrics_secure,
        tls_opts=tls_opts,
        filter_provider=FILTER_AUTHN_AUTHZ if args.metrics_secure else None,
    )
    return ManagerOptions(
        metrics=metrics,
        health_probe_bind_address=args.probe_addr,
        leader_election=args.leader_elect,
        enable_http2=args.enable_http2,
        tls_opts=tls_opts,
        development=args.zap_devel,
        log_level=args.zap_log_level,
        log_encoder=args.zap_encoder,
        stacktrace_level=args.zap_stacktrace_level,
        time_encoding=args.zap_time_encoding,
        enable_webhooks_env=environ.get("ENABLE_WEBHOOKS"),
    )
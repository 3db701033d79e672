"""
addsctl — CLI entrypoint.

Usage:
    python -m addsctl.main --help
    python -m addsctl.main preflight
    python -m addsctl.main forest create contoso.com --dry-run
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from click.core import ParameterSource
from pydantic import SecretStr, ValidationError

from addsctl import __version__
from addsctl.adapters.base import Platform
from addsctl.core.config.loader import Settings, load_settings
from addsctl.core.errors import ConfigError, ProvisioningError
from addsctl.core.models.request import FunctionalLevel
from addsctl.core.observability.logging_config import setup_logging

SAFE_MODE_PASSWORD_ENV = "ADDSCTL_SAFE_MODE_PASSWORD"
DOMAIN_PASSWORD_ENV = "ADDSCTL_DOMAIN_PASSWORD"

_LEVELS = [level.value for level in FunctionalLevel]


@click.group()
@click.version_option(version=__version__, prog_name="addsctl")
@click.option("--verbose", "-v", is_flag=True, help="Show progress (INFO).")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to addsctl.yml (default: auto-detect).",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write the log to this file.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    log_file: str | None,
) -> None:
    """addsctl — provision Active Directory forests and domain controllers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    ctx.obj["settings"] = settings

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("ADDSCTL_LOG_LEVEL") or settings.log_level or "WARNING"

    setup_logging(
        level=level,
        log_file=log_file or os.environ.get("ADDSCTL_LOG_FILE") or settings.log_file,
        log_file_level=os.environ.get("ADDSCTL_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


# ── Helpers ─────────────────────────────────────────────────────


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _platform(mock: bool) -> Platform:
    if mock:
        from addsctl.adapters.mock import mock_platform

        return mock_platform()

    from addsctl.adapters.prompt import ClickSecretPrompt
    from addsctl.adapters.windows import windows_platform

    return windows_platform(prompt=ClickSecretPrompt())


def _env_secret(name: str) -> SecretStr | None:
    value = os.environ.get(name)
    return SecretStr(value) if value else None


def _fail(error: ProvisioningError, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps({"ok": False, "error": error.to_dict()}, indent=2))
    else:
        click.secho(f"❌ {error}", fg="red", err=True)
    sys.exit(1)


def _invalid_request(error: ValidationError) -> None:
    click.secho("❌ Invalid request:", fg="red", bold=True, err=True)
    for err in error.errors():
        field = ".".join(str(p) for p in err["loc"]) or "request"
        click.echo(f"   • {field}: {err['msg']}", err=True)
    sys.exit(1)


def _provisioning_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by 'forest create' and 'dc promote'."""
    options = [
        click.argument("domain_name"),
        click.option("--netbios-name", default=None, help="NetBIOS name (default: first DNS label)."),
        click.option("--domain-mode", type=click.Choice(_LEVELS), default=None, help="Domain functional level."),
        click.option("--forest-mode", type=click.Choice(_LEVELS), default=None, help="Forest functional level."),
        click.option("--database-path", default=None, help="NTDS database directory."),
        click.option("--log-path", default=None, help="NTDS log directory."),
        click.option("--sysvol-path", default=None, help="SYSVOL directory."),
        click.option("--install-dns/--no-install-dns", default=True, help="Install the DNS server role."),
        click.option("--force", is_flag=True, help="Skip confirmation and pass -Force to the cmdlet."),
        click.option("--no-reboot", is_flag=True, help="Don't restart when provisioning finishes."),
        click.option("--dry-run", is_flag=True, help="Show what would happen; change nothing."),
        click.option("--pass-thru", is_flag=True, help="Print a summary of the result."),
        click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON."),
        click.option("--mock", is_flag=True, help="Use the mock platform (no real execution)."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _request_fields(ctx: click.Context, **opts: Any) -> dict[str, Any]:
    """Merge CLI options over configured defaults."""
    settings = _settings(ctx)
    install_dns = opts["install_dns"]
    if ctx.get_parameter_source("install_dns") is ParameterSource.DEFAULT:
        install_dns = settings.install_dns
    return {
        "domain_name": opts["domain_name"],
        "netbios_name": opts["netbios_name"],
        "domain_mode": opts["domain_mode"] or settings.domain_mode,
        "forest_mode": opts["forest_mode"] or settings.forest_mode,
        "database_path": opts["database_path"] or settings.paths.database,
        "log_path": opts["log_path"] or settings.paths.log,
        "sysvol_path": opts["sysvol_path"] or settings.paths.sysvol,
        "install_dns": install_dns,
        "force": opts["force"],
        "no_reboot": opts["no_reboot"],
        "safe_mode_password": _env_secret(SAFE_MODE_PASSWORD_ENV),
    }


def _run_provisioning(
    ctx: click.Context,
    operation: Callable[..., Any],
    request: Any,
    *,
    dry_run: bool,
    pass_thru: bool,
    as_json: bool,
    mock: bool,
    done_message: str,
) -> None:
    from addsctl.core.persistence.audit import AuditWriter

    settings = _settings(ctx)
    audit_path = settings.audit_path
    audit = AuditWriter(audit_path) if audit_path and not mock else None
    cancelled = []

    def confirm(message: str) -> bool:
        answer = click.confirm(message, default=False)
        if not answer:
            cancelled.append(message)
        return answer

    try:
        outcome = operation(
            request,
            platform=_platform(mock),
            settings=settings,
            dry_run=dry_run,
            confirm=confirm,
            pass_thru=pass_thru or as_json,
            audit=audit,
        )
    except ProvisioningError as e:
        _fail(e, as_json)
        return

    if as_json:
        status = "dry-run" if dry_run else "cancelled" if cancelled else "completed"
        data: dict[str, Any] = {"ok": True, "status": status}
        if outcome is not None:
            data["outcome"] = outcome.model_dump(mode="json")
        click.echo(json.dumps(data, indent=2))
        return

    if dry_run:
        click.secho("⊘ [dry-run] nothing was changed", fg="yellow")
        return
    if cancelled:
        click.secho("⊘ Cancelled", fg="yellow")
        return

    mode_label = "[mock] " if mock else ""
    click.secho(f"✅ {mode_label}{done_message}", fg="green", bold=True)
    if outcome is not None:
        for key, value in outcome.model_dump(mode="json").items():
            click.echo(f"   {key:<15} {value}")


# ── forest ──────────────────────────────────────────────────────


@cli.group()
def forest() -> None:
    """Forest operations."""


@forest.command("create")
@_provisioning_options
@click.pass_context
def forest_create(ctx: click.Context, **opts: Any) -> None:
    """Create a new forest with DOMAIN_NAME as its root domain.

    Examples:

        addsctl forest create contoso.com --dry-run

        addsctl forest create contoso.com --domain-mode WinThreshold --force
    """
    from addsctl.core.models.request import ProvisioningRequest
    from addsctl.core.use_cases.provision import create_forest

    try:
        request = ProvisioningRequest(**_request_fields(ctx, **opts))
    except ValidationError as e:
        _invalid_request(e)
        return

    _run_provisioning(
        ctx,
        create_forest,
        request,
        dry_run=opts["dry_run"],
        pass_thru=opts["pass_thru"],
        as_json=opts["as_json"],
        mock=opts["mock"],
        done_message=f"Forest '{request.domain_name}' created",
    )


# ── dc ──────────────────────────────────────────────────────────


@cli.group()
def dc() -> None:
    """Domain controller operations."""


@dc.command("promote")
@_provisioning_options
@click.option("--username", default=None, help="Domain account used to join (DOMAIN\\user).")
@click.option("--site-name", default=None, help="AD site for the new controller.")
@click.option("--replication-source", default=None, help="Controller to replicate from.")
@click.pass_context
def dc_promote(
    ctx: click.Context,
    username: str | None,
    site_name: str | None,
    replication_source: str | None,
    **opts: Any,
) -> None:
    """Promote this server to a controller of the existing DOMAIN_NAME."""
    from addsctl.core.models.request import ControllerRequest, Credential
    from addsctl.core.use_cases.provision import promote_controller

    try:
        credential = None
        if username:
            credential = Credential(username=username, password=_env_secret(DOMAIN_PASSWORD_ENV))
        request = ControllerRequest(
            **_request_fields(ctx, **opts),
            credential=credential,
            site_name=site_name,
            replication_source=replication_source,
        )
    except ValidationError as e:
        _invalid_request(e)
        return

    _run_provisioning(
        ctx,
        promote_controller,
        request,
        dry_run=opts["dry_run"],
        pass_thru=opts["pass_thru"],
        as_json=opts["as_json"],
        mock=opts["mock"],
        done_message=f"Server promoted to controller of '{request.domain_name}'",
    )


# ── preflight ───────────────────────────────────────────────────


@cli.command()
@click.option("--feature", "features", multiple=True, help="Feature to check (repeatable).")
@click.option("--path", "paths", multiple=True, help="Path to check (default: volumes of the configured paths).")
@click.option("--min-free-gb", type=float, default=None, help="Free space required per path.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use the mock platform.")
@click.pass_context
def preflight(
    ctx: click.Context,
    features: tuple[str, ...],
    paths: tuple[str, ...],
    min_free_gb: float | None,
    as_json: bool,
    mock: bool,
) -> None:
    """Check this server is ready for AD DS."""
    from addsctl.core.services.preflight import run_preflight

    settings = _settings(ctx)
    platform = _platform(mock)
    if not paths:
        configured = [settings.paths.database, settings.paths.log, settings.paths.sysvol]
        paths = tuple(dict.fromkeys(platform.filesystem.volume_of(p) for p in configured))
    min_free = settings.min_free_bytes if min_free_gb is None else int(min_free_gb * 1024 ** 3)

    try:
        result = run_preflight(
            platform,
            feature_names=list(features) or [settings.feature],
            required_paths=list(paths),
            min_free_bytes=min_free,
        )
    except ProvisioningError as e:
        _fail(e, as_json)
        return

    if as_json:
        click.echo(json.dumps({"ok": True, **result.model_dump(mode="json"), "pass_rate": result.pass_rate}, indent=2))
        return

    click.secho(
        f"✅ Preflight passed: {result.checks_passed}/{result.checks_total} checks",
        fg="green",
        bold=True,
    )
    for warning in result.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")


# ── features ────────────────────────────────────────────────────


@cli.group()
def features() -> None:
    """Windows roles and features."""


@features.command("ensure")
@click.argument("name", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use the mock platform.")
@click.pass_context
def features_ensure(ctx: click.Context, name: str | None, as_json: bool, mock: bool) -> None:
    """Install a feature if it isn't installed (default: AD DS)."""
    from addsctl.core.services.features import ensure_feature

    name = name or _settings(ctx).feature
    try:
        state = ensure_feature(_platform(mock).features, name)
    except ProvisioningError as e:
        _fail(e, as_json)
        return

    if as_json:
        click.echo(json.dumps({"ok": True, **state.model_dump(mode="json")}, indent=2))
        return
    click.secho(f"✅ {state.name}: {state.install_state}", fg="green")


# ── modules ─────────────────────────────────────────────────────


@cli.group()
def modules() -> None:
    """PowerShell modules."""


@modules.command("ensure")
@click.argument("names", nargs=-1)
@click.option("--repository", default=None, help="Source repository (default: configured).")
@click.option("--keep-going", is_flag=True, help="Install the rest after a failure.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use the mock platform.")
@click.pass_context
def modules_ensure(
    ctx: click.Context,
    names: tuple[str, ...],
    repository: str | None,
    keep_going: bool,
    as_json: bool,
    mock: bool,
) -> None:
    """Install PowerShell modules that aren't present (default: configured list)."""
    from addsctl.core.services.packages import ensure_modules

    settings = _settings(ctx)
    try:
        report = ensure_modules(
            _platform(mock).packages,
            list(names) or settings.modules,
            repository=repository or settings.repository,
            keep_going=keep_going or settings.keep_going,
        )
    except ProvisioningError as e:
        _fail(e, as_json)
        return

    if as_json:
        click.echo(json.dumps({"ok": True, **report.model_dump(mode="json")}, indent=2))
        return

    for name in report.installed:
        click.secho(f"   ✓ {name} (installed)", fg="green")
    for name in report.skipped:
        click.echo(f"   ⊘ {name} (already present)")
    click.secho(f"✅ Modules: {report.checked} checked", fg="green", bold=True)


# ── paths ───────────────────────────────────────────────────────


@cli.group()
def paths() -> None:
    """Filesystem paths."""


@paths.command("check")
@click.argument("targets", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def paths_check(targets: tuple[str, ...], as_json: bool) -> None:
    """Check that every TARGET exists; report all missing ones at once."""
    from addsctl.adapters.windows.system import LocalFilesystem
    from addsctl.core.services.paths import assert_paths_exist

    try:
        assert_paths_exist(LocalFilesystem(), targets)
    except ProvisioningError as e:
        _fail(e, as_json)
        return

    if as_json:
        click.echo(json.dumps({"ok": True, "paths": list(targets)}, indent=2))
        return
    click.secho(f"✅ All {len(targets)} path(s) exist", fg="green")


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate addsctl.yml and show the effective settings."""
    settings = _settings(ctx)
    data = settings.model_dump(mode="json")

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.secho("✅ Configuration is valid", fg="green", bold=True)
    for key, value in data.items():
        click.echo(f"   {key:<13} {value}")


if __name__ == "__main__":
    cli()

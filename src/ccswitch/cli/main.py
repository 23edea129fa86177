#!/usr/bin/env python3
"""Entry point for the ccswitch CLI."""

from __future__ import annotations

import argparse
import json
import sys
import time
from collections import deque
from pathlib import Path
from textwrap import dedent
from typing import Any, Callable, Dict

from ccswitch import __version__
from ccswitch.app.container import Services, build_services
from ccswitch.app.switch import SwitchResult
from ccswitch.app.tray import decode_menu_id, perform
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import CcSwitchError, NotFoundError, ValidationError
from ccswitch.domain.provider import Provider
from ccswitch.settings import ENV_BACKENDS, RuntimeSettings, load_settings, save_overrides
from ccswitch.utils.telemetry import clear as telemetry_clear
from ccswitch.utils.telemetry import iter_events as telemetry_iter
from ccswitch.utils.telemetry import record_structured_event
from ccswitch.utils.telemetry import summarize as telemetry_summarize

APP_CHOICES = tuple(app.value for app in AppType)
MCP_APP_CHOICES = ("claude", "codex")

SETTINGS: RuntimeSettings | None = None

HELP_OVERVIEW = dedent(
    """
    Switch provider profiles for Claude Code, Codex and Droid.

      - ccswitch provider list --app claude
      - ccswitch provider switch --app codex --id <provider-id>
      - ccswitch mcp enable --app claude --id <server-id>

    The store lives in ~/.cc-switch/config.json (override with CCSWITCH_HOME).
    """
)


def _settings() -> RuntimeSettings:
    """Return the process settings, loading them on first use."""

    global SETTINGS
    if SETTINGS is None:
        SETTINGS = load_settings()
    return SETTINGS


def _report_failure(label: str, exc: CcSwitchError) -> None:
    print(f"{label} failed: {exc.message}", file=sys.stderr)
    if exc.remediation:
        print(f"hint: {exc.remediation}", file=sys.stderr)


def _services(*, migrate: bool = True) -> Services:
    return build_services(_settings(), migrate=migrate)


def _emit(payload: Any, *, as_json: bool, text: str) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(text)


def _load_text_argument(raw: str, label: str) -> str:
    """Accept inline text or ``@path`` pointing at a file."""

    if not raw.startswith("@"):
        return raw
    path = Path(raw[1:]).expanduser()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"Cannot read {label} from {path}: {exc}") from exc


def _load_json_argument(raw: str, label: str) -> Any:
    try:
        return json.loads(_load_text_argument(raw, label))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{label} is not valid JSON: {exc}") from exc


def _run(command: str, component: str, args: argparse.Namespace, action: Callable[[], int]) -> int:
    """Run ``action`` with start/success/error telemetry and uniform error output."""

    event = f"{component}.{command.replace('-', '_')}"
    context: Dict[str, Any] = {"command": command}
    if getattr(args, "app", None):
        context["app"] = args.app
    record_structured_event(_settings(), event, status="start", component=component, payload=context)
    start = time.perf_counter()
    try:
        exit_code = action()
    except CcSwitchError as exc:
        record_structured_event(
            _settings(),
            event,
            status="error",
            level="error",
            component=component,
            duration_ms=(time.perf_counter() - start) * 1000,
            payload=context | {"error": exc.message, "code": exc.code},
        )
        _report_failure(f"{component} {command}", exc)
        return 1
    record_structured_event(
        _settings(),
        event,
        status="success",
        component=component,
        duration_ms=(time.perf_counter() - start) * 1000,
        payload=context | {"exit_code": exit_code},
    )
    return exit_code


# ----------------------------------------------------------------------
# provider
# ----------------------------------------------------------------------


def _provider_cmd(args: argparse.Namespace) -> int:
    command = args.provider_command
    handlers = {
        "list": _provider_list,
        "current": _provider_current,
        "add": _provider_add,
        "batch-add": _provider_batch_add,
        "update": _provider_update,
        "delete": _provider_delete,
        "switch": _provider_switch,
        "disable": _provider_disable,
        "endpoint": _provider_endpoint,
        "import-default": _provider_import_default,
        "sync": _provider_sync,
    }
    handler = handlers.get(command)
    if handler is None:
        print("Unsupported provider command", file=sys.stderr)
        return 2
    return _run(command, "provider", args, lambda: handler(args))


def _provider_list(args: argparse.Namespace) -> int:
    services = _services()
    app = AppType.parse(args.app)
    providers = services.providers.list(app)
    current = services.providers.get_current(app)
    if args.json:
        payload = {
            "app": app.value,
            "current": current,
            "providers": [provider.to_dict() for provider in providers.values()],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0
    if not providers:
        print(f"provider list: no {app.value} providers")
        return 0
    print(f"provider list ({app.value}):")
    for provider in sorted(providers.values(), key=lambda item: (item.created_at or 0, item.name)):
        marker = "*" if provider.id == current else " "
        print(f"  {marker} {provider.id}  {provider.name}")
    return 0


def _provider_current(args: argparse.Namespace) -> int:
    current = _services().providers.get_current(AppType.parse(args.app))
    _emit({"app": args.app, "current": current}, as_json=args.json, text=current or "(none)")
    return 0


def _provider_add(args: argparse.Namespace) -> int:
    services = _services()
    app = AppType.parse(args.app)
    provider = Provider.create(
        args.name,
        _load_json_argument(args.settings, "settings"),
        provider_id=args.id,
        website_url=args.website,
        category=args.category,
        alternative_urls=args.alternative_url or None,
    )
    services.providers.add(app, provider, activate=args.activate)
    _emit(provider.to_dict(), as_json=args.json, text=f"provider add: {provider.id} ({provider.name})")
    return 0


def _provider_batch_add(args: argparse.Namespace) -> int:
    keys_text = _load_text_argument(args.keys, "keys")
    created = _services().providers.batch_add(AppType.parse(args.app), keys_text, args.prefix)
    payload = {"app": args.app, "created": [{"id": provider.id, "name": provider.name} for provider in created]}
    _emit(payload, as_json=args.json, text=f"provider batch-add: {len(created)} provider(s) created")
    return 0


def _provider_update(args: argparse.Namespace) -> int:
    services = _services()
    app = AppType.parse(args.app)
    existing = services.providers.list(app).get(args.id)
    if existing is None:
        raise NotFoundError(f"Provider not found: {args.id}")
    data = existing.to_dict()
    if args.name:
        data["name"] = args.name
    if args.settings:
        data["settingsConfig"] = _load_json_argument(args.settings, "settings")
    if args.website is not None:
        data["websiteUrl"] = args.website
    if args.alternative_url:
        data["alternativeUrls"] = list(args.alternative_url)
    updated = services.providers.update(app, Provider.from_dict(data))
    _emit(updated.to_dict(), as_json=args.json, text=f"provider update: {updated.id}")
    return 0


def _provider_delete(args: argparse.Namespace) -> int:
    removed = _services().providers.delete(AppType.parse(args.app), args.id)
    _emit({"deleted": removed.id}, as_json=args.json, text=f"provider delete: {removed.id} removed")
    return 0


def _provider_switch(args: argparse.Namespace) -> int:
    result = _services().switcher.switch(AppType.parse(args.app), args.id)
    payload = {
        "app": result.app.value,
        "previous": result.previous_id,
        "current": result.current_id,
        "backfilled": result.backfilled,
    }
    _emit(payload, as_json=args.json, text=f"provider switch: {result.previous_id or '(none)'} -> {result.current_id}")
    return 0


def _provider_disable(args: argparse.Namespace) -> int:
    previous = _services().switcher.disable(AppType.parse(args.app))
    _emit({"app": args.app, "previous": previous}, as_json=args.json, text=f"provider disable: {previous or '(none)'} disabled")
    return 0


def _provider_endpoint(args: argparse.Namespace) -> int:
    services = _services()
    app = AppType.parse(args.app)
    if args.id:
        provider = services.switcher.switch_with_endpoint(app, args.id, args.url)
    else:
        provider = services.switcher.switch_endpoint(app, args.url)
    _emit({"provider": provider.id, "url": args.url}, as_json=args.json, text=f"provider endpoint: {provider.id} -> {args.url}")
    return 0


def _provider_import_default(args: argparse.Namespace) -> int:
    imported = _services().providers.import_default(AppType.parse(args.app))
    text = "provider import-default: imported live config" if imported else "provider import-default: providers already present"
    _emit({"imported": imported}, as_json=args.json, text=text)
    return 0


def _provider_sync(args: argparse.Namespace) -> int:
    changed = _services().providers.sync_current(AppType.parse(args.app))
    _emit({"changed": changed}, as_json=args.json, text=f"provider sync: {'updated' if changed else 'up to date'}")
    return 0


# ----------------------------------------------------------------------
# mcp
# ----------------------------------------------------------------------


def _mcp_cmd(args: argparse.Namespace) -> int:
    command = args.mcp_command

    def action() -> int:
        registry = _services().mcp
        app = AppType.parse(args.app)
        if command == "list":
            servers = registry.list(app)
            if args.json:
                print(json.dumps({"app": app.value, "servers": servers}, ensure_ascii=False, indent=2))
            elif not servers:
                print(f"mcp list: no {app.value} servers")
            else:
                print(f"mcp list ({app.value}):")
                for server_id, entry in sorted(servers.items()):
                    flag = "on " if entry.get("enabled") else "off"
                    target = entry.get("command") or entry.get("url") or ""
                    print(f"  [{flag}] {server_id}: {target}")
            return 0
        if command == "upsert":
            changed = registry.upsert(app, args.id, _load_json_argument(args.spec, "spec"))
            if args.enable:
                changed = registry.set_enabled(app, args.id, True) or changed
            _emit({"id": args.id, "changed": changed}, as_json=args.json, text=f"mcp upsert: {args.id} {'saved' if changed else 'unchanged'}")
            return 0
        if command == "delete":
            existed = registry.delete(app, args.id)
            _emit({"id": args.id, "deleted": existed}, as_json=args.json, text=f"mcp delete: {args.id} {'removed' if existed else 'not found'}")
            return 0 if existed else 1
        if command in ("enable", "disable"):
            changed = registry.set_enabled(app, args.id, command == "enable")
            _emit({"id": args.id, "changed": changed}, as_json=args.json, text=f"mcp {command}: {args.id} {'updated' if changed else 'unchanged'}")
            return 0
        if command == "sync":
            count = registry.project_to_live(app)
            _emit({"app": app.value, "projected": count}, as_json=args.json, text=f"mcp sync: {count} server(s) written")
            return 0
        if command == "import":
            count = registry.import_from_live(app)
            _emit({"app": app.value, "imported": count}, as_json=args.json, text=f"mcp import: {count} server(s) imported")
            return 0
        if command == "copy":
            registry.copy_to_other_app(app, args.id, overwrite=args.overwrite)
            target = app.mcp_peer().value
            _emit({"id": args.id, "target": target}, as_json=args.json, text=f"mcp copy: {args.id} -> {target}")
            return 0
        if command == "conflict":
            conflict = registry.has_conflict(app, args.id)
            _emit({"id": args.id, "conflict": conflict}, as_json=args.json, text="conflict" if conflict else "no conflict")
            return 0
        print("Unsupported mcp command", file=sys.stderr)
        return 2

    return _run(command, "mcp", args, action)


# ----------------------------------------------------------------------
# migrate / tray / settings / telemetry
# ----------------------------------------------------------------------


def _migrate_cmd(args: argparse.Namespace) -> int:
    def action() -> int:
        services = _services(migrate=False)
        importer = services.migration
        plan = importer.detect()
        found = [{"app": item.app.value, "name": item.name, "files": [str(p) for p in item.files]} for item in plan.copies]
        if args.dry_run or importer.already_ran():
            payload = {"found": found, "skipped": plan.skipped, "alreadyMigrated": importer.already_ran()}
            lines = [f"migration: {len(found)} legacy copies detected"]
            lines.extend(f"  - {entry['app']}: {entry['name']}" for entry in found)
            _emit(payload, as_json=args.json, text="\n".join(lines))
            return 0
        changed = importer.run(services.store)
        _emit({"found": found, "changed": changed}, as_json=args.json, text=f"migration: {'imported' if changed else 'nothing new'}")
        return 0

    return _run("run", "migration", args, action)


def _tray_cmd(args: argparse.Namespace) -> int:
    def action() -> int:
        tray_action = decode_menu_id(args.menu_id)
        outcome = perform(_services().switcher, tray_action)
        if isinstance(outcome, SwitchResult):
            current = outcome.current_id
        elif isinstance(outcome, Provider):
            current = outcome.id
        else:
            current = ""
        _emit(
            {"kind": tray_action.kind, "app": tray_action.app.value, "current": current},
            as_json=args.json,
            text=f"tray {tray_action.kind}: done",
        )
        return 0

    return _run("perform", "tray", args, action)


def _settings_cmd(args: argparse.Namespace) -> int:
    settings = _settings()
    if args.settings_command == "show":
        payload = {
            "home": str(settings.home_dir),
            "claude_config_dir": str(settings.claude_dir),
            "codex_config_dir": str(settings.codex_dir),
            "droid_env_backend": settings.droid_env_backend,
            "lock_timeout": settings.lock_timeout,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0
    if args.settings_command == "set":
        path = save_overrides(
            settings,
            {
                "claude_config_dir": args.claude_dir,
                "codex_config_dir": args.codex_dir,
                "droid_env_backend": args.droid_env_backend,
                "lock_timeout": args.lock_timeout,
            },
        )
        print(f"settings saved to {path}")
        return 0
    print("Unsupported settings command", file=sys.stderr)
    return 2


def _telemetry_cmd(args: argparse.Namespace) -> int:
    if args.telemetry_command == "report":
        recent = getattr(args, "recent", 0)
        if recent and recent > 0:
            events = list(deque(telemetry_iter(_settings()), maxlen=recent))
        else:
            events = list(telemetry_iter(_settings()))
        print(json.dumps(telemetry_summarize(events), indent=2, ensure_ascii=False))
        return 0
    if args.telemetry_command == "clear":
        telemetry_clear(_settings())
        print("Telemetry log cleared")
        return 0
    if args.telemetry_command == "tail":
        for evt in deque(telemetry_iter(_settings()), maxlen=args.limit):
            print(json.dumps(evt, ensure_ascii=False))
        return 0
    print("Unsupported telemetry command", file=sys.stderr)
    return 2


# ----------------------------------------------------------------------
# parser
# ----------------------------------------------------------------------


def _add_app(parser: argparse.ArgumentParser, choices: tuple[str, ...] = APP_CHOICES, default: str = "claude") -> None:
    parser.add_argument("--app", choices=choices, default=default, help=f"Client application (default: {default})")
    parser.add_argument("--json", action="store_true", help="Emit machine-readable output")


def _build_provider_parser(sub: argparse._SubParsersAction) -> None:
    provider = sub.add_parser("provider", help="Manage provider profiles")
    provider_sub = provider.add_subparsers(dest="provider_command", required=True)

    for name, help_text in (
        ("list", "List providers for an app"),
        ("current", "Print the active provider id"),
        ("disable", "Clear the live credentials and unset the active provider"),
        ("import-default", "Create a 'default' provider from the live config"),
        ("sync", "Copy live credentials back into the active provider"),
    ):
        cmd = provider_sub.add_parser(name, help=help_text)
        _add_app(cmd)

    add_cmd = provider_sub.add_parser("add", help="Register a provider")
    _add_app(add_cmd)
    add_cmd.add_argument("--name", required=True)
    add_cmd.add_argument("--settings", required=True, help="settingsConfig as JSON or @file")
    add_cmd.add_argument("--id", help="Explicit provider id (default: generated)")
    add_cmd.add_argument("--website")
    add_cmd.add_argument("--category")
    add_cmd.add_argument("--alternative-url", action="append", default=[], help="Allowed endpoint (repeatable)")
    add_cmd.add_argument("--activate", action="store_true", help="Write it live and make it current")

    batch_cmd = provider_sub.add_parser("batch-add", help="Create Droid providers from a list of fk- keys")
    _add_app(batch_cmd, ("droid",), default="droid")
    batch_cmd.add_argument("--keys", required=True, help="Keys separated by newlines, commas or semicolons, or @file")
    batch_cmd.add_argument("--prefix", default="Key", help="Name prefix; providers become '<prefix> 1', '<prefix> 2', ...")

    update_cmd = provider_sub.add_parser("update", help="Edit a provider")
    _add_app(update_cmd)
    update_cmd.add_argument("--id", required=True)
    update_cmd.add_argument("--name")
    update_cmd.add_argument("--settings", help="Replacement settingsConfig as JSON or @file")
    update_cmd.add_argument("--website")
    update_cmd.add_argument("--alternative-url", action="append", default=[])

    for name, help_text in (("delete", "Remove a provider"), ("switch", "Activate a provider")):
        cmd = provider_sub.add_parser(name, help=help_text)
        _add_app(cmd)
        cmd.add_argument("--id", required=True)

    endpoint_cmd = provider_sub.add_parser("endpoint", help="Point the active provider at an alternative URL")
    _add_app(endpoint_cmd)
    endpoint_cmd.add_argument("--url", required=True)
    endpoint_cmd.add_argument("--id", help="Activate this provider first")

    provider.set_defaults(func=_provider_cmd)


def _build_mcp_parser(sub: argparse._SubParsersAction) -> None:
    mcp = sub.add_parser("mcp", help="Manage shared MCP server definitions")
    mcp_sub = mcp.add_subparsers(dest="mcp_command", required=True)

    for name in ("list", "sync", "import"):
        _add_app(mcp_sub.add_parser(name), MCP_APP_CHOICES)

    upsert_cmd = mcp_sub.add_parser("upsert", help="Create or replace a server definition")
    _add_app(upsert_cmd, MCP_APP_CHOICES)
    upsert_cmd.add_argument("--id", required=True)
    upsert_cmd.add_argument("--spec", required=True, help="Server definition as JSON or @file")
    upsert_cmd.add_argument("--enable", action="store_true")

    for name in ("delete", "enable", "disable", "conflict"):
        cmd = mcp_sub.add_parser(name)
        _add_app(cmd, MCP_APP_CHOICES)
        cmd.add_argument("--id", required=True)

    copy_cmd = mcp_sub.add_parser("copy", help="Copy a server to the other app")
    _add_app(copy_cmd, MCP_APP_CHOICES)
    copy_cmd.add_argument("--id", required=True)
    copy_cmd.add_argument("--overwrite", action="store_true")

    mcp.set_defaults(func=_mcp_cmd)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ccswitch",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"ccswitch {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)
    _build_provider_parser(sub)
    _build_mcp_parser(sub)

    migrate_cmd = sub.add_parser("migrate", help="Import legacy per-provider config copies")
    migrate_cmd.add_argument("--dry-run", action="store_true", help="Only list what would be imported")
    migrate_cmd.add_argument("--json", action="store_true")
    migrate_cmd.set_defaults(func=_migrate_cmd)

    tray_cmd = sub.add_parser("tray", help="Perform a tray menu action by id")
    tray_cmd.add_argument("menu_id")
    tray_cmd.add_argument("--json", action="store_true")
    tray_cmd.set_defaults(func=_tray_cmd)

    settings_cmd = sub.add_parser("settings", help="Show or change settings.yaml")
    settings_sub = settings_cmd.add_subparsers(dest="settings_command", required=True)
    settings_sub.add_parser("show")
    set_cmd = settings_sub.add_parser("set")
    set_cmd.add_argument("--claude-dir")
    set_cmd.add_argument("--codex-dir")
    set_cmd.add_argument("--droid-env-backend", choices=ENV_BACKENDS)
    set_cmd.add_argument("--lock-timeout", type=float)
    settings_cmd.set_defaults(func=_settings_cmd)

    telemetry_cmd = sub.add_parser("telemetry", help="Inspect the local telemetry log")
    telemetry_sub = telemetry_cmd.add_subparsers(dest="telemetry_command", required=True)
    report_cmd = telemetry_sub.add_parser("report")
    report_cmd.add_argument("--recent", type=int, default=0)
    telemetry_sub.add_parser("clear")
    tail_cmd = telemetry_sub.add_parser("tail")
    tail_cmd.add_argument("--limit", type=int, default=20)
    telemetry_cmd.set_defaults(func=_telemetry_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    try:
        _settings()
    except CcSwitchError as exc:
        _report_failure("ccswitch", exc)
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

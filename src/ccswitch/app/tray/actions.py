"""Typed tray menu actions and their menu-id encoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote

from ccswitch.app.switch import SwitchCoordinator, SwitchResult
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import ValidationError
from ccswitch.domain.provider import Provider

MENU_PREFIX = "ccswitch"
KINDS = ("switch", "disable", "endpoint")


@dataclass(frozen=True)
class TrayAction:
    kind: str
    app: AppType
    provider_id: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValidationError(f"Unknown tray action '{self.kind}'")
        if self.kind == "switch" and not self.provider_id:
            raise ValidationError("switch action requires a provider id")
        if self.kind == "endpoint" and not self.url:
            raise ValidationError("endpoint action requires a url")


def encode_menu_id(action: TrayAction) -> str:
    """Render ``action`` as ``ccswitch/<kind>/<app>[/<provider>[/<url>]]``."""

    parts = [MENU_PREFIX, action.kind, action.app.value]
    if action.provider_id or action.url:
        parts.append(quote(action.provider_id or "", safe=""))
    if action.url:
        parts.append(quote(action.url, safe=""))
    return "/".join(parts)


def decode_menu_id(menu_id: str) -> TrayAction:
    parts = menu_id.split("/")
    if len(parts) < 3 or parts[0] != MENU_PREFIX:
        raise ValidationError(f"Unrecognised menu id '{menu_id}'")
    if len(parts) > 5:
        raise ValidationError(f"Menu id '{menu_id}' has too many segments")
    kind, app = parts[1], AppType.parse(parts[2])
    provider_id = unquote(parts[3]) if len(parts) > 3 and parts[3] else None
    url = unquote(parts[4]) if len(parts) > 4 and parts[4] else None
    return TrayAction(kind=kind, app=app, provider_id=provider_id, url=url)


def perform(coordinator: SwitchCoordinator, action: TrayAction) -> SwitchResult | Provider | str:
    if action.kind == "switch":
        return coordinator.switch(action.app, action.provider_id or "")
    if action.kind == "disable":
        return coordinator.disable(action.app)
    if action.provider_id:
        return coordinator.switch_with_endpoint(action.app, action.provider_id, action.url or "")
    return coordinator.switch_endpoint(action.app, action.url or "")


__all__ = ["TrayAction", "decode_menu_id", "encode_menu_id", "perform"]

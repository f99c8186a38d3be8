from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if not raw:
        return default
    return raw.strip().casefold() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class FlowSettings:
    # Coin Rush.
    tap_duration_s: float = 12.0
    tap_target_count: int = 18
    tap_tick_interval_s: float = 1 / 60
    tap_field_width: float = 720.0
    tap_field_height: float = 260.0
    tap_autostart: bool = False

    # Portal Match: finish as soon as the game is decided, or wait for "Done".
    duel_complete_on_terminal: bool = True

    # Certificate.
    recipient: str = "SHUB"
    emblem_path: str = "assets/bracelet.jpg"

    # One Redis database holds all portal state.
    redis_url: str = "redis://localhost:6379/0"

    # How long an API call waits for the orchestrator to pick up the next stage.
    advance_timeout_s: float = 5.0

    @classmethod
    def from_env(cls) -> "FlowSettings":
        d = cls()
        return cls(
            tap_duration_s=_env_float("PORTAL_TAP_DURATION_S", d.tap_duration_s),
            tap_target_count=_env_int("PORTAL_TAP_TARGETS", d.tap_target_count),
            tap_tick_interval_s=_env_float("PORTAL_TAP_TICK_S", d.tap_tick_interval_s),
            tap_field_width=_env_float("PORTAL_TAP_WIDTH", d.tap_field_width),
            tap_field_height=_env_float("PORTAL_TAP_HEIGHT", d.tap_field_height),
            tap_autostart=_env_bool("PORTAL_TAP_AUTOSTART", d.tap_autostart),
            duel_complete_on_terminal=_env_bool("PORTAL_DUEL_COMPLETE_ON_TERMINAL", d.duel_complete_on_terminal),
            recipient=os.environ.get("PORTAL_RECIPIENT", d.recipient),
            emblem_path=os.environ.get("PORTAL_EMBLEM_PATH", d.emblem_path),
            redis_url=os.environ.get("REDIS_URL", d.redis_url),
            advance_timeout_s=_env_float("PORTAL_ADVANCE_TIMEOUT_S", d.advance_timeout_s),
        )

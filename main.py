"""
Track replay for the geolocation signal core.

Replays a recorded track (JSON lines) through a GeolocationService backed
by the simulated platform on a virtual clock, printing every public state
change and a metrics summary.

Track lines (``t`` is seconds, relative or absolute):
    {"t": 0.0, "lat": 22.2900, "lng": 114.1700, "accuracy": 12.0, "speed": 1.2}
    {"t": 4.0, "error": "timeout"}
    {"t": 9.0, "permission": "denied"}
    {"t": 12.0, "recalibrate": true, "lat": 22.2901, "lng": 114.1702, "accuracy": 5.0}
    {"t": 15.0, "recalibrate": true, "error": "position_unavailable"}
"""

import sys
import json
import logging
import argparse
from pathlib import Path
from typing import Dict, Iterator, List

import config
from geo_core.proto import RawReading, PublicState, PermissionState
from geo_core.domain import GeolocationService, GeolocationConfig
from geo_core.io import ErrorCode, ManualScheduler, SimulatedLocationPlatform
from geo_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)

ERROR_CODES = {
    "permission_denied": ErrorCode.PERMISSION_DENIED,
    "position_unavailable": ErrorCode.POSITION_UNAVAILABLE,
    "timeout": ErrorCode.TIMEOUT,
}


def load_track(path: Path) -> List[Dict]:
    """
    Load track events from a JSON lines file.

    Blank lines and lines starting with ``#`` are skipped.

    Args:
        path: Track file

    Returns:
        Events sorted by time
    """
    events = []
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_no}: invalid JSON ({e})") from e
            if "t" not in event:
                raise ValueError(f"{path}:{line_no}: event has no 't'")
            events.append(event)

    events.sort(key=lambda e: float(e["t"]))
    return events


def format_state(t: float, state: PublicState) -> str:
    """One-line rendering of a public state."""
    if state.has_position:
        position = f"({state.latitude:.6f}, {state.longitude:.6f}) ±{state.accuracy_m:.1f}m"
    else:
        position = "(no position)"

    flags = []
    if state.loading:
        flags.append("loading")
    if state.stale:
        flags.append("stale")

    line = f"[t={t:7.1f}s] {position} permission={state.permission_state.value}"
    if flags:
        line += f" [{', '.join(flags)}]"
    if state.error:
        line += f" error={state.error!r}"
    return line


class TrackReplayer:
    """Drives a GeolocationService from track events on a virtual clock."""

    def __init__(
        self,
        platform: SimulatedLocationPlatform,
        geo_config: GeolocationConfig,
        metrics: MetricsCollector,
        print_states: bool = True,
    ):
        self.platform = platform
        self.scheduler = ManualScheduler()
        self.metrics = metrics
        self.service = GeolocationService(
            platform, config=geo_config, scheduler=self.scheduler, metrics=metrics,
        )
        self.states: List[PublicState] = []

        self.service.subscribe(self._on_state)
        self._print_states = print_states

    def replay(self, events: List[Dict], tail_s: float = 0.0) -> PublicState:
        """
        Replay events, then run the clock on for tail_s seconds.

        Returns:
            Final public state
        """
        if events:
            self.scheduler.advance_to(float(events[0]["t"]))

        with self.service:
            for event in events:
                self.scheduler.advance_to(float(event["t"]))
                self._dispatch(event)
            self.scheduler.advance(tail_s)
            final = self.service.state

        return final

    def _dispatch(self, event: Dict):
        if "permission" in event:
            self.platform.set_permission(PermissionState(event["permission"]))
            return

        if event.get("recalibrate"):
            self.service.recalibrate()
            if "error" in event:
                self.platform.fail_once(self._error_code(event), event.get("message", ""))
            else:
                self.platform.respond_once(self._reading(event))
            return

        if "error" in event:
            delivered = self.platform.emit_error(self._error_code(event), event.get("message", ""))
        else:
            delivered = self.platform.emit_reading(self._reading(event))

        if delivered == 0:
            logger.debug(f"t={event['t']}: no active watch, event not delivered")

    @staticmethod
    def _reading(event: Dict) -> RawReading:
        return RawReading.from_dict(event)

    @staticmethod
    def _error_code(event: Dict) -> int:
        name = str(event["error"]).lower()
        if name not in ERROR_CODES:
            raise ValueError(f"Unknown error '{event['error']}' (expected one of {sorted(ERROR_CODES)})")
        return ERROR_CODES[name]

    def _on_state(self, state: PublicState):
        self.states.append(state)
        if self._print_states:
            print(format_state(self.scheduler.time(), state))


def iter_state_lines(replayer: TrackReplayer) -> Iterator[str]:
    for state in replayer.states:
        yield json.dumps(state.to_dict())


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Replay a location track through the geolocation core")
    parser.add_argument("--track", type=Path, required=True, help="Track file (JSON lines)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-introspection", action="store_true",
                        help="Simulate a platform without permission queries")
    parser.add_argument("--permission", choices=["prompt", "granted", "denied"], default="prompt",
                        help="Initial permission state")
    parser.add_argument("--unsupported", action="store_true",
                        help="Simulate a platform without location capability")
    parser.add_argument("--json", action="store_true", help="Print state changes as JSON lines")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, config.LOGGING_CONFIG["level"]),
        format=config.LOGGING_CONFIG["format"],
    )

    try:
        events = load_track(args.track)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load track: {e}")
        sys.exit(1)

    geo_config = GeolocationConfig.from_dict(
        config.FILTER_CONFIG, config.WATCH_CONFIG, config.RECALIBRATE_CONFIG,
    )
    platform = SimulatedLocationPlatform(
        supported=not args.unsupported,
        introspection=not args.no_introspection,
        permission=PermissionState(args.permission),
    )
    metrics = MetricsCollector()

    replayer = TrackReplayer(
        platform,
        geo_config,
        metrics,
        print_states=config.REPLAY_CONFIG["print_states"] and not args.json,
    )

    logger.info(f"Replaying {len(events)} events from {args.track}")
    try:
        final = replayer.replay(events, tail_s=config.REPLAY_CONFIG["tail_s"])
    except ValueError as e:
        logger.error(f"Replay aborted: {e}")
        sys.exit(1)

    if args.json:
        for line in iter_state_lines(replayer):
            print(line)

    logger.info(f"Final state: {final.to_dict()}")
    metrics.print_summary()


if __name__ == "__main__":
    main()

"""
Position estimator replay driver.

Feeds a recorded JSON-lines event log through the estimator and prints or
writes the per-tick position outputs.

Event log format (one JSON object per line):
    {"type": "velocity", "t": 12.34, "vel_enu": [ve, vn, vu]}
    {"type": "gnss", "seq": 17, "pos_enu": [e, n, u]}
    {"type": "speed", "value": 13.2}
    {"type": "distance", "value": 812.5}
    {"type": "heading", "value": true}
"""

import sys
import json
import logging
import argparse
from typing import Iterable, Iterator, Optional, TextIO

import config
from dr_core.localization import PositionEstimator, PositionEstimatorConfig
from dr_core.metrics import get_metrics
from dr_core.proto import GnssFix, PositionOutput, VelocityReport

logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


def read_events(stream: TextIO) -> Iterator[dict]:
    """Yield decoded events, skipping blank and malformed lines."""
    for line_no, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Line {line_no}: JSON parse failed: {e}")


class ReplayRunner:
    """Dispatch recorded events to a PositionEstimator."""

    def __init__(self, estimator: PositionEstimator):
        self.estimator = estimator
        self.event_count = 0
        self.output_count = 0
        self.valid_count = 0

    def dispatch(self, event: dict) -> Optional[PositionOutput]:
        """
        Route one event to the estimator.

        Returns:
            PositionOutput if the event was a processed velocity tick

        Raises:
            ValueError: On unknown event types or malformed fields
        """
        self.event_count += 1
        kind = event.get("type")

        if kind == "velocity":
            output = self.estimator.on_velocity(
                VelocityReport(timestamp=float(event["t"]), vel_enu=tuple(event["vel_enu"]))
            )
            if output is not None:
                self.output_count += 1
                if output.estimate_valid:
                    self.valid_count += 1
            return output
        if kind == "gnss":
            self.estimator.on_gnss(GnssFix(seq=int(event["seq"]), pos_enu=tuple(event["pos_enu"])))
        elif kind == "speed":
            self.estimator.on_speed(float(event["value"]))
        elif kind == "distance":
            self.estimator.on_distance(float(event["value"]))
        elif kind == "heading":
            self.estimator.on_heading(bool(event["value"]))
        else:
            raise ValueError(f"Unknown event type: {kind!r}")
        return None

    def run(self, events: Iterable[dict], sink: Optional[TextIO] = None):
        """Replay all events, writing outputs as JSON lines to sink."""
        print_interval = config.OUTPUT_CONFIG["print_interval"]

        for event in events:
            try:
                output = self.dispatch(event)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Bad event {event}: {e}")
                continue

            if output is None:
                continue

            if sink is not None:
                sink.write(json.dumps(output.to_dict()) + "\n")

            if config.OUTPUT_CONFIG["enable_console_print"] and self.output_count % print_interval == 0:
                e, n, u = output.pos_enu
                print(f"[t={output.timestamp:.2f}] {output.mode.name:14s} "
                      f"E={e:10.2f} N={n:10.2f} U={u:8.2f}")

    def print_statistics(self):
        valid_rate = (self.valid_count / self.output_count * 100) if self.output_count > 0 else 0
        print(f"Events: {self.event_count}, ticks: {self.output_count}, "
              f"valid: {self.valid_count} ({valid_rate:.1f}%)")


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description='Dead-reckoning position estimator replay')
    parser.add_argument('events', type=str,
                        help='JSON-lines event log ("-" for stdin)')
    parser.add_argument('--output', '-o', type=str, default=None,
                        help='write position outputs as JSON lines')
    parser.add_argument('--span', type=float, default=None,
                        help='estimation span in meters')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.span is not None:
        config.ESTIMATOR_CONFIG["estimation_span_m"] = args.span

    estimator = PositionEstimator(PositionEstimatorConfig.from_dict(config.ESTIMATOR_CONFIG))
    runner = ReplayRunner(estimator)

    source = sys.stdin if args.events == "-" else open(args.events, "r", encoding="utf-8")
    sink = open(args.output, "w", encoding="utf-8") if args.output else None
    try:
        runner.run(read_events(source), sink)
    finally:
        if source is not sys.stdin:
            source.close()
        if sink is not None:
            sink.close()

    runner.print_statistics()
    if config.OUTPUT_CONFIG["print_metrics_summary"]:
        print(get_metrics().format_summary())


if __name__ == "__main__":
    main()

"""Replay recorded sample packets through the intensity pipeline.

Packets are read as newline-delimited JSON objects::

    {"source": "NZ.WEL", "channel": "NZ_WEL_10_HNZ", "start": "2024-01-01T00:00:00Z", "samples": [...]}

and every accepted event is written to stdout as one JSON object per line.
Flush decisions use the packet clock so a replay gives the same result every
time it is run.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import timedelta
from typing import IO, Iterator, Optional, Sequence

from core.errors import ConfigError
from core.registry import StreamRegistry
from shared.config import ProcessingSettings, load_streams
from shared.models import Packet

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

PROBATION_S = 600.0  # sustained noise before a stream is jailed
INTERVAL_S = 60.0    # minimum spacing of repeated identical intensities
LEVEL = 4            # intensities above this count as noise


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="impact",
        description="Convert sensor sample packets into intensity events.",
    )
    parser.add_argument("--config", required=True, help="JSON file of stream descriptors")
    parser.add_argument("--probation", type=float, default=PROBATION_S, help="noise probation period (s)")
    parser.add_argument("--interval", type=float, default=INTERVAL_S, help="re-notification interval (s), 0 to never repeat")
    parser.add_argument("--level", type=int, default=LEVEL, help="noise threshold intensity")
    parser.add_argument("--log-level", default="INFO", help="logging level")
    parser.add_argument("input", nargs="?", default="-", help="NDJSON packet file, '-' for stdin")
    return parser


def _read_packets(handle: IO[str]) -> Iterator[Packet]:
    for lineno, line in enumerate(handle, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield Packet.from_dict(json.loads(line))
        except (TypeError, ValueError) as exc:
            logger.warning("line %d: skipping malformed packet: %s", lineno, exc)


def run(registry: StreamRegistry, handle: IO[str], out: IO[str]) -> int:
    """Feed every packet through ``registry``; return the number of events written."""
    sent = 0
    for packet in _read_packets(handle):
        stream = registry.get(packet.srcname)
        now = packet.end_time(stream.rate) if stream is not None and stream.rate > 0 else packet.start_time
        message = registry.process_packet(packet, now=now)
        if message is None:
            continue
        out.write(json.dumps(message.to_dict()) + "\n")
        sent += 1
    return sent


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        streams = load_streams(args.config)
        settings = ProcessingSettings(
            probation=timedelta(seconds=args.probation),
            level=args.level,
            interval=timedelta(seconds=args.interval),
        )
        settings.validate()
    except (ConfigError, ValueError) as exc:
        logger.error("%s", exc)
        return 2

    registry = StreamRegistry(streams, settings)
    try:
        if args.input == "-":
            sent = run(registry, sys.stdin, sys.stdout)
        else:
            with open(args.input, "r", encoding="utf-8") as handle:
                sent = run(registry, handle, sys.stdout)
    except OSError as exc:
        logger.error("could not read packets: %s", exc)
        return 1
    finally:
        registry.close()

    logger.info("sent %d intensity events from %d streams", sent, len(registry))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

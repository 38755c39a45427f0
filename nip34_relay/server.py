"""Mock relay server entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import signal
from pathlib import Path
from typing import Any

import yaml

from .config import FaultMode, RelayConfig, load_config, parse_fault
from .logger import configure_logging, get_logger
from .mock import MockRelay
from .seed import SCENARIOS, TestSeeder


async def _run(args: argparse.Namespace) -> None:
    config = _build_config(args)
    configure_logging(debug=config.debug, json_output=config.json_logs)
    logger = get_logger("server", json_output=config.json_logs)

    relay = MockRelay(config=config)
    if args.scenario:
        repos = TestSeeder(relay).seed_scenario(args.scenario)
        logger.info("scenario_seeded", scenario=args.scenario, repos=len(repos), events=len(relay.store))
    if args.seed_file:
        seeded = relay.seed_events(_load_events(Path(args.seed_file)))
        logger.info("seed_file_loaded", path=args.seed_file, events=len(seeded))

    url = await relay.serve(config.host, config.port)
    logger.info("relay_ready", url=url, latency=config.latency, fault=config.fault.value)

    stop = asyncio.Event()

    def _handle_stop(*_: object) -> None:
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_stop)

    await stop.wait()
    logger.info("relay_stopping", published=len(relay.get_published_events()))
    await relay.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="NIP-34 mock nostr relay")
    parser.add_argument("--config", type=str, default=None, help="YAML file with relay settings")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--latency", type=float, default=None, help="seconds added to every message")
    parser.add_argument("--fault", choices=[mode.value for mode in FaultMode], default=None)
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default=None)
    parser.add_argument("--seed-file", type=str, default=None, help="YAML or JSON list of signed events")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--json-logs", action="store_true")

    args = parser.parse_args()
    asyncio.run(_run(args))


def _build_config(args: argparse.Namespace) -> RelayConfig:
    config = load_config(args.config) if args.config else RelayConfig()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.latency is not None:
        if args.latency < 0:
            raise SystemExit("--latency must be non-negative")
        config.latency = args.latency
    if args.fault is not None:
        config.fault = parse_fault(args.fault)
    if args.debug:
        config.debug = True
    if args.json_logs:
        config.json_logs = True
    return config


def _load_events(path: Path) -> list[dict[str, Any]]:
    # JSON is a subset of YAML, one loader reads both
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if isinstance(raw, dict):
        raw = raw.get("events", [])
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a list of events")
    return raw


if __name__ == "__main__":
    main()

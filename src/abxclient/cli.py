from __future__ import annotations

import argparse
import json
import logging
import random
import time

from .client import FeedClient
from .constants import (
    DEFAULT_HOST,
    DEFAULT_OPERATION_TIMEOUT_MS,
    DEFAULT_OUTPUT,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_MS,
)
from .net import Impairment, TransportError
from .output import write_json
from .simulator import FeedSimulator, generate_packets

logger = logging.getLogger(__name__)


def cmd_fetch(args: argparse.Namespace) -> int:
    client = FeedClient.tcp(
        args.host,
        args.port,
        timeout_ms=args.timeout_ms,
        operation_timeout_ms=args.operation_timeout_ms,
    )
    try:
        session = client.fetch()
    except TransportError as e:
        logger.error("fetch failed: %s", e)
        return 1

    packets = session.ordered_packets()
    try:
        write_json(packets, args.out)
    except OSError as e:
        logger.error("could not write %s: %s", args.out, e)
        return 1

    stats = session.stats
    payload = {
        "role": "client",
        "out": args.out,
        "state": session.state.value,
        "packets": len(packets),
        "max_sequence": session.max_sequence,
        "complete": session.complete,
        "malformed_frames": stats.malformed_frames,
        "duplicate_frames": stats.duplicate_frames,
        "truncated_bytes": stats.truncated_bytes,
        "resend_requests": stats.resend_requests,
        "resends_recovered": stats.resends_recovered,
        "resend_failures": [f.sequence for f in stats.resend_failures],
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0 if session.complete else 2


def cmd_serve(args: argparse.Namespace) -> int:
    sim = FeedSimulator(
        generate_packets(args.count, seed=args.seed),
        host=args.listen_host,
        port=args.listen_port,
        impairment=Impairment(args.loss_rate, args.delay_ms, random.Random(args.seed)),
        drop=args.drop,
    )
    try:
        sim.start()
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("simulator stopped")
    finally:
        sim.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="abxclient", description="ABX feed client with gap recovery.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(dest="cmd", required=True)

    fetch = sub.add_parser("fetch")
    fetch.add_argument("--host", default=DEFAULT_HOST)
    fetch.add_argument("--port", type=int, default=DEFAULT_PORT)
    fetch.add_argument("--out", default=DEFAULT_OUTPUT)
    fetch.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
    fetch.add_argument("--operation-timeout-ms", type=int, default=DEFAULT_OPERATION_TIMEOUT_MS)
    fetch.add_argument("--json", action="store_true")
    fetch.set_defaults(func=cmd_fetch)

    serve = sub.add_parser("serve")
    serve.add_argument("--listen-host", default=DEFAULT_HOST)
    serve.add_argument("--listen-port", type=int, default=DEFAULT_PORT)
    serve.add_argument("--count", type=int, default=14)
    serve.add_argument("--seed", type=int, default=0)
    serve.add_argument("--loss-rate", type=float, default=0.0)
    serve.add_argument("--delay-ms", type=int, default=0)
    serve.add_argument("--drop", type=int, nargs="*", default=[])
    serve.set_defaults(func=cmd_serve)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

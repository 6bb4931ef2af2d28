"""Command-line access to the propensity service.

Run: swg-propensity score --type general --referrer https://example.com/
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os

import httpx

from .config import Settings, load_settings
from .core.event_manager import ClientEventManager
from .propensity import create_propensity

logger = logging.getLogger(__name__)


async def _run(args: argparse.Namespace, settings: Settings) -> dict:
    ready = asyncio.get_running_loop().create_future()
    event_manager = ClientEventManager(ready)
    cookie = os.environ.get("SWG_COOKIE", "")

    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.timeout_seconds, connect=10.0)) as client:
        propensity, config = create_propensity(
            settings,
            event_manager=event_manager,
            http_client=client,
            get_cookie=lambda: cookie,
            get_hostname=lambda: args.hostname,
            get_referrer=lambda: args.referrer,
        )
        ready.set_result(None)

        if args.command == "state":
            # Running the command is the user's opt-in.
            config.enable_propensity = True
            entitlements = json.loads(args.entitlements) if args.entitlements else None
            propensity.send_subscription_state(args.state, entitlements)
            await event_manager.drain()
            await propensity.flush()
            return {"state": args.state, "sent": True}

        score = await propensity.get_propensity(args.type)
        return score.model_dump(mode="json", exclude_none=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swg-propensity", description="Propensity service client")
    parser.add_argument("--hostname", default="localhost", help="Host reported as the requesting page")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    score = sub.add_parser("score", help="Fetch the propensity score")
    score.add_argument("--type", default="general", help="Propensity type: general or paywall")
    score.add_argument("--referrer", default="", help="Referrer of the page")

    state = sub.add_parser("state", help="Report a subscription state")
    state.add_argument("--state", required=True, help="unknown, non_subscriber, subscriber or past_subscriber")
    state.add_argument("--entitlements", default="", help="Entitlements as a JSON object")
    state.set_defaults(referrer="")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        settings = load_settings()
        if not settings.publication_id:
            logger.error("SWG_PUBLICATION_ID environment variable is required")
            return 2
        result = asyncio.run(_run(args, settings))
    except (ValueError, httpx.HTTPError) as exc:
        logger.error("Propensity request failed: %s", exc)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Companion view in a terminal: watch a user's code and print reveal states.

The script runs the client reveal controller against a running API, printing
every state change until interrupted. Deleting the code on exit lets the next
trigger comment issue a fresh one.

Usage:
    python -m app.scripts.watch_code --user-id t2_abc [--username alice]
        [--base-url http://localhost:8000] [--delete-on-exit]
"""

import argparse
import asyncio
import logging
import sys

from app.client.reveal_controller import RevealState, build_reveal_controller
from app.core.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def print_state(state: RevealState) -> None:
    print(f"[{state.phase.value:>9}] {state.display_text}", flush=True)


async def watch(base_url: str, user_id: str, username: str | None, delete_on_exit: bool) -> None:
    settings = get_settings()
    controller = build_reveal_controller(settings, base_url, user_id, username)
    controller.on_change(print_state)
    print_state(controller.state)

    try:
        await controller.start()
        # Block until cancelled
        await asyncio.Event().wait()
    finally:
        if delete_on_exit:
            deleted = await controller.delete_code()
            logger.info(f"Code deletion on exit {'succeeded' if deleted else 'failed'}")
        await controller.stop()
        await controller.client.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Watch and reveal a user's code")
    parser.add_argument("--user-id", required=True, help="Host platform user id")
    parser.add_argument("--username", default=None, help="Display username")
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="Base URL of the Code Reveal API",
    )
    parser.add_argument(
        "--delete-on-exit",
        action="store_true",
        help="Delete the code when the watcher stops",
    )
    args = parser.parse_args()

    try:
        asyncio.run(watch(args.base_url, args.user_id, args.username, args.delete_on_exit))
    except KeyboardInterrupt:
        logger.info("Watcher interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())

import argparse
import logging
import os
import sys

import utils.others as otherutils
from core.cycle import MirrorCycle, run_forever
from core.source import CaptureSource
from core.store import ThreadStore
from definitions import DEFAULT_CAPTURE_DIR, DEFAULT_CONFIG_PATH, DEFAULT_STORE_PATH
from socials.publisher import SocialPublisher
from utils.config import ConfigError, load_config, resolve_mode

logger = logging.getLogger("mirrorbot")

DEFAULT_INTERVAL_SECONDS = 600


def main():
    """
    Entry point for the thread mirroring bot.

    Parses command-line arguments, loads configuration and logging, wires the capture
    source, thread store and social publisher together, then runs one cycle (--once)
    or loops every `script.interval_seconds`.
    """

    # fmt: off
    parser = argparse.ArgumentParser(description="Mirror an X account's threads to Bluesky and Tumblr.")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG_PATH), help="Path to the configuration file (default: config/config.yaml).")
    parser.add_argument("--nosocial", action="store_true", help="Log posts instead of publishing them; the store is not written.")
    parser.add_argument("--dry-run", dest="nosocial", action="store_true", help="Alias for --nosocial (no posting).")
    parser.add_argument("--console", action="store_true", help="Write logs to console instead of a file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    args = parser.parse_args()
    # fmt: on

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"mirrorbot: {e}", file=sys.stderr)
        sys.exit(2)

    otherutils.setup_logging(config, console=args.console, debug=args.debug)
    otherutils.log_startup_info(args, config)

    env_mode = os.getenv("MIRRORBOT_MODE", "")
    social_mode = resolve_mode(config, env_mode)
    logger.info("Social mode resolved -> %s [from: ENV=%r]", social_mode, env_mode or None)

    script_cfg = config.get("script", {}) or {}
    yaml_nosocial = bool(script_cfg.get("nosocial", False))
    effective_nosocial = True if args.nosocial else yaml_nosocial

    source_cfg = config.get("source", {}) or {}
    username = source_cfg.get("username")
    if not username:
        logger.error("source.username is required in %s", args.config)
        sys.exit(2)
    source = CaptureSource(source_cfg.get("capture_dir") or DEFAULT_CAPTURE_DIR, username)

    store_cfg = config.get("store", {}) or {}
    store = ThreadStore(store_cfg.get("path") or DEFAULT_STORE_PATH)

    publisher = SocialPublisher(config=config, mode=social_mode, nosocial=effective_nosocial)
    logger.info(
        "SocialPublisher initialized (mode=%s, nosocial=%s, platforms=%s)",
        social_mode,
        publisher.nosocial,
        ", ".join(publisher.platforms) or "none",
    )

    cycle = MirrorCycle(source, store, publisher, persist=not publisher.nosocial)

    if args.once:
        report = cycle.run_once()
        logger.info("Single cycle finished: %s", report)
        return

    interval = float(script_cfg.get("interval_seconds") or DEFAULT_INTERVAL_SECONDS)
    run_forever(cycle, interval, otherutils.local_timezone(config))


if __name__ == "__main__":
    main()

# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import argparse
import logging
import signal
import time
from typing import List, Optional

from gateway_sync.client import GatewayClient
from gateway_sync.config import load_from_env
from gateway_sync.context import RunContext
from gateway_sync.downloader import Downloader
from gateway_sync.errors import ConfigError, GatewaySyncError
from gateway_sync.log import fatal, setup_logging
from gateway_sync.reconcile import Reconciler

logger = logging.getLogger("gateway_sync")

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="gateway-sync",
        description="Sync domain block/allow lists into Cloudflare Zero Trust Gateway.",
    )
    parser.add_argument("--dry-run", action="store_true",
                        help="Run without sending changes to Cloudflare")
    return parser.parse_args(argv)

def install_signal_handlers(ctx: RunContext) -> None:
    """Cancel the run on SIGINT or SIGTERM."""
    def handle(signum, frame):
        logger.warning(f"⚠️ Received {signal.Signals(signum).name}, cancelling...")
        ctx.cancel(f"interrupted by {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)

def main(argv: Optional[List[str]] = None) -> int:
    """Download sources, reconcile the Gateway and return the exit code."""
    args = parse_args(argv)
    setup_logging(debug=args.dry_run)

    try:
        config = load_from_env()
    except ConfigError as e:
        fatal(logger, f"config: {e}")

    dry_run = args.dry_run or config.dry_run
    logger.info("🎬 Starting Cloudflare Gateway sync...")
    if dry_run:
        logger.info("🧪 Running in dry-run mode")

    ctx = RunContext()
    install_signal_handlers(ctx)
    script_start = time.time()

    try:
        allow, block = Downloader.from_config(config).download_and_process(ctx, config)
    except GatewaySyncError as e:
        fatal(logger, f"download: {e}")
    logger.info(f"🎯 Downloaded {len(allow):,} allow entries and {len(block):,} block entries")

    with GatewayClient(config) as client:
        reconciler = Reconciler(client, config, dry_run=dry_run)
        try:
            summary = reconciler.run(ctx, allow, block)
        except GatewaySyncError as e:
            fatal(logger, f"reconcile: {e}")

    logger.info(f"🗑️ Rules deleted: {summary.rules_deleted}, lists deleted: {summary.lists_deleted}")
    logger.info(f"🧩 Lists created: {len(summary.list_ids)} (planned {len(summary.planned_lists)})")
    logger.info(f"🏛️ Rules updated: {', '.join(summary.rules_upserted) or 'none'}")
    logger.info(f"⏱️ Total execution time: {time.time() - script_start:.1f}s")
    logger.info("✅ Done")
    return 0

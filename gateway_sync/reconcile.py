# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""
Reconcile the Gateway's lists and rules with freshly downloaded domain sets.

A run always cleans up first and then recreates everything, so a run that
failed halfway is repaired by the next one.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

from gateway_sync.client import GatewayClient
from gateway_sync.config import DEFAULT_LIST_ITEM_SIZE, Config
from gateway_sync.context import RunContext
from gateway_sync.errors import GatewayError, ReconcileError
from gateway_sync.expression import build_expression_for_filter
from gateway_sync.naming import (
    ALLOW_LIST_BASENAME,
    BLOCK_LIST_BASENAME,
    RULE_NAME,
    SNI_RULE_NAME,
    chunk_list_name,
)

logger = logging.getLogger(__name__)

SETTLE_DELAY = 2.0
EXPRESSION_LENGTH_WARNING = 4000

def chunk_count(total: int, size: int) -> int:
    """Number of lists needed for `total` items."""
    return math.ceil(total / size) if total > 0 else 0

def chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    """Split a sequence into chunks of at most `size` items, preserving order."""
    for i in range(0, len(items), size):
        yield items[i:i + size]

@dataclass
class RunSummary:
    rules_deleted: int = 0
    lists_deleted: int = 0
    list_ids: List[str] = field(default_factory=list)
    planned_lists: List[str] = field(default_factory=list)
    rules_upserted: List[str] = field(default_factory=list)

class Reconciler:
    def __init__(self, client: GatewayClient, config: Config, dry_run: bool = False):
        self.client = client
        self.config = config
        self.dry_run = dry_run
        size = config.list_item_size
        self.chunk_size = size if isinstance(size, int) and size > 0 else DEFAULT_LIST_ITEM_SIZE

    def run(self, ctx: RunContext, allow: Sequence[str], block: Sequence[str]) -> RunSummary:
        """Replace managed lists and rules with ones built from `allow` and `block`."""
        summary = RunSummary()

        total_items = len(allow) + len(block)
        if total_items > self.config.list_item_limit:
            logger.warning(
                f"⚠️ Total items ({total_items:,}) exceeds CLOUDFLARE_LIST_ITEM_LIMIT "
                f"({self.config.list_item_limit:,}); proceeding anyway, but you may hit account limits"
            )

        logger.info("🧹 Cleaning up old rules...")
        summary.rules_deleted = self._step(
            "cleanup old rules", self.client.delete_all_old_rules, ctx, dry_run=self.dry_run)

        logger.info("🧹 Cleaning up old lists...")
        summary.lists_deleted = self._step(
            "cleanup old lists", self.client.delete_all_old_lists, ctx, dry_run=self.dry_run)

        if not self.dry_run:
            # Let deletions propagate before names are reused
            ctx.sleep(SETTLE_DELAY)

        if block:
            logger.info(f"🛠️ Creating blocklists with {len(block):,} total entries...")
            self._step("create block lists", self.create_lists_in_chunks,
                       ctx, BLOCK_LIST_BASENAME, block, summary)

        if allow:
            logger.info(f"🛠️ Creating allowlists with {len(allow):,} total entries...")
            self._step("create allow lists", self.create_lists_in_chunks,
                       ctx, ALLOW_LIST_BASENAME, allow, summary)

        if not summary.list_ids:
            logger.info("No lists created, skipping rule creation")
            return summary

        logger.info(f"📜 Creating Gateway rule for {len(summary.list_ids)} list(s)...")
        self._upsert_rule(ctx, "create dns rule", RULE_NAME, "dns", summary)

        if self.config.block_based_on_sni:
            logger.info(f"📜 Creating SNI-based rule for {len(summary.list_ids)} list(s)...")
            self._upsert_rule(ctx, "create sni rule", SNI_RULE_NAME, "l4", summary)

        logger.info("✅ Successfully updated Cloudflare Gateway!")
        return summary

    def _step(self, step: str, func, *args, **kwargs):
        """Run one reconciliation step, tagging any API failure with the step name."""
        try:
            return func(*args, **kwargs)
        except GatewayError as e:
            raise ReconcileError(step, e) from e

    def _upsert_rule(self, ctx: RunContext, step: str, name: str, filter_kind: str,
                     summary: RunSummary) -> None:
        try:
            expression = build_expression_for_filter(summary.list_ids, filter_kind)
        except ValueError as e:
            raise ReconcileError(step, e) from e
        if len(expression) > EXPRESSION_LENGTH_WARNING:
            logger.warning(f"⚠️ Expression length ({len(expression)}) may exceed Cloudflare limits!")
        self._step(step, self.client.create_or_update_rule, ctx, name, expression,
                   [filter_kind], self.config.block_page_enabled)
        summary.rules_upserted.append(name)

    def create_lists_in_chunks(self, ctx: RunContext, basename: str, items: Sequence[str],
                               summary: RunSummary) -> None:
        """Create one list per chunk of `items`, appending created ids to the summary in order."""
        size = self.chunk_size
        chunks = chunk_count(len(items), size)
        logger.info(f"Will create {chunks} list(s) with chunk size {size}")

        for i, chunk in enumerate(chunked(items, size)):
            name = chunk_list_name(basename, i)
            summary.planned_lists.append(name)

            if self.dry_run:
                logger.info(f"dry-run: would create list {name} with {len(chunk)} items")
                continue

            logger.info(f"Creating list {name} with {len(chunk)} items... "
                        f"({chunks - i}/{chunks} lists remaining)")
            gateway_list = self.client.create_list(
                ctx, name, list(chunk), description=f"{basename} chunk {i + 1}/{chunks}")
            summary.list_ids.append(gateway_list.id)
            logger.info(f"✓ Created {name} - {chunks - i - 1} list(s) remaining")

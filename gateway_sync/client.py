# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""
Cloudflare Zero Trust Gateway API client.

Every call goes through request_with_retry(): exponential backoff with
jitter bounded by a total time budget, with cooperative waiting on 429
responses. Calls are issued one at a time; the underlying requests session
keeps its connection pool across calls.
"""

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError
from tenacity import Retrying, retry_if_result, wait_exponential_jitter

from gateway_sync.config import Config
from gateway_sync.context import RunContext
from gateway_sync.errors import (
    ApiRequestError,
    GatewayError,
    GatewayOperationError,
    RateLimitedError,
    RequestBuildError,
    ResponseError,
    RetryBudgetExceeded,
    TransportError,
)
from gateway_sync.models import (
    ApiEnvelope,
    GatewayList,
    GatewayRule,
    ListCreateRequest,
    RuleSettings,
    RuleUpsertRequest,
)
from gateway_sync.naming import BLOCK_REASON, RULE_DESCRIPTION, is_managed_list, is_managed_rule

logger = logging.getLogger(__name__)

MAX_ELAPSED_TIME = 120.0
RATE_LIMIT_PADDING = 0.5
PER_PAGE = 100

# Malformed requests fail the same way on every attempt
_PERMANENT_REQUEST_ERRORS = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidHeader,
    requests.exceptions.URLRequired,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    RETRY = "retry"
    PERMANENT = "permanent"

@dataclass(frozen=True)
class AttemptOutcome:
    """Result of a single HTTP attempt, as seen by the retry loop."""

    kind: OutcomeKind
    body: bytes = b""
    error: Optional[Exception] = None

    @classmethod
    def success(cls, body: bytes) -> "AttemptOutcome":
        return cls(OutcomeKind.SUCCESS, body=body)

    @classmethod
    def retry(cls, error: Exception) -> "AttemptOutcome":
        return cls(OutcomeKind.RETRY, error=error)

    @classmethod
    def permanent(cls, error: Exception) -> "AttemptOutcome":
        return cls(OutcomeKind.PERMANENT, error=error)

    @property
    def retryable(self) -> bool:
        return self.kind is OutcomeKind.RETRY

def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Retry-After as integer seconds, or None when absent or not an integer."""
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None

class GatewayClient:
    def __init__(self, config: Config, session: Optional[requests.Session] = None,
                 max_elapsed_time: float = MAX_ELAPSED_TIME):
        self.base_url = f"{config.api_host.rstrip('/')}/accounts/{config.account_id}/gateway"
        self.timeout = config.request_timeout
        self.max_elapsed_time = max_elapsed_time
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(config.auth_headers())
        self.session.headers.update({"Content-Type": "application/json"})
        self._wait = wait_exponential_jitter(multiplier=0.5, max=60, exp_base=1.5, jitter=0.5)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Retrying transport

    def request_with_retry(self, ctx: RunContext, method: str, path: str,
                           payload: Any = None) -> bytes:
        """
        Perform one logical API call and return the raw response body.

        Raises RequestBuildError without retrying, RetryBudgetExceeded once
        the time budget is spent, or OperationCancelled if ctx is cancelled.
        """
        data = self._serialize(payload)
        started = ctx.clock()

        def should_stop(retry_state) -> bool:
            return ctx.cancelled or ctx.clock() - started >= self.max_elapsed_time

        def next_wait(retry_state) -> float:
            budget_left = self.max_elapsed_time - (ctx.clock() - started)
            return max(0.0, min(self._wait(retry_state), budget_left))

        def log_retry(retry_state) -> None:
            outcome = retry_state.outcome.result()
            logger.warning(
                f"⚠️ {method} {path} failed (attempt {retry_state.attempt_number}): "
                f"{outcome.error}. Retrying in {retry_state.next_action.sleep:.1f}s..."
            )

        def give_up(retry_state) -> AttemptOutcome:
            ctx.check()
            last_error = retry_state.outcome.result().error
            logger.error(f"🚫 All retries exhausted for {method} {path}")
            raise RetryBudgetExceeded(
                method, path, retry_state.attempt_number, last_error) from last_error

        retrying = Retrying(
            retry=retry_if_result(lambda outcome: outcome.retryable),
            stop=should_stop,
            wait=next_wait,
            sleep=ctx.sleep,
            before_sleep=log_retry,
            retry_error_callback=give_up,
        )
        outcome = retrying(self._attempt, ctx, method, path, data)
        if outcome.kind is OutcomeKind.PERMANENT:
            raise outcome.error
        return outcome.body

    def _serialize(self, payload: Any) -> Optional[bytes]:
        if payload is None:
            return None
        if isinstance(payload, BaseModel):
            return payload.model_dump_json(exclude_none=True).encode("utf-8")
        return json.dumps(payload).encode("utf-8")

    def _attempt(self, ctx: RunContext, method: str, path: str,
                 data: Optional[bytes]) -> AttemptOutcome:
        ctx.check()
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, data=data, timeout=self.timeout)
        except _PERMANENT_REQUEST_ERRORS as e:
            return AttemptOutcome.permanent(RequestBuildError(method, path, e))
        except requests.exceptions.RequestException as e:
            logger.debug(f"{method} {path}: transport error: {e}")
            return AttemptOutcome.retry(TransportError(method, path, e))

        status = response.status_code
        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is not None:
                wait = retry_after + RATE_LIMIT_PADDING
                logger.info(f"⏳ Rate limited, waiting {wait:.1f}s before retrying {method} {path}")
                ctx.sleep(wait)
            else:
                logger.info(f"⏳ Rate limited (429) on {method} {path}, backing off")
            return AttemptOutcome.retry(RateLimitedError(method, path, retry_after))

        if status < 200 or status >= 300:
            return AttemptOutcome.retry(ApiRequestError(method, path, status, response.text))

        logger.debug(f"{method} {path}: {status}")
        return AttemptOutcome.success(response.content)

    # JSON layer

    def _call(self, ctx: RunContext, operation: str, method: str, path: str,
              payload: Any = None) -> ApiEnvelope:
        """Perform a call and decode its envelope, tagging failures with the operation."""
        try:
            body = self.request_with_retry(ctx, method, path, payload)
        except GatewayError as e:
            raise GatewayOperationError(operation, e) from e
        return self._decode(operation, body)

    @staticmethod
    def _decode(operation: str, body: bytes) -> ApiEnvelope:
        if not body.strip():
            return ApiEnvelope()
        try:
            envelope = ApiEnvelope.model_validate(json.loads(body))
        except (ValueError, ValidationError) as e:
            raise ResponseError(operation, f"invalid response body: {e}") from e
        if not envelope.success:
            raise ResponseError(operation, f"API returned success=false: {envelope.errors}")
        return envelope

    @staticmethod
    def _result_as(operation: str, envelope: ApiEnvelope, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(envelope.result)
        except ValidationError as e:
            raise ResponseError(operation, f"unexpected result: {e}") from e

    def _get_all(self, ctx: RunContext, operation: str, path: str,
                 model: Type[ModelT]) -> List[ModelT]:
        """Fetch every page of a collection."""
        items: List[ModelT] = []
        page = 1
        while True:
            envelope = self._call(ctx, operation, "GET", f"{path}?per_page={PER_PAGE}&page={page}")
            results = envelope.result or []
            if not isinstance(results, list):
                raise ResponseError(operation, f"expected a list result, got {type(results).__name__}")
            for raw in results:
                try:
                    items.append(model.model_validate(raw))
                except ValidationError as e:
                    raise ResponseError(operation, f"unexpected item: {e}") from e

            info = envelope.result_info
            total_count = info.total_count if info else 0
            per_page = info.per_page if info and info.per_page else PER_PAGE
            if not results or page * per_page >= total_count:
                break
            page += 1
        logger.debug(f"Fetched {len(items)} item(s) from {path} ({page} page(s))")
        return items

    # Lists

    def get_lists(self, ctx: RunContext) -> List[GatewayList]:
        """Fetch every Gateway list on the account."""
        return self._get_all(ctx, "get lists", "/lists", GatewayList)

    def create_list(self, ctx: RunContext, name: str, domains: List[str],
                    description: Optional[str] = None) -> GatewayList:
        """Create a DOMAIN list holding the given domains."""
        operation = f"create list {name!r}"
        request = ListCreateRequest.for_domains(name, domains, description)
        envelope = self._call(ctx, operation, "POST", "/lists", request)
        return self._result_as(operation, envelope, GatewayList)

    def delete_list(self, ctx: RunContext, list_id: str) -> None:
        """Delete a Gateway list by id."""
        self._call(ctx, f"delete list {list_id}", "DELETE", f"/lists/{list_id}")

    # Rules

    def get_rules(self, ctx: RunContext) -> List[GatewayRule]:
        """Fetch every Gateway rule on the account."""
        return self._get_all(ctx, "get rules", "/rules", GatewayRule)

    def create_rule(self, ctx: RunContext, request: RuleUpsertRequest) -> GatewayRule:
        """Create a Gateway rule."""
        operation = f"create rule {request.name!r}"
        envelope = self._call(ctx, operation, "POST", "/rules", request)
        return self._result_as(operation, envelope, GatewayRule)

    def update_rule(self, ctx: RunContext, rule_id: str, request: RuleUpsertRequest) -> GatewayRule:
        """Replace an existing Gateway rule."""
        operation = f"update rule {request.name!r}"
        envelope = self._call(ctx, operation, "PUT", f"/rules/{rule_id}", request)
        return self._result_as(operation, envelope, GatewayRule)

    def delete_rule(self, ctx: RunContext, rule_id: str) -> None:
        """Delete a Gateway rule by id."""
        self._call(ctx, f"delete rule {rule_id}", "DELETE", f"/rules/{rule_id}")

    def create_or_update_rule(self, ctx: RunContext, name: str, traffic: str,
                              filters: List[str], block_page_enabled: bool) -> GatewayRule:
        """Replace the rule called `name` in place, or create it if there is none."""
        request = RuleUpsertRequest(
            name=name,
            description=RULE_DESCRIPTION,
            rule_settings=RuleSettings(block_page_enabled=block_page_enabled,
                                       block_reason=BLOCK_REASON),
            filters=list(filters),
            traffic=traffic,
        )
        existing = next((rule for rule in self.get_rules(ctx) if rule.name == name), None)
        if existing:
            logger.info(f"✍️ Updating existing rule '{name}'...")
            return self.update_rule(ctx, existing.id, request)
        logger.info(f"✍️ Creating new rule '{name}'...")
        return self.create_rule(ctx, request)

    # Bulk cleanup

    def delete_all_old_rules(self, ctx: RunContext, dry_run: bool = False) -> int:
        """Delete every rule created by this tool or its predecessors. Returns the count."""
        rules = self.get_rules(ctx)
        return self._delete_matching(ctx, "rule", [(r.id, r.name) for r in rules],
                                     is_managed_rule, self.delete_rule, dry_run)

    def delete_all_old_lists(self, ctx: RunContext, dry_run: bool = False) -> int:
        """Delete every list created by this tool or its predecessors. Returns the count."""
        lists = self.get_lists(ctx)
        return self._delete_matching(ctx, "list", [(l.id, l.name) for l in lists],
                                     is_managed_list, self.delete_list, dry_run)

    def _delete_matching(self, ctx: RunContext, kind: str, resources, matches: Callable[[str], bool],
                         delete: Callable[[RunContext, str], None], dry_run: bool) -> int:
        deleted = 0
        for resource_id, name in resources:
            if not matches(name):
                continue
            if dry_run:
                logger.info(f"dry-run: would delete old {kind}: {name}")
                deleted += 1
                continue
            logger.info(f"🧹 Deleting old {kind}: {name}")
            try:
                delete(ctx, resource_id)
            except GatewayError as e:
                logger.warning(f"⚠️ Failed to delete {kind} {name}: {e}")
                continue
            deleted += 1

        if deleted:
            verb = "Would delete" if dry_run else "Deleted"
            logger.info(f"{verb} {deleted} old {kind}(s)")
        else:
            logger.info(f"No old {kind}s found to delete")
        return deleted

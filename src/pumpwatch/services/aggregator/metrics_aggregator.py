"""Per-token incremental state.

The aggregator is the only writer of TokenState. All mutation for one
trade happens in a single synchronous step (no await in between), so
readers on the same event loop never see half of a trade applied.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import structlog

from pumpwatch.config.logging import short_id
from pumpwatch.core.exceptions import PriceDerivationError, SubscriptionError
from pumpwatch.models.events import TokenCreatedEvent, TradeEvent
from pumpwatch.models.token_state import PricePoint, TokenState, TradeRecord, TradeSide
from pumpwatch.services.feed.subscription import SubscriptionProvider

log = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class MetricsAggregator:
    """Registry of tracked tokens and their rolling metrics.

    One instance owns the whole registry; it is constructed with the
    subscription provider (the feed) and torn down with close().
    """

    def __init__(
        self,
        feed: SubscriptionProvider,
        clock: Callable[[], datetime] = utc_now,
        subscription_timeout: float = 5.0,
    ) -> None:
        """Initialize aggregator.

        Args:
            feed: Issues per-token trade subscriptions.
            clock: Source of "now" (UTC).
            subscription_timeout: Upper bound for one (re)subscribe or release.
        """
        self.feed = feed
        self.clock = clock
        self.subscription_timeout = subscription_timeout
        self._tokens: dict[str, TokenState] = {}
        self._pending: set[str] = set()
        self._background: set[asyncio.Task[TokenState | None]] = set()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[TokenState]:
        # Snapshot so callers may await while iterating
        return iter(list(self._tokens.values()))

    def get(self, identifier: str) -> TokenState | None:
        return self._tokens.get(identifier)

    def identifiers(self) -> list[str]:
        return list(self._tokens)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def track(self, event: TokenCreatedEvent) -> asyncio.Task[TokenState | None] | None:
        """Start registering a new token without waiting for its subscription.

        The subscribe runs as a background task so a slow feed command
        cannot hold up the events queued behind this one. Failures are logged.

        Returns:
            The registration task, or None if the token is already tracked
            or being registered.
        """
        identifier = event.identifier
        if identifier in self._tokens or identifier in self._pending:
            return None

        self._pending.add(identifier)
        task = asyncio.create_task(self._register_in_background(event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_pending(self) -> None:
        """Wait until every background registration has finished."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def on_token_created(self, event: TokenCreatedEvent) -> TokenState | None:
        """Register a new token, subscribing to its trades first.

        Returns:
            The new TokenState, or None if the token was already tracked.

        Raises:
            SubscriptionError: If the trade subscription failed. Nothing is
                registered in that case.
        """
        identifier = event.identifier
        if identifier in self._tokens or identifier in self._pending:
            return None

        self._pending.add(identifier)
        return await self._register(event)

    async def _register_in_background(self, event: TokenCreatedEvent) -> TokenState | None:
        try:
            return await self._register(event)
        except SubscriptionError as e:
            log.warning(
                "token_subscription_failed", token=short_id(event.identifier), error=str(e)
            )
        except Exception as e:
            log.error(
                "token_registration_failed", token=short_id(event.identifier), error=str(e)
            )
        return None

    async def _register(self, event: TokenCreatedEvent) -> TokenState:
        # The caller has already claimed the identifier in _pending
        identifier = event.identifier
        try:
            subscription = await asyncio.wait_for(
                self.feed.subscribe(identifier), timeout=self.subscription_timeout
            )
        except TimeoutError as e:
            raise SubscriptionError("subscribe timed out", identifier=identifier) from e
        finally:
            self._pending.discard(identifier)

        now = self.clock()
        state = TokenState(
            identifier=identifier,
            symbol=event.symbol,
            name=event.name,
            created_at=now,
            last_update=now,
            initial_liquidity=event.initial_liquidity,
            initial_supply=event.initial_supply,
            initial_market_cap=event.initial_market_cap,
            subscription=subscription,
        )
        self._tokens[identifier] = state

        log.info(
            "token_registered",
            token=short_id(identifier),
            symbol=event.symbol,
            liquidity=event.initial_liquidity,
            supply=event.initial_supply,
            market_cap=event.initial_market_cap,
        )
        return state

    def on_trade(self, event: TradeEvent) -> TokenState | None:
        """Apply a trade to its token.

        Unknown tokens are ignored. Counters, volume, traders, extrema and
        holder balances are always updated; the price point is appended
        only when the trade carries a non-zero supply.

        Returns:
            The updated TokenState, or None for an untracked token.

        Raises:
            PriceDerivationError: After the trade was counted, if no price
                could be derived from it.
        """
        state = self._tokens.get(event.identifier)
        if state is None:
            return None

        record = TradeRecord(
            trader=event.trader,
            side=event.side,
            token_amount=event.token_amount,
            liquidity=event.liquidity,
            token_supply_remaining=event.token_supply_remaining,
            market_cap=event.market_cap,
            timestamp=event.timestamp or self.clock(),
        )
        price = record.price

        state.trades.append(record)
        state.last_update = self.clock()
        if record.side is TradeSide.BUY:
            state.buy_count += 1
            balance_delta = record.token_amount
        else:
            state.sell_count += 1
            balance_delta = -record.token_amount
        state.total_volume_tokens += record.token_amount
        state.total_volume_quote += record.quote_volume
        state.unique_traders.add(record.trader)
        state.holder_balances[record.trader] = (
            state.holder_balances.get(record.trader, 0.0) + balance_delta
        )
        state.circulating_supply += balance_delta
        state.highest_market_cap = max(state.highest_market_cap, record.market_cap)
        state.lowest_market_cap = min(state.lowest_market_cap, record.market_cap)

        if price is None:
            raise PriceDerivationError(
                "token supply is zero or missing", identifier=event.identifier
            )

        state.price_history.append(
            PricePoint(
                timestamp=record.timestamp,
                price=price,
                market_cap=record.market_cap,
                liquidity=record.liquidity,
            )
        )
        return state

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    async def resubscribe_all(self) -> list[str]:
        """Re-acquire trade subscriptions for every tracked token.

        Attempts run concurrently and each is bounded by the subscription
        timeout, so one slow token cannot hold up the rest.

        Returns:
            Identifiers whose resubscription failed.
        """
        identifiers = self.identifiers()
        if not identifiers:
            return []

        results = await asyncio.gather(
            *(self._resubscribe(identifier) for identifier in identifiers),
            return_exceptions=True,
        )

        failed: list[str] = []
        for identifier, result in zip(identifiers, results, strict=True):
            if isinstance(result, BaseException):
                failed.append(identifier)
                log.warning(
                    "token_resubscribe_failed",
                    token=short_id(identifier),
                    error=str(result) or type(result).__name__,
                )

        log.info(
            "tokens_resubscribed",
            total=len(identifiers),
            succeeded=len(identifiers) - len(failed),
            failed=len(failed),
        )
        return failed

    async def _resubscribe(self, identifier: str) -> None:
        subscription = await asyncio.wait_for(
            self.feed.subscribe(identifier), timeout=self.subscription_timeout
        )
        state = self._tokens.get(identifier)
        if state is None:
            # Cleaned up while we were waiting
            await subscription.release()
            return
        state.subscription = subscription

    async def cleanup(self, max_age: timedelta) -> set[str]:
        """Drop tokens with no trade for at least ``max_age``.

        Each token's subscription is released before the token is removed.
        A failed release is logged; the token is removed regardless.

        Returns:
            Identifiers that were removed.
        """
        now = self.clock()
        expired = [
            state for state in self._tokens.values() if now - state.last_update >= max_age
        ]

        removed: set[str] = set()
        for state in expired:
            await self._release(state)
            if self._tokens.pop(state.identifier, None) is not None:
                removed.add(state.identifier)
                log.info("token_expired", token=short_id(state.identifier))

        if removed:
            log.info("tokens_cleaned_up", removed=len(removed), remaining=len(self._tokens))
        return removed

    async def _release(self, state: TokenState) -> None:
        subscription = state.subscription
        if subscription is None:
            return
        try:
            await asyncio.wait_for(subscription.release(), timeout=self.subscription_timeout)
        except (SubscriptionError, TimeoutError) as e:
            log.warning(
                "token_unsubscribe_failed",
                token=short_id(state.identifier),
                error=str(e) or type(e).__name__,
            )
        state.subscription = None

    async def close(self) -> None:
        """Cancel pending registrations, release every subscription and forget all tokens."""
        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()

        for state in list(self._tokens.values()):
            await self._release(state)
        count = len(self._tokens)
        self._tokens.clear()
        log.info("aggregator_closed", released=count)

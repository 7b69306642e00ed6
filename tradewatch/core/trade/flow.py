from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Optional

from loguru import logger

from tradewatch.core.alerts.messages import (
    format_buy_placed,
    format_parse_failure,
    format_plan_added,
    format_plan_list,
    format_plan_prompt,
    money,
)
from tradewatch.core.alerts.monitor import AlertMonitor
from tradewatch.core.market_data.ports import QuotePort
from tradewatch.core.notifications.ports import NotificationSink
from tradewatch.core.notifications.service import deliver
from tradewatch.core.orders.errors import BrokerError, CredentialExpired
from tradewatch.core.plans.models import PendingFill, PlanValidationError, calc_qty
from tradewatch.core.plans.parser import parse_plan
from tradewatch.core.trade.ports import AuthPort
from tradewatch.core.trade.states import AWAITING_CONFIRMATION, AWAITING_PARAMS, AWAITING_PIN, TRADE_TASK

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 20

USAGE = "Usage: /trade TICKER\n\nExamples:\n  /trade UBER\n  /trade list\n  /trade cancel UBER"


class TradeFlow:
    """
    The `/trade` chat task: plan entry, sub-commands and alert confirmation.

    Replies go through the notification sink; per-user progress lives in the
    monitor's session store so alerts fired by the tick can hand over to it.
    """

    def __init__(
        self,
        monitor: AlertMonitor,
        quote_port: QuotePort,
        sink: Optional[NotificationSink],
        *,
        auth: Optional[AuthPort] = None,
    ) -> None:
        self._monitor = monitor
        self._quotes = quote_port
        self._sink = sink
        self._auth = auth
        self._sessions = monitor.sessions

    def is_active(self, user_id: str) -> bool:
        return self._sessions.active_task(user_id) == TRADE_TASK

    async def start(self, user_id: str, args: Sequence[str]) -> None:
        sub = args[0].lower() if args else ""

        if sub == "list":
            text = format_plan_list(self._monitor.list_plans(user_id), self._monitor.list_pending_fills(user_id))
            await self._reply(user_id, text)
            return

        if sub == "fill":
            await self._force_fill(user_id, args[1] if len(args) > 1 else None)
            return

        if sub == "cancel":
            ticker = args[1].upper() if len(args) > 1 else None
            if not ticker:
                await self._reply(user_id, "Usage: /trade cancel TICKER")
                return
            removed = self._monitor.remove_plan(ticker, user_id)
            await self._reply(
                user_id,
                f"Alert for {ticker} removed." if removed else f"No active alert found for {ticker}.",
            )
            return

        if not sub:
            await self._reply(user_id, USAGE)
            return

        symbol = sub.upper()
        await self._reply(user_id, f"🔍 Fetching price for {symbol}...")
        quote = await self._quotes.fetch_quote(symbol)
        if not quote.ok:
            logger.warning(f"Trade: no quote for {symbol}: {quote.error}")
            await self._reply(user_id, f"Could not get price for {symbol}. Check the ticker symbol.")
            return

        self._sessions.start_task(user_id, TRADE_TASK)
        self._sessions.update_task(user_id, AWAITING_PARAMS, {"symbol": symbol, "current_price": quote.price})
        await self._reply(user_id, format_plan_prompt(quote.price))

    async def on_message(self, user_id: str, text: str) -> None:
        session = self._sessions.get(user_id)
        state = session.state if session and session.task == TRADE_TASK else None
        data = dict(session.data) if session else {}

        if state == AWAITING_PARAMS:
            await self._handle_params(user_id, text, data)
        elif state == AWAITING_CONFIRMATION:
            await self._handle_confirmation(user_id, text, data)
        elif state == AWAITING_PIN:
            await self._handle_pin(user_id, text)
        else:
            await self._reply(user_id, "Use /trade TICKER to set a new trade plan.")
            self._finish(user_id)

    async def cancel(self, user_id: str) -> bool:
        """Abort the user's `/trade` task, if one is in progress."""
        if not self.is_active(user_id):
            return False
        self._finish(user_id)
        await self._reply(user_id, "Cancelled.")
        return True

    def cleanup(self, user_id: str) -> None:
        if self._auth is not None:
            self._auth.cleanup(user_id)

    async def _handle_params(self, user_id: str, text: str, data: dict[str, Any]) -> None:
        symbol = data["symbol"]
        params = parse_plan(text)
        if params is None:
            await self._reply(user_id, format_parse_failure())
            return

        try:
            self._monitor.add_plan(params.to_plan(symbol, user_id))
        except PlanValidationError as exc:
            await self._reply(user_id, f"❌ {exc}")
            return

        estimated = params.fixed_qty if params.fixed_qty is not None else calc_qty(params.budget, params.midpoint)
        await self._reply(
            user_id,
            format_plan_added(
                symbol,
                params,
                estimated_qty=estimated,
                poll_seconds=self._monitor.config.interval_seconds,
                sandbox=self._monitor.sandbox,
            ),
        )
        self._finish(user_id)

    async def _handle_confirmation(self, user_id: str, text: str, data: dict[str, Any]) -> None:
        answer = text.strip().lower()
        if answer == "cancel":
            await self._reply(user_id, "Alert dismissed.")
            self._finish(user_id)
            return
        if answer != "confirm":
            await self._reply(user_id, "Reply *confirm* to place orders, or *cancel* to dismiss.")
            return

        symbol = data["symbol"]
        trigger_price = float(data["trigger_price"])
        take_profit = float(data["take_profit"])
        stop_loss = float(data["stop_loss"])
        fixed_qty = data.get("fixed_qty")
        budget = data.get("budget")
        qty = int(fixed_qty) if fixed_qty is not None else calc_qty(float(budget or 0.0), trigger_price)

        if qty <= 0:
            await self._reply(
                user_id,
                f"❌ Calculated quantity is 0. Budget {money(float(budget or 0.0))} "
                f"is less than price {money(trigger_price)}.",
            )
            self._finish(user_id)
            return

        await self._reply(user_id, "⏳ Placing BUY order...")
        try:
            placement = await self._monitor.pipeline.place_buy(symbol, qty, trigger_price)
        except CredentialExpired:
            logger.warning(f"Trade: broker credentials expired while buying {symbol}, starting re-auth")
            await self._start_reauth(user_id)
            return
        except BrokerError as exc:
            logger.error(f"Failed to place trade orders for {symbol}: {exc}")
            await self._reply(user_id, f"❌ Failed to place orders: {exc}\n\nTry again or type /cancel.")
            self._finish(user_id)
            return

        self._monitor.add_pending_fill(
            PendingFill(
                symbol=symbol,
                user_id=user_id,
                buy_order_id=placement.order_id,
                account_ref=placement.account_ref,
                qty=qty,
                take_profit=take_profit,
                stop_loss=stop_loss,
            )
        )
        await self._reply(
            user_id,
            format_buy_placed(
                symbol,
                qty,
                trigger_price,
                take_profit,
                stop_loss,
                placement,
                sandbox=self._monitor.sandbox,
            ),
        )
        self._finish(user_id)

    async def _start_reauth(self, user_id: str) -> None:
        if self._auth is None:
            await self._reply(user_id, "❌ Broker session expired and re-authentication is not configured.")
            self._finish(user_id)
            return
        try:
            auth_url = await self._auth.start_auth_flow(user_id)
        except Exception as exc:
            logger.error(f"Failed to start re-auth: {exc}")
            await self._reply(user_id, f"Failed to start re-authentication: {exc}")
            self._finish(user_id)
            return

        # plan data stays in the session; only the state moves
        self._sessions.update_task(user_id, AWAITING_PIN)
        env_note = " (SANDBOX)" if self._monitor.sandbox else ""
        await self._reply(
            user_id,
            f"🔐 E*TRADE session expired. Re-authentication required{env_note}.\n\n"
            f"1. Open this link to authorize:\n{auth_url}\n\n"
            '2. Log in to E*TRADE and click "Accept"\n'
            "3. Copy the PIN and reply with it here\n\n"
            "Your trade plan is saved — orders will be placed after re-auth.\n"
            "Type /cancel to abort.",
        )

    async def _handle_pin(self, user_id: str, text: str) -> None:
        pin = (text or "").strip()
        if not PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH:
            await self._reply(
                user_id,
                "Invalid PIN format. Please enter the verification code from E*TRADE\n"
                '(shown after clicking "Accept" on the authorization page).',
            )
            return
        if self._auth is None:
            await self._reply(user_id, "Re-authentication is not configured.")
            self._finish(user_id)
            return

        await self._reply(user_id, "Verifying PIN...")
        try:
            await self._auth.exchange_pin(user_id, pin)
        except CredentialExpired:
            await self._reply(
                user_id,
                "Invalid or expired PIN. Please get a fresh PIN from the authorization page and try again.",
            )
            return
        except Exception as exc:
            logger.error(f"Trade re-auth PIN exchange failed: {exc}")
            await self._reply(user_id, f"Re-authentication failed: {exc}")
            self._finish(user_id)
            return

        logger.info("Trade: re-authentication successful")
        self._sessions.update_task(user_id, AWAITING_CONFIRMATION)
        await self._reply(
            user_id,
            "✅ Re-authenticated successfully!\n\nReply *confirm* to place your orders, or *cancel* to dismiss.",
        )

    async def _force_fill(self, user_id: str, ticker: Optional[str]) -> None:
        if not ticker:
            await self._reply(user_id, "Usage: /trade fill TICKER")
            return
        ticker = ticker.upper()
        if not self._monitor.sandbox:
            await self._reply(user_id, "⚠️ /trade fill is only available in sandbox mode.")
            return
        await self._reply(user_id, f"⏳ Simulating fill for {ticker} — placing exit orders...")
        if not await self._monitor.force_trigger_fill(ticker, user_id):
            await self._reply(user_id, f"No pending fill found for {ticker}.\nUse /trade list to see pending fills.")

    def _finish(self, user_id: str) -> None:
        self._sessions.complete_task(user_id)
        self.cleanup(user_id)

    async def _reply(self, user_id: str, text: str) -> None:
        await deliver(self._sink, user_id, text)

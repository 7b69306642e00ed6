import asyncio
import os
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from tradewatch.adapters.broker.etrade_auth import ETradeConfig, ETradeSession
from tradewatch.adapters.broker.etrade_order_port import ETradeOrderPort
from tradewatch.adapters.broker.paper_order_port import PaperOrderPort
from tradewatch.adapters.eventbus.in_process import InProcessEventBus
from tradewatch.adapters.logging.jsonl_logger import JsonlEventLogger
from tradewatch.adapters.market_data.yahoo_quotes import YahooQuotes
from tradewatch.adapters.notifications.console import ConsoleNotificationSink
from tradewatch.api import settings as api_settings
from tradewatch.api.main import create_app
from tradewatch.cli.event_printer import make_prompting_event_printer
from tradewatch.cli.repl import REPL
from tradewatch.core.alerts.monitor import AlertMonitor, AlertMonitorConfig
from tradewatch.core.orders.service import OrderPipeline
from tradewatch.core.trade.flow import TradeFlow


def _build_broker():
    kind = os.getenv("TRADEWATCH_BROKER", "paper").strip().lower()
    if kind == "etrade":
        session = ETradeSession(ETradeConfig.from_env())
        env = "sandbox" if session.config.sandbox else "LIVE"
        logger.info(f"Using E*TRADE broker ({env}, {session.config.base_url})")
        return ETradeOrderPort.from_session(session), session
    if kind != "paper":
        raise SystemExit(f"Unknown TRADEWATCH_BROKER={kind!r}; expected 'paper' or 'etrade'.")
    logger.info("Using in-memory paper broker")
    return PaperOrderPort(), None


async def _async_main() -> None:
    load_dotenv()
    logger.remove()
    logger.add(sys.stdout, level=os.getenv("LOG_LEVEL", "INFO"))

    bus = InProcessEventBus()
    prompt = "tradewatch> "
    bus.subscribe(object, make_prompting_event_printer(prompt))
    log_path = os.getenv("TRADEWATCH_EVENT_LOG_PATH", "journal/events.jsonl")
    if log_path:
        JsonlEventLogger(log_path).attach(bus)

    broker, auth = _build_broker()
    quotes = YahooQuotes()
    sink = ConsoleNotificationSink()
    pipeline = OrderPipeline(broker, event_bus=bus)
    monitor = AlertMonitor(
        quotes,
        pipeline,
        sink,
        config=AlertMonitorConfig.from_env(),
        event_bus=bus,
    )
    flow = TradeFlow(monitor, quotes, sink, auth=auth)
    repl = REPL(
        monitor,
        flow,
        user_id=os.getenv("TRADEWATCH_USER_ID", "local"),
        event_bus=bus,
        prompt=prompt,
    )

    api_task = None
    api_port = os.getenv("TRADEWATCH_API_PORT")
    if api_port:
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(monitor),
                host=api_settings.API_HOST,
                port=int(api_port),
                log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
            )
        )
        api_task = asyncio.create_task(server.serve())

    monitor.start()
    try:
        await repl.run()
    finally:
        await monitor.stop()
        await bus.drain()
        if api_task:
            api_task.cancel()
            await asyncio.gather(api_task, return_exceptions=True)


def main() -> None:
    asyncio.run(_async_main())


if __name__ == "__main__":
    main()

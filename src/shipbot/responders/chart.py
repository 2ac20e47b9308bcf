"""Chart command responder: ``c <pair> <timeframe>`` -> TradingView chart link."""

from __future__ import annotations

import logging
from typing import Optional

from shipbot.responders.base import Responder
from shipbot.urbit.message import AuthoredMessage, Message

logger = logging.getLogger(__name__)

CHART_URL = (
    "https://www.tradingview.com/widgetembed/?symbol={symbol}&interval={interval}"
    "&theme=dark&style=1&hidetoptoolbar=1&symboledit=1&saveimage=1&withdateranges=1"
)

USAGE = (
    "Unknown command.\n"
    "Type `c <trading_pair> <timeframe>` to get the corresponding chart.\n"
    "You can look up any trading pair and timeframe supported by TradingView.\n"
    "Example: `c ethusd 4h`"
)

DEFAULT_INTERVAL = "1"

# (interval, accepted phrases). Checked in order; first match wins, so
# ambiguous phrases like "1" or "m" resolve to the earliest interval.
TIMEFRAMES: list[tuple[str, tuple[str, ...]]] = [
    ("1", ("1", "1m", "1min", "1mins", "1minute", "1minutes", "min", "m")),
    ("3", ("3", "3m", "3min", "3mins", "3minute", "3minutes")),
    ("5", ("5", "5m", "5min", "5mins", "5minute", "5minutes")),
    ("15", ("15", "15m", "15min", "15mins", "15minute", "15minutes")),
    ("30", ("30", "30m", "30min", "30mins", "30minute", "30minutes")),
    (
        "60",
        (
            "60", "60m", "60min", "60mins", "60minute", "60minutes",
            "1", "1h", "1hr", "1hour", "1hours", "hourly", "hour", "hr", "h",
        ),
    ),
    (
        "120",
        (
            "120", "120m", "120min", "120mins", "120minute", "120minutes",
            "2", "2h", "2hr", "2hrs", "2hour", "2hours",
        ),
    ),
    (
        "180",
        (
            "180", "180m", "180min", "180mins", "180minute", "180minutes",
            "3", "3h", "3hr", "3hrs", "3hour", "3hours",
        ),
    ),
    (
        "240",
        (
            "240", "240m", "240min", "240mins", "240minute", "240minutes",
            "4", "4h", "4hr", "4hrs", "4hour", "4hours",
        ),
    ),
    (
        "D",
        (
            "24", "24h", "24hr", "24hrs", "24hour", "24hours", "d", "day",
            "1", "1d", "1day", "daily",
            "1440", "1440m", "1440min", "1440mins", "1440minute", "1440minutes",
        ),
    ),
    ("W", ("7", "7d", "7day", "7days", "w", "week", "1w", "1week", "weekly")),
    (
        "M",
        ("30d", "30day", "30days", "1", "1m", "m", "mo", "month", "1mo", "1month", "monthly"),
    ),
    (
        "Y",
        (
            "12", "12m", "12mo", "12month", "12months", "year", "yearly",
            "1year", "1y", "y", "annual", "annually",
        ),
    ),
]


def parse_timeframe(phrase: str) -> str:
    """Map a user timeframe phrase to a TradingView interval ("1" if unknown)."""
    for interval, phrases in TIMEFRAMES:
        if phrase in phrases:
            return interval
    return DEFAULT_INTERVAL


def chart_url(symbol: str, interval: str) -> str:
    return CHART_URL.format(symbol=symbol, interval=interval)


class ChartResponder(Responder):
    """Answers ``c <pair> <timeframe>`` with a chart link; ignores everything else."""

    name = "chart"

    def __init__(self, command: str = "c") -> None:
        self.command = command

    def respond(self, message: AuthoredMessage) -> Optional[Message]:
        words = message.contents.to_formatted_words()
        if not words or words[0] != self.command:
            return None

        if len(words) <= 2:
            logger.info("Invalid chart command from %s", message.author)
            return Message().add_text(USAGE)

        symbol = words[1]
        interval = parse_timeframe(words[2])
        url = chart_url(symbol, interval)
        logger.info("Chart %s@%s requested by %s", symbol, interval, message.author)
        return Message().add_text(f"{symbol.upper()} ({interval})").add_url(url)

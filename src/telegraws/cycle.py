from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from time import perf_counter
from typing import Any, Callable, List, Optional, Protocol

from .aws.clients import AwsClients
from .collectors import CollectorResult
from .config import ReportConfig
from .coordinator import collect_all
from .delivery import TelegramSender
from .logging import get_logger
from .report import TELEGRAM_MAX_MESSAGE_LENGTH, render_report, report_length_exceeded, section_keys
from .util.time import utc_now
from .window import TimeWindow, compute_time_window

LOG = get_logger(__name__)

STATUS_SKIPPED = "skipped"
STATUS_SENT = "sent"
STATUS_DRY_RUN = "dry-run"


class Sender(Protocol):
    def send(self, text: str) -> None:
        ...


@dataclass(frozen=True)
class CycleOutcome:
    status: str
    window: Optional[TimeWindow] = None
    text: Optional[str] = None
    results: List[CollectorResult] = field(default_factory=list)

    @property
    def failures(self) -> List[CollectorResult]:
        return [r for r in self.results if not r.ok]


def window_for(cfg: ReportConfig, now: Optional[datetime] = None) -> Optional[TimeWindow]:
    return compute_time_window(
        cfg.monitoring.timezone,
        cfg.monitoring.default_period,
        cfg.monitoring.daily_report_hour,
        now=now or cfg.at or utc_now(),
    )


def run_cycle(
    cfg: ReportConfig,
    *,
    now: Optional[datetime] = None,
    clients: Optional[Any] = None,
    sender: Optional[Sender] = None,
    dry_run: bool = False,
    on_result: Optional[Callable[[CollectorResult], None]] = None,
) -> CycleOutcome:
    """
    One full cycle: decide the window, collect, render, deliver.

    A skipped window returns without touching AWS. Config/window errors and
    delivery errors propagate; collector failures only drop their section.
    """
    window = window_for(cfg, now)
    if window is None:
        LOG.info(
            "No report due this cycle",
            extra={"step": "window", "phase": "skipped", "timezone": cfg.monitoring.timezone},
        )
        return CycleOutcome(status=STATUS_SKIPPED)

    LOG.info(
        "Report window computed",
        extra={
            "step": "window",
            "phase": "complete",
            "start": window.start.isoformat(),
            "end": window.end.isoformat(),
            "daily": window.is_daily_report,
            "period": window.period_seconds,
        },
    )

    started = perf_counter()
    run = collect_all(
        cfg,
        window,
        clients if clients is not None else AwsClients.from_config(cfg.aws),
        max_workers=cfg.workers,
        on_result=on_result,
    )
    LOG.info(
        "Collection finished",
        extra={
            "step": "collect",
            "phase": "complete",
            "duration_ms": int((perf_counter() - started) * 1000),
            "sections": section_keys(run.report),
            "failed": len(run.failures),
        },
    )

    text = render_report(run.report, cfg, window)
    if report_length_exceeded(text):
        LOG.warning(
            "Report exceeds Telegram message limit and may be rejected",
            extra={"length": len(text), "limit": TELEGRAM_MAX_MESSAGE_LENGTH},
        )

    if dry_run or cfg.dry_run:
        return CycleOutcome(status=STATUS_DRY_RUN, window=window, text=text, results=run.results)

    if sender is not None:
        sender.send(text)
    else:
        with TelegramSender(cfg.telegram.bot_token, cfg.telegram.chat_id) as telegram:
            telegram.send(text)
    return CycleOutcome(status=STATUS_SENT, window=window, text=text, results=run.results)

from __future__ import annotations

import logging
import sys
from time import perf_counter
from typing import Any, Dict, Optional

from .config import ReportConfig, dump_config, load_run_config
from .cycle import STATUS_DRY_RUN, STATUS_SKIPPED, run_cycle, window_for
from .logging import LogConfig, get_logger, setup_logging
from .util.errors import ConfigError, as_exit_code
from .util.rich_progress import CollectionProgress, render_collection_summary_table
from .util.time import format_report_timestamp

LOG = get_logger(__name__)


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    timer_key: Optional[str] = None,
    **extra: Any,
) -> None:
    key = timer_key or step
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(key)
        elif phase in {"complete", "error", "skipped"}:
            duration_ms = timers.finish(key)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def _interactive(cfg: ReportConfig) -> bool:
    return not cfg.json_logs and sys.stderr.isatty()


def cmd_run(cfg: ReportConfig) -> int:
    timers = _StepTimers()
    _log_event(LOG, logging.INFO, "Starting report cycle", step="run", phase="start", timers=timers, **dump_config(cfg))
    interactive = _interactive(cfg)
    try:
        with CollectionProgress(enabled=interactive) as progress:
            outcome = run_cycle(cfg, on_result=progress.advance)
    except Exception as e:
        _log_event(LOG, logging.ERROR, "Report cycle failed", step="run", phase="error", timers=timers, error=str(e))
        raise

    if outcome.status == STATUS_SKIPPED:
        _log_event(LOG, logging.INFO, "Nothing to report this cycle", step="run", phase="skipped", timers=timers)
        return 0

    if outcome.status == STATUS_DRY_RUN and outcome.text is not None:
        sys.stdout.write(outcome.text)
        sys.stdout.flush()

    window_label = ""
    if outcome.window is not None:
        window_label = (
            f"{format_report_timestamp(outcome.window.start)} -> {format_report_timestamp(outcome.window.end)}"
            f" ({'daily' if outcome.window.is_daily_report else 'routine'})"
        )
    render_collection_summary_table(
        enabled=interactive,
        status=outcome.status,
        results=outcome.results,
        window_label=window_label,
    )
    _log_event(
        LOG,
        logging.INFO,
        "Report cycle finished",
        step="run",
        phase="complete",
        timers=timers,
        status=outcome.status,
        collectors=len(outcome.results),
        failed=len(outcome.failures),
    )
    return 0


def cmd_validate_config(cfg: ReportConfig) -> int:
    LOG.info("Configuration is valid", extra=dump_config(cfg))
    return 0


def cmd_window(cfg: ReportConfig) -> int:
    window = window_for(cfg)
    if window is None:
        print("skip")
        return 0
    kind = "daily" if window.is_daily_report else "routine"
    print(f"{kind} {window.start.isoformat()} -> {window.end.isoformat()} period={window.period_seconds}s")
    return 0


def main() -> None:
    try:
        command, cfg = load_run_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "run":
            code = cmd_run(cfg)
        elif command == "validate-config":
            code = cmd_validate_config(cfg)
        elif command == "window":
            code = cmd_window(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Piping a dry run into `head` closes stdout early.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()

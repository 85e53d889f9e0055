from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from .config import load_report_config
from .cycle import run_cycle
from .logging import LogConfig, get_logger, setup_logging

LOG = get_logger(__name__)

# Deployment packages ship the config next to the code.
BUNDLED_CONFIG = Path(__file__).resolve().parent / "config.yaml"


def _config_path() -> Optional[Path]:
    # TELEGRAWS_CONFIG, when set, is honoured by load_report_config.
    if not os.getenv("TELEGRAWS_CONFIG") and BUNDLED_CONFIG.exists():
        return BUNDLED_CONFIG
    return None


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Scheduled entry point: one cycle per invocation. Delivery and config
    failures raise so the scheduler records the invocation as failed.
    """
    request_id = getattr(context, "aws_request_id", None)
    try:
        cfg = load_report_config(_config_path(), {"json_logs": True})
    except Exception as e:
        setup_logging(LogConfig(json_logs=True))
        LOG.error("Config load failed", extra={"request_id": request_id, "error": str(e)})
        raise
    setup_logging(LogConfig(level=cfg.log_level, json_logs=True))
    outcome = run_cycle(cfg)
    summary = {
        "status": outcome.status,
        "daily": bool(outcome.window and outcome.window.is_daily_report),
        "collectors": len(outcome.results),
        "failed": [f"{r.service}:{r.resource}" for r in outcome.failures],
    }
    LOG.info("Invocation finished", extra={"request_id": request_id, **summary})
    return summary

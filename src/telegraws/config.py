from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .util.errors import ConfigError
from .util.time import load_zone, parse_iso_instant

# --------
# Defaults
# --------
DEFAULT_WORKERS = 8
DEFAULT_CONFIG_CANDIDATES = ("config.yaml", "config.yml", "config.json")
WAF_SCOPES = {"REGIONAL", "CLOUDFRONT"}

# Service keys double as AggregatedReport keys and are listed in collection order.
SERVICE_KEYS = (
    "ec2",
    "s3",
    "alb",
    "cloudfront",
    "cloudwatchAgent",
    "cloudwatchLogs",
    "waf",
    "dynamodb",
    "rds",
)
SERVICE_ATTRS = {
    "ec2": "ec2",
    "s3": "s3",
    "alb": "alb",
    "cloudfront": "cloudfront",
    "cloudwatchAgent": "cloudwatch_agent",
    "cloudwatchLogs": "cloudwatch_logs",
    "waf": "waf",
    "dynamodb": "dynamodb",
    "rds": "rds",
}
# File key -> dataclass field, per service.
SERVICE_FIELDS: Dict[str, Dict[str, str]] = {
    "ec2": {"instanceId": "instance_id"},
    "s3": {"bucketName": "bucket_name", "requestMetricsFilterId": "request_metrics_filter_id"},
    "alb": {"albName": "alb_name"},
    "cloudfront": {"distributionId": "distribution_id"},
    "cloudwatchAgent": {"instanceId": "instance_id"},
    "cloudwatchLogs": {"logGroupNames": "log_group_names"},
    "waf": {"webACLId": "web_acl_id", "webACLName": "web_acl_name", "scope": "scope"},
    "dynamodb": {"tableNames": "table_names"},
    "rds": {"clusterId": "cluster_id", "dbInstanceIdentifier": "db_instance_identifier"},
}
LIST_FIELDS = {"log_group_names", "table_names"}
ALLOWED_GLOBAL_KEYS = {"telegram", "monitoring", "aws", "deployment", "runtime"}
ALLOWED_RUNTIME_KEYS = {"logLevel", "jsonLogs", "workers"}


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class MonitoringConfig:
    timezone: str = ""
    default_period: int = 0  # hours, 0 disables routine reports
    daily_report_hour: int = 0  # 0-23


@dataclass(frozen=True)
class AwsConfig:
    region: Optional[str] = None
    profile: Optional[str] = None


@dataclass(frozen=True)
class EC2Service:
    enabled: bool = False
    instance_id: str = ""


@dataclass(frozen=True)
class S3Service:
    enabled: bool = False
    bucket_name: str = ""
    request_metrics_filter_id: Optional[str] = None


@dataclass(frozen=True)
class ALBService:
    enabled: bool = False
    alb_name: str = ""


@dataclass(frozen=True)
class CloudFrontService:
    enabled: bool = False
    distribution_id: str = ""


@dataclass(frozen=True)
class CloudWatchAgentService:
    enabled: bool = False
    instance_id: str = ""


@dataclass(frozen=True)
class CloudWatchLogsService:
    enabled: bool = False
    log_group_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WAFService:
    enabled: bool = False
    web_acl_id: str = ""
    web_acl_name: str = ""
    scope: str = ""

    @property
    def effective_scope(self) -> str:
        return (self.scope or "REGIONAL").upper()


@dataclass(frozen=True)
class DynamoDBService:
    enabled: bool = False
    table_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RDSService:
    enabled: bool = False
    cluster_id: str = ""
    db_instance_identifier: str = ""


@dataclass(frozen=True)
class ServicesConfig:
    ec2: EC2Service = field(default_factory=EC2Service)
    s3: S3Service = field(default_factory=S3Service)
    alb: ALBService = field(default_factory=ALBService)
    cloudfront: CloudFrontService = field(default_factory=CloudFrontService)
    cloudwatch_agent: CloudWatchAgentService = field(default_factory=CloudWatchAgentService)
    cloudwatch_logs: CloudWatchLogsService = field(default_factory=CloudWatchLogsService)
    waf: WAFService = field(default_factory=WAFService)
    dynamodb: DynamoDBService = field(default_factory=DynamoDBService)
    rds: RDSService = field(default_factory=RDSService)

    def get(self, key: str) -> Any:
        return getattr(self, SERVICE_ATTRS[key])

    def enabled_keys(self) -> List[str]:
        return [k for k in SERVICE_KEYS if self.get(k).enabled]


@dataclass(frozen=True)
class ReportConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    services: ServicesConfig = field(default_factory=ServicesConfig)
    aws: AwsConfig = field(default_factory=AwsConfig)

    # Runtime
    log_level: str = "INFO"
    json_logs: bool = False
    workers: int = DEFAULT_WORKERS
    dry_run: bool = False
    at: Optional[datetime] = None  # evaluate the window at this instant instead of now
    config_path: Optional[Path] = None


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        elif path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            # Try YAML first then JSON
            try:
                data = yaml.safe_load(text) or {}
            except yaml.YAMLError:
                data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ConfigError(f"Config field '{key}' must be an integer")


def _coerce_str(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value).strip()
    raise ConfigError(f"Config field '{key}' must be a string")


def _coerce_str_list(key: str, value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(v.strip() for v in value if v.strip())
    raise ConfigError(f"Config field '{key}' must be a list of strings or comma-separated string")


def _section(data: Dict[str, Any], key: str, where: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{where}' must be an object")
    return value


def _warn_unknown(section: Dict[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(section.keys()) - allowed)
    if unknown:
        warnings.warn(f"Unknown config keys ignored in {where}: {', '.join(unknown)}")


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _build_service(key: str, raw: Dict[str, Any]) -> Any:
    fields_map = SERVICE_FIELDS[key]
    _warn_unknown(raw, set(fields_map) | {"enabled"}, f"services.{key}")
    kwargs: Dict[str, Any] = {"enabled": _coerce_bool(f"services.{key}.enabled", raw.get("enabled", False))}
    for file_key, attr in fields_map.items():
        if file_key not in raw:
            continue
        where = f"services.{key}.{file_key}"
        if attr in LIST_FIELDS:
            kwargs[attr] = _coerce_str_list(where, raw[file_key])
        elif attr == "request_metrics_filter_id":
            kwargs[attr] = _coerce_str(where, raw[file_key]) or None
        else:
            kwargs[attr] = _coerce_str(where, raw[file_key])
    current = ServicesConfig().get(key)
    return replace(current, **kwargs)


def build_report_config(data: Dict[str, Any]) -> ReportConfig:
    """
    Build a ReportConfig from the parsed file structure (global + services).
    Validation is separate; see validate_config.
    """
    _warn_unknown(data, {"global", "services"}, "top level")
    glob = _section(data, "global", "global")
    _warn_unknown(glob, ALLOWED_GLOBAL_KEYS, "global")

    tg = _section(glob, "telegram", "global.telegram")
    telegram = TelegramConfig(
        bot_token=_coerce_str("global.telegram.botToken", tg.get("botToken")),
        chat_id=_coerce_str("global.telegram.chatId", tg.get("chatId")),
    )

    mon = _section(glob, "monitoring", "global.monitoring")
    monitoring = MonitoringConfig(
        timezone=_coerce_str("global.monitoring.timezone", mon.get("timezone")),
        default_period=_coerce_int("global.monitoring.defaultPeriod", mon.get("defaultPeriod", 0)),
        daily_report_hour=_coerce_int("global.monitoring.dailyReportHour", mon.get("dailyReportHour", 0)),
    )

    aws_raw = _section(glob, "aws", "global.aws")
    aws = AwsConfig(
        region=_coerce_str("global.aws.region", aws_raw.get("region")) or None,
        profile=_coerce_str("global.aws.profile", aws_raw.get("profile")) or None,
    )

    runtime = _section(glob, "runtime", "global.runtime")
    _warn_unknown(runtime, ALLOWED_RUNTIME_KEYS, "global.runtime")

    svc_raw = _section(data, "services", "services")
    _warn_unknown(svc_raw, set(SERVICE_KEYS), "services")
    services = ServicesConfig(
        **{SERVICE_ATTRS[k]: _build_service(k, _section(svc_raw, k, f"services.{k}")) for k in SERVICE_KEYS}
    )

    return ReportConfig(
        telegram=telegram,
        monitoring=monitoring,
        services=services,
        aws=aws,
        log_level=str(runtime.get("logLevel") or "INFO").upper(),
        json_logs=_coerce_bool("global.runtime.jsonLogs", runtime.get("jsonLogs", False)),
        workers=_coerce_int("global.runtime.workers", runtime.get("workers", DEFAULT_WORKERS)),
    )


def validate_config(cfg: ReportConfig) -> ReportConfig:
    """
    Raise ConfigError on the first problem found; returns cfg unchanged otherwise.
    """
    if not cfg.telegram.bot_token:
        raise ConfigError("telegram botToken is required")
    if not cfg.telegram.chat_id:
        raise ConfigError("telegram chatId is required")
    load_zone(cfg.monitoring.timezone)
    if not 0 <= cfg.monitoring.daily_report_hour <= 23:
        raise ConfigError("dailyReportHour must be between 0 and 23")
    if cfg.monitoring.default_period < 0:
        raise ConfigError("defaultPeriod must be >= 0")
    if cfg.workers < 1:
        raise ConfigError("workers must be >= 1")

    s = cfg.services
    if s.ec2.enabled and not s.ec2.instance_id:
        raise ConfigError("EC2 is enabled but instanceId is empty")
    if s.s3.enabled and not s.s3.bucket_name:
        raise ConfigError("S3 is enabled but bucketName is empty")
    if s.alb.enabled and not s.alb.alb_name:
        raise ConfigError("ALB is enabled but albName is empty")
    if s.cloudfront.enabled and not s.cloudfront.distribution_id:
        raise ConfigError("CloudFront is enabled but distributionId is empty")
    if s.cloudwatch_agent.enabled and not s.cloudwatch_agent.instance_id:
        raise ConfigError("CloudWatch Agent is enabled but instanceId is empty")
    if s.cloudwatch_logs.enabled and not s.cloudwatch_logs.log_group_names:
        raise ConfigError("CloudWatch Logs is enabled but logGroupNames is empty")
    if s.waf.enabled:
        if not s.waf.web_acl_id:
            raise ConfigError("WAF is enabled but webACLId is empty")
        if not s.waf.web_acl_name:
            raise ConfigError("WAF is enabled but webACLName is empty")
        if s.waf.scope and s.waf.scope.upper() not in WAF_SCOPES:
            raise ConfigError("WAF scope must be either 'REGIONAL', 'CLOUDFRONT' or empty (default to REGIONAL)")
    if s.dynamodb.enabled and not s.dynamodb.table_names:
        raise ConfigError("DynamoDB is enabled but tableNames is empty")
    if s.rds.enabled and not s.rds.cluster_id and not s.rds.db_instance_identifier:
        raise ConfigError(
            "RDS is enabled but both clusterId and dbInstanceIdentifier are empty - at least one is required"
        )
    return cfg


def _apply_overrides(cfg: ReportConfig, overrides: Dict[str, Any]) -> ReportConfig:
    telegram = replace(
        cfg.telegram,
        **_compact_dict({"bot_token": overrides.get("bot_token"), "chat_id": overrides.get("chat_id")}),
    )
    monitoring = replace(
        cfg.monitoring,
        **_compact_dict(
            {
                "timezone": overrides.get("timezone"),
                "default_period": overrides.get("default_period"),
                "daily_report_hour": overrides.get("daily_report_hour"),
            }
        ),
    )
    runtime = _compact_dict(
        {
            "log_level": overrides.get("log_level"),
            "json_logs": overrides.get("json_logs"),
            "workers": overrides.get("workers"),
            "dry_run": overrides.get("dry_run"),
            "at": overrides.get("at"),
        }
    )
    if "log_level" in runtime:
        runtime["log_level"] = str(runtime["log_level"]).upper()
    return replace(cfg, telegram=telegram, monitoring=monitoring, **runtime)


def _env_overrides() -> Dict[str, Any]:
    return _compact_dict(
        {
            "bot_token": _env_str("TELEGRAWS_BOT_TOKEN"),
            "chat_id": _env_str("TELEGRAWS_CHAT_ID"),
            "timezone": _env_str("TELEGRAWS_TIMEZONE"),
            "default_period": _env_int("TELEGRAWS_DEFAULT_PERIOD"),
            "daily_report_hour": _env_int("TELEGRAWS_DAILY_REPORT_HOUR"),
            "log_level": _env_str("TELEGRAWS_LOG_LEVEL"),
            "json_logs": _env_bool("TELEGRAWS_JSON_LOGS"),
            "workers": _env_int("TELEGRAWS_WORKERS"),
        }
    )


def resolve_config_path(explicit: Optional[Path] = None) -> Path:
    """
    Pick the config file: explicit path, then TELEGRAWS_CONFIG, then the first
    of config.yaml/config.yml/config.json in the working directory.
    """
    if explicit:
        return Path(explicit)
    env_path = _env_str("TELEGRAWS_CONFIG")
    if env_path:
        return Path(env_path)
    for name in DEFAULT_CONFIG_CANDIDATES:
        candidate = Path.cwd() / name
        if candidate.exists():
            return candidate
    raise ConfigError(
        "No config file found. Pass --config, set TELEGRAWS_CONFIG, or add config.yaml to the working directory."
    )


def load_report_config(path: Optional[Path] = None, cli_overrides: Optional[Dict[str, Any]] = None) -> ReportConfig:
    """
    Build and validate ReportConfig by merging defaults, the config file, env vars and CLI values.
    Precedence (low -> high): defaults < config file < env < CLI.
    """
    config_path = resolve_config_path(path)
    cfg = build_report_config(_parse_config_file(config_path))
    cfg = _apply_overrides(cfg, _env_overrides())
    cfg = _apply_overrides(cfg, _compact_dict(cli_overrides or {}))
    cfg = replace(cfg, config_path=config_path)
    return validate_config(cfg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="telegraws", description="AWS status reports to Telegram")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")

    p_run = subparsers.add_parser("run", help="Run one report cycle")
    add_common(p_run)
    p_run.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Print the report instead of sending it",
    )
    p_run.add_argument("--workers", type=int, default=None, help=f"Max parallel collectors (default {DEFAULT_WORKERS})")
    p_run.add_argument("--at", default=None, help="Evaluate the window at this ISO-8601 instant instead of now")

    p_val = subparsers.add_parser("validate-config", help="Load and validate the config file")
    add_common(p_val)

    p_win = subparsers.add_parser("window", help="Print the time window the next cycle would use")
    add_common(p_win)
    p_win.add_argument("--at", default=None, help="Evaluate the window at this ISO-8601 instant instead of now")

    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
) -> Tuple[str, ReportConfig]:
    """
    Parse CLI arguments and build the validated ReportConfig.

    Returns:
      (command, ReportConfig) where command is run|validate-config|window
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    at_raw = getattr(ns, "at", None)
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
            "workers": getattr(ns, "workers", None),
            "dry_run": getattr(ns, "dry_run", None),
            "at": parse_iso_instant(at_raw) if at_raw else None,
        }
    )
    cfg = load_report_config(getattr(ns, "config", None), cli_cfg)
    return ns.command, cfg


def dump_config(cfg: ReportConfig) -> Dict[str, Any]:
    """
    Loggable view of the config; the bot token is never included.
    """
    return {
        "config_path": str(cfg.config_path) if cfg.config_path else None,
        "timezone": cfg.monitoring.timezone,
        "default_period": cfg.monitoring.default_period,
        "daily_report_hour": cfg.monitoring.daily_report_hour,
        "chat_id": cfg.telegram.chat_id,
        "aws_region": cfg.aws.region,
        "aws_profile": cfg.aws.profile,
        "services_enabled": cfg.services.enabled_keys(),
        "workers": cfg.workers,
        "dry_run": cfg.dry_run,
        "log_level": cfg.log_level,
        "json_logs": cfg.json_logs,
    }

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Tuple

import boto3
from botocore.config import Config

from ..config import AwsConfig
from ..util.errors import ConfigError, map_aws_error
from .cloudwatch import CloudWatchMetrics
from .dynamodb import DynamoDBTables
from .logs import CloudWatchLogSearch
from .waf import WebACLs

# CloudFront metrics and CLOUDFRONT-scoped WAF live in us-east-1 only.
GLOBAL_REGION = "us-east-1"

# One attempt per call; a slow or failing call fails that collector only.
CLIENT_CONFIG = Config(
    retries={"total_max_attempts": 1, "mode": "standard"},
    connect_timeout=5,
    read_timeout=20,
    max_pool_connections=16,
)

ClientFactory = Callable[[str, Optional[str]], Any]


def make_session(aws: Optional[AwsConfig] = None) -> boto3.Session:
    """
    Build a boto3 session from the optional profile/region in config; the
    default credential chain (env, shared config, Lambda role) applies otherwise.
    """
    kwargs: Dict[str, Any] = {}
    if aws is not None and aws.profile:
        kwargs["profile_name"] = aws.profile
    if aws is not None and aws.region:
        kwargs["region_name"] = aws.region
    try:
        return boto3.Session(**kwargs)
    except Exception as e:
        mapped = map_aws_error(e, "AWS SDK error while creating session")
        if mapped:
            raise ConfigError(str(mapped)) from e
        raise


class AwsClients:
    """
    Lazily constructed, cached boto3 clients keyed by (service, region), plus
    the capability adapters the collectors consume.

    boto3 sessions are not thread-safe, so client creation is serialized;
    the clients themselves are safe to share across collector threads.
    """

    def __init__(
        self,
        session: Optional[boto3.Session] = None,
        *,
        factory: Optional[ClientFactory] = None,
    ) -> None:
        self._session = session
        self._factory = factory
        self._cache: Dict[Tuple[str, Optional[str]], Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, aws: Optional[AwsConfig] = None) -> "AwsClients":
        return cls(make_session(aws))

    def _create(self, service: str, region: Optional[str]) -> Any:
        if self._factory is not None:
            return self._factory(service, region)
        if self._session is None:
            self._session = make_session()
        return self._session.client(service, region_name=region, config=CLIENT_CONFIG)

    def client(self, service: str, region: Optional[str] = None) -> Any:
        key = (service, region)
        with self._lock:
            cached = self._cache.get(key)
            if cached is None:
                cached = self._create(service, region)
                self._cache[key] = cached
            return cached

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def metrics(self) -> CloudWatchMetrics:
        return CloudWatchMetrics(self.client("cloudwatch"))

    @property
    def global_metrics(self) -> CloudWatchMetrics:
        return CloudWatchMetrics(self.client("cloudwatch", GLOBAL_REGION))

    @property
    def logs(self) -> CloudWatchLogSearch:
        return CloudWatchLogSearch(self.client("logs"))

    @property
    def tables(self) -> DynamoDBTables:
        return DynamoDBTables(self.client("dynamodb"))

    def web_acls(self, scope: str) -> WebACLs:
        if scope == "CLOUDFRONT":
            return WebACLs(self.client("wafv2", GLOBAL_REGION))
        return WebACLs(self.client("wafv2"))

    def metrics_for_scope(self, scope: str) -> CloudWatchMetrics:
        if scope == "CLOUDFRONT":
            return self.global_metrics
        return self.metrics

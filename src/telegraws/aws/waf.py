from __future__ import annotations

from typing import Any, List, Protocol

from ..util.errors import map_aws_error

ALB_RESOURCE_TYPE = "APPLICATION_LOAD_BALANCER"


class WebACLDescriber(Protocol):
    def get_web_acl_arn(self, name: str, acl_id: str, scope: str) -> str:
        ...

    def list_protected_resources(self, web_acl_arn: str, resource_type: str = ALB_RESOURCE_TYPE) -> List[str]:
        ...


class WebACLs:
    """WebACLDescriber over a boto3 WAFv2 client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def get_web_acl_arn(self, name: str, acl_id: str, scope: str) -> str:
        try:
            resp = self._client.get_web_acl(Name=name, Scope=scope, Id=acl_id)
        except Exception as e:
            mapped = map_aws_error(e, f"GetWebACL {name} ({scope})")
            if mapped:
                raise mapped from e
            raise
        return str((resp.get("WebACL") or {}).get("ARN") or "")

    def list_protected_resources(self, web_acl_arn: str, resource_type: str = ALB_RESOURCE_TYPE) -> List[str]:
        try:
            resp = self._client.list_resources_for_web_acl(WebACLArn=web_acl_arn, ResourceType=resource_type)
        except Exception as e:
            mapped = map_aws_error(e, f"ListResourcesForWebACL {web_acl_arn}")
            if mapped:
                raise mapped from e
            raise
        return [str(arn) for arn in resp.get("ResourceArns") or []]

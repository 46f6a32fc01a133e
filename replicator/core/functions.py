"""Lambda function configuration/code fetch and redeploy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import requests
from botocore.exceptions import ClientError

from replicator.core.errors import RemoteOperationError, error_code, remote_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VpcSettings:
    subnet_ids: tuple[str, ...] = ()
    security_group_ids: tuple[str, ...] = ()

    @property
    def enabled(self) -> bool:
        return bool(self.subnet_ids) and bool(self.security_group_ids)

    @classmethod
    def from_csv(cls, subnets: str | None, security_groups: str | None) -> "VpcSettings":
        return cls(_split_csv(subnets), _split_csv(security_groups))

    def to_api(self) -> dict:
        return {
            "SubnetIds": list(self.subnet_ids),
            "SecurityGroupIds": list(self.security_group_ids),
        }


@dataclass(frozen=True)
class FunctionPackage:
    """Source function configuration plus its downloaded deployment zip."""

    configuration: dict
    code: bytes = field(repr=False)

    @property
    def name(self) -> str:
        return self.configuration["FunctionName"]

    @property
    def role_name(self) -> str:
        return self.configuration["Role"].rsplit("/", 1)[-1]

    @property
    def environment(self) -> dict[str, str]:
        return dict((self.configuration.get("Environment") or {}).get("Variables") or {})

    @property
    def layer_arns(self) -> list[str]:
        return [layer["Arn"] for layer in self.configuration.get("Layers") or []]

    @property
    def source_vpc(self) -> VpcSettings:
        vpc = self.configuration.get("VpcConfig") or {}
        return VpcSettings(
            tuple(vpc.get("SubnetIds") or ()), tuple(vpc.get("SecurityGroupIds") or ())
        )

    def settings(self, role_arn: str, vpc: VpcSettings) -> dict:
        """Keyword arguments shared by create_function and update_function_configuration."""
        cfg = self.configuration
        params = {
            "FunctionName": self.name,
            "Role": role_arn,
            "Runtime": cfg["Runtime"],
            "Handler": cfg["Handler"],
            "Description": cfg.get("Description", ""),
            "Timeout": cfg.get("Timeout", 3),
            "MemorySize": cfg.get("MemorySize", 128),
            "Environment": {"Variables": self.environment},
        }
        if self.layer_arns:
            params["Layers"] = self.layer_arns
        if vpc.enabled:
            params["VpcConfig"] = vpc.to_api()
        return params


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(token.strip() for token in value.split(",") if token.strip())


def list_function_names(client: Any) -> list[str]:
    names: list[str] = []
    with remote_call("list_functions"):
        for page in client.get_paginator("list_functions").paginate():
            names.extend(fn["FunctionName"] for fn in page.get("Functions", []))
    return names


def download_code(url: str, timeout: float = 60.0) -> bytes:
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def fetch_function_package(
    client: Any,
    name: str,
    *,
    http_get: Callable[[str], bytes] = download_code,
) -> FunctionPackage:
    with remote_call(f"get_function({name})"):
        response = client.get_function(FunctionName=name)
    configuration = response["Configuration"]
    try:
        code = http_get(response["Code"]["Location"])
    except requests.RequestException as exc:
        raise RemoteOperationError(f"download code package of {name}", exc) from exc
    logger.info("Fetched %s (%d bytes of code)", name, len(code))
    return FunctionPackage(configuration=configuration, code=code)


def function_exists(client: Any, name: str) -> bool:
    try:
        client.get_function(FunctionName=name)
    except ClientError as exc:
        if error_code(exc) == "ResourceNotFoundException":
            return False
        raise RemoteOperationError(f"get_function({name})", exc) from exc
    return True


def deploy_function(client: Any, package: FunctionPackage, role_arn: str, vpc: VpcSettings) -> str:
    """Create or update the destination function and wait until it settles."""
    settings = package.settings(role_arn, vpc)

    if function_exists(client, package.name):
        logger.info("Updating existing function %s", package.name)
        with remote_call(f"update_function_code({package.name})"):
            client.update_function_code(FunctionName=package.name, ZipFile=package.code)
            client.get_waiter("function_updated_v2").wait(FunctionName=package.name)
        with remote_call(f"update_function_configuration({package.name})"):
            client.update_function_configuration(**settings)
            client.get_waiter("function_updated_v2").wait(FunctionName=package.name)
    else:
        logger.info("Creating function %s", package.name)
        with remote_call(f"create_function({package.name})"):
            client.create_function(Code={"ZipFile": package.code}, **settings)
            client.get_waiter("function_active_v2").wait(FunctionName=package.name)

    with remote_call(f"get_function({package.name})"):
        response = client.get_function(FunctionName=package.name)
    return response["Configuration"]["FunctionArn"]

"""
In-memory API Gateway / Lambda fakes shared by the replication tests.

They implement only the calls the replicator makes and record every mutating
call in `calls` so tests can assert on ordering and counts.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from replicator.core.credentials import CredentialScope
from replicator.core.models import Scope


def client_error(code: str, operation: str = "Operation", message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class FakePaginator:
    def __init__(self, pages_fn):
        self._pages_fn = pages_fn

    def paginate(self, **kwargs):
        return iter(self._pages_fn(**kwargs))


class FakeApiGateway:
    def __init__(self, prefix: str = "dst"):
        self.prefix = prefix
        self.apis: dict[str, dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self.fail_on_path_part: str | None = None
        self.fail_get_resources = False
        self._ids = itertools.count(1)

    def _next_id(self, kind: str) -> str:
        return f"{self.prefix}-{kind}-{next(self._ids)}"

    # Setup helpers (not recorded)

    def add_api(self, name: str, api_id: str | None = None) -> str:
        api_id = api_id or self._next_id("api")
        root_id = self._next_id("res")
        self.apis[api_id] = {
            "name": name,
            "resources": {root_id: {"id": root_id, "path": "/", "methods": {}}},
        }
        return api_id

    def add_resource(self, api_id: str, path: str, methods=()) -> str:
        resources = self.apis[api_id]["resources"]
        parent_path, _, part = path.rstrip("/").rpartition("/")
        parent_path = parent_path or "/"
        parent = next(r for r in resources.values() if r["path"] == parent_path)
        res_id = self._next_id("res")
        resources[res_id] = {
            "id": res_id,
            "path": path,
            "pathPart": part,
            "parentId": parent["id"],
            "methods": {m: {} for m in methods},
        }
        return res_id

    def root_id(self, api_id: str) -> str:
        return next(r["id"] for r in self.apis[api_id]["resources"].values() if r["path"] == "/")

    def paths(self, api_id: str) -> set[tuple[str, str]]:
        """(path, parent path) pairs describing the tree shape."""
        resources = self.apis[api_id]["resources"]
        return {
            (r["path"], resources[r["parentId"]]["path"] if r.get("parentId") else "")
            for r in resources.values()
        }

    def methods(self, api_id: str) -> set[tuple[str, str]]:
        return {
            (r["path"], verb)
            for r in self.apis[api_id]["resources"].values()
            for verb in r["methods"]
        }

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    # boto3 surface

    def get_paginator(self, name: str) -> FakePaginator:
        if name == "get_rest_apis":
            return FakePaginator(self._rest_api_pages)
        if name == "get_resources":
            return FakePaginator(self._resource_pages)
        raise AssertionError(f"unexpected paginator {name}")

    def _rest_api_pages(self):
        items = [{"id": api_id, "name": api["name"]} for api_id, api in self.apis.items()]
        return [{"items": items}]

    def _resource_pages(self, restApiId, embed=None):
        if self.fail_get_resources or restApiId not in self.apis:
            raise client_error("NotFoundException", "GetResources")
        items = []
        for res in self.apis[restApiId]["resources"].values():
            item = {k: v for k, v in res.items() if k != "methods"}
            if res["methods"]:
                item["resourceMethods"] = {verb: {} for verb in res["methods"]}
            items.append(item)
        # Split into two pages to exercise pagination.
        half = len(items) // 2
        return [{"items": items[:half]}, {"items": items[half:]}]

    def create_rest_api(self, name):
        self.calls.append(("create_rest_api", {"name": name}))
        api_id = self.add_api(name)
        return {"id": api_id, "name": name}

    def create_resource(self, restApiId, parentId, pathPart):
        self.calls.append(
            ("create_resource", {"parentId": parentId, "pathPart": pathPart})
        )
        if pathPart == self.fail_on_path_part:
            raise client_error("BadRequestException", "CreateResource", "Invalid path part")
        resources = self.apis[restApiId]["resources"]
        parent = resources[parentId]
        path = parent["path"].rstrip("/") + "/" + pathPart
        res_id = self._next_id("res")
        resources[res_id] = {
            "id": res_id,
            "path": path,
            "pathPart": pathPart,
            "parentId": parentId,
            "methods": {},
        }
        return {"id": res_id, "path": path, "pathPart": pathPart, "parentId": parentId}

    def put_method(self, restApiId, resourceId, httpMethod, authorizationType):
        self.calls.append(
            (
                "put_method",
                {
                    "resourceId": resourceId,
                    "httpMethod": httpMethod,
                    "authorizationType": authorizationType,
                },
            )
        )
        methods = self.apis[restApiId]["resources"][resourceId]["methods"]
        if httpMethod in methods:
            raise client_error("ConflictException", "PutMethod", "Method already exists")
        methods[httpMethod] = {}
        return {"httpMethod": httpMethod}

    def put_integration(self, restApiId, resourceId, httpMethod, **kwargs):
        self.calls.append(
            ("put_integration", {"resourceId": resourceId, "httpMethod": httpMethod, **kwargs})
        )
        self.apis[restApiId]["resources"][resourceId]["methods"][httpMethod] = kwargs
        return kwargs

    def create_deployment(self, restApiId, stageName):
        self.calls.append(("create_deployment", {"restApiId": restApiId, "stageName": stageName}))
        return {
            "id": self._next_id("dep"),
            "createdDate": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }


class FakeLambda:
    def __init__(self):
        self.statements: dict[str, dict[str, dict]] = {}
        self.calls: list[tuple[str, dict]] = []
        self.fail_add_permission = False

    def add_permission(self, FunctionName, StatementId, **kwargs):
        self.calls.append(
            ("add_permission", {"FunctionName": FunctionName, "StatementId": StatementId, **kwargs})
        )
        if self.fail_add_permission:
            raise client_error("AccessDeniedException", "AddPermission", "not allowed")
        policy = self.statements.setdefault(FunctionName, {})
        if StatementId in policy:
            raise client_error(
                "ResourceConflictException", "AddPermission", "statement id already exists"
            )
        policy[StatementId] = kwargs
        return {"Statement": "{}"}


class FakeSession:
    def __init__(self, clients: dict):
        self.clients = clients
        self.requested: list[tuple[str, str | None]] = []

    def client(self, service, region_name=None):
        self.requested.append((service, region_name))
        return self.clients[service]


@pytest.fixture
def source_apigw():
    return FakeApiGateway(prefix="src")


@pytest.fixture
def dest_apigw():
    return FakeApiGateway(prefix="dst")


@pytest.fixture
def dest_lambda():
    return FakeLambda()


@pytest.fixture
def source_scope(source_apigw):
    return CredentialScope(Scope.SOURCE, FakeSession({"apigateway": source_apigw}), "us-east-1")


@pytest.fixture
def dest_scope(dest_apigw, dest_lambda):
    return CredentialScope(
        Scope.DESTINATION,
        FakeSession({"apigateway": dest_apigw, "lambda": dest_lambda}),
        "us-east-1",
    )


@pytest.fixture
def orders_api(source_apigw):
    """Source API: / -> /orders (GET, POST) -> /orders/{id} (GET)."""
    api_id = source_apigw.add_api("orders-fn-api")
    source_apigw.add_resource(api_id, "/orders", methods=("GET", "POST"))
    source_apigw.add_resource(api_id, "/orders/{id}", methods=("GET",))
    return api_id

import pytest

from replicator.core.api_tree import fetch_tree
from replicator.core.errors import RemoteOperationError
from replicator.core.methods import MethodReplicator, MethodTarget, StatementIdFactory
from replicator.core.models import FunctionAddress, PermissionMode
from replicator.core.reconciler import TreeReconciler

TARGET_FUNCTION = FunctionAddress("222222222222", "us-east-1", "orders-fn")


def _prepare(source_apigw, source_api, dest_apigw):
    dest_api = dest_apigw.add_api("orders-fn")
    source = fetch_tree(source_apigw, source_api)
    destination = fetch_tree(dest_apigw, dest_api)
    result = TreeReconciler(dest_apigw, dest_api).reconcile(source, destination)
    return dest_api, source, result.id_map


def _replicator(dest_apigw, dest_lambda, dest_api, **kwargs):
    kwargs.setdefault("clock", lambda: 1700000000.0)
    return MethodReplicator(
        dest_apigw, dest_lambda, MethodTarget(dest_api, TARGET_FUNCTION), **kwargs
    )


def test_replicates_every_node_verb_pair(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)

    result = _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    assert dest_apigw.methods(dest_api) == {
        ("/orders", "GET"),
        ("/orders", "POST"),
        ("/orders/{id}", "GET"),
    }
    assert len(result.bindings) == 3
    assert len(result.permissions) == 3


def test_method_and_integration_parameters(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)

    _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    put_methods = [kw for op, kw in dest_apigw.calls if op == "put_method"]
    assert {kw["authorizationType"] for kw in put_methods} == {"NONE"}

    integrations = [kw for op, kw in dest_apigw.calls if op == "put_integration"]
    assert {kw["type"] for kw in integrations} == {"AWS_PROXY"}
    # Proxy integrations always invoke the backend with POST.
    assert {kw["integrationHttpMethod"] for kw in integrations} == {"POST"}
    assert integrations[0]["uri"] == (
        "arn:aws:apigateway:us-east-1:lambda:path/2015-03-31/functions/"
        "arn:aws:lambda:us-east-1:222222222222:function:orders-fn/invocations"
    )


def test_permission_scope(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)

    _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    grants = [kw for op, kw in dest_lambda.calls if op == "add_permission"]
    assert {kw["Principal"] for kw in grants} == {"apigateway.amazonaws.com"}
    assert {kw["Action"] for kw in grants} == {"lambda:InvokeFunction"}
    assert {kw["SourceArn"] for kw in grants} == {
        f"arn:aws:execute-api:us-east-1:222222222222:{dest_api}/*/GET/*",
        f"arn:aws:execute-api:us-east-1:222222222222:{dest_api}/*/POST/*",
    }


def test_nodes_without_verbs_produce_no_calls(source_apigw, dest_apigw, dest_lambda):
    api = source_apigw.add_api("bare")
    source_apigw.add_resource(api, "/empty")
    source_apigw.add_resource(api, "/empty/deeper")
    dest_api, source, id_map = _prepare(source_apigw, api, dest_apigw)

    result = _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    assert result.bindings == []
    assert dest_apigw.count("put_method") == 0
    assert dest_apigw.count("put_integration") == 0
    assert dest_lambda.calls == []


def test_accumulate_statement_ids_unique_within_run(
    source_apigw, orders_api, dest_apigw, dest_lambda
):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)

    # Frozen clock: every grant happens in the same second.
    result = _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    ids = [permission.statement_id for permission in result.permissions]
    assert len(ids) == len(set(ids)) == 3
    assert all(sid.startswith("APIGatewayInvoke1700000000-") for sid in ids)


def test_accumulate_mode_adds_new_grants_on_every_run(
    source_apigw, orders_api, dest_apigw, dest_lambda
):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)

    _replicator(dest_apigw, dest_lambda, dest_api, clock=lambda: 1.0).replicate(source, id_map)
    _replicator(dest_apigw, dest_lambda, dest_api, clock=lambda: 2.0).replicate(source, id_map)

    assert len(dest_lambda.statements["orders-fn"]) == 6


def test_reconcile_mode_grants_once_per_verb(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)
    mode = PermissionMode.RECONCILE

    first = _replicator(dest_apigw, dest_lambda, dest_api, permission_mode=mode).replicate(
        source, id_map
    )
    second = _replicator(dest_apigw, dest_lambda, dest_api, permission_mode=mode).replicate(
        source, id_map
    )

    assert len(first.permissions) == 2
    assert second.permissions == []
    assert len(dest_lambda.statements["orders-fn"]) == 2


def test_existing_method_is_not_an_error(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)
    _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    later = _replicator(dest_apigw, dest_lambda, dest_api, clock=lambda: 1800000000.0)
    again = later.replicate(source, id_map)

    assert len(again.bindings) == 3
    # Integrations are re-put even when the method already existed.
    assert dest_apigw.count("put_integration") == 6


def test_resume_skips_bound_methods(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)
    orders_dest = id_map[next(n.id for n in source.nodes if n.path == "/orders")]

    result = _replicator(dest_apigw, dest_lambda, dest_api, resume=True).replicate(
        source, id_map, {orders_dest: frozenset({"GET"})}
    )

    assert result.skipped == [(orders_dest, "GET")]
    assert len(result.bindings) == 2
    assert len(result.permissions) == 2


def test_permission_failure_aborts(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)
    dest_lambda.fail_add_permission = True

    with pytest.raises(RemoteOperationError) as excinfo:
        _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    assert "not allowed" in str(excinfo.value)
    assert dest_apigw.count("put_method") == 1


def test_statement_id_factory_reconcile_ids_are_stable():
    factory = StatementIdFactory(PermissionMode.RECONCILE)

    assert factory.next_id("api", "GET") == factory.next_id("api", "GET")
    assert factory.next_id("api", "GET") != factory.next_id("api", "POST")
    assert factory.next_id("api", "GET") != factory.next_id("other", "GET")


def test_accumulate_ids_differ_between_runs_in_same_second():
    first = StatementIdFactory(PermissionMode.ACCUMULATE, clock=lambda: 1700000000.0)
    second = StatementIdFactory(PermissionMode.ACCUMULATE, clock=lambda: 1700000000.0)

    assert first.next_id("api", "GET") != second.next_id("api", "GET")


def test_accumulate_id_format():
    factory = StatementIdFactory(
        PermissionMode.ACCUMULATE, clock=lambda: 1700000000.0, run_token="abc123"
    )

    assert factory.next_id("api", "GET") == "APIGatewayInvoke1700000000-abc123-1"
    assert factory.next_id("api", "POST") == "APIGatewayInvoke1700000000-abc123-2"


def test_same_second_reruns_do_not_conflict(source_apigw, orders_api, dest_apigw, dest_lambda):
    dest_api, source, id_map = _prepare(source_apigw, orders_api, dest_apigw)

    _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)
    _replicator(dest_apigw, dest_lambda, dest_api).replicate(source, id_map)

    assert len(dest_lambda.statements["orders-fn"]) == 6

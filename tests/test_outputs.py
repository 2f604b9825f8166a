"""Tests for engine/outputs.py."""

from infralayer.engine.outputs import evaluate_outputs
from infralayer.specs.models import OutputSpec, Reference, ResourceIdentity, Template
from infralayer.state.models import OutputValue, StateRecord

DB = ResourceIdentity("database", "main")


def test_outputs_resolved_from_state():
    snapshot = {
        DB: StateRecord(identity=DB, attributes={"id": "db-1", "endpoint": {"host": "10.0.0.5"}})
    }
    outputs = {
        "db_id": OutputSpec("db_id", Reference(DB, "id"), sensitive=True),
        "url": OutputSpec(
            "url", Template(("postgres://", Reference(DB, "endpoint.host"), ":5432"))
        ),
        "region": OutputSpec("region", "us-central1"),
    }

    values = evaluate_outputs(outputs, snapshot)

    assert values == {
        "db_id": OutputValue("db-1", sensitive=True),
        "url": OutputValue("postgres://10.0.0.5:5432"),
        "region": OutputValue("us-central1"),
    }


def test_unavailable_outputs_omitted():
    snapshot = {DB: StateRecord(identity=DB, attributes={"id": "db-1"})}
    outputs = {
        "missing_resource": OutputSpec(
            "missing_resource", Reference(ResourceIdentity("vm", "web"), "ip")
        ),
        "missing_attribute": OutputSpec("missing_attribute", Reference(DB, "port")),
        "db_id": OutputSpec("db_id", Reference(DB, "id")),
    }

    values = evaluate_outputs(outputs, snapshot)

    assert list(values) == ["db_id"]

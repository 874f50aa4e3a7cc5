import json
from datetime import datetime, timedelta, timezone

from opsbot_safety.domain.plans import AffectedResource, ClassificationResult
from opsbot_safety.domain.types import ImpactLevel, OperationType
from opsbot_safety.utils.serialization import json_default
from opsbot_safety.utils.time import utc_now


def test_json_default():
    # Datetime
    dt = datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert json_default(dt) == "2023-01-01T12:00:00+00:00"

    # Enums
    assert json_default(ImpactLevel.HIGH) == "high"

    # Dataclasses
    resource = AffectedResource(type="pod", name="web", namespace="prod")
    assert json_default(resource) == {
        "type": "pod",
        "name": "web",
        "namespace": "prod",
        "provider": None,
    }

    # Sets
    assert json_default({"b", "a"}) == ["a", "b"]

    # Unknown
    class Obj:
        pass

    assert str(json_default(Obj())).startswith("<")


def test_json_dumps_classification():
    result = ClassificationResult(
        operation=OperationType.DELETE,
        impact=ImpactLevel.CRITICAL,
        is_dangerous=True,
        matched_pattern="^rm\\s+-rf",
    )
    payload = json.loads(json.dumps(result, default=json_default))
    assert payload == {
        "operation": "delete",
        "impact": "critical",
        "is_dangerous": True,
        "matched_pattern": "^rm\\s+-rf",
    }


def test_utc_now_is_timezone_aware():
    now = utc_now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)

"""Tests for condition utilities."""

from __future__ import annotations

from hypershift_agent_operator.constants import (
    COND_DEPLOYMENTS_HEALTHY,
    COND_RECONCILE_COMPLETED,
    REASON_DEPLOYMENTS_HEALTHY,
    REASON_DEPLOYMENTS_NOT_HEALTHY,
    REASON_DEPLOYMENTS_STATUS_UNKNOWN,
    REASON_RECONCILE_SUCCEEDED,
    REASON_SPOKE_RESOURCES_SYNC_FAILURE,
)
from hypershift_agent_operator.utils.conditions import (
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
    find_condition,
    set_deployments_healthy_condition,
    set_reconcile_completed_condition,
    update_condition,
    workload_health,
    workload_ready,
)


def workload(replicas=1, ready=1, desired=1):
    return {
        "spec": {"replicas": desired},
        "status": {"replicas": replicas, "readyReplicas": ready},
    }


class TestUpdateCondition:
    """Test cases for update_condition function."""

    def test_add_new_condition(self):
        """Test adding a new condition."""
        conditions = update_condition([], "TestCondition", "True", "TestReason", "Test message")

        assert len(conditions) == 1
        assert conditions[0]["type"] == "TestCondition"
        assert conditions[0]["status"] == "True"
        assert conditions[0]["reason"] == "TestReason"
        assert conditions[0]["message"] == "Test message"
        assert "lastTransitionTime" in conditions[0]

    def test_replace_keeps_other_types(self):
        """Test that replacing a condition leaves other types alone."""
        conditions = [
            {"type": "A", "status": "True", "reason": "R", "message": "m", "lastTransitionTime": "t1"},
            {"type": "B", "status": "True", "reason": "R", "message": "m", "lastTransitionTime": "t2"},
        ]

        conditions = update_condition(conditions, "A", "False", "Broken", "broken")

        assert len(conditions) == 2
        assert conditions[0]["status"] == "False"
        assert conditions[0]["lastTransitionTime"] != "t1"
        assert conditions[1]["lastTransitionTime"] == "t2"

    def test_same_status_keeps_transition_time(self):
        """Test that lastTransitionTime is preserved when status is unchanged."""
        conditions = [
            {"type": "A", "status": "True", "reason": "Old", "message": "old", "lastTransitionTime": "t1"}
        ]

        conditions = update_condition(conditions, "A", "True", "New", "new")

        assert conditions[0]["lastTransitionTime"] == "t1"
        assert conditions[0]["reason"] == "New"
        assert conditions[0]["message"] == "new"

    def test_observed_generation(self):
        """Test that observedGeneration is recorded when given."""
        conditions = update_condition([], "A", "True", "R", "m", observed_generation=3)
        assert conditions[0]["observedGeneration"] == 3

    def test_find_condition(self):
        """Test looking up a condition by type."""
        conditions = update_condition([], "A", "True", "R", "m")
        assert find_condition(conditions, "A")["status"] == "True"
        assert find_condition(conditions, "B") is None


class TestOperatorConditions:
    """Test cases for the operator's condition setters."""

    def test_reconcile_completed_success(self):
        """Test the success form of ReconcileCompleted."""
        conditions = set_reconcile_completed_condition([], True)

        cond = find_condition(conditions, COND_RECONCILE_COMPLETED)
        assert cond["status"] == STATUS_TRUE
        assert cond["reason"] == REASON_RECONCILE_SUCCEEDED

    def test_reconcile_completed_failure(self):
        """Test the failure form of ReconcileCompleted."""
        conditions = set_reconcile_completed_condition(
            [], False, reason=REASON_SPOKE_RESOURCES_SYNC_FAILURE, message="boom"
        )

        cond = find_condition(conditions, COND_RECONCILE_COMPLETED)
        assert cond["status"] == STATUS_FALSE
        assert cond["reason"] == REASON_SPOKE_RESOURCES_SYNC_FAILURE
        assert cond["message"] == "boom"

    def test_deployments_healthy(self):
        """Test setting DeploymentsHealthy."""
        conditions = set_deployments_healthy_condition([], STATUS_UNKNOWN, REASON_DEPLOYMENTS_STATUS_UNKNOWN, "?")

        assert find_condition(conditions, COND_DEPLOYMENTS_HEALTHY)["status"] == STATUS_UNKNOWN


class TestWorkloadHealth:
    """Test cases for workload readiness aggregation."""

    def test_workload_ready(self):
        """Test a fully ready workload."""
        assert workload_ready(workload()) is True

    def test_workload_not_ready(self):
        """Test workloads with missing or unready replicas."""
        assert workload_ready(workload(ready=0)) is False
        assert workload_ready(workload(replicas=2, ready=2, desired=3)) is False
        assert workload_ready({"spec": {"replicas": 1}}) is False

    def test_replicas_default_to_one(self):
        """Test that an unset replica count means one."""
        assert workload_ready({"spec": {}, "status": {"replicas": 1, "readyReplicas": 1}}) is True

    def test_all_healthy(self):
        """Test aggregation when every workload is ready."""
        status, reason, message = workload_health({"a": workload(), "b": workload()})

        assert status == STATUS_TRUE
        assert reason == REASON_DEPLOYMENTS_HEALTHY
        assert message == "All the deployments managed by the operator are healthy"

    def test_one_not_ready(self):
        """Test aggregation when one workload is not ready."""
        status, reason, message = workload_health({"a": workload(), "b": workload(ready=0)})

        assert status == STATUS_FALSE
        assert reason == REASON_DEPLOYMENTS_NOT_HEALTHY
        assert "b" in message

    def test_unknown_wins(self):
        """Test that an unreadable workload makes the result Unknown."""
        status, reason, _ = workload_health({"a": None, "b": workload(ready=0)})

        assert status == STATUS_UNKNOWN
        assert reason == REASON_DEPLOYMENTS_STATUS_UNKNOWN

"""Unit tests for status.py - Agent status reporting."""

from models import Agent
from status import pod_names, reconcile_status


def make_agent(agents=None):
    return Agent.from_resource(
        {
            "metadata": {"name": "a", "namespace": "ci"},
            "status": {"agents": agents or []},
        }
    )


class TestPodNames:
    """Tests for pod_names()."""

    def test_keeps_store_order(self, make_pod):
        pods = [make_pod("a-1"), make_pod("a-0")]
        assert pod_names(pods) == ["a-1", "a-0"]

    def test_empty(self):
        assert pod_names([]) == []


class TestReconcileStatus:
    """Tests for reconcile_status()."""

    def test_new_pod_changes_status(self):
        agent = make_agent(["a-0"])
        assert reconcile_status(agent, ["a-0", "a-1"]) is True
        assert agent.status.agents == ["a-0", "a-1"]

    def test_equal_list_is_noop(self):
        agent = make_agent(["a-0", "a-1"])
        assert reconcile_status(agent, ["a-0", "a-1"]) is False
        assert agent.status.agents == ["a-0", "a-1"]

    def test_order_sensitive(self):
        agent = make_agent(["a-0", "a-1"])
        assert reconcile_status(agent, ["a-1", "a-0"]) is True
        assert agent.status.agents == ["a-1", "a-0"]

    def test_all_pods_gone(self):
        agent = make_agent(["a-0"])
        assert reconcile_status(agent, []) is True
        assert agent.status.agents == []

    def test_stored_list_is_a_copy(self):
        agent = make_agent()
        names = ["a-0"]
        reconcile_status(agent, names)
        names.append("a-1")
        assert agent.status.agents == ["a-0"]

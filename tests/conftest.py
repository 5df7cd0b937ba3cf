"""Shared fixtures: deterministic ids, a sample tree, and a fake decomposition source."""

import asyncio
import itertools
from typing import Dict, List, Optional

import pytest

from flow.model import DecomposePart, TreeNode
from flow.session import FlowSession
from flow.store import FlowStore
from planner.source import DecompositionError


def sequential_ids(prefix: str = "n"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


class FakeDecomposer:
    """Returns canned parts per label; unknown labels are leaves.
    gate: when set, decompose waits on it (lets tests interleave a reset)."""

    def __init__(self, table: Optional[Dict[str, List]] = None, fail_on: Optional[set] = None):
        self.table = table or {}
        self.fail_on = fail_on or set()
        self.calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def decompose(self, label, context_tree=None, context_node_id=None):
        self.calls.append((label, context_node_id))
        if self.gate is not None:
            await self.gate.wait()
        if label in self.fail_on:
            raise DecompositionError(node_id=context_node_id)
        return [DecomposePart(text=t, ratio=r) for t, r in self.table.get(label, [])]


JOB_TABLE = {
    "Job": [("Plan", 0.2), ("Build", 0.5), ("Ship", 0.3)],
    "Plan": [("Scope", 0.5), ("Estimate", 0.5)],
    "Build": [("Code", 0.6), ("Review", 0.2), ("Test", 0.2)],
}


@pytest.fixture
def sample_tree() -> TreeNode:
    """Job -> Plan(Scope, Estimate), Build(Code, Review, Test), Ship."""
    return TreeNode.model_validate({
        "id": "root", "label": "Job", "depth": 0, "ratio": 1, "children": [
            {"id": "plan", "label": "Plan", "depth": 1, "ratio": 0.2, "children": [
                {"id": "scope", "label": "Scope", "depth": 2, "ratio": 0.5, "children": []},
                {"id": "estimate", "label": "Estimate", "depth": 2, "ratio": 0.5, "children": []},
            ]},
            {"id": "build", "label": "Build", "depth": 1, "ratio": 0.5, "children": [
                {"id": "code", "label": "Code", "depth": 2, "ratio": 0.6, "children": []},
                {"id": "review", "label": "Review", "depth": 2, "ratio": 0.2, "children": []},
                {"id": "test", "label": "Test", "depth": 2, "ratio": 0.2, "children": []},
            ]},
            {"id": "ship", "label": "Ship", "depth": 1, "ratio": 0.3, "children": []},
        ],
    })


@pytest.fixture
def store() -> FlowStore:
    return FlowStore(id_factory=sequential_ids())


@pytest.fixture
def fake_source() -> FakeDecomposer:
    return FakeDecomposer(JOB_TABLE)


@pytest.fixture
def session(store, fake_source) -> FlowSession:
    return FlowSession(store, fake_source)

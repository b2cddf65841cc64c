"""
Unit tests for dependency ordering.
"""

from datetime import date
import pytest

from sensilib.curves import create_flat_curve, create_flat_survival_curve
from sensilib.errors import CyclicDependencyError
from sensilib.graph import DependencyGraph, curve_dependency_scope, is_in_dependency_scope


AS_OF = date(2024, 1, 15)


class Node:
    """Minimal graph item."""

    def __init__(self, name, parents=()):
        self.name = name
        self.parents = list(parents)


def node_parents(node):
    return node.parents


class TestDependencyGraph:
    """Tests for topological ordering."""

    def test_parents_first(self):
        """Test every item comes after its parents."""
        a = Node("a")
        b = Node("b", [a])
        c = Node("c", [a, b])

        order = DependencyGraph([c], node_parents).ordered()

        assert [n.name for n in order] == ["a", "b", "c"]

    def test_reverse_order(self):
        """Test reverse order puts dependents first."""
        a = Node("a")
        b = Node("b", [a])

        graph = DependencyGraph([b], node_parents)

        assert [n.name for n in graph.reverse_ordered()] == ["b", "a"]
        assert len(graph) == 2
        assert a in graph

    def test_cycle_detected(self):
        """Test a cycle raises instead of looping."""
        a = Node("a")
        b = Node("b", [a])
        a.parents.append(b)

        with pytest.raises(CyclicDependencyError):
            DependencyGraph([a], node_parents)

    def test_get_descendants(self):
        """Test descendants are limited to the population."""
        a = Node("a")
        b = Node("b", [a])
        c = Node("c", [b])
        unrelated = Node("d")

        result = DependencyGraph.get_descendants([a], [c, unrelated], node_parents)

        # b is reached through c but is not in the population
        assert [n.name for n in result] == ["a", "c"]

    def test_curves_order(self):
        """Test a survival curve comes after its discount and recovery curves."""
        discount = create_flat_curve(AS_OF, 0.05)
        credit = create_flat_survival_curve(AS_OF, 0.01, discount)

        order = DependencyGraph([credit]).ordered()

        assert order[-1] is credit
        assert any(c is discount for c in order)
        assert any(c is credit.recovery_curve for c in order)

    def test_curve_descendants(self):
        """Test bumping a discount curve reaches the credit curve fitted off it."""
        discount = create_flat_curve(AS_OF, 0.05)
        credit = create_flat_survival_curve(AS_OF, 0.01, discount)
        other = create_flat_curve(AS_OF, 0.03, name="Other")

        result = DependencyGraph.get_descendants([discount], [credit, other])

        assert result[0] is discount
        assert any(c is credit for c in result)
        assert not any(c is other for c in result)


class TestDependencyScope:
    """Tests for the dependency scope context manager."""

    def test_scope_registration(self):
        """Test curves are registered only inside the scope."""
        discount = create_flat_curve(AS_OF, 0.05)

        with curve_dependency_scope([discount]) as graph:
            assert is_in_dependency_scope(discount)
            assert discount in graph

        assert not is_in_dependency_scope(discount)

    def test_nested_scopes(self):
        """Test nested scopes keep curves registered until the outer exit."""
        discount = create_flat_curve(AS_OF, 0.05)

        with curve_dependency_scope([discount]):
            with curve_dependency_scope([discount]):
                pass
            assert is_in_dependency_scope(discount)

        assert not is_in_dependency_scope(discount)

    def test_scope_exit_on_error(self):
        """Test curves are unregistered when the body raises."""
        discount = create_flat_curve(AS_OF, 0.05)

        with pytest.raises(RuntimeError):
            with curve_dependency_scope([discount]):
                raise RuntimeError("boom")

        assert not is_in_dependency_scope(discount)

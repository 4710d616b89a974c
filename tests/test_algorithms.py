"""Tests for Dijkstra and nearest-node search."""

import random

import networkx as nx
import pytest

from pararouting.models.graph_models import (
    WALK, GraphEdge, GraphNode, NodeKind, Ride, TransitGraph, VehicleType,
)
from pararouting.routing.algorithms import Criterion, find_nearest_node, shortest_path

JEEP = Ride(VehicleType.JEEPNEY)


def _graph(node_ids, edges):
    graph = TransitGraph()
    for i, node_id in enumerate(node_ids):
        graph.add_node(GraphNode(node_id, NodeKind.STOP, 14.6 + i * 0.001, 121.0, node_id))
    for from_id, to_id, distance, time_min, fare in edges:
        graph.add_edge(GraphEdge(from_id, to_id, distance, time_min, fare, JEEP))
    return graph


def _random_graph(rng, size=7, edge_count=16):
    node_ids = [f"N{i}" for i in range(size)]
    edges = []
    for _ in range(edge_count):
        a, b = rng.sample(node_ids, 2)
        edges.append((a, b, rng.uniform(0, 5), rng.uniform(0, 20), rng.choice([0.0, 8.0, 13.0, rng.uniform(0, 30)])))
    return _graph(node_ids, edges)


def _brute_force_cost(graph, start_id, end_id, criterion):
    best = None
    for path in nx.all_simple_paths(graph.digraph, start_id, end_id):
        cost = 0.0
        for a, b in zip(path, path[1:]):
            cost += min(criterion.weight(data['edge']) for data in graph.digraph.get_edge_data(a, b).values())
        best = cost if best is None else min(best, cost)
    return best


@pytest.mark.parametrize("seed", range(25))
@pytest.mark.parametrize("criterion", list(Criterion))
def test_matches_brute_force(seed, criterion):
    rng = random.Random(seed)
    graph = _random_graph(rng)

    result = shortest_path(graph, 'N0', 'N6', criterion)
    expected = _brute_force_cost(graph, 'N0', 'N6', criterion)

    if expected is None:
        assert result is None
    else:
        assert result.cost == pytest.approx(expected)
        assert result.path[0] == 'N0' and result.path[-1] == 'N6'
        assert [e.from_id for e in result.segments] == result.path[:-1]
        assert [e.to_id for e in result.segments] == result.path[1:]


def test_parallel_edges_cheapest_wins():
    graph = _graph(['A', 'B'], [
        ('A', 'B', 2.0, 10.0, 20.0),
        ('A', 'B', 3.0, 6.0, 30.0),
        ('A', 'B', 4.0, 15.0, 9.0),
    ])

    assert shortest_path(graph, 'A', 'B', Criterion.TIME).segments[0].weight_time_min == 6.0
    assert shortest_path(graph, 'A', 'B', Criterion.DISTANCE).segments[0].weight_distance_km == 2.0
    assert shortest_path(graph, 'A', 'B', Criterion.FARE).segments[0].weight_fare_php == 9.0


def test_totals_sum_every_dimension():
    graph = _graph(['A', 'B', 'C'], [('A', 'B', 1.0, 3.0, 13.0), ('B', 'C', 2.0, 6.0, 14.0)])

    result = shortest_path(graph, 'A', 'C')

    assert result.path == ['A', 'B', 'C']
    assert result.totals.distance_km == 3.0
    assert result.totals.time_min == 9.0
    assert result.totals.fare_php == 27.0


def test_edges_are_directed():
    graph = _graph(['A', 'B'], [('A', 'B', 1.0, 1.0, 1.0)])

    assert shortest_path(graph, 'B', 'A') is None


def test_start_equals_end():
    graph = _graph(['A'], [])

    result = shortest_path(graph, 'A', 'A')

    assert result.path == ['A']
    assert result.segments == []
    assert result.cost == 0.0


def test_unknown_node():
    graph = _graph(['A'], [])

    assert shortest_path(graph, 'A', 'Z') is None


def test_zero_fare_walks_are_preferred_for_fare():
    graph = _graph(['A', 'B', 'C'], [('A', 'C', 1.0, 2.0, 13.0)])
    graph.add_edge(GraphEdge('A', 'B', 0.05, 5.6, 0.0, WALK))
    graph.add_edge(GraphEdge('B', 'C', 0.05, 5.6, 0.0, WALK))

    result = shortest_path(graph, 'A', 'C', Criterion.FARE)

    assert result.path == ['A', 'B', 'C']
    assert all(e.is_walk for e in result.segments)


def test_negative_weight_rejected():
    with pytest.raises(ValueError):
        GraphEdge('A', 'B', -1.0, 1.0, 1.0, JEEP)


def test_equal_cost_ties_are_deterministic():
    graph = _graph(['A', 'B', 'C', 'D'], [
        ('A', 'B', 1.0, 1.0, 1.0), ('A', 'C', 1.0, 1.0, 1.0),
        ('B', 'D', 1.0, 1.0, 1.0), ('C', 'D', 1.0, 1.0, 1.0),
    ])

    paths = {tuple(shortest_path(graph, 'A', 'D').path) for _ in range(5)}

    assert paths == {('A', 'B', 'D')}


def _nodes_graph():
    graph = TransitGraph()
    graph.add_node(GraphNode('T1', NodeKind.TERMINAL, 14.600, 121.0, 'Terminal', frozenset({VehicleType.BUS})))
    graph.add_node(GraphNode('S1', NodeKind.STOP, 14.601, 121.0, 'Stop', frozenset({VehicleType.JEEPNEY})))
    return graph


def test_find_nearest_node():
    node, distance = find_nearest_node(_nodes_graph(), 14.6012, 121.0)

    assert node.id == 'S1'
    assert distance == pytest.approx(0.0222, abs=1e-3)


def test_find_nearest_node_filters():
    graph = _nodes_graph()

    assert find_nearest_node(graph, 14.6012, 121.0, kind=NodeKind.TERMINAL)[0].id == 'T1'
    assert find_nearest_node(graph, 14.6012, 121.0, vehicle_type=VehicleType.BUS)[0].id == 'T1'
    assert find_nearest_node(graph, 14.6012, 121.0, kind=NodeKind.VIRTUAL) is None


def test_find_nearest_node_max_distance():
    graph = _nodes_graph()

    assert find_nearest_node(graph, 14.7, 121.0, max_distance_km=1.0) is None
    assert find_nearest_node(graph, 14.7, 121.0) is not None
    assert find_nearest_node(TransitGraph(), 14.6, 121.0) is None

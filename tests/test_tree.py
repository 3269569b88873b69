"""Tests for forest assembly."""

from conftest import assert_valid_forest, make_node

from proctree.config import ParentExclusion
from proctree.tree import build_forest, render_forest, walk


def pids(nodes):
    return [n.pid for n in nodes]


def test_empty():
    assert build_forest([]) == []


def test_simple_chain():
    nodes = [make_node(1, 0, "init"), make_node(2, 1, "sh"), make_node(3, 2, "vim")]

    roots = build_forest(nodes)

    assert pids(roots) == [1]
    assert pids(roots[0].children) == [2]
    assert pids(roots[0].children[0].children) == [3]
    assert_valid_forest(roots)


def test_child_listed_before_parent():
    nodes = [make_node(3, 2, "vim"), make_node(2, 1, "sh"), make_node(1, 0, "init")]

    roots = build_forest(nodes)

    assert pids(roots) == [1]
    assert pids(walk(roots)) == [1, 2, 3]


def test_explorer_children_stay_at_root():
    explorer = make_node(10, 1, "explorer")
    shell = make_node(20, 10, "shell")
    editor = make_node(30, 20, "editor")

    roots = build_forest([explorer, shell, editor])

    assert pids(roots) == [10, 20]
    assert explorer.children == []
    assert shell.children == [editor]
    assert_valid_forest(roots)


def test_explorer_exe_name_is_excluded():
    roots = build_forest([make_node(10, 1, "explorer.exe"), make_node(20, 10, "shell")])

    assert pids(roots) == [10, 20]


def test_explorer_still_nests_under_its_parent():
    roots = build_forest([make_node(1, 0, "userinit"), make_node(10, 1, "explorer")])

    assert pids(roots) == [1]
    assert pids(roots[0].children) == [10]


def test_custom_exclusion():
    nodes = [make_node(1, 0, "launchd"), make_node(2, 1, "app"), make_node(3, 0, "explorer"), make_node(4, 3, "x")]

    roots = build_forest(nodes, ParentExclusion(names={"launchd"}))

    assert pids(roots) == [1, 2, 3]
    assert pids(nodes[2].children) == [4]


def test_exclusion_by_pid():
    nodes = [make_node(4, 0, "System"), make_node(8, 4, "smss")]

    roots = build_forest(nodes, ParentExclusion(names=frozenset(), pids={4}))

    assert pids(roots) == [4, 8]


def test_missing_parent_is_root():
    roots = build_forest([make_node(5, 404, "orphan"), make_node(6, 5, "child")])

    assert pids(roots) == [5]
    assert pids(roots[0].children) == [6]


def test_parent_without_handle_still_adopts():
    nodes = [make_node(5, 0, None), make_node(6, 5, "child")]

    roots = build_forest(nodes)

    assert pids(roots) == [5]
    assert pids(roots[0].children) == [6]


def test_services_do_not_nest_under_processes():
    nodes = [
        make_node(1, 0, "services"),
        make_node(99, 1, "svchost", is_service=True),
        make_node(100, 99, "worker"),
    ]

    roots = build_forest(nodes)

    assert pids(roots) == [1, 99, 100]
    assert all(n.children == [] for n in nodes)


def test_services_nest_under_services():
    nodes = [
        make_node(98, 1, "svchost", is_service=True),
        make_node(99, 98, "svchost", is_service=True),
    ]

    roots = build_forest(nodes)

    assert pids(roots) == [98]
    assert pids(roots[0].children) == [99]
    assert roots[0].children[0].is_service


def test_first_candidate_wins():
    first = make_node(7, 0, "first")
    second = make_node(7, 0, "second")
    child = make_node(8, 7, "child")

    build_forest([first, second, child])

    assert first.children == [child]
    assert second.children == []


def test_excluded_candidate_skipped_for_next():
    explorer = make_node(7, 0, "explorer")
    other = make_node(7, 0, "other")
    child = make_node(8, 7, "child")

    roots = build_forest([explorer, other, child])

    assert other.children == [child]
    assert pids(roots) == [7, 7]


def test_self_parent_stays_root():
    idle = make_node(0, 0, "System Idle Process")

    roots = build_forest([idle])

    assert roots == [idle]
    assert idle.children == []


def test_cycle_is_refused():
    a = make_node(1, 2, "a")
    b = make_node(2, 1, "b")

    roots = build_forest([a, b])

    assert roots == [b]
    assert b.children == [a]
    assert_valid_forest(roots)


def test_longer_cycle_is_refused():
    nodes = [make_node(1, 3, "a"), make_node(2, 1, "b"), make_node(3, 2, "c")]

    roots = build_forest(nodes)

    assert len(roots) == 1
    assert len(list(walk(roots))) == 3
    assert_valid_forest(roots)


def test_roots_and_children_keep_input_order():
    nodes = [
        make_node(50, 0, "z"),
        make_node(3, 1, "c3"),
        make_node(1, 0, "a"),
        make_node(2, 1, "c2"),
        make_node(40, 0, "y"),
    ]

    roots = build_forest(nodes)

    assert pids(roots) == [50, 1, 40]
    assert pids(nodes[2].children) == [3, 2]


def test_every_node_reachable_once():
    nodes = [make_node(pid, pid // 2, f"p{pid}") for pid in range(1, 64)]

    roots = build_forest(nodes)

    assert pids(roots) == [1]
    assert sorted(pids(walk(roots))) == list(range(1, 64))
    assert_valid_forest(roots)


def test_render_forest():
    nodes = [
        make_node(1, 0, "init"),
        make_node(2, 1, "sh"),
        make_node(3, 1, None),
        make_node(99, 0, "svchost", is_service=True),
    ]

    text = render_forest(build_forest(nodes))

    assert text.splitlines() == [
        "init (1)",
        "  sh (2)",
        "  <exited> (3)",
        "svchost (99) [service]",
    ]

import pytest

from nako.nako_scope import ScopeEnvironment, ScopeManager, VERSION_KEY, LOG_KEY, LINE_KEY


def test_lookup_order_is_local_system_persistent():
    env = ScopeEnvironment()
    env.persistent["x"] = "L0"
    env.system["x"] = "L1"
    assert env.get("x") == "L1"
    env.local["x"] = "L2"
    assert env.get("x") == "L2"
    assert env.find_level("x") is env.local


def test_lookup_with_explicit_local_tier():
    env = ScopeEnvironment()
    env.local["x"] = 1
    frame = {"x": 2}
    assert env.get("x", frame) == 2
    assert env.get("x") == 1


def test_function_frame_falls_back_to_session_locals():
    env = ScopeEnvironment()
    env.local["A"] = 5
    env.persistent["A"] = 0
    frame = {"X": 1}
    assert env.get("A", frame) == 5
    assert env.find_level("A", frame) is env.local
    assert env.find_level("X", frame) is frame


def test_missing_name_raises_name_error():
    env = ScopeEnvironment()
    with pytest.raises(NameError) as ei:
        env.get("ない")
    assert "ない" in str(ei.value)
    assert "ない" not in env


def test_reset_keeps_persistent_identity_and_replaces_others():
    sm = ScopeManager()
    assert not sm.initialized
    sm.reset()
    assert sm.initialized
    env = sm.env
    l0, l1, l2 = env.persistent, env.system, env.local
    l0["keep"] = 1
    l1["drop"] = 1
    l2["drop"] = 1
    sm.reset()
    assert sm.env is env
    assert env.persistent is l0
    assert env.system is not l1 and env.system == {}
    assert env.local is not l2 and env.local == {}
    assert env.persistent["keep"] == 1


def test_reset_clears_log():
    sm = ScopeManager()
    sm.reset()
    sm.append_log("a\n")
    sm.append_log("b\n")
    assert sm.log == "a\nb"
    sm.reset()
    assert sm.env.persistent[LOG_KEY] == ""
    assert sm.log == ""


def test_materialize_defaults_and_version_marker():
    sm = ScopeManager()
    sm.reset()
    assert not sm.has_version_marker()
    sm.materialize_defaults({VERSION_KEY: "x", "c": 1}, {"v": 2})
    assert sm.has_version_marker()
    assert sm.env.persistent["c"] == 1
    assert sm.env.system["v"] == 2


def test_current_line_defaults_to_minus_one():
    sm = ScopeManager()
    sm.reset()
    assert sm.current_line() == -1
    sm.set_current_line(4)
    assert sm.env.persistent[LINE_KEY] == 4
    assert sm.current_line() == 4


def test_environment_remembers_owner():
    owner = object()
    sm = ScopeManager(owner=owner)
    sm.reset()
    assert sm.env.owner is owner
    assert "persistent=" in repr(sm.env)

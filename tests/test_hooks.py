import logging

import pytest

from tagbind import Container, HookEventType, LimitExceededError, create_container


def test_hooks_fire_in_order():
    c = Container()
    events = []
    c.hook("before_resolve", lambda e: events.append(("before_resolve", e.name)))
    c.hook("before_create", lambda e: events.append(("before_create", e.name)))
    c.hook("after_create", lambda e: events.append(("after_create", e.name)))
    c.hook(HookEventType.AFTER_RESOLVE, lambda e: events.append(("after_resolve", e.name)))

    c.singleton("db", object)
    c.factory("repo", lambda db: ("repo", db)).as_transient()

    c.resolve("repo")

    assert events == [
        ("before_resolve", "repo"),
        ("before_create", "db"),
        ("after_create", "db"),
        ("before_create", "repo"),
        ("after_create", "repo"),
        ("after_resolve", "repo"),
    ]


def test_after_create_receives_instance_and_scope():
    c = Container()
    seen = []
    c.hook("after_create", seen.append)
    c.factory("session", object).as_scoped()

    scope = c.create_scope("request-1")
    session = scope.resolve("session")

    assert len(seen) == 1
    assert seen[0].instance is session
    assert seen[0].scope == "request-1"
    assert seen[0].event is HookEventType.AFTER_CREATE


def test_create_hooks_skip_cached_and_value_resolutions():
    c = Container()
    created = []
    c.hook("before_create", lambda e: created.append(e.name))
    c.singleton("db", object)
    c.value("config", {})

    c.resolve("db")
    c.resolve("db")
    c.resolve("config")

    assert created == ["db"]


def test_failing_hook_is_logged_and_does_not_break_resolution(caplog):
    c = Container()
    calls = []

    def bad_hook(event):
        raise RuntimeError("hook exploded")

    c.hook("before_create", bad_hook)
    c.hook("before_create", lambda e: calls.append(e.name))
    c.factory("thing", lambda: "ok").as_transient()

    with caplog.at_level(logging.ERROR, logger="tagbind._hooks"):
        assert c.resolve("thing") == "ok"

    assert calls == ["thing"]
    assert "hook exploded" in caplog.text


def test_unknown_event_raises():
    c = Container()
    with pytest.raises(ValueError, match="Unknown hook event"):
        c.hook("on_destroy", lambda e: None)


def test_callback_must_be_callable():
    c = Container()
    with pytest.raises(ValueError):
        c.hook("after_create", "nope")


def test_hook_limit():
    c = create_container(max_hooks_per_event=2)
    c.hook("after_create", lambda e: None).hook("after_create", lambda e: None)

    with pytest.raises(LimitExceededError):
        c.hook("after_create", lambda e: None)

    # limit is per event
    c.hook("before_create", lambda e: None)


def test_clear_hooks():
    c = Container()
    calls = []
    c.hook("before_create", lambda e: calls.append("before"))
    c.hook("after_create", lambda e: calls.append("after"))
    c.factory("thing", object).as_transient()

    c.clear_hooks("before_create")
    c.resolve("thing")
    assert calls == ["after"]

    c.clear_hooks()
    c.resolve("thing")
    assert calls == ["after"]


def test_verbose_traces_resolution_at_info(caplog):
    c = create_container(verbose=True)
    c.singleton("db", object)

    with caplog.at_level(logging.INFO, logger="tagbind"):
        c.resolve("db")

    assert "Resolving 'db' [singleton]" in caplog.text


def test_quiet_container_traces_at_debug_only(caplog):
    c = Container()
    c.singleton("db", object)

    with caplog.at_level(logging.INFO, logger="tagbind"):
        c.resolve("db")

    assert "Resolving" not in caplog.text

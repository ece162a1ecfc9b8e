import asyncio
import functools

import pytest

from tagbind import (
    AsyncResolutionError,
    CircularDependencyError,
    Container,
    Lifetime,
    ScopeDisposedError,
    ScopeRequiredError,
    ServiceNotFoundError,
)


def test_aresolve_awaits_async_factories():
    c = Container()
    order = []

    async def make_pool(config):
        await asyncio.sleep(0)
        order.append("pool")
        return {"dsn": config["dsn"]}

    def make_repo(pool):
        order.append("repo")
        return ("repo", pool)

    c.value("config", {"dsn": "sqlite://"})
    c.factory("pool", make_pool).as_singleton()
    c.factory("repo", make_repo).as_transient()

    assert c.get_definition("pool").is_async
    repo = asyncio.run(c.aresolve("repo"))

    assert repo == ("repo", {"dsn": "sqlite://"})
    assert order == ["pool", "repo"]


def test_async_singleton_is_cached_and_usable_from_sync_resolve():
    c = Container()
    created = []

    async def make_pool():
        created.append(1)
        return object()

    c.factory("pool", make_pool).as_singleton()

    pool = asyncio.run(c.aresolve("pool"))
    assert asyncio.run(c.aresolve("pool")) is pool
    assert c.resolve("pool") is pool
    assert created == [1]


def test_sync_resolve_of_async_factory_raises():
    c = Container()

    async def make_client():
        return object()

    c.factory("client", make_client).as_transient()
    c.factory("api", lambda client: client).as_transient()

    with pytest.raises(AsyncResolutionError, match="aresolve"):
        c.resolve("api")


def test_aresolve_dependencies_in_declaration_order():
    cont = Container()
    order = []

    def tracked(name):
        async def make():
            order.append(name)
            return name

        return make

    for name in ("c", "a", "b"):
        cont.factory(name, tracked(name)).as_transient()
    cont.factory("root", lambda c, a, b: (c, a, b)).as_transient()

    assert asyncio.run(cont.aresolve("root")) == ("c", "a", "b")
    assert order == ["c", "a", "b"]
    assert cont.get_definition("root").lifetime is Lifetime.TRANSIENT


def test_aresolve_in_scope():
    c = Container()

    async def make_session():
        return object()

    c.factory("session", make_session).as_scoped()
    scope = c.create_scope("request")

    async def run():
        return await scope.aresolve("session"), await scope.aresolve("session")

    first, second = asyncio.run(run())
    assert first is second
    assert scope.instances() == {"session": first}


class ClientFactory:
    def __init__(self):
        self.calls = 0

    async def __call__(self, config):
        self.calls += 1
        await asyncio.sleep(0)
        return {"client": config["dsn"]}


def test_callable_object_with_async_call_is_async():
    c = Container()
    factory = ClientFactory()
    c.value("config", {"dsn": "sqlite://"})
    c.factory("client", factory).as_singleton()

    assert c.get_definition("client").is_async
    with pytest.raises(AsyncResolutionError):
        c.resolve("client")
    assert factory.calls == 0

    client = asyncio.run(c.aresolve("client"))
    assert client == {"client": "sqlite://"}
    assert c.resolve("client") is client


def test_partial_of_async_factory_is_async():
    c = Container()

    async def make_client(dsn, config):
        return (dsn, config)

    c.value("config", {})
    c.factory("client", functools.partial(make_client, "sqlite://")).as_transient()

    assert c.get_definition("client").is_async
    assert asyncio.run(c.aresolve("client")) == ("sqlite://", {})


def test_class_with_async_call_is_constructed_synchronously():
    c = Container()
    c.transient("client_factory", ClientFactory)

    assert not c.get_definition("client_factory").is_async
    assert isinstance(c.resolve("client_factory"), ClientFactory)


def test_aresolve_detects_cycles():
    c = Container()

    async def make_a(b):
        return b

    async def make_b(a):
        return a

    c.factory("a", make_a).as_transient()
    c.factory("b", make_b).as_transient()

    with pytest.raises(CircularDependencyError) as ctx:
        asyncio.run(c.aresolve("a"))
    assert ctx.value.chain == ("a", "b", "a")

    with pytest.raises(CircularDependencyError) as ctx:
        asyncio.run(c.aresolve("b"))
    assert ctx.value.chain == ("b", "a", "b")


def test_aresolve_missing_service_raises():
    c = Container()
    c.factory("api", lambda client: client).as_transient()

    with pytest.raises(ServiceNotFoundError, match="client"):
        asyncio.run(c.aresolve("api"))


def test_aresolve_scoped_from_root_raises():
    c = Container()

    async def make_session():
        return object()

    c.factory("session", make_session).as_scoped()

    with pytest.raises(ScopeRequiredError):
        asyncio.run(c.aresolve("session"))


def test_aresolve_from_disposed_scope_raises():
    c = Container()

    async def make_session():
        return object()

    c.factory("session", make_session).as_scoped()
    scope = c.create_scope("request")
    asyncio.run(scope.aresolve("session"))
    scope.dispose()

    with pytest.raises(ScopeDisposedError):
        asyncio.run(scope.aresolve("session"))

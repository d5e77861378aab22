from uuid import uuid4

from src.webhooks.infrastructure.models import Tenant
from src.webhooks.infrastructure.tenant_resolver import TenantResolver


async def test_expands_slug_to_all_forms(session_factory, tenant):
    resolver = TenantResolver(session_factory)
    values = await resolver.match_values("acme")
    assert values == ["acme", str(tenant.id), tenant.id.hex]


async def test_expands_hex_and_uuid(session_factory, tenant):
    resolver = TenantResolver(session_factory)
    assert set(await resolver.match_values(tenant.id.hex)) == {tenant.id.hex, str(tenant.id), "acme"}
    assert set(await resolver.match_values(tenant.id)) == {tenant.id.hex, str(tenant.id), "acme"}


async def test_unknown_reference_is_kept_as_is(session_factory):
    resolver = TenantResolver(session_factory)
    unknown = uuid4()
    assert await resolver.match_values("ghost") == ["ghost"]
    assert await resolver.match_values(unknown.hex) == [unknown.hex, str(unknown)]
    assert await resolver.match_values("  ") == []
    assert await resolver.match_values(None) == []


async def test_resolved_tenants_are_cached(session_factory, tenant):
    resolver = TenantResolver(session_factory)
    await resolver.match_values("acme")

    async with session_factory() as s:
        t = await s.get(Tenant, tenant.id)
        t.slug = "acme-renamed"
        await s.commit()

    assert "acme" in await resolver.match_values("acme")
    resolver.invalidate("acme")
    assert await resolver.match_values("acme") == ["acme"]


async def test_misses_are_not_cached(session_factory):
    resolver = TenantResolver(session_factory)
    assert await resolver.match_values("late") == ["late"]

    async with session_factory() as s:
        t = Tenant(slug="late", name="Late")
        s.add(t)
        await s.commit()

    assert str(t.id) in await resolver.match_values("late")


async def test_resolve(session_factory, tenant):
    resolver = TenantResolver(session_factory)
    assert (await resolver.resolve("acme")).id == tenant.id
    assert (await resolver.resolve(str(tenant.id))).slug == "acme"
    assert await resolver.resolve("ghost") is None

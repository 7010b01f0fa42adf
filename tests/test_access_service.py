"""
Tests for the access service: round trips, association replacement,
atomicity, aggregation and deletes.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import event, update

from src.core.errors import (
    ConstraintViolationError,
    MalformedInputError,
    NotFoundError,
)
from src.models.access import UserRecord
from src.schemas.access import Application, Permission, Role, User
from src.services.access import AccessService
from src.services.filters import RoleFilter


def _perm_ids(role: Role) -> set[str]:
    return {p.id for p in role.permissions}


def _role_keys(user: User) -> set[tuple[str, str]]:
    return {(r.id, r.app_id) for r in user.roles}


# ============ Round trips ============


@pytest.mark.asyncio
async def test_application_round_trip(service: AccessService):
    """Upserted application reads back field for field."""
    app = Application(id="blog", name="Blog", description="Company blog")
    await service.upsert_app(app)

    assert await service.get_app("blog") == app


@pytest.mark.asyncio
async def test_application_upsert_updates_mutable_fields(service: AccessService):
    await service.upsert_app(Application(id="blog", name="Blog"))
    await service.upsert_app(Application(id="blog", name="Blog v2", description="new"))

    apps = await service.get_apps()
    assert len(apps) == 1
    assert apps[0].name == "Blog v2"
    assert apps[0].description == "new"


@pytest.mark.asyncio
async def test_permission_round_trip(service: AccessService, factory):
    """Permission reads back with an engine-assigned created_at."""
    await factory.app("blog")
    perm = Permission(id="posts:create", app_id="blog", name="Create", description="d")
    await service.upsert_perm(perm)

    stored = await service.get_perm("posts:create", "blog")
    assert stored.model_dump(exclude={"created_at"}) == perm.model_dump(exclude={"created_at"})
    assert stored.created_at is not None

    await service.upsert_perm(perm.model_copy(update={"name": "Create posts"}))
    updated = await service.get_perm("posts:create", "blog")
    assert updated.name == "Create posts"
    assert updated.created_at == stored.created_at


@pytest.mark.asyncio
async def test_permission_ids_are_scoped_per_application(service: AccessService, factory):
    """The same permission id may exist in two applications."""
    await factory.app("blog")
    await factory.app("shop")
    await factory.perm("read", "blog")
    await factory.perm("read", "shop")

    perms = await service.get_perms()
    assert [(p.app_id, p.id) for p in perms] == [("blog", "read"), ("shop", "read")]


@pytest.mark.asyncio
async def test_role_round_trip(service: AccessService, blog):
    role = await service.get_role("editor", "blog")

    assert role.id == "editor"
    assert role.app_id == "blog"
    assert role.name == "Editor"
    assert role.description == "editor role"
    assert role.created_at is not None
    assert _perm_ids(role) == {"posts:create", "posts:update"}


@pytest.mark.asyncio
async def test_user_round_trip_and_timestamps(service: AccessService, blog, factory):
    """updated_at never moves backwards across upserts."""
    await factory.user("alice", [("editor", "blog")])
    first = await service.get_user("alice")

    assert first.username == "alice"
    assert _role_keys(first) == {("editor", "blog")}
    assert first.created_at is not None
    assert first.updated_at >= first.created_at

    await factory.user("alice", [("editor", "blog")])
    second = await service.get_user("alice")
    assert second.created_at == first.created_at
    assert second.updated_at >= first.updated_at


# ============ Association replacement ============


@pytest.mark.asyncio
async def test_role_permissions_are_replaced_wholesale(service: AccessService, factory):
    """Second upsert leaves exactly the new permission set."""
    await factory.app("blog")
    for perm_id in ("p1", "p2", "p3"):
        await factory.perm(perm_id)

    await factory.role("editor", permissions=["p1", "p3"])
    await factory.role("editor", permissions=["p2"])

    role = await service.get_role("editor", "blog")
    assert _perm_ids(role) == {"p2"}

    # Unlinked permissions still exist on their own
    assert {p.id for p in await service.get_perms()} == {"p1", "p2", "p3"}


@pytest.mark.asyncio
async def test_role_upsert_with_empty_permissions_clears_links(service: AccessService, blog, factory):
    await factory.role("editor", permissions=[])

    role = await service.get_role("editor", "blog")
    assert role.permissions == []


@pytest.mark.asyncio
async def test_duplicate_permission_entries_collapse(service: AccessService, blog, factory):
    await factory.role("editor", permissions=["posts:create", "posts:create"])

    role = await service.get_role("editor", "blog")
    assert [p.id for p in role.permissions] == ["posts:create"]


@pytest.mark.asyncio
async def test_user_roles_are_replaced_wholesale(service: AccessService, blog, factory):
    await factory.role("viewer", "blog")
    await factory.user("alice", [("editor", "blog"), ("viewer", "blog")])
    await factory.user("alice", [("viewer", "blog")])

    user = await service.get_user("alice")
    assert _role_keys(user) == {("viewer", "blog")}


@pytest.mark.asyncio
async def test_user_roles_span_applications(service: AccessService, blog, factory):
    await factory.app("shop")
    await factory.perm("orders:read", "shop")
    await factory.role("clerk", "shop", ["orders:read"])

    await factory.user("alice", [("editor", "blog"), ("clerk", "shop")])

    user = await service.get_user("alice")
    assert [(r.app_id, r.id) for r in user.roles] == [("blog", "editor"), ("shop", "clerk")]
    assert _perm_ids(user.roles[1]) == {"orders:read"}


# ============ Atomicity ============


@pytest.mark.asyncio
async def test_failed_user_upsert_keeps_previous_roles(service: AccessService, factory):
    """A missing third role aborts the whole write, not just the tail."""
    await factory.app("blog")
    for role_id in ("r1", "r2", "r4"):
        await factory.role(role_id)
    await factory.user("alice", [("r1", "blog")])

    with pytest.raises(ConstraintViolationError):
        await service.upsert_user(
            User(
                username="alice",
                roles=[
                    Role(id="r1", app_id="blog"),
                    Role(id="r2", app_id="blog"),
                    Role(id="missing", app_id="blog"),
                    Role(id="r4", app_id="blog"),
                ],
            )
        )

    user = await service.get_user("alice")
    assert _role_keys(user) == {("r1", "blog")}


@pytest.mark.asyncio
async def test_failed_first_user_upsert_creates_nothing(service: AccessService, factory):
    await factory.app("blog")

    with pytest.raises(ConstraintViolationError):
        await service.upsert_user(
            User(username="ghost", roles=[Role(id="missing", app_id="blog")])
        )

    with pytest.raises(NotFoundError):
        await service.get_user("ghost")


@pytest.mark.asyncio
async def test_failed_role_upsert_keeps_previous_permissions(service: AccessService, blog):
    with pytest.raises(ConstraintViolationError):
        await service.upsert_role(
            Role(
                id="editor",
                app_id="blog",
                name="Renamed",
                permissions=[Permission(id="posts:delete"), Permission(id="nope")],
            )
        )

    role = await service.get_role("editor", "blog")
    assert role.name == "Editor"
    assert _perm_ids(role) == {"posts:create", "posts:update"}


@pytest.mark.asyncio
async def test_permission_for_unknown_application_is_rejected(service: AccessService):
    with pytest.raises(ConstraintViolationError):
        await service.upsert_perm(Permission(id="read", app_id="nowhere"))


# ============ Malformed input ============


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.upsert_app(Application(id="")),
        lambda s: s.upsert_perm(Permission(id="read", app_id="")),
        lambda s: s.upsert_perm(Permission(id="  ", app_id="blog")),
        lambda s: s.upsert_role(Role(id="", app_id="blog")),
        lambda s: s.upsert_role(Role(id="editor", app_id="blog", permissions=[Permission(id="")])),
        lambda s: s.upsert_user(User(username="")),
        lambda s: s.upsert_user(User(username="alice", roles=[Role(id="editor", app_id="")])),
    ],
)
async def test_missing_natural_keys_are_rejected(service: AccessService, call):
    with pytest.raises(MalformedInputError):
        await call(service)


@pytest.mark.asyncio
async def test_role_cannot_reference_other_applications_permissions(service: AccessService, blog, factory):
    await factory.app("shop")
    await factory.perm("orders:read", "shop")

    with pytest.raises(MalformedInputError):
        await service.upsert_role(
            Role(
                id="editor",
                app_id="blog",
                permissions=[Permission(id="orders:read", app_id="shop")],
            )
        )

    role = await service.get_role("editor", "blog")
    assert _perm_ids(role) == {"posts:create", "posts:update"}


@pytest.mark.asyncio
async def test_malformed_input_issues_no_statements(service: AccessService, db_engine):
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db_engine.sync_engine, "before_cursor_execute", record)
    try:
        with pytest.raises(MalformedInputError):
            await service.upsert_role(Role(id="editor", app_id=" "))
    finally:
        event.remove(db_engine.sync_engine, "before_cursor_execute", record)

    assert statements == []


# ============ Aggregation ============


@pytest.mark.asyncio
async def test_role_permissions_are_fully_populated(service: AccessService, blog):
    role = await service.get_role("editor", "blog")

    for perm in role.permissions:
        assert perm.app_id == "blog"
        assert perm.name
        assert perm.description
        assert perm.created_at is not None


@pytest.mark.asyncio
async def test_role_without_permissions_has_empty_list(service: AccessService, blog, factory):
    await factory.role("guest")

    role = await service.get_role("guest", "blog")
    assert role.permissions == []
    assert "guest" in {r.id for r in await service.get_roles()}


@pytest.mark.asyncio
async def test_user_without_roles_has_empty_list(service: AccessService, factory):
    await factory.user("nobody")

    user = await service.get_user("nobody")
    assert user.roles == []
    assert [u.username for u in await service.get_users()] == ["nobody"]


@pytest.mark.asyncio
async def test_user_tree_includes_role_permissions(service: AccessService, blog, factory):
    await factory.user("alice", [("editor", "blog")])

    user = await service.get_user("alice")
    assert len(user.roles) == 1
    assert [p.id for p in user.roles[0].permissions] == ["posts:create", "posts:update"]


@pytest.mark.asyncio
async def test_reads_use_a_single_statement(service: AccessService, blog, factory, db_engine):
    await factory.user("alice", [("editor", "blog")])
    await factory.user("bob", [("editor", "blog")])
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db_engine.sync_engine, "before_cursor_execute", record)
    try:
        users = await service.get_users()
        roles = await service.get_roles()
    finally:
        event.remove(db_engine.sync_engine, "before_cursor_execute", record)

    assert len(users) == 2
    assert len(roles) == 1
    assert len(statements) == 2


@pytest.mark.asyncio
async def test_users_are_ordered_by_updated_at_then_username(
    service: AccessService,
    factory,
    session_factory,
):
    for username in ("carol", "bob", "alice"):
        await factory.user(username)

    stamps = {
        "alice": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "carol": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "bob": datetime(2024, 6, 1, tzinfo=timezone.utc),
    }
    async with session_factory() as db:
        for username, stamp in stamps.items():
            await db.execute(
                update(UserRecord)
                .where(UserRecord.username == username)
                .values(updated_at=stamp)
            )
        await db.commit()

    users = await service.get_users()
    assert [u.username for u in users] == ["bob", "alice", "carol"]


# ============ Filters ============


@pytest.mark.asyncio
async def test_role_listing_filters_by_application(service: AccessService, factory):
    await factory.app("a1")
    await factory.app("a2")
    await factory.role("r1", "a1")
    await factory.role("r2", "a2")

    scoped = await service.get_roles({"app_id": "a1"})
    assert [(r.id, r.app_id) for r in scoped] == [("r1", "a1")]

    everything = await service.get_roles({})
    assert [(r.id, r.app_id) for r in everything] == [("r1", "a1"), ("r2", "a2")]

    typed = await service.get_roles(RoleFilter(app_id="a2"))
    assert [(r.id, r.app_id) for r in typed] == [("r2", "a2")]


@pytest.mark.asyncio
async def test_unknown_role_filter_is_rejected(service: AccessService):
    with pytest.raises(MalformedInputError, match="name"):
        await service.get_roles({"name": "editor"})


# ============ Not found ============


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.get_app("nonexistent"),
        lambda s: s.get_perm("nonexistent", "blog"),
        lambda s: s.get_role("nonexistent", "blog"),
        lambda s: s.get_user("nonexistent"),
    ],
)
async def test_missing_entities_raise_not_found(service: AccessService, call):
    with pytest.raises(NotFoundError):
        await call(service)


# ============ Deletes ============


@pytest.mark.asyncio
async def test_delete_is_idempotent(service: AccessService, blog):
    await service.delete_role("nonexistent", "blog")
    await service.delete_role("editor", "blog")
    await service.delete_role("editor", "blog")

    with pytest.raises(NotFoundError):
        await service.get_role("editor", "blog")

    await service.delete_app("nonexistent")
    await service.delete_perm("nonexistent", "blog")
    await service.delete_user("nonexistent")


@pytest.mark.asyncio
async def test_deleting_application_cascades(service: AccessService, blog, factory):
    await factory.user("alice", [("editor", "blog")])

    await service.delete_app("blog")

    assert await service.get_perms() == []
    assert await service.get_roles() == []
    user = await service.get_user("alice")
    assert user.roles == []


@pytest.mark.asyncio
async def test_deleting_permission_unlinks_it_from_roles(service: AccessService, blog):
    await service.delete_perm("posts:create", "blog")

    role = await service.get_role("editor", "blog")
    assert _perm_ids(role) == {"posts:update"}


@pytest.mark.asyncio
async def test_deleting_role_unlinks_it_from_users(service: AccessService, blog, factory):
    await factory.role("viewer")
    await factory.user("alice", [("editor", "blog"), ("viewer", "blog")])

    await service.delete_role("editor", "blog")

    user = await service.get_user("alice")
    assert _role_keys(user) == {("viewer", "blog")}


@pytest.mark.asyncio
async def test_deleting_user_leaves_roles(service: AccessService, blog, factory):
    await factory.user("alice", [("editor", "blog")])

    await service.delete_user("alice")

    assert await service.get_users() == []
    assert [r.id for r in await service.get_roles()] == ["editor"]

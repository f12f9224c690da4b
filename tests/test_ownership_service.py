"""
Tests for ownership resolution against the database.
"""
from sqlalchemy import select

from app.core.authorization import Principal
from app.core.permissions import Permission, SUPER_ADMIN_PERMISSION
from app.models import Blog, Media
from app.services.ownership_service import OwnershipService


def as_principal(user, *permissions):
    return Principal(user_id=user.id, permissions=frozenset(permissions))


async def test_get_owner_id(db, make_user, make_blog):
    author = await make_user()
    blog = await make_blog(author)

    service = OwnershipService(db)
    assert await service.get_owner_id("blogs", blog.id) == author.id
    assert await service.get_owner_id("blogs", blog.id + 100) is None
    assert await service.get_owner_id("widgets", blog.id) is None


async def test_media_uses_uploader(db, make_user):
    uploader = await make_user()
    media = Media(filename="cover.png", uploaded_by_id=uploader.id)
    db.add(media)
    await db.commit()

    service = OwnershipService(db)
    assert await service.get_owner_id("media", media.id) == uploader.id
    assert await service.is_owner(as_principal(uploader), "media", media.id)


async def test_bulk_ownership_matches_input_order(db, make_user, make_blog):
    me = await make_user()
    other = await make_user()
    mine = [await make_blog(me) for _ in range(3)]
    theirs = [await make_blog(other) for _ in range(2)]

    ids = [mine[0].id, theirs[0].id, mine[1].id, theirs[1].id, mine[2].id]
    results = await OwnershipService(db).check_bulk_ownership(as_principal(me), "blogs", "delete", ids)

    assert results == [True, False, True, False, True]
    assert results.count(True) == 3
    assert results.count(False) == 2


async def test_bulk_missing_ids_are_not_owned(db, make_user, make_blog):
    me = await make_user()
    blog = await make_blog(me)

    results = await OwnershipService(db).check_bulk_ownership(
        as_principal(me), "blogs", "update", [blog.id, 9999]
    )
    assert results == [True, False]


async def test_bulk_manage_all_short_circuits(db, make_user, make_blog):
    me = await make_user()
    other = await make_user()
    blogs = [await make_blog(other) for _ in range(3)]

    results = await OwnershipService(db).check_bulk_ownership(
        as_principal(me, Permission.BLOGS_MANAGE_ALL), "blogs", "delete", [b.id for b in blogs] + [9999]
    )
    assert results == [True, True, True, True]


async def test_bulk_unknown_type_and_non_ownership_action(db, make_user, make_blog):
    me = await make_user()
    blog = await make_blog(me)
    service = OwnershipService(db)

    assert await service.check_bulk_ownership(as_principal(me), "widgets", "update", [blog.id]) == [False]
    assert await service.check_bulk_ownership(as_principal(me), "blogs", "publish", [blog.id]) == [False]
    assert await service.check_bulk_ownership(as_principal(me), "blogs", "update", []) == []


def test_is_ownership_action(db):
    service = OwnershipService(db)
    assert service.is_ownership_action("blogs", "restore")
    assert not service.is_ownership_action("comments", "restore")
    assert not service.is_ownership_action("widgets", "update")


async def test_ownership_filter_scopes_listing(db, make_user, make_blog):
    me = await make_user()
    other = await make_user()
    await make_blog(me)
    await make_blog(other)
    await make_blog(other)
    service = OwnershipService(db)

    async def visible(principal, resource_type="blogs"):
        result = await db.execute(select(Blog).where(service.ownership_filter(principal, resource_type)))
        return list(result.scalars().all())

    assert len(await visible(as_principal(me))) == 1
    assert len(await visible(as_principal(me, Permission.BLOGS_MANAGE_ALL))) == 3
    assert len(await visible(as_principal(me, SUPER_ADMIN_PERMISSION))) == 3
    assert await visible(as_principal(me, Permission.BLOGS_MANAGE_ALL), "widgets") == []

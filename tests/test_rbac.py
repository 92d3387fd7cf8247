import uuid

import pytest
from fastapi import Depends

from marketplace.core import messages
from marketplace.core.envelope import get_codec
from marketplace.core.errors import Forbidden
from marketplace.core.security import AuthContext, hash_password
from marketplace.models import User, UserRole
from marketplace.rbac.dependencies import ensure_owner, require_roles

OWNER_ID = str(uuid.uuid4())


def context(role: UserRole, user_id: str = OWNER_ID) -> AuthContext:
    return AuthContext(user_id=user_id, role=role, session_id=str(uuid.uuid4()))


async def test_require_roles_allows_listed_role():
    check = require_roles(UserRole.VENDOR, "admin")
    ctx = context(UserRole.VENDOR)
    assert await check(context=ctx) is ctx


async def test_require_roles_denies_other_roles():
    check = require_roles(UserRole.ADMIN)
    with pytest.raises(Forbidden):
        await check(context=context(UserRole.BUYER))


def test_require_roles_rejects_unknown_role_name():
    with pytest.raises(ValueError):
        require_roles("superuser")


def test_ensure_owner():
    ensure_owner(context(UserRole.BUYER), OWNER_ID)
    ensure_owner(context(UserRole.ADMIN, user_id=str(uuid.uuid4())), OWNER_ID)
    with pytest.raises(Forbidden):
        ensure_owner(context(UserRole.VENDOR, user_id=str(uuid.uuid4())), OWNER_ID)


@pytest.fixture
def guarded_app(app):
    @app.get("/api/vendor-only", dependencies=[Depends(require_roles(UserRole.VENDOR))])
    async def vendor_only():
        return {"ok": True}

    @app.get("/api/admin-only")
    async def admin_only(ctx: AuthContext = Depends(require_roles(UserRole.ADMIN))):
        return {"userId": ctx.user_id}

    return app


def _login(client, email, password="Secret@123"):
    response = client.post("/api/user/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return get_codec().unseal(response.json()["data"])["accessToken"]


def _create_admin(client, session_factory):
    async def insert():
        async with session_factory() as db:
            admin = User(
                name="Root Admin",
                email="root@marketplace.io",
                password_hash=hash_password("Secret@123"),
                phone_number="9000000000",
                role=UserRole.ADMIN,
                linked_devices=[],
            )
            db.add(admin)
            await db.commit()
            return str(admin.id)

    return client.portal.call(insert)


def test_role_guard_over_http(guarded_app, client, session_factory):
    signed_up = client.post(
        "/api/user/signup",
        json={
            "name": "Asha Rao",
            "email": "asha@marketplace.io",
            "password": "Secret@123",
            "phoneNumber": "9876543210",
            "role": "vendor",
        },
    )
    assert signed_up.status_code == 201
    admin_id = _create_admin(client, session_factory)
    vendor = {"Authorization": f"Bearer {_login(client, 'asha@marketplace.io')}"}
    admin = {"Authorization": f"Bearer {_login(client, 'root@marketplace.io')}"}

    assert client.get("/api/vendor-only", headers=vendor).json() == {"ok": True}
    assert client.get("/api/admin-only", headers=admin).json() == {"userId": admin_id}

    denied = client.get("/api/admin-only", headers=vendor)
    assert denied.status_code == 403
    assert denied.json()["message"] == messages.ERROR.FORBIDDEN

    assert client.get("/api/vendor-only").status_code == 401

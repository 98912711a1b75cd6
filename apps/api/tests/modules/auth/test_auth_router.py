"""
End-to-end tests for login and the admin self-service endpoints.

These go through the HTTP layer so token scoping (full access vs. the
limited status token) is exercised the way clients see it.
"""

import pytest

from app.core.security import hash_password
from app.modules.super_admins.models import SuperAdmin

API = "/api/v1"
PASSWORD = "Str0ng!Pass"
REAPPLY_REASON = "I have now attached the committee letter confirming my appointment as imam."


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _register(client, mosque, email="bilal@example.com", phone="+923001112233"):
    return await client.post(
        f"{API}/admins/register",
        json={
            "mosque_id": str(mosque.id),
            "verification_code": mosque.verification_code,
            "name": "Bilal Ahmed",
            "email": email,
            "phone": phone,
            "password": PASSWORD,
        },
    )


async def _login(client, email="bilal@example.com", password=PASSWORD, mosque_code=None):
    body = {"email": email, "password": password}
    if mosque_code is not None:
        body["mosque_code"] = mosque_code
    return await client.post(f"{API}/auth/admin/login", json=body)


# ============================================
# Registration
# ============================================


class TestRegistrationEndpoint:
    @pytest.mark.asyncio
    async def test_register_returns_pending_admin(self, client, make_mosque):
        mosque = await make_mosque()

        response = await _register(client, mosque)

        assert response.status_code == 201
        body = response.json()
        assert body["admin"]["status"] == "pending"
        assert body["admin"]["mosque_id"] == str(mosque.id)
        assert "password" not in body["admin"]

    @pytest.mark.asyncio
    async def test_register_with_wrong_code(self, client, make_mosque):
        mosque = await make_mosque()

        response = await client.post(
            f"{API}/admins/register",
            json={
                "mosque_id": str(mosque.id),
                "verification_code": "0000000000000000",
                "name": "Bilal Ahmed",
                "email": "bilal@example.com",
                "phone": "+923001112233",
                "password": PASSWORD,
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_CODE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,value",
        [
            ("phone", "03001112233"),
            ("name", "B1lal"),
            ("password", "weakpassword"),
        ],
    )
    async def test_register_validates_input(self, client, make_mosque, field, value):
        mosque = await make_mosque()
        payload = {
            "mosque_id": str(mosque.id),
            "verification_code": mosque.verification_code,
            "name": "Bilal Ahmed",
            "email": "bilal@example.com",
            "phone": "+923001112233",
            "password": PASSWORD,
        }
        payload[field] = value

        response = await client.post(f"{API}/admins/register", json=payload)

        assert response.status_code == 422


# ============================================
# Login
# ============================================


class TestAdminLoginEndpoint:
    @pytest.mark.asyncio
    async def test_invalid_credentials_are_indistinguishable(self, client, make_mosque):
        mosque = await make_mosque()
        await _register(client, mosque)

        unknown = await _login(client, email="nobody@example.com")
        wrong = await _login(client, password="Wr0ng!Pass")

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    @pytest.mark.asyncio
    async def test_pending_login_gets_limited_token(self, client, make_mosque):
        mosque = await make_mosque()
        await _register(client, mosque)

        response = await _login(client)

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "PENDING_APPROVAL"
        assert body["status"] == "pending"
        token = body["status_token"]

        me = await client.get(f"{API}/admins/me", headers=_bearer(token))
        assert me.status_code == 200
        assert me.json()["admin"]["details"]["status"] == "pending"

        mosque_view = await client.get(f"{API}/admins/me/mosque", headers=_bearer(token))
        assert mosque_view.status_code == 403
        assert mosque_view.json()["detail"]["error"] == "FULL_ACCESS_REQUIRED"

    @pytest.mark.asyncio
    async def test_login_is_rate_limited_per_email(self, client):
        for _ in range(10):
            response = await _login(client, email="nobody@example.com")
            assert response.status_code == 401

        response = await _login(client, email="nobody@example.com")

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "RATE_LIMIT_EXCEEDED"

    @pytest.mark.asyncio
    async def test_super_admin_token_cannot_use_admin_endpoints(
        self, client, super_admin_headers
    ):
        response = await client.get(f"{API}/admins/me", headers=super_admin_headers)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "MOSQUE_ADMIN_ACCESS_REQUIRED"

    @pytest.mark.asyncio
    async def test_garbage_token_is_unauthorized(self, client):
        response = await client.get(f"{API}/admins/me", headers=_bearer("not-a-jwt"))

        assert response.status_code == 401


class TestSuperAdminLogin:
    @pytest.mark.asyncio
    async def test_super_admin_login(self, client, db):
        db.add(
            SuperAdmin(
                email="root@example.com",
                name="Root Admin",
                password_hash=hash_password("R00t!Password"),
            )
        )
        await db.commit()

        response = await client.post(
            f"{API}/auth/super-admin/login",
            json={"email": "root@example.com", "password": "R00t!Password"},
        )

        assert response.status_code == 200
        token = response.json()["access_token"]
        listing = await client.get(f"{API}/admin/admins", headers=_bearer(token))
        assert listing.status_code == 200

    @pytest.mark.asyncio
    async def test_inactive_super_admin(self, client, db):
        db.add(
            SuperAdmin(
                email="old@example.com",
                name="Old Admin",
                password_hash=hash_password("R00t!Password"),
                is_active=False,
            )
        )
        await db.commit()

        response = await client.post(
            f"{API}/auth/super-admin/login",
            json={"email": "old@example.com", "password": "R00t!Password"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ACCOUNT_INACTIVE"


# ============================================
# Full lifecycle over HTTP
# ============================================


class TestLifecycleOverHttp:
    @pytest.mark.asyncio
    async def test_approve_regenerate_and_reverify(
        self, client, make_mosque, super_admin_headers
    ):
        mosque = await make_mosque(name="Masjid Noor")
        registered = await _register(client, mosque)
        admin_id = registered.json()["admin"]["id"]

        approve = await client.post(
            f"{API}/admin/admins/{admin_id}/approve", headers=super_admin_headers
        )
        assert approve.status_code == 200
        assert approve.json()["status"] == "approved"

        login = await _login(client)
        assert login.status_code == 200
        access_token = login.json()["access_token"]
        assert login.json()["mosque_name"] == "Masjid Noor"

        managed = await client.get(f"{API}/admins/me/mosque", headers=_bearer(access_token))
        assert managed.status_code == 200
        assert managed.json()["mosque"]["name"] == "Masjid Noor"

        regen = await client.post(
            f"{API}/admin/mosques/{mosque.id}/regenerate-code", headers=super_admin_headers
        )
        assert regen.status_code == 200
        new_code = regen.json()["new_code"]
        assert regen.json()["affected_admin"]["id"] == admin_id

        # The old full-access token no longer reaches the mosque
        revoked = await client.get(f"{API}/admins/me/mosque", headers=_bearer(access_token))
        assert revoked.status_code == 403
        assert revoked.json()["detail"]["error"] == "ACCESS_REVOKED"

        denied = await _login(client)
        assert denied.status_code == 403
        assert denied.json()["error"] == "CODE_REGENERATED_NEEDS_CODE"
        status_token = denied.json()["status_token"]

        me = await client.get(f"{API}/admins/me", headers=_bearer(status_token))
        assert me.json()["needs_new_code"] is True

        reverify = await client.post(
            f"{API}/admins/me/reverify",
            headers=_bearer(status_token),
            json={"verification_code": new_code},
        )
        assert reverify.status_code == 200

        relogin = await _login(client)
        assert relogin.status_code == 200

    @pytest.mark.asyncio
    async def test_reject_then_reapply(self, client, make_mosque, super_admin_headers):
        mosque = await make_mosque()
        registered = await _register(client, mosque)
        admin_id = registered.json()["admin"]["id"]

        reject = await client.post(
            f"{API}/admin/admins/{admin_id}/reject",
            headers=super_admin_headers,
            json={"reason": "Documents could not be verified"},
        )
        assert reject.status_code == 200
        assert reject.json()["rejection_count"] == 1

        denied = await _login(client)
        assert denied.json()["error"] == "ACCOUNT_REJECTED"
        status_token = denied.json()["status_token"]

        reapply = await client.post(
            f"{API}/admins/me/reapply",
            headers=_bearer(status_token),
            json={
                "mosque_id": str(mosque.id),
                "verification_code": mosque.verification_code,
                "reason_for_reapplication": REAPPLY_REASON,
            },
        )
        assert reapply.status_code == 200
        body = reapply.json()
        assert body["status"] == "pending"
        assert body["details"]["is_reapplication"] is True

        again = await _login(client)
        assert again.json()["error"] == "PENDING_APPROVAL"

    @pytest.mark.asyncio
    async def test_reapply_reason_too_short(self, client, make_mosque, super_admin_headers):
        mosque = await make_mosque()
        registered = await _register(client, mosque)
        admin_id = registered.json()["admin"]["id"]
        await client.post(
            f"{API}/admin/admins/{admin_id}/reject",
            headers=super_admin_headers,
            json={"reason": "Documents could not be verified"},
        )
        status_token = (await _login(client)).json()["status_token"]

        response = await client.post(
            f"{API}/admins/me/reapply",
            headers=_bearer(status_token),
            json={
                "mosque_id": str(mosque.id),
                "verification_code": mosque.verification_code,
                "reason_for_reapplication": "Please",
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_mosque_deleted_token_is_limited(
        self, client, make_mosque, super_admin_headers
    ):
        mosque = await make_mosque(name="Masjid Noor")
        registered = await _register(client, mosque)
        admin_id = registered.json()["admin"]["id"]
        await client.post(f"{API}/admin/admins/{admin_id}/approve", headers=super_admin_headers)

        deleted = await client.request(
            "DELETE",
            f"{API}/admin/mosques/{mosque.id}",
            headers=super_admin_headers,
            json={"reason": "Mosque merged"},
        )
        assert deleted.status_code == 200

        denied = await _login(client)
        assert denied.status_code == 403
        assert denied.json()["error"] == "MOSQUE_DELETED"
        status_token = denied.json()["status_token"]

        me = await client.get(f"{API}/admins/me", headers=_bearer(status_token))
        assert me.status_code == 200
        assert me.json()["admin"]["details"]["status"] == "mosque_deleted"

        mosque_view = await client.get(f"{API}/admins/me/mosque", headers=_bearer(status_token))
        assert mosque_view.status_code == 403
        assert mosque_view.json()["detail"]["error"] == "FULL_ACCESS_REQUIRED"

        listing = await client.get(f"{API}/admin/admins", headers=_bearer(status_token))
        assert listing.status_code == 403

"""
Tests for instance access control.

Covers:
- Listing returns exactly the caller's grants
- 403 before 404 on instance detail
- Grant management permissions (system admin, organization admin, others)
- Cascades when users are deleted
"""

from __future__ import annotations

import pytest

from app.scripts.seed import GRANTS, INSTANCES, MES_INSTANCES


def _expected_grants(email: str) -> dict[str, str]:
    return {name: level.value for who, name, level, _ in GRANTS if who == email}


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListInstances:
    async def test_system_admin_sees_everything_with_both(self, client, auth_headers):
        response = await client.get("/api/instances", headers=auth_headers("admin@system.com"))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["count"] == 7
        assert [i["name"] for i in data["instances"]] == [name for name, _ in INSTANCES]
        assert {i["accessLevel"] for i in data["instances"]} == {"both"}

    async def test_mes_user_sees_mes_instances_as_web_user(self, client, auth_headers):
        response = await client.get("/api/instances", headers=auth_headers("user@mes.dev"))
        data = response.json()["data"]
        assert data["count"] == 5
        assert sorted(i["name"] for i in data["instances"]) == sorted(MES_INSTANCES)
        for instance in data["instances"]:
            assert instance["accessLevel"] == "web_user"
            assert instance["ownerOrganization"]["acronym"] == "MES"
            assert instance["ownerOrganization"]["name"] == "McMaster Engineering Society"

    @pytest.mark.parametrize(
        "email",
        [
            "admin@mes.dev",
            "admin@cfes.dev",
            "admin@cale.dev",
            "admin@fireball.dev",
            "admin@natsurvey.dev",
            "admin@cale2026.dev",
            "user@cfes.dev",
            "user@cale.dev",
        ],
    )
    async def test_listing_equals_grant_set(self, client, auth_headers, email):
        response = await client.get("/api/instances", headers=auth_headers(email))
        data = response.json()["data"]
        listed = {i["name"]: i["accessLevel"] for i in data["instances"]}
        assert listed == _expected_grants(email)
        assert data["count"] == len(listed)

    async def test_membership_alone_grants_nothing(self, app, client, seeded, auth_headers):
        """A member of MES with no grants sees no MES instances."""
        from app.models.user_org import UserOrganization
        from app.services.users import create_user

        async with app.state.db.session() as session:
            user = await create_user("member@mes.dev", session)
            session.add(
                UserOrganization(user_id=user.id, organization_id=seeded["organizations"]["MES"])
            )
        seeded["users"]["member@mes.dev"] = user.id

        headers = auth_headers("member@mes.dev")
        response = await client.get("/api/instances", headers=headers)
        assert response.json()["data"] == {"instances": [], "count": 0}

        mes_dashboard = seeded["instances"]["MES Dashboard"]
        detail = await client.get(f"/api/instances/{mes_dashboard}", headers=headers)
        assert detail.status_code == 403

    async def test_requires_authentication(self, client, seeded):
        response = await client.get("/api/instances")
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------------

class TestGetInstance:
    async def test_granted_instance(self, client, seeded, auth_headers):
        fireball = seeded["instances"]["Fireball"]
        response = await client.get(
            f"/api/instances/{fireball}", headers=auth_headers("admin@fireball.dev")
        )
        assert response.status_code == 200
        instance = response.json()["data"]["instance"]
        assert instance == {
            "id": fireball,
            "name": "Fireball",
            "accessLevel": "web_admin",
            "ownerOrganization": {
                "id": seeded["organizations"]["MES"],
                "name": "McMaster Engineering Society",
                "acronym": "MES",
            },
        }

    async def test_existing_instance_without_grant_is_forbidden(self, client, seeded, auth_headers):
        toga = seeded["instances"]["Toga"]
        response = await client.get(
            f"/api/instances/{toga}", headers=auth_headers("admin@fireball.dev")
        )
        assert response.status_code == 403
        assert response.json()["error"] == {
            "message": "Access denied to this instance",
            "code": "FORBIDDEN",
        }

    @pytest.mark.parametrize("email", ["user@mes.dev", "admin@system.com"])
    async def test_nonexistent_instance_is_forbidden_not_missing(self, client, auth_headers, email):
        response = await client.get("/api/instances/99999", headers=auth_headers(email))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.parametrize("numeric_id", ["0", "-3"])
    async def test_non_positive_id_is_forbidden(self, client, auth_headers, numeric_id):
        response = await client.get(
            f"/api/instances/{numeric_id}", headers=auth_headers("user@mes.dev")
        )
        assert response.status_code == 403
        assert response.json()["error"] == {
            "message": "Access denied to this instance",
            "code": "FORBIDDEN",
        }

    @pytest.mark.parametrize("bad_id", ["abc", "1.5", "12abc"])
    async def test_invalid_id(self, client, auth_headers, bad_id):
        response = await client.get(f"/api/instances/{bad_id}", headers=auth_headers("user@mes.dev"))
        assert response.status_code == 400
        assert response.json()["error"] == {
            "message": "Invalid instance ID",
            "code": "VALIDATION_ERROR",
        }


# ---------------------------------------------------------------------------
# Grant management
# ---------------------------------------------------------------------------

class TestAccessGrants:
    async def test_org_admin_lists_grants(self, client, seeded, auth_headers):
        fireball = seeded["instances"]["Fireball"]
        response = await client.get(
            f"/api/instances/{fireball}/access", headers=auth_headers("admin@mes.dev")
        )
        assert response.status_code == 200
        data = response.json()["data"]
        emails = {g["email"] for g in data["grants"]}
        assert emails == {"admin@system.com", "admin@mes.dev", "admin@fireball.dev", "user@mes.dev"}
        assert data["count"] == 4
        fireball_admin = next(g for g in data["grants"] if g["email"] == "admin@fireball.dev")
        assert fireball_admin["accessLevel"] == "web_admin"
        assert fireball_admin["grantedBy"] == seeded["users"]["admin@mes.dev"]

    async def test_org_admin_grants_to_member(self, client, seeded, auth_headers):
        toga = seeded["instances"]["Toga"]
        fireball_admin = seeded["users"]["admin@fireball.dev"]
        response = await client.post(
            f"/api/instances/{toga}/access",
            json={"userId": fireball_admin, "accessLevel": "web_user"},
            headers=auth_headers("admin@mes.dev"),
        )
        assert response.status_code == 200
        grant = response.json()["data"]["grant"]
        assert grant["userId"] == fireball_admin
        assert grant["instanceId"] == toga
        assert grant["accessLevel"] == "web_user"
        assert grant["grantedBy"] == seeded["users"]["admin@mes.dev"]

        listing = await client.get("/api/instances", headers=auth_headers("admin@fireball.dev"))
        listed = {i["name"]: i["accessLevel"] for i in listing.json()["data"]["instances"]}
        assert listed == {"Fireball": "web_admin", "Toga": "web_user"}

    async def test_org_admin_cannot_grant_outside_pool(self, client, seeded, auth_headers):
        toga = seeded["instances"]["Toga"]
        response = await client.post(
            f"/api/instances/{toga}/access",
            json={"userId": seeded["users"]["user@cfes.dev"], "accessLevel": "web_user"},
            headers=auth_headers("admin@mes.dev"),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_system_admin_grants_to_anyone(self, client, seeded, auth_headers):
        toga = seeded["instances"]["Toga"]
        response = await client.post(
            f"/api/instances/{toga}/access",
            json={"userId": seeded["users"]["user@cfes.dev"], "accessLevel": "both"},
            headers=auth_headers("admin@system.com"),
        )
        assert response.status_code == 200
        assert response.json()["data"]["grant"]["accessLevel"] == "both"

    async def test_duplicate_grant_conflicts(self, client, seeded, auth_headers):
        fireball = seeded["instances"]["Fireball"]
        response = await client.post(
            f"/api/instances/{fireball}/access",
            json={"userId": seeded["users"]["user@mes.dev"], "accessLevel": "web_admin"},
            headers=auth_headers("admin@mes.dev"),
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

        # The existing grant is untouched
        listing = await client.get("/api/instances", headers=auth_headers("user@mes.dev"))
        levels = {i["accessLevel"] for i in listing.json()["data"]["instances"]}
        assert levels == {"web_user"}

    async def test_unknown_grantee(self, client, seeded, auth_headers):
        fireball = seeded["instances"]["Fireball"]
        response = await client.post(
            f"/api/instances/{fireball}/access",
            json={"userId": 99999, "accessLevel": "web_user"},
            headers=auth_headers("admin@system.com"),
        )
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "User not found"

    async def test_invalid_access_level(self, client, seeded, auth_headers):
        fireball = seeded["instances"]["Fireball"]
        response = await client.post(
            f"/api/instances/{fireball}/access",
            json={"userId": seeded["users"]["user@mes.dev"], "accessLevel": "none"},
            headers=auth_headers("admin@system.com"),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize("email", ["admin@fireball.dev", "user@mes.dev", "admin@cfes.dev"])
    async def test_non_managers_are_forbidden(self, client, seeded, auth_headers, email):
        fireball = seeded["instances"]["Fireball"]
        headers = auth_headers(email)

        listing = await client.get(f"/api/instances/{fireball}/access", headers=headers)
        assert listing.status_code == 403

        grant = await client.post(
            f"/api/instances/{fireball}/access",
            json={"userId": seeded["users"]["admin@toga.dev"], "accessLevel": "web_user"},
            headers=headers,
        )
        assert grant.status_code == 403

        revoke = await client.delete(
            f"/api/instances/{fireball}/access/{seeded['users']['user@mes.dev']}",
            headers=headers,
        )
        assert revoke.status_code == 403

    async def test_unknown_instance_for_org_admin_is_forbidden(self, client, seeded, auth_headers):
        response = await client.get("/api/instances/99999/access", headers=auth_headers("admin@mes.dev"))
        assert response.status_code == 403

    async def test_unknown_instance_for_system_admin_is_missing(self, client, seeded, auth_headers):
        response = await client.get(
            "/api/instances/99999/access", headers=auth_headers("admin@system.com")
        )
        assert response.status_code == 404

    async def test_revoke(self, client, seeded, auth_headers):
        grad = seeded["instances"]["Grad"]
        mes_user = seeded["users"]["user@mes.dev"]
        response = await client.delete(
            f"/api/instances/{grad}/access/{mes_user}", headers=auth_headers("admin@mes.dev")
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["message"] == "Access revoked successfully"
        assert data["grant"]["userId"] == mes_user
        assert data["grant"]["accessLevel"] == "web_user"

        detail = await client.get(f"/api/instances/{grad}", headers=auth_headers("user@mes.dev"))
        assert detail.status_code == 403

        again = await client.delete(
            f"/api/instances/{grad}/access/{mes_user}", headers=auth_headers("admin@mes.dev")
        )
        assert again.status_code == 404
        assert again.json()["error"]["message"] == "Access grant not found"

    async def test_revoke_invalid_user_id(self, client, seeded, auth_headers):
        grad = seeded["instances"]["Grad"]
        response = await client.delete(
            f"/api/instances/{grad}/access/abc", headers=auth_headers("admin@mes.dev")
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid user ID"


# ---------------------------------------------------------------------------
# Cascades
# ---------------------------------------------------------------------------

class TestCascades:
    async def test_deleting_user_removes_their_grants(self, client, seeded, auth_headers):
        admin = auth_headers("admin@system.com")
        fireball = seeded["instances"]["Fireball"]

        response = await client.delete(
            f"/api/users/{seeded['users']['admin@fireball.dev']}", headers=admin
        )
        assert response.status_code == 200

        listing = await client.get(f"/api/instances/{fireball}/access", headers=admin)
        emails = {g["email"] for g in listing.json()["data"]["grants"]}
        assert "admin@fireball.dev" not in emails

    async def test_deleting_granter_keeps_grants(self, client, seeded, auth_headers):
        admin = auth_headers("admin@system.com")
        toga = seeded["instances"]["Toga"]

        await client.delete(f"/api/users/{seeded['users']['admin@mes.dev']}", headers=admin)

        listing = await client.get(f"/api/instances/{toga}/access", headers=admin)
        toga_admin = next(
            g for g in listing.json()["data"]["grants"] if g["email"] == "admin@toga.dev"
        )
        assert toga_admin["grantedBy"] is None

"""
API tests: status-code mapping, body parsing and the main flows over HTTP
"""

import uuid

from keystone.core.config import get_settings

settings = get_settings()
API = settings.API_V1_PREFIX
PASSWORD = "password123"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------

def test_sign_in_json_sets_cookie(client, org):
    """JSON sign-in returns the token and sets the session cookie"""
    response = client.post(
        f"{API}/auth/sign-in",
        json={"tenant_id": str(org.tenant.id), "email": "u1@acme-trading.com", "password": PASSWORD},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == str(org.u1.id)
    assert client.cookies.get(settings.SESSION_COOKIE) == body["token"]

    me = client.get(f"{API}/auth/me", params={"tenant_id": str(org.tenant.id)})
    assert me.status_code == 200
    assert me.json()["level"] == "MEMBER"
    assert me.json()["previewing"] is False


def test_sign_in_form(client, org):
    response = client.post(
        f"{API}/auth/sign-in",
        data={"tenant_id": str(org.tenant.id), "email": "M1@Acme-Trading.com", "password": PASSWORD},
    )
    assert response.status_code == 200
    assert response.json()["user_id"] == str(org.m1.id)


def test_sign_in_wrong_password(client, org):
    response = client.post(
        f"{API}/auth/sign-in",
        json={"tenant_id": str(org.tenant.id), "email": "u1@acme-trading.com", "password": "nope"},
    )
    assert response.status_code == 401
    assert response.json() == {"error": "unauthenticated"}


def test_me_requires_actor(client, org):
    response = client.get(f"{API}/auth/me")
    assert response.status_code == 401


def test_sign_out_revokes(client, org, auth_headers):
    headers = auth_headers(org.u2)
    response = client.post(f"{API}/auth/sign-out", headers=headers)
    assert response.status_code == 200
    assert response.json()["revoked"] is True

    assert client.get(f"{API}/auth/me", headers=headers).status_code == 401


def test_preview_flow(client, org, platform_admin):
    """Operator previews as a member, then drops the preview"""
    client.post(
        f"{API}/auth/sign-in",
        json={"tenant_id": str(org.tenant.id), "email": "admin@keystone-platform.com", "password": PASSWORD},
    )

    response = client.post(f"{API}/auth/preview", json={"user_id": str(org.u1.id)})
    assert response.status_code == 200

    me = client.get(f"{API}/auth/me", params={"tenant_id": str(org.tenant.id)}).json()
    assert me["user_id"] == str(org.u1.id)
    assert me["level"] == "MEMBER"
    assert me["previewing"] is True

    client.delete(f"{API}/auth/preview")
    me = client.get(f"{API}/auth/me").json()
    assert me["user_id"] == str(platform_admin.id)
    assert me["platform_level"] == "PLATFORM_ADMIN"


def test_preview_requires_platform_level(client, org, auth_headers):
    response = client.post(
        f"{API}/auth/preview",
        json={"user_id": str(org.u1.id)},
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 403
    assert response.json()["reason"] == "no_role"


# ----------------------------------------------------------------------
# Access and config
# ----------------------------------------------------------------------

def test_access_check(client, org, auth_headers, set_override):
    set_override(org.tenant, org.u2, "inventory", False)

    allowed = client.get(f"{API}/tenants/{org.tenant.id}/access/inventory", headers=auth_headers(org.u1))
    assert allowed.json() == {"module_key": "inventory", "allowed": True, "reason": "tenant_default"}

    denied = client.get(f"{API}/tenants/{org.tenant.id}/access/inventory", headers=auth_headers(org.u2))
    assert denied.json()["reason"] == "user_override"

    disabled = client.get(f"{API}/tenants/{org.tenant.id}/access/invoices", headers=auth_headers(org.owner))
    assert disabled.json()["reason"] == "module_disabled"


def test_anonymous_access_check(client, org):
    response = client.get(f"{API}/tenants/{org.tenant.id}/access/inventory")
    assert response.status_code == 200
    assert response.json()["reason"] == "no_role"


def test_access_list(client, org, auth_headers):
    response = client.get(f"{API}/tenants/{org.tenant.id}/access", headers=auth_headers(org.m1))
    decisions = {item["module_key"]: item for item in response.json()}
    assert decisions["inventory"]["allowed"]
    assert not decisions["reports"]["allowed"]


def test_module_config(client, make_tenant):
    tenant = make_tenant("Cedar Pharmacy", industry="pharmacy")
    response = client.get(f"{API}/tenants/{tenant.id}/config/inventory")
    assert response.status_code == 200
    assert response.json()["pickingPolicy"] == "FEFO"

    missing = client.get(f"{API}/tenants/{uuid.uuid4()}/config/inventory")
    assert missing.status_code == 404
    assert missing.json() == {"error": "not_found", "resource": "tenant"}


# ----------------------------------------------------------------------
# Members
# ----------------------------------------------------------------------

def test_deactivate_manager_over_http(client, db, repo, org, auth_headers):
    """Deactivating a manager hands the reports to the owner"""
    response = client.patch(
        f"{API}/tenants/{org.tenant.id}/members/{org.m1.id}",
        json={"is_active": False},
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 200
    assert response.json()["reassigned_count"] == 2
    assert response.json()["membership"]["is_active"] is False

    db.expire_all()
    assert repo.get_membership(org.tenant.id, org.u1.id).supervisor_id == org.owner.id


def test_form_post_update(client, db, repo, org, auth_headers):
    response = client.post(
        f"{API}/tenants/{org.tenant.id}/members/{org.u1.id}",
        data={"supervisor_id": str(org.m2.id), "name": "Member Uno"},
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 200
    assert response.json()["membership"]["supervisor_id"] == str(org.m2.id)

    db.expire_all()
    assert repo.get_user(org.u1.id).name == "Member Uno"


def test_form_blank_supervisor_is_rejected(client, org, auth_headers):
    response = client.post(
        f"{API}/tenants/{org.tenant.id}/members/{org.u1.id}",
        data={"supervisor_id": ""},
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 409
    assert response.json() == {"error": "invariant_violation", "invariant": "supervisor_required"}


def test_form_intent_delete(client, db, repo, org, auth_headers):
    u3_id = org.u3.id
    response = client.post(
        f"{API}/tenants/{org.tenant.id}/members/{u3_id}",
        data={"intent": "delete"},
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 200
    assert response.json() == {"user_id": str(u3_id), "reassigned_count": 0}

    db.expire_all()
    assert repo.get_user(u3_id) is None


def test_delete_owner_is_conflict(client, org, platform_admin, auth_headers):
    response = client.delete(
        f"{API}/tenants/{org.tenant.id}/members/{org.owner.id}",
        headers=auth_headers(platform_admin),
    )
    assert response.status_code == 409
    assert response.json()["invariant"] == "single_owner"


def test_owner_cannot_delete_platform_admin(client, org, platform_admin, auth_headers):
    response = client.delete(
        f"{API}/tenants/{org.tenant.id}/members/{platform_admin.id}",
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 403
    assert response.json() == {"error": "forbidden", "reason": "no_role"}


def test_member_mutation_status_codes(client, org, platform_admin, auth_headers):
    url = f"{API}/tenants/{org.tenant.id}/members/{org.u1.id}"

    assert client.patch(url, json={"is_active": False}).status_code == 401

    forbidden = client.patch(url, json={"is_active": False}, headers=auth_headers(org.m1))
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "forbidden", "reason": "no_role"}

    self_edit = client.patch(
        f"{API}/tenants/{org.tenant.id}/members/{org.owner.id}",
        json={"name": "Me"},
        headers=auth_headers(org.owner),
    )
    assert self_edit.status_code == 403

    missing = client.patch(
        f"{API}/tenants/{uuid.uuid4()}/members/{org.u1.id}",
        json={"is_active": False},
        headers=auth_headers(platform_admin),
    )
    assert missing.status_code == 404
    assert missing.json()["resource"] == "tenant"


def test_unsupported_content_type(client, org, auth_headers):
    response = client.patch(
        f"{API}/tenants/{org.tenant.id}/members/{org.u1.id}",
        content="is_active=false",
        headers={**auth_headers(org.owner), "Content-Type": "text/plain"},
    )
    assert response.status_code == 415
    assert response.json() == {"error": "unsupported_content_type"}


def test_invalid_command(client, org, auth_headers):
    response = client.patch(
        f"{API}/tenants/{org.tenant.id}/members/{org.u1.id}",
        json={"rank": "EMPEROR"},
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "invalid_command"
    assert body["detail"][0]["loc"] == ["rank"]


def test_create_member(client, org, auth_headers):
    response = client.post(
        f"{API}/tenants/{org.tenant.id}/members",
        json={
            "name": "New Hire",
            "email": "hire@acme-trading.com",
            "password": PASSWORD,
            "supervisor_id": str(org.m2.id),
        },
        headers=auth_headers(org.owner),
    )
    assert response.status_code == 201
    assert response.json()["membership"]["rank"] == "MEMBER"

    duplicate = client.post(
        f"{API}/tenants/{org.tenant.id}/members",
        json={
            "name": "New Hire",
            "email": "hire@acme-trading.com",
            "password": PASSWORD,
            "supervisor_id": str(org.m2.id),
        },
        headers=auth_headers(org.owner),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["invariant"] == "unique_email"


def test_assign_supervisor_and_transfer(client, db, repo, org, auth_headers):
    headers = auth_headers(org.owner)

    response = client.post(
        f"{API}/tenants/{org.tenant.id}/members/{org.u2.id}/supervisor",
        json={"supervisor_id": str(org.m2.id)},
        headers=headers,
    )
    assert response.status_code == 200

    response = client.post(
        f"{API}/tenants/{org.tenant.id}/ownership",
        json={"new_owner_id": str(org.m2.id)},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["reassigned_count"] == 2
    assert response.json()["membership"]["rank"] == "TENANT_OWNER"

    db.expire_all()
    assert repo.count_active_owners(org.tenant.id) == 1


# ----------------------------------------------------------------------
# Platform admin
# ----------------------------------------------------------------------

def test_admin_creates_tenant(client, org, platform_admin, auth_headers):
    payload = {
        "name": "Forge Works",
        "industry": "factory",
        "owner_name": "Forge Owner",
        "owner_email": "owner@forge-works.com",
        "owner_password": PASSWORD,
    }
    forbidden = client.post(f"{API}/admin/tenants", json=payload, headers=auth_headers(org.owner))
    assert forbidden.status_code == 403

    response = client.post(f"{API}/admin/tenants", json=payload, headers=auth_headers(platform_admin))
    assert response.status_code == 201
    tenant_id = response.json()["tenant"]["id"]

    config = client.get(f"{API}/tenants/{tenant_id}/config/subtenants")
    assert config.json() == {"max": 5}


def test_admin_entitlements(client, org, platform_admin, auth_headers):
    headers = auth_headers(platform_admin)
    url = f"{API}/admin/tenants/{org.tenant.id}/entitlements"

    response = client.patch(url, json={"module_key": "inventory", "limits": {"maxSkus": 5}}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"module_key": "inventory", "is_enabled": True, "limits": {"maxSkus": 5}}

    # Blank limits in a form post clears them
    response = client.patch(url, data={"module_key": "inventory", "limits": ""}, headers=headers)
    assert response.json()["limits"] is None

    listing = client.get(url, headers=headers).json()
    items = {item["module_key"]: item for item in listing["items"]}
    assert items["inventory"]["is_enabled"]

    unknown = client.patch(url, json={"module_key": "payroll", "is_enabled": True}, headers=headers)
    assert unknown.status_code == 404
    assert unknown.json()["resource"] == "module"


def test_admin_user_override_and_audit(client, org, platform_admin, auth_headers):
    headers = auth_headers(platform_admin)
    response = client.post(
        f"{API}/admin/tenants/{org.tenant.id}/users/{org.u1.id}/entitlements",
        data={"module_key": "inventory", "is_enabled": "false"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["is_enabled"] is False

    audit = client.get(f"{API}/admin/tenants/{org.tenant.id}/audit", headers=headers)
    assert audit.status_code == 200
    assert audit.json()[0]["action"] == "user.entitlement.update"


def test_admin_platform_roles(client, org, platform_admin, auth_headers):
    headers = auth_headers(platform_admin)
    response = client.post(
        f"{API}/admin/platform-roles",
        json={"user_id": str(org.m1.id), "role": "platform_admin", "action": "grant"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["changed"] is True

    escalate = client.post(
        f"{API}/admin/platform-roles",
        json={"user_id": str(org.m1.id), "role": "SUPER_ADMIN", "action": "grant"},
        headers=headers,
    )
    assert escalate.status_code == 403


def test_admin_tenant_status(client, org, platform_admin, auth_headers):
    response = client.patch(
        f"{API}/admin/tenants/{org.tenant.id}/status",
        json={"status": "SUSPENDED"},
        headers=auth_headers(platform_admin),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "SUSPENDED"

"""Tests for the permission endpoints and editor sessions over HTTP."""

from httpx import AsyncClient


ADMIN = {"X-Actor-Id": "u-admin"}


async def open_job_editor(client: AsyncClient, job_id: int, **body) -> dict:
    response = await client.post(f"/permissions/editors/jobs/{job_id}", json=body or None)
    assert response.status_code == 201
    return response.json()


async def open_user_editor(client: AsyncClient, user_id: str, **body) -> dict:
    response = await client.post(f"/permissions/editors/users/{user_id}", json=body or None)
    assert response.status_code == 201
    return response.json()


class TestStoredPermissions:
    """Test reading stored rows."""

    async def test_job_rows(self, client: AsyncClient, seeded):
        response = await client.get("/permissions/jobs/1")
        assert response.status_code == 200
        rows = response.json()["rows"]
        assert len(rows) == 3
        assert rows[0]["service_id"] == 1
        assert rows[0]["sub_service_id"] is None

    async def test_missing_job(self, client: AsyncClient, seeded):
        response = await client.get("/permissions/jobs/99")
        assert response.status_code == 404

    async def test_user_rows(self, client: AsyncClient, seeded):
        response = await client.get("/permissions/users/u-1")
        assert response.status_code == 200
        data = response.json()
        assert data["job_id"] == 1
        assert len(data["job_rows"]) == 3
        assert data["overrides"] == [{
            "service_id": None,
            "sub_service_id": None,
            "sub_sub_service_id": 2,
            "user_id": "u-1",
            "is_allowed": True,
            "actor_id": None,
        }]


class TestPermissionChecks:
    """Test effective permission lookups."""

    async def test_check(self, client: AsyncClient, seeded):
        expected = {"sss:2": True, "sss:1": True, "ss:2": False, "s:3": False}
        for node_id, allowed in expected.items():
            response = await client.post("/permissions/check", json={"user_id": "u-1", "node_id": node_id})
            assert response.status_code == 200
            assert response.json()["allowed"] is allowed

    async def test_super_admin_is_always_allowed(self, client: AsyncClient, seeded):
        response = await client.post("/permissions/check", json={"user_id": "u-admin", "node_id": "sss:3"})
        assert response.json()["allowed"] is True

    async def test_check_unknown_node_or_user(self, client: AsyncClient, seeded):
        response = await client.post("/permissions/check", json={"user_id": "u-1", "node_id": "s:99"})
        assert response.status_code == 404
        response = await client.post("/permissions/check", json={"user_id": "nobody", "node_id": "s:1"})
        assert response.status_code == 404

    async def test_effective_permissions(self, client: AsyncClient, seeded):
        response = await client.get("/permissions/users/u-1/effective")
        assert response.status_code == 200
        data = response.json()
        assert data["general_access"] is True
        assert data["permissions"] == {
            "s:1": True, "ss:1": True, "sss:1": True, "sss:2": True, "ss:2": False,
            "s:2": False, "ss:3": False, "sss:3": False, "s:3": False,
        }

    async def test_effective_permissions_of_super_admin(self, client: AsyncClient, seeded):
        response = await client.get("/permissions/users/u-admin/effective")
        data = response.json()
        assert data["is_super_admin"] is True
        assert len(data["permissions"]) == 9
        assert all(data["permissions"].values())


class TestJobEditor:
    """Test the job baseline editor over HTTP."""

    async def test_open(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)

        assert state["kind"] == "job"
        assert state["subject_id"] == "1"
        assert state["scope_policy"] == "row"
        assert state["path"] == []
        assert [row["id"] for row in state["rows"]] == ["s:1", "s:2", "s:3"]
        assert state["rows"][0]["effective"] is True
        assert (state["rows"][0]["enabled_count"], state["rows"][0]["total_count"]) == (2, 4)
        assert (state["enabled_count"], state["total_count"]) == (3, 9)
        assert state["has_changes"] is False

    async def test_open_with_scope_policy(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1, scope_policy="subtree")
        assert state["scope_policy"] == "subtree"

    async def test_open_missing_job(self, client: AsyncClient, seeded):
        response = await client.post("/permissions/editors/jobs/99")
        assert response.status_code == 404

    async def test_toggle_and_save(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        editor_id = state["id"]

        response = await client.post(
            f"/permissions/editors/{editor_id}/toggle", json={"node_id": "ss:2", "value": True}
        )
        assert response.status_code == 200
        assert response.json()["has_changes"] is True

        response = await client.post(f"/permissions/editors/{editor_id}/save", headers=ADMIN)
        assert response.status_code == 200
        data = response.json()
        assert data["changed"] is True
        assert data["inserted"] == 4
        assert data["deleted"] == 3
        assert data["state"]["has_changes"] is False

        rows = (await client.get("/permissions/jobs/1")).json()["rows"]
        assert len(rows) == 4
        assert {row["actor_id"] for row in rows} == {"u-admin"}

    async def test_save_without_changes(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        response = await client.post(f"/permissions/editors/{state['id']}/save")
        assert response.status_code == 200
        assert response.json()["changed"] is False

    async def test_save_prunes_redundant_overrides(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        await client.post(f"/permissions/editors/{state['id']}/toggle", json={"node_id": "sss:2", "value": True})
        await client.post(f"/permissions/editors/{state['id']}/save")

        data = (await client.get("/permissions/users/u-1")).json()
        assert data["overrides"] == []
        assert len(data["job_rows"]) == 4

    async def test_toggle_unknown_node(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        response = await client.post(
            f"/permissions/editors/{state['id']}/toggle", json={"node_id": "s:99", "value": True}
        )
        assert response.status_code == 404

    async def test_unknown_editor(self, client: AsyncClient, seeded):
        response = await client.get("/permissions/editors/missing")
        assert response.status_code == 404


class TestNavigation:
    """Test breadcrumb moves."""

    async def test_enter_back_and_depth(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        url = f"/permissions/editors/{state['id']}/navigate"

        data = (await client.post(url, json={"enter": "s:1"})).json()
        assert data["path"] == [{"id": "s:1", "label": "المرافق"}]
        assert [row["id"] for row in data["rows"]] == ["ss:1", "ss:2"]

        data = (await client.post(url, json={"path": ["s:1", "ss:1"]}, params={"language": "en"})).json()
        assert [crumb["label"] for crumb in data["path"]] == ["Facility", "Sites"]
        assert [row["id"] for row in data["rows"]] == ["sss:1", "sss:2"]

        data = (await client.post(url, json={"back": True})).json()
        assert [row["id"] for row in data["rows"]] == ["ss:1", "ss:2"]

        data = (await client.post(url, json={"depth": 0})).json()
        assert data["path"] == []

    async def test_invalid_moves(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        url = f"/permissions/editors/{state['id']}/navigate"

        assert (await client.post(url, json={"enter": "ss:2"})).status_code == 400
        assert (await client.post(url, json={"path": ["s:1", "ss:3"]})).status_code == 400
        assert (await client.post(url, json={"enter": "s:1", "back": True})).status_code == 400
        assert (await client.post(url, json={})).status_code == 400


class TestBulkActions:
    """Test bulk actions with and without confirmation."""

    async def test_pending_then_confirmed(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 2)
        url = f"/permissions/editors/{state['id']}/bulk"

        data = (await client.post(url, json={"action": "select_all"})).json()
        assert data["applied"] is False
        assert data["affected"] == 3
        assert data["node_ids"] == ["s:1", "s:2", "s:3"]
        assert data["state"]["enabled_count"] == 0

        data = (await client.post(url, json={"action": "select_all", "confirm": True})).json()
        assert data["applied"] is True
        assert data["state"]["enabled_count"] == 3
        assert data["state"]["all_visible_selected"] is True
        assert data["state"]["has_visible_changes"] is True

    async def test_global_reset(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        url = f"/permissions/editors/{state['id']}/bulk"

        await client.post(url, json={"action": "deselect_all", "scope": "all", "confirm": True})
        data = (await client.post(url, json={"action": "reset", "scope": "all", "confirm": True})).json()

        assert data["affected"] == 3
        assert data["state"]["enabled_count"] == 3
        assert data["state"]["has_changes"] is False

    async def test_unknown_action(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        response = await client.post(f"/permissions/editors/{state['id']}/bulk", json={"action": "invert"})
        assert response.status_code == 400


class TestCloseEditor:
    """Test closing editors."""

    async def test_close_with_unsaved_changes(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        editor_url = f"/permissions/editors/{state['id']}"
        await client.post(f"{editor_url}/toggle", json={"node_id": "s:3", "value": True})

        assert (await client.delete(editor_url)).status_code == 409
        assert (await client.delete(editor_url, params={"force": True})).status_code == 204
        assert (await client.get(editor_url)).status_code == 404

    async def test_close_clean_editor(self, client: AsyncClient, seeded):
        state = await open_job_editor(client, 1)
        response = await client.delete(f"/permissions/editors/{state['id']}")
        assert response.status_code == 204


class TestUserEditor:
    """Test the user exception editor over HTTP."""

    async def test_open(self, client: AsyncClient, seeded):
        state = await open_user_editor(client, "u-1")
        assert state["kind"] == "user"
        assert state["scope_policy"] == "subtree"
        root = state["rows"][0]
        assert (root["override"], root["job_value"], root["effective"]) == (None, True, True)
        assert (root["enabled_count"], root["total_count"]) == (3, 4)

    async def test_open_missing_user(self, client: AsyncClient, seeded):
        response = await client.post("/permissions/editors/users/nobody")
        assert response.status_code == 404

    async def test_toggle_and_save_minimal_diff(self, client: AsyncClient, seeded):
        state = await open_user_editor(client, "u-1")
        editor_url = f"/permissions/editors/{state['id']}"

        await client.post(f"{editor_url}/toggle", json={"node_id": "s:1", "value": False})
        response = await client.post(f"{editor_url}/save", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert (data["inserted"], data["deleted"]) == (3, 1)

        overrides = (await client.get("/permissions/users/u-1")).json()["overrides"]
        assert len(overrides) == 3
        assert {row["is_allowed"] for row in overrides} == {False}
        assert {row["actor_id"] for row in overrides} == {"u-admin"}

        effective = (await client.get("/permissions/users/u-1/effective")).json()["permissions"]
        assert not any(effective.values())

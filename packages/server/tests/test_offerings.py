"""
Tests for offering resources to projects and resolving those offerings.

Tests cover:
- Offer creation for every resource kind
- Duplicate offers (ALREADY_OFFERED) leave exactly one row
- Completed projects refuse offers
- Missing resource/project, including a resource deleted mid-offer
- Accept/decline by the project creator only, once
"""

from __future__ import annotations

import uuid

import pytest

from entraide_api.core.errors import NotFound
from entraide_api.models.resources import Materiel
from entraide_api.services.kinds import RESOURCE_KINDS
from entraide_api.services.offerings import offer_resource
from entraide_api.services.repository import Repository
from entraide_shared.schemas.common import ResourceKind


async def offer(client, user, path, resource_id, project_id):
    return await client.post(
        f"/api/{path}/{resource_id}/offer", json={"projectId": project_id}, headers=user.headers
    )


# ---------------------------------------------------------------------------
# Offering
# ---------------------------------------------------------------------------


class TestOfferResource:
    @pytest.mark.parametrize(
        "path,kind,detail_key",
        [
            ("materiel", "materiel", "materiel_offerings"),
            ("outils", "outil", "outil_offerings"),
            ("transport", "transport", "transport_offerings"),
        ],
    )
    async def test_offer_each_kind(self, client, alice, bob, create_project, create_resource, path, kind, detail_key):
        project = await create_project(alice)
        resource = await create_resource(bob, path, name="Spare kit")

        response = await offer(client, bob, path, resource["id"], project["id"])
        assert response.status_code == 201, response.text
        offering = response.json()["offering"]
        assert offering["kind"] == kind
        assert offering["status"] == "pending"
        assert offering["resource"]["id"] == resource["id"]
        assert offering["project"]["id"] == project["id"]
        assert offering["offered_by"]["id"] == bob.id

        detail = (await client.get(f"/api/projects/{project['id']}")).json()["project"]
        assert [o["id"] for o in detail[detail_key]] == [offering["id"]]

    async def test_duplicate_offer_is_conflict(self, client, alice, bob, create_project, create_resource):
        project = await create_project(alice)
        materiel = await create_resource(bob)

        assert (await offer(client, bob, "materiel", materiel["id"], project["id"])).status_code == 201
        again = await offer(client, bob, "materiel", materiel["id"], project["id"])
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "ALREADY_OFFERED"

        detail = (await client.get(f"/api/projects/{project['id']}")).json()["project"]
        assert len(detail["materiel_offerings"]) == 1

    async def test_completed_project_refuses(self, client, alice, bob, create_project, create_resource):
        project = await create_project(alice)
        await client.patch(f"/api/projects/{project['id']}/status", json={"status": "completed"}, headers=alice.headers)
        outil = await create_resource(bob, "outils", name="Winch")

        response = await offer(client, bob, "outils", outil["id"], project["id"])
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PROJECT_COMPLETED"

    async def test_missing_resource(self, client, alice, create_project):
        project = await create_project(alice)
        response = await offer(client, alice, "transport", 999, project["id"])
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TRANSPORT_NOT_FOUND"

    async def test_missing_project(self, client, bob, create_resource):
        materiel = await create_resource(bob)
        response = await offer(client, bob, "materiel", materiel["id"], 999)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PROJECT_NOT_FOUND"

    @pytest.mark.parametrize("project_id", [None, 0, "abc", True])
    async def test_project_id_required(self, client, bob, create_resource, project_id):
        materiel = await create_resource(bob)
        response = await offer(client, bob, "materiel", materiel["id"], project_id)
        assert response.status_code == 400
        assert response.json()["error"]["violations"] == ["Valid project ID is required"]

    async def test_resource_detail_lists_offerings(self, client, alice, bob, create_project, create_resource):
        project = await create_project(alice)
        materiel = await create_resource(bob)
        await offer(client, bob, "materiel", materiel["id"], project["id"])

        detail = (await client.get(f"/api/materiel/{materiel['id']}")).json()["materiel"]
        [offering] = detail["offerings"]
        assert offering["project"]["id"] == project["id"]
        assert offering["project"]["creator"]["id"] == alice.id

    async def test_resource_deleted_mid_offer(self, session_factory, alice, create_project):
        """A resource that vanishes between the existence check and the insert is reported as missing."""
        project = await create_project(alice)
        actor_id = uuid.UUID(alice.id)
        ghost = Materiel(id=777, posted_by=actor_id, name="Ghost", location="Nowhere")

        class StaleRepository(Repository):
            async def get(self, model, entity_id, *, fresh=False):
                if model is Materiel and entity_id == ghost.id:
                    return ghost
                return await super().get(model, entity_id, fresh=fresh)

        async with session_factory() as session:
            with pytest.raises(NotFound) as exc_info:
                await offer_resource(
                    StaleRepository(session),
                    RESOURCE_KINDS[ResourceKind.MATERIEL],
                    ghost.id,
                    project["id"],
                    actor_id,
                )
        assert exc_info.value.code == "MATERIEL_NOT_FOUND"


# ---------------------------------------------------------------------------
# Responding
# ---------------------------------------------------------------------------


class TestRespondToOffering:
    async def _pending(self, client, alice, bob, create_project, create_resource):
        project = await create_project(alice)
        outil = await create_resource(bob, "outils", name="Chainsaw")
        response = await offer(client, bob, "outils", outil["id"], project["id"])
        return project, response.json()["offering"]

    async def _respond(self, client, user, project_id, offering_id, status, kind="outil"):
        return await client.patch(
            f"/api/projects/{project_id}/offerings/{kind}/{offering_id}",
            json={"status": status},
            headers=user.headers,
        )

    async def test_creator_accepts(self, client, alice, bob, create_project, create_resource):
        project, offering = await self._pending(client, alice, bob, create_project, create_resource)
        response = await self._respond(client, alice, project["id"], offering["id"], "accepted")
        assert response.status_code == 200, response.text
        assert response.json()["message"] == "Offering accepted"
        assert response.json()["offering"]["status"] == "accepted"

    async def test_resolved_only_once(self, client, alice, bob, create_project, create_resource):
        project, offering = await self._pending(client, alice, bob, create_project, create_resource)
        await self._respond(client, alice, project["id"], offering["id"], "declined")
        again = await self._respond(client, alice, project["id"], offering["id"], "accepted")
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "OFFERING_ALREADY_RESOLVED"

    async def test_only_creator_responds(self, client, alice, bob, create_project, create_resource):
        project, offering = await self._pending(client, alice, bob, create_project, create_resource)
        response = await self._respond(client, bob, project["id"], offering["id"], "accepted")
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "UNAUTHORIZED_RESPONSE"

    async def test_invalid_status(self, client, alice, bob, create_project, create_resource):
        project, offering = await self._pending(client, alice, bob, create_project, create_resource)
        response = await self._respond(client, alice, project["id"], offering["id"], "pending")
        assert response.status_code == 400

    async def test_wrong_kind_is_not_found(self, client, alice, bob, create_project, create_resource):
        project, offering = await self._pending(client, alice, bob, create_project, create_resource)
        response = await self._respond(client, alice, project["id"], offering["id"] + 100, "accepted", kind="materiel")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "OFFERING_NOT_FOUND"

    async def test_offering_of_another_project(self, client, alice, bob, create_project, create_resource):
        _, offering = await self._pending(client, alice, bob, create_project, create_resource)
        other = await create_project(alice, location="Gaspe")
        response = await self._respond(client, alice, other["id"], offering["id"], "accepted")
        assert response.status_code == 404

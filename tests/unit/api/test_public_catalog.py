"""Tests for the public job catalog and health endpoints."""

import pytest

from database.models import EmploymentType, JobStatus, WorkModality
from tests.factories import create_company, create_job


@pytest.fixture
async def catalog(session):
    acme = await create_company(session, name="Acme", slug="acme")
    globex = await create_company(session, name="Globex", slug="globex")
    hidden = await create_company(session, name="Hidden Corp", slug="hidden", is_active=False)

    backend = await create_job(
        session,
        acme,
        title="Backend Engineer",
        department="Engineering",
        location="Buenos Aires",
        employment_type=EmploymentType.FULL_TIME,
        work_modality=WorkModality.REMOTE,
    )
    designer = await create_job(
        session,
        acme,
        title="Product Designer",
        department="Design",
        location="Rosario",
        employment_type=EmploymentType.CONTRACT,
        work_modality=WorkModality.HYBRID,
    )
    analyst = await create_job(session, globex, title="Data Analyst", location="Córdoba")
    closed = await create_job(session, acme, title="Old Role", status=JobStatus.CLOSED)
    draft = await create_job(session, globex, title="Draft Role", status=JobStatus.DRAFT)
    invisible = await create_job(session, hidden, title="Hidden Role")
    return {
        "acme": acme,
        "globex": globex,
        "backend": backend,
        "designer": designer,
        "analyst": analyst,
        "closed": closed,
        "draft": draft,
        "invisible": invisible,
    }


class TestCompanies:

    async def test_active_companies_by_name(self, client, catalog):
        response = await client.get("/public/companies")

        assert response.status_code == 200
        assert [c["slug"] for c in response.json()["items"]] == ["acme", "globex"]

    async def test_search(self, client, catalog):
        response = await client.get("/public/companies", params={"search": "GLO"})

        assert [c["name"] for c in response.json()["items"]] == ["Globex"]


class TestJobs:

    async def test_only_open_jobs_of_active_companies(self, client, catalog):
        response = await client.get("/public/jobs")

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 3
        assert body["page"] == 1
        assert body["pages"] == 1
        assert {job["title"] for job in body["items"]} == {
            "Backend Engineer",
            "Product Designer",
            "Data Analyst",
        }
        assert body["items"][0]["title"] == "Data Analyst"
        assert body["items"][0]["company"] == {
            "id": catalog["globex"].id,
            "name": "Globex",
            "slug": "globex",
        }

    async def test_page_clamped_to_last(self, client, catalog):
        response = await client.get("/public/jobs", params={"limit": 2, "page": 9})

        body = response.json()
        assert body["pages"] == 2
        assert body["page"] == 2
        assert len(body["items"]) == 1

    @pytest.mark.parametrize("params,titles", [
        ({"company_slug": "ACME"}, {"Backend Engineer", "Product Designer"}),
        ({"employment_type": "contract"}, {"Product Designer"}),
        ({"modality": "remote"}, {"Backend Engineer"}),
        ({"location": "córdoba"}, {"Data Analyst"}),
        ({"department": "engin"}, {"Backend Engineer"}),
        ({"search": "designer"}, {"Product Designer"}),
    ])
    async def test_filters(self, client, catalog, params, titles):
        response = await client.get("/public/jobs", params=params)

        assert {job["title"] for job in response.json()["items"]} == titles

    async def test_company_id_filter(self, client, catalog):
        response = await client.get("/public/jobs", params={"company_id": catalog["globex"].id})

        assert [job["title"] for job in response.json()["items"]] == ["Data Analyst"]

    async def test_unknown_enum_rejected(self, client, catalog):
        response = await client.get("/public/jobs", params={"modality": "moon"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_empty_catalog(self, client):
        response = await client.get("/public/jobs")

        assert response.json() == {"items": [], "total": 0, "page": 1, "pages": 1, "limit": 10}


class TestJobDetail:

    async def test_open_job(self, client, catalog):
        response = await client.get(f"/public/jobs/{catalog['backend'].id}")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Backend Engineer"
        assert body["modality"] == "remote"

    @pytest.mark.parametrize("name", ["closed", "draft", "invisible"])
    async def test_hidden_jobs_not_found(self, client, catalog, name):
        response = await client.get(f"/public/jobs/{catalog[name].id}")

        assert response.status_code == 404


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_ready(self, client):
        response = await client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

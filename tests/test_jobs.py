"""
Tests for the WhatsApp link endpoint of jobs.
"""

import uuid

import pytest

from app.api.endpoints.jobs import get_credential_resolver, get_short_code_store
from app.services.credentials import CredentialResolver, ProviderCredentials
from main import app


@pytest.fixture
def link_client(client, short_codes, vault, default_credentials):
    app.dependency_overrides[get_short_code_store] = lambda: short_codes
    app.dependency_overrides[get_credential_resolver] = lambda: CredentialResolver(default_credentials, vault=vault)
    return client


class TestWhatsAppLink:
    def test_issues_code_and_link(self, link_client, sample_job, short_codes):
        response = link_client.post(f"/api/v1/jobs/{sample_job.id}/whatsapp-link")

        assert response.status_code == 201
        data = response.json()
        assert data["job_id"] == str(sample_job.id)
        assert len(data["short_code"]) == 6
        assert data["link"] == f"https://wa.me/14155238886?text=CODE-{data['short_code']}"
        assert short_codes.get_job_id(data["short_code"]) == str(sample_job.id)

    def test_each_call_issues_a_new_code(self, link_client, sample_job, short_codes):
        first = link_client.post(f"/api/v1/jobs/{sample_job.id}/whatsapp-link").json()["short_code"]
        second = link_client.post(f"/api/v1/jobs/{sample_job.id}/whatsapp-link").json()["short_code"]

        assert short_codes.get_job_id(first) == str(sample_job.id)
        assert short_codes.get_job_id(second) == str(sample_job.id)

    def test_unknown_job(self, link_client):
        response = link_client.post(f"/api/v1/jobs/{uuid.uuid4()}/whatsapp-link")
        assert response.status_code == 404

    def test_invalid_job_id(self, link_client):
        response = link_client.post("/api/v1/jobs/not-a-uuid/whatsapp-link")
        assert response.status_code == 404

    def test_no_sending_number(self, client, sample_job, short_codes, vault):
        app.dependency_overrides[get_short_code_store] = lambda: short_codes
        app.dependency_overrides[get_credential_resolver] = lambda: CredentialResolver(ProviderCredentials(), vault=vault)

        response = client.post(f"/api/v1/jobs/{sample_job.id}/whatsapp-link")
        assert response.status_code == 409

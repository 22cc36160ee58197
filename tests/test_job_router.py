"""
Tests for short codes and job routing.
"""

import uuid

from app.crud import candidate as candidate_crud
from app.crud import conversation as conversation_crud
from app.services.job_router import (
    JobRouter,
    build_whatsapp_link,
    extract_code,
    generate_short_code,
    strip_code,
)


class TestShortCodes:
    def test_generate_short_code_format(self):
        """Codes are 6 uppercase hex characters."""
        for _ in range(20):
            code = generate_short_code()
            assert len(code) == 6
            assert code == code.upper()
            int(code, 16)

    def test_extract_code_is_case_insensitive(self):
        assert extract_code("CODE-AB12CD") == "AB12CD"
        assert extract_code("Bonjour, code-ab12cd merci") == "AB12CD"

    def test_extract_code_absent(self):
        assert extract_code("Bonjour !") is None
        assert extract_code("") is None
        assert extract_code("CODE-AB12") is None

    def test_strip_code(self):
        """The routing token is removed, the rest of the text kept."""
        assert strip_code("CODE-AB12CD") == ""
        assert strip_code("CODE-AB12CD Jeanne Martin") == "Jeanne Martin"

    def test_create_mapping_sets_ttl(self, short_codes, fake_redis):
        job_id = uuid.uuid4()
        code = short_codes.create_mapping(job_id)
        assert fake_redis.get(f"job:{code}") == str(job_id)
        assert fake_redis.ttls[f"job:{code}"] == 3600
        assert short_codes.get_job_id(code.lower()) == str(job_id)

    def test_job_can_be_recoded(self, short_codes):
        """Issuing a new code leaves the previous one working."""
        job_id = uuid.uuid4()
        first = short_codes.create_mapping(job_id)
        second = short_codes.create_mapping(job_id)
        assert short_codes.get_job_id(first) == str(job_id)
        assert short_codes.get_job_id(second) == str(job_id)

    def test_build_whatsapp_link(self, short_codes):
        job_id = uuid.uuid4()
        link, code = build_whatsapp_link(short_codes, job_id, "whatsapp:+14155238886")
        assert link == f"https://wa.me/14155238886?text=CODE-{code}"
        assert short_codes.get_job_id(code) == str(job_id)


class TestJobRouter:
    def test_code_path(self, db_session, short_codes, vault, sample_job):
        """A known code resolves directly to its job."""
        code = short_codes.create_mapping(sample_job.id)
        route = JobRouter(db_session, short_codes, vault).resolve(f"CODE-{code}", "+33612345678")
        assert route.resolved
        assert route.via == "code"
        assert route.job_id == str(sample_job.id)
        assert route.reply_text == ""

    def test_code_is_not_consumed(self, db_session, short_codes, vault, sample_job):
        """Reading a code never invalidates it."""
        code = short_codes.create_mapping(sample_job.id)
        router = JobRouter(db_session, short_codes, vault)
        router.resolve(f"CODE-{code}", "+33611111111")
        assert router.resolve(f"CODE-{code}", "+33622222222").job_id == str(sample_job.id)

    def test_phone_path_finds_open_conversation(self, db_session, short_codes, vault, sample_job):
        """Follow-up messages without a code route through the open interview."""
        phone = "+33612345678"
        candidate, _ = candidate_crud.upsert_for_job_and_phone(
            db_session, sample_job.id, vault.hash_phone(phone), vault.encrypt_phone(phone)
        )
        conversation_crud.get_or_create(db_session, candidate.id)

        route = JobRouter(db_session, short_codes, vault).resolve("Jeanne Martin", "whatsapp:+33 6 12 34 56 78")
        assert route.via == "phone"
        assert route.job_id == str(sample_job.id)

    def test_completed_conversation_is_not_routed(self, db_session, short_codes, vault, sample_job):
        phone = "+33612345678"
        candidate, _ = candidate_crud.upsert_for_job_and_phone(
            db_session, sample_job.id, vault.hash_phone(phone), vault.encrypt_phone(phone)
        )
        conversation = conversation_crud.get_or_create(db_session, candidate.id)
        conversation_crud.mark_completed(db_session, conversation)

        route = JobRouter(db_session, short_codes, vault).resolve("Encore moi", phone)
        assert not route.resolved

    def test_unknown_code_falls_back_to_phone(self, db_session, short_codes, vault):
        """An expired code with no open interview reports no job."""
        route = JobRouter(db_session, short_codes, vault).resolve("CODE-FFFFFF", "+33600000000")
        assert not route.resolved
        assert route.via is None

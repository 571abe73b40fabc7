import json

import pytest

from matching_api.domain.identity import models, policy, reconcile
from matching_api.settings import settings

PHONE = "+15551234567"
ANSWERS = {"coffee": "espresso", "weekend": "hiking"}


@pytest.mark.asyncio
async def test_profile_for_known_phone_reuses_existing_identity(fake_db):
    fake_db.add_user("existing-id", PHONE)

    effective = await reconcile.complete_profile("fresh-id", PHONE, ANSWERS, photo_url="https://cdn/p.jpg")

    assert effective == "existing-id"
    assert fake_db.count("UPDATE USERS") == 1
    assert fake_db.count("INSERT INTO USERS") == 0
    assert set(fake_db.users) == {"existing-id"}
    assert fake_db.users["existing-id"]["profile_completed"] is True
    profile = fake_db.profiles["existing-id"]
    assert json.loads(profile["questionnaire_data"]) == ANSWERS
    assert profile["photo_url"] == "https://cdn/p.jpg"
    assert profile["ai_analysis"] is None


@pytest.mark.asyncio
async def test_profile_for_new_identity_inserts_completed_user(fake_db):
    effective = await reconcile.complete_profile("new-id", PHONE, ANSWERS)

    assert effective == "new-id"
    assert fake_db.count("INSERT INTO USERS") == 1
    assert fake_db.count("UPDATE USERS") == 0
    assert fake_db.users["new-id"]["profile_completed"] is True
    assert "new-id" in fake_db.profiles


@pytest.mark.asyncio
async def test_profile_for_known_id_updates_in_place(fake_db):
    fake_db.add_user("user-1", PHONE)

    effective = await reconcile.complete_profile("user-1", PHONE, ANSWERS)
    assert effective == "user-1"
    assert fake_db.count("UPDATE USERS") == 1

    # resubmitting overwrites the profile, not the identity
    await reconcile.complete_profile("user-1", PHONE, {"coffee": "latte"})
    assert json.loads(fake_db.profiles["user-1"]["questionnaire_data"]) == {"coffee": "latte"}
    assert len(fake_db.users) == 1


@pytest.mark.asyncio
async def test_profile_write_failure_rolls_back_identity(fake_db):
    fake_db.fail_on.add("INSERT INTO PROFILES")

    with pytest.raises(policy.PersistenceError) as excinfo:
        await reconcile.complete_profile("new-id", PHONE, ANSWERS)

    assert excinfo.value.reason == "profile_write_failed"
    assert excinfo.value.stage == "profile"
    assert fake_db.users == {}


@pytest.mark.asyncio
async def test_identity_write_failure_reports_user_stage(fake_db):
    fake_db.fail_on.add("INSERT INTO USERS")

    with pytest.raises(policy.PersistenceError) as excinfo:
        await reconcile.complete_profile("new-id", PHONE, ANSWERS)
    assert excinfo.value.reason == "identity_write_failed"
    assert excinfo.value.stage == "user"
    assert fake_db.profiles == {}


@pytest.mark.asyncio
async def test_login_creates_identity_with_candidate_id(fake_db):
    identity = await reconcile.resolve_login(PHONE, "candidate")
    assert isinstance(identity, models.RealIdentity)
    assert identity.id == "candidate"
    assert identity.profile_completed is False
    assert fake_db.count("SELECT PG_ADVISORY_XACT_LOCK") == 1


@pytest.mark.asyncio
async def test_login_returns_existing_identity(fake_db):
    fake_db.add_user("existing-id", PHONE, profile_completed=True)
    identity = await reconcile.resolve_login(PHONE, "candidate")
    assert identity.id == "existing-id"
    assert identity.profile_completed is True
    assert "candidate" not in fake_db.users


@pytest.mark.asyncio
async def test_demo_identity_needs_no_storage(fake_db):
    demo = reconcile.identity_for_user_id(settings.demo_user_id)
    assert isinstance(demo, models.DemoIdentity)
    assert demo.is_demo is True
    assert reconcile.identity_for_user_id("someone-else") is None

    assert await reconcile.get_identity(settings.demo_user_id) == demo
    assert await reconcile.find_by_phone(settings.demo_phone_number) == demo
    assert fake_db.connections == 0


@pytest.mark.asyncio
async def test_lookup_helpers(fake_db):
    fake_db.add_user("user-1", PHONE)
    assert (await reconcile.get_identity("user-1")).phone_number == PHONE
    assert (await reconcile.find_by_phone(PHONE)).id == "user-1"
    assert await reconcile.get_identity("missing") is None
    assert await reconcile.find_by_phone("+15550000000") is None

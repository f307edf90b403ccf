from profiles import ONBOARDING_SKILL_LIMIT, ProfileStore
from skills import PREDEFINED_SKILLS, SUGGESTION_LIMIT, clean_skills, search_skills, skill_suggestions


def test_create_marks_complete_only_with_skills(store):
    profiles = ProfileStore(store)

    bare = profiles.create("Ana", "Ana@Example.com", "h")
    skilled = profiles.create("Ben", "ben@example.com", "h", skills=["Go"])

    assert bare.email == "ana@example.com"
    assert bare.profile_complete is False
    assert skilled.profile_complete is True


def test_profile_never_carries_password_hash(store):
    profiles = ProfileStore(store)
    created = profiles.create("Ana", "ana@example.com", "secret-hash")

    assert "password_hash" not in profiles.get(created.id).model_dump()
    assert profiles.find_by_email("ANA@example.com")["password_hash"] == "secret-hash"


def test_update_trims_and_dedups(store):
    profiles = ProfileStore(store)
    user = profiles.create("Ana", "ana@example.com", "h")

    updated = profiles.update(user.id, name="  Ana P ", bio=" hi ", skills=["Go", "Go", " Rust "],
                              email="ignored@example.com")

    assert updated.name == "Ana P"
    assert updated.bio == "hi"
    assert updated.skills == ["Go", "Rust"]
    assert updated.email == "ana@example.com"


def test_onboarding_caps_skills_and_completes(store):
    profiles = ProfileStore(store)
    user = profiles.create("Ana", "ana@example.com", "h")

    done = profiles.complete_onboarding(user.id, PREDEFINED_SKILLS[:12], ["Figma"])

    assert len(done.skills) == ONBOARDING_SKILL_LIMIT
    assert done.wants_to_learn == ["Figma"]
    assert done.profile_complete is True


def test_list_all_returns_every_user(store, make_user):
    make_user("Ana")
    make_user("Ben")

    assert sorted(p.name for p in ProfileStore(store).list_all()) == ["Ana", "Ben"]


def test_search_skills():
    assert search_skills("   ") == []
    assert "Python" in search_skills("PYTH")
    assert len(search_skills("a")) == 10


def test_skill_suggestions_skip_selected():
    picked = PREDEFINED_SKILLS[:3]

    suggestions = skill_suggestions(picked)

    assert len(suggestions) == SUGGESTION_LIMIT
    assert not set(picked) & set(suggestions)


def test_clean_skills():
    assert clean_skills(["", "Go", "Go ", "SQL"], limit=10) == ["Go", "SQL"]
    assert clean_skills(["a", "b", "c"], limit=2) == ["a", "b"]

from matching import MATCH_LIMIT, NO_BIO, compute_matches, visible_matches
from schemas import Connection, ConnectionRequest, Profile


def profile(user_id, skills=(), wants=(), bio=""):
    return Profile(id=user_id, name=user_id.title(), bio=bio, skills=list(skills), wants_to_learn=list(wants))


def test_mutual_swap_counts_both_directions():
    a = profile("a", skills=["Python"], wants=["Design"])
    b = profile("b", skills=["Design"], wants=["Python"])

    [match] = compute_matches(a, [b])

    assert match.id == "b"
    assert match.match_score == 2
    assert set(match.common_skills) == {"Design", "Python"}
    assert match.teaching_matches == ["Design"]
    assert match.learning_matches == ["Python"]


def test_skill_matching_both_ways_counts_twice_but_listed_once():
    a = profile("a", skills=["Go"], wants=["Go"])
    b = profile("b", skills=["Go"], wants=["Go"])

    [match] = compute_matches(a, [b])

    assert match.match_score == 2
    assert match.common_skills == ["Go"]


def test_directions_are_independent():
    a = profile("a", skills=[], wants=["SQL", "Rust", "Figma"])
    b = profile("b", skills=["SQL", "Rust"], wants=["Python"])

    [match] = compute_matches(a, [b])

    assert match.match_score == 2
    assert match.learning_matches == []


def test_duplicate_labels_collapse():
    a = profile("a", wants=["Go", "Go"])
    b = profile("b", skills=["Go", "Go"])

    assert compute_matches(a, [b])[0].match_score == 1


def test_matching_is_case_sensitive():
    a = profile("a", wants=["python"])
    b = profile("b", skills=["Python"])

    assert compute_matches(a, [b]) == []


def test_excludes_self_and_zero_scores():
    a = profile("a", skills=["React"], wants=["SEO"])
    candidates = [
        profile("a", skills=["SEO"], wants=["React"]),
        profile("b", skills=["Unity"], wants=["Blender"]),
        profile("c", skills=["SEO"]),
    ]

    assert [m.id for m in compute_matches(a, candidates)] == ["c"]


def test_sorted_by_score_with_stable_ties():
    a = profile("a", skills=["Docker"], wants=["AWS", "Linux"])
    candidates = [
        profile("one", skills=["AWS"]),
        profile("two", skills=["AWS", "Linux"]),
        profile("three", skills=["Linux"]),
        profile("four", skills=["AWS"], wants=["Docker"]),
    ]

    result = compute_matches(a, candidates)

    assert [m.id for m in result] == ["two", "four", "one", "three"]
    scores = [m.match_score for m in result]
    assert scores == sorted(scores, reverse=True)


def test_empty_candidates():
    assert compute_matches(profile("a", wants=["Go"]), []) == []


def test_missing_bio_gets_placeholder():
    a = profile("a", wants=["Go"])
    b = profile("b", skills=["Go"])

    assert compute_matches(a, [b])[0].bio == NO_BIO


def test_truncation_happens_before_visibility_filter():
    a = profile("a", wants=["Go"])
    candidates = [profile(f"u{i:02d}", skills=["Go"]) for i in range(MATCH_LIMIT + 5)]

    ranked = compute_matches(a, candidates)
    assert len(ranked) == MATCH_LIMIT

    visible = visible_matches(ranked, "a", [], [], ["u00", "u01", "u02"])
    assert len(visible) == MATCH_LIMIT - 3
    assert "u20" not in [m.id for m in visible]


def test_visibility_filter_hides_connected_requested_and_passed():
    a = profile("a", wants=["Go"])
    candidates = [profile(name, skills=["Go"]) for name in ("b", "c", "d", "e", "f")]
    ranked = compute_matches(a, candidates)

    connections = [Connection(id="c1", user1_id="b", user2_id="a")]
    requests = [
        ConnectionRequest(id="r1", from_user_id="c", to_user_id="a"),
        ConnectionRequest(id="r2", from_user_id="a", to_user_id="d"),
    ]

    visible = visible_matches(ranked, "a", connections, requests, ["e"])

    assert [m.id for m in visible] == ["f"]


def test_visibility_ignores_other_peoples_connections():
    a = profile("a", wants=["Go"])
    ranked = compute_matches(a, [profile("b", skills=["Go"])])
    connections = [Connection(id="c1", user1_id="b", user2_id="z")]

    assert [m.id for m in visible_matches(ranked, "a", connections, [], [])] == ["b"]

"""
Skill matching.

A candidate scores one point for every skill you want to learn that they
teach, and one for every skill they want to learn that you teach. A skill
that works in both directions counts twice in the score but appears once in
``common_skills``. Ranking parity with existing clients depends on that.
"""

from typing import Iterable, List, Sequence

from schemas import Connection, ConnectionRequest, MatchCandidate, Profile, RequestStatus

MATCH_LIMIT = 20
NO_BIO = "No bio available"


def _unique(labels: Iterable[str]) -> List[str]:
    out = []
    for label in labels:
        if label not in out:
            out.append(label)
    return out


def score_candidate(me: Profile, other: Profile) -> MatchCandidate:
    their_skills = set(other.skills)
    my_skills = set(me.skills)
    teaching = [s for s in _unique(me.wants_to_learn) if s in their_skills]
    learning = [s for s in _unique(other.wants_to_learn) if s in my_skills]
    return MatchCandidate(
        id=other.id,
        name=other.name,
        bio=other.bio or NO_BIO,
        skills=list(other.skills),
        wants_to_learn=list(other.wants_to_learn),
        match_score=len(teaching) + len(learning),
        common_skills=_unique(teaching + learning),
        teaching_matches=teaching,
        learning_matches=learning,
    )


def compute_matches(me: Profile, candidates: Iterable[Profile], limit: int = MATCH_LIMIT) -> List[MatchCandidate]:
    """
    Rank candidates against ``me``.

    Zero-score candidates and ``me`` itself are dropped, the rest sorted by
    score (stable, so ties keep collection order) and cut to ``limit``.
    Connection state is not considered here; filter the result with
    :func:`visible_matches` afterwards.
    """
    scored = [score_candidate(me, c) for c in candidates if c.id != me.id]
    scored = [m for m in scored if m.match_score > 0]
    scored.sort(key=lambda m: m.match_score, reverse=True)
    return scored[:limit]


def visible_matches(matches: Sequence[MatchCandidate], user_id: str,
                    connections: Iterable[Connection],
                    requests: Iterable[ConnectionRequest],
                    passed_user_ids: Iterable[str]) -> List[MatchCandidate]:
    """Drop candidates already connected, with a pending request, or passed."""
    hidden = set(passed_user_ids)
    for conn in connections:
        if conn.involves(user_id):
            hidden.add(conn.other_user_id(user_id))
    for req in requests:
        if req.status != RequestStatus.pending:
            continue
        if req.from_user_id == user_id:
            hidden.add(req.to_user_id)
        elif req.to_user_id == user_id:
            hidden.add(req.from_user_id)
    return [m for m in matches if m.id not in hidden]

from __future__ import annotations

from datetime import timedelta

from candidates.lifecycle import (
    EXPIRED_CHOICE_FEEDBACK,
    EXPIRED_TEXT_FEEDBACK,
    ExpiredAnswer,
    ManualAnswer,
    add_chat_message,
    answer_question,
    complete_interview,
    create_candidate,
    delete_candidate,
    next_question,
    pause_interview,
    resume_interview,
    set_selected_candidate,
    set_sort,
    set_search_term,
    start_interview,
    submit_answer,
    update_candidate,
)
from candidates.store import CandidateStore


def _started(questions, t0, candidate_id="C1"):
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id=candidate_id, now=t0)
    return start_interview(store, candidate_id, questions, now=t0)


def test_single_easy_question_completes_with_zero_score(t0):
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id="C1", now=t0)
    store = start_interview(store, "C1", [{"id": "q1", "question": "?", "difficulty": "Easy", "time": 20}], now=t0)
    store = submit_answer(store, "C1", "q1", "", None, 0, "no answer", now=t0)
    store = next_question(store, "C1", now=t0)

    candidate = store.find("C1")
    assert candidate.status == "completed"
    assert candidate.total_score == 0
    assert candidate.max_score == 10
    assert candidate.questions[0].time == 20
    assert candidate.interview_completed_at == t0


def test_easy_then_hard_totals_forty(t0, easy_question, hard_question):
    store = _started([easy_question, hard_question], t0)
    store = submit_answer(store, "C1", "q1", "", 0, 10, "ok", now=t0)
    store = next_question(store, "C1", now=t0)
    store = submit_answer(store, "C1", "q2", "a log", None, 30, "great", now=t0)
    assert store.find("C1").total_score == 40
    store = next_question(store, "C1", now=t0)

    candidate = store.find("C1")
    assert candidate.total_score == 40
    assert candidate.max_score == 40
    assert candidate.status == "completed"


def test_transitions_never_mutate_input(t0, easy_question):
    store = _started([easy_question], t0)
    before = store.model_dump()
    updated = submit_answer(store, "C1", "q1", "", 0, 10, "ok", now=t0)
    assert updated is not store
    assert store.model_dump() == before


def test_missing_candidate_is_a_noop(t0):
    store = CandidateStore()
    assert submit_answer(store, "nope", "q1", "", None, 0, "", now=t0) is store
    assert next_question(store, "nope", now=t0) is store
    assert pause_interview(store, "nope", now=t0) is store


def test_malformed_payload_is_absorbed(t0, easy_question):
    store = _started([easy_question], t0)
    assert submit_answer(store, "C1", "q1", "", None, -1, "", now=t0) is store
    assert submit_answer(store, "C1", "missing", "", None, 1, "", now=t0) is store
    assert create_candidate(store, {"skills": 5}) is store


def test_start_requires_unique_question_ids(t0, easy_question):
    store = create_candidate(CandidateStore(), {}, candidate_id="C1", now=t0)
    assert start_interview(store, "C1", [easy_question, easy_question], now=t0) is store
    assert start_interview(store, "C1", [], now=t0) is store


def test_score_invariant_after_each_submission(t0, easy_question, hard_question):
    store = _started([easy_question, hard_question], t0)
    store = submit_answer(store, "C1", "q1", "", 0, 7, "", now=t0)
    candidate = store.find("C1")
    assert candidate.total_score == sum(q.score or 0 for q in candidate.questions) == 7
    # resubmission overwrites rather than accumulates
    store = submit_answer(store, "C1", "q1", "", 0, 3, "", now=t0)
    assert store.find("C1").total_score == 3


def test_completion_is_terminal(t0, easy_question):
    store = _started([easy_question], t0)
    store = complete_interview(store, "C1", now=t0)
    assert store.find("C1").status == "completed"

    assert pause_interview(store, "C1", now=t0) is store
    assert resume_interview(store, "C1", now=t0) is store
    assert start_interview(store, "C1", [easy_question], now=t0) is store
    assert submit_answer(store, "C1", "q1", "", 0, 10, "", now=t0) is store
    assert next_question(store, "C1", now=t0) is store
    assert update_candidate(store, "C1", {"name": "Bob"}, now=t0) is store
    assert add_chat_message(store, "C1", {"text": "hi"}, now=t0) is store


def test_complete_is_idempotent_and_keeps_first_stamp(t0, easy_question):
    store = _started([easy_question], t0)
    first = complete_interview(store, "C1", now=t0)
    again = complete_interview(first, "C1", now=t0 + timedelta(hours=1))
    assert again.model_dump() == first.model_dump()
    with_summary = complete_interview(first, "C1", {"overallRating": "Good"}, now=t0 + timedelta(hours=2))
    candidate = with_summary.find("C1")
    assert candidate.summary.overall_rating == "Good"
    assert candidate.interview_completed_at == t0


def test_pause_and_resume_keep_the_index(t0, easy_question, hard_question):
    store = _started([easy_question, hard_question], t0)
    store = answer_question(store, "C1", ManualAnswer(question_id="q1", score=10), now=t0)
    assert store.find("C1").current_question_index == 1

    store = pause_interview(store, "C1", now=t0)
    assert store.find("C1").status == "paused"
    assert pause_interview(store, "C1", now=t0) is store
    store = resume_interview(store, "C1", now=t0)
    candidate = store.find("C1")
    assert candidate.status == "interview"
    assert candidate.current_question_index == 1


def test_restart_after_progress_is_rejected(t0, easy_question, hard_question):
    store = _started([easy_question, hard_question], t0)
    store = answer_question(store, "C1", ManualAnswer(question_id="q1", score=5), now=t0)
    assert start_interview(store, "C1", [hard_question], now=t0) is store


def test_expired_answer_supplies_defaults(t0, easy_question, hard_question):
    store = _started([easy_question, hard_question], t0)
    store = answer_question(store, "C1", ExpiredAnswer(question_id="q1"), now=t0)
    first = store.find("C1").questions[0]
    assert first.score == 0
    assert first.selected_answer is None
    assert first.feedback == EXPIRED_CHOICE_FEEDBACK

    store = answer_question(store, "C1", ExpiredAnswer(question_id="q2"), now=t0)
    candidate = store.find("C1")
    assert candidate.questions[1].feedback == EXPIRED_TEXT_FEEDBACK
    assert candidate.status == "completed"


def test_answer_for_a_stale_question_is_ignored(t0, easy_question, hard_question):
    store = _started([easy_question, hard_question], t0)
    store = answer_question(store, "C1", ManualAnswer(question_id="q1", score=10), now=t0)
    assert answer_question(store, "C1", ExpiredAnswer(question_id="q1"), now=t0) is store
    assert answer_question(store, "C1", ManualAnswer(question_id="q2"), now=t0) is store


def test_answer_score_is_visible_before_advance(t0, easy_question):
    store = _started([easy_question], t0)
    store = answer_question(store, "C1", ManualAnswer(question_id="q1", selected_answer=0, score=10), now=t0)
    candidate = store.find("C1")
    assert candidate.status == "completed"
    assert candidate.total_score == 10


def test_delete_tombstones_and_clears_view(t0):
    store = create_candidate(CandidateStore(), {"name": "Ada"}, candidate_id="C1", now=t0)
    store = set_selected_candidate(store, "C1")
    store = delete_candidate(store, "C1")
    assert store.find("C1") is None
    assert store.is_tombstoned("C1")
    assert store.view.active_candidate_id is None
    assert store.view.selected_candidate_id is None

    assert create_candidate(store, {}, candidate_id="C1") is store
    assert set_selected_candidate(store, "C1") is store

    twice = delete_candidate(store, "C1")
    assert twice.deleted_candidate_ids == ["C1"]


def test_delete_of_unknown_id_still_tombstones():
    store = delete_candidate(CandidateStore(), "ghost")
    assert store.deleted_candidate_ids == ["ghost"]


def test_update_merges_only_given_fields(t0):
    store = create_candidate(CandidateStore(), {"name": "Ada", "email": "ada@example.com"}, candidate_id="C1", now=t0)
    store = update_candidate(store, "C1", {"phone": "5551234567"}, now=t0 + timedelta(minutes=1))
    candidate = store.find("C1")
    assert candidate.name == "Ada"
    assert candidate.phone == "5551234567"
    assert candidate.updated_at == t0 + timedelta(minutes=1)


def test_chat_messages_append(t0):
    store = create_candidate(CandidateStore(), {}, candidate_id="C1", now=t0)
    store = add_chat_message(store, "C1", {"text": "Welcome", "type": "bot"}, now=t0)
    store = add_chat_message(store, "C1", {"text": "Thanks", "sender": "candidate"}, now=t0)
    history = store.find("C1").chat_history
    assert [m.text for m in history] == ["Welcome", "Thanks"]
    assert history[0].id != history[1].id


def test_listing_search_and_sort(t0):
    store = CandidateStore()
    for cid, name, offset in (("a", "zoe", 0), ("b", "Adam", 1), ("c", "mia", 2)):
        store = create_candidate(store, {"name": name, "email": f"{cid}@x.io"}, candidate_id=cid, now=t0 + timedelta(days=offset))

    store = set_sort(store, "name", "asc")
    assert [c.id for c in store.listing()] == ["b", "c", "a"]
    store = set_sort(store, "date", "desc")
    assert [c.id for c in store.listing()] == ["c", "b", "a"]
    store = set_search_term(store, "ADA")
    assert [c.id for c in store.listing()] == ["b"]
    assert set_sort(store, "height") is store  # type: ignore[arg-type]


def test_unfinished_lists_paused_and_running(t0, easy_question):
    store = _started([easy_question], t0, candidate_id="run")
    store = create_candidate(store, {}, candidate_id="new", now=t0)
    store = start_interview(create_candidate(store, {}, candidate_id="p", now=t0), "p", [easy_question], now=t0)
    store = pause_interview(store, "p", now=t0)
    assert sorted(c.id for c in store.unfinished()) == ["p", "run"]
    assert store.has_active_session()

from __future__ import annotations

from candidates.models import Candidate
from config.registry import QUESTIONS_KEY, RESUME_KEY, bind_collaborator
from services.questions import generate_questions, load_question_bank
from services.resume import extract_fields, parse_resume_text


def test_bundled_bank_has_two_of_each_difficulty():
    bank = load_question_bank()
    assert [q.difficulty for q in bank] == ["Easy", "Easy", "Medium", "Medium", "Hard", "Hard"]
    assert [q.time for q in bank] == [20, 20, 60, 60, 120, 120]
    assert all(q.is_multiple_choice and q.correct_answer is not None for q in bank)
    assert len({q.id for q in bank}) == len(bank)


def test_generator_output_is_used_when_valid():
    bind_collaborator(
        QUESTIONS_KEY,
        lambda candidate, count: [{"id": f"g{i}", "question": "?", "difficulty": "Medium"} for i in range(count + 2)],
    )
    questions = generate_questions(Candidate(id="c"), limit=3)
    assert [q.id for q in questions] == ["g0", "g1", "g2"]
    assert questions[0].time == 60


def test_broken_generator_falls_back_to_bank():
    bind_collaborator(QUESTIONS_KEY, lambda **_: [{"question": "no difficulty"}])
    questions = generate_questions(Candidate(id="c"), limit=2)
    assert [q.id for q in questions] == ["q_fallback_1", "q_fallback_2"]


def test_resume_patterns():
    fields = parse_resume_text("Name: Ada Lovelace\nEmail ada@example.com\nPhone 5551234567")
    assert fields.name == "Ada Lovelace"
    assert fields.email == "ada@example.com"
    assert fields.phone == "5551234567"


def test_extractor_gaps_are_filled_from_patterns():
    bind_collaborator(RESUME_KEY, lambda resume_text: {"name": "A. Lovelace", "skills": ["math"]})
    fields = extract_fields("contact: ada@example.com 5551234567", "cv.pdf")
    assert fields.name == "A. Lovelace"
    assert fields.email == "ada@example.com"
    assert fields.skills == ["math"]
    assert fields.file_name == "cv.pdf"
    assert fields.resume_text.startswith("contact")

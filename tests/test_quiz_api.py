"""PAR loop tests for the quiz generator API: generate, answer, review."""

from __future__ import annotations

import httpx
import pytest

from tests.conftest import par_loop

MC_QUIZ = """1. What is the powerhouse of the cell?
A) Nucleus
B) Mitochondria
C) Ribosome
D) Golgi apparatus
Correct Answer: B

2. What do plants absorb for photosynthesis?
A) Oxygen
B) Nitrogen
C) Carbon dioxide
D) Helium
Correct Answer: C
"""

SA_QUIZ = """1. Question 1: What is osmosis?
   Expected Answer: Movement of water across a membrane
"""


@pytest.mark.asyncio
class TestQuizLifecycle:
    async def test_create_quiz(self, client: httpx.AsyncClient, fake_llm, mock_llm) -> None:
        fake_llm.reply = MC_QUIZ

        async def act():
            return await client.post("/api/quiz", json={
                "content": "Cells have organelles...", "quiz_type": "multiple-choice", "num_questions": 2,
            })

        def review(r: httpx.Response):
            if r.status_code != 201:
                return False, f"Expected 201, got {r.status_code}: {r.text}"
            data = r.json()
            if data["total_questions"] != 2:
                return False, f"Expected 2 questions, got {data['total_questions']}"
            if data["questions"][0]["options"][1] != "Mitochondria":
                return False, f"Options not parsed: {data['questions'][0]}"
            if any(q["correct_answer"] is not None for q in data["questions"]):
                return False, "Correct answers leaked before answering"
            return True, ""

        await par_loop(act, review, label="create_quiz")
        prompt = mock_llm.call_args.kwargs["messages"][0]["content"]
        assert "Create 2 multiple-choice questions" in prompt

    async def test_take_quiz_to_completion(self, client: httpx.AsyncClient, fake_llm) -> None:
        fake_llm.reply = MC_QUIZ
        created = await client.post("/api/quiz", json={"content": "Cells", "num_questions": 2})
        qid = created.json()["id"]

        r = await client.post(f"/api/quiz/{qid}/answer", json={"answer": "b"})
        data = r.json()
        assert r.status_code == 200
        assert data["question_id"] == "q1"
        assert data["is_correct"] is True
        assert data["quiz"]["current_index"] == 1

        r = await client.post(f"/api/quiz/{qid}/answer", json={"answer": "A"})
        data = r.json()
        assert data["is_correct"] is False
        assert data["quiz"]["is_complete"] is True
        assert data["quiz"]["score"] == 50
        assert data["quiz"]["questions"][1]["correct_answer"] == "C"

        r = await client.post(f"/api/quiz/{qid}/answer", json={"answer": "A"})
        assert r.status_code == 409

        r = await client.get(f"/api/quiz/{qid}")
        assert r.json()["score"] == 50

    async def test_short_answer_quiz(self, client: httpx.AsyncClient, fake_llm) -> None:
        fake_llm.reply = SA_QUIZ
        created = await client.post("/api/quiz", json={
            "content": "Osmosis", "mode": "topic", "quiz_type": "short-answer", "num_questions": 1,
        })
        qid = created.json()["id"]
        r = await client.post(f"/api/quiz/{qid}/answer", json={"answer": "water moving across a membrane"})
        assert r.json()["is_correct"] is True
        assert r.json()["quiz"]["score"] == 100

    async def test_missing_content(self, client: httpx.AsyncClient, mock_llm) -> None:
        r = await client.post("/api/quiz", json={"quiz_type": "multiple-choice"})
        assert r.status_code == 400
        mock_llm.assert_not_called()

    async def test_backend_failure(self, client: httpx.AsyncClient, fake_llm) -> None:
        fake_llm.error = ConnectionError("down")
        r = await client.post("/api/quiz", json={"content": "Cells"})
        assert r.status_code == 500
        assert r.json() == {"error": "Error generating quiz. Please try again."}

    async def test_empty_answer_rejected(self, client: httpx.AsyncClient, fake_llm) -> None:
        fake_llm.reply = MC_QUIZ
        qid = (await client.post("/api/quiz", json={"content": "Cells"})).json()["id"]
        r = await client.post(f"/api/quiz/{qid}/answer", json={"answer": " "})
        assert r.status_code == 400

    async def test_discard_quiz(self, client: httpx.AsyncClient, fake_llm) -> None:
        fake_llm.reply = MC_QUIZ
        qid = (await client.post("/api/quiz", json={"content": "Cells"})).json()["id"]

        r = await client.delete(f"/api/quiz/{qid}")
        assert r.status_code == 200
        r = await client.get(f"/api/quiz/{qid}")
        assert r.status_code == 404
        r = await client.delete(f"/api/quiz/{qid}")
        assert r.status_code == 404

    async def test_idle_quizzes_pruned(self, client: httpx.AsyncClient, fake_llm) -> None:
        from src.quiz.routes import _quiz_last_active, prune_idle_quizzes

        fake_llm.reply = MC_QUIZ
        qid = (await client.post("/api/quiz", json={"content": "Cells"})).json()["id"]
        _quiz_last_active[qid] -= 3600
        await prune_idle_quizzes(idle_timeout=1800)
        r = await client.get(f"/api/quiz/{qid}")
        assert r.status_code == 404

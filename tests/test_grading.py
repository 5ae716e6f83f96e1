from exam_grader.core.config import POLICY_REFUSAL_FEEDBACK
from exam_grader.services.grading import build_essay_prompt, is_graded, model_for


def upload_essay(client, headers, assessment_id: int) -> dict:
    r = client.post(
        f"/assessments/{assessment_id}/submissions/essay",
        headers=headers,
        files={"file": ("essay.docx", b"PK\x03\x04 essay", "application/octet-stream")},
    )
    assert r.status_code == 201, r.text
    return r.json()["result"]


def test_grade_essay_stores_score_and_feedback(client, student_headers, seed_data, oracle):
    oracle.reply = "SCORE: 7.5/10\n\nREVIEW:\nClear thesis.\n\nOVERALL COMMENT:\nCite more sources."
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["score"] == 7.5
    assert body["already_graded"] is False
    assert "Clear thesis." in body["feedback"]

    call = oracle.calls[0]
    assert call["model_id"] == "gemini-1.5-pro"
    assert call["system_prompt"] == "You have 90 phút."
    assert call["file"].data == b"PK\x03\x04 essay"
    assert call["file"].mime_type.endswith("wordprocessingml.document")
    assert "Argue for or against homework." in call["prompt"]

    stored = client.get(f"/results/{result['id']}", headers=student_headers).json()
    assert stored["score"] == 7.5
    assert stored["graded_at"] is not None
    assert stored["answers"][0]["feedback"] == oracle.reply
    assert stored["answers"][0]["score"] == 7.5


def test_grading_twice_does_not_call_oracle_again(client, student_headers, seed_data, oracle):
    result = upload_essay(client, student_headers, seed_data.essay_id)
    client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)

    oracle.reply = "SCORE: 2/10"
    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)

    assert r.status_code == 200, r.text
    assert r.json()["already_graded"] is True
    assert r.json()["score"] == 8.0
    assert len(oracle.calls) == 1


def test_reply_without_score_line_records_zero(client, student_headers, seed_data, oracle):
    oracle.reply = "A thoughtful essay, but I cannot assign a number."
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)

    assert r.status_code == 200, r.text
    assert r.json()["score"] == 0
    assert r.json()["feedback"] == oracle.reply


def test_out_of_range_score_is_clamped(client, student_headers, seed_data, oracle):
    oracle.reply = "SCORE: 12/10"
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)
    assert r.json()["score"] == 10


def test_refusal_records_policy_feedback_and_stays_retryable(client, student_headers, seed_data, oracle):
    oracle.refuse()
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)
    assert r.status_code == 200, r.text
    assert r.json()["refused"] is True
    assert r.json()["score"] == 0
    assert r.json()["feedback"] == POLICY_REFUSAL_FEEDBACK

    oracle.error = None
    retry = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)
    assert retry.json()["already_graded"] is False
    assert retry.json()["score"] == 8.0


def test_oracle_outage_is_503_and_leaves_result_untouched(client, student_headers, seed_data, oracle):
    oracle.go_down()
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)
    assert r.status_code == 503, r.text

    stored = client.get(f"/results/{result['id']}", headers=student_headers).json()
    assert stored["score"] == 0
    assert stored["graded_at"] is None


def test_missing_file_is_404(client, student_headers, seed_data, file_store):
    result = upload_essay(client, student_headers, seed_data.essay_id)
    file_store._resolve(file_store.path_for_url(result["answers"][0]["file_url"])).unlink()

    r = client.post(f"/results/{result['id']}/grade-essay", headers=student_headers)
    assert r.status_code == 404, r.text
    assert r.json()["detail"] == "File not found"


def test_time_expired_result_is_already_graded(client, student_headers, seed_data, oracle):
    r = client.post(f"/assessments/{seed_data.essay_id}/submissions/expired", headers=student_headers)
    result_id = r.json()["result"]["id"]

    r = client.post(f"/results/{result_id}/grade-essay", headers=student_headers)
    assert r.json()["already_graded"] is True
    assert r.json()["score"] == 0
    assert oracle.calls == []


def test_other_student_cannot_grade(client, student_headers, other_student_headers, seed_data):
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=other_student_headers)
    assert r.status_code == 403, r.text


def test_admin_can_grade_any_essay(client, student_headers, admin_headers, seed_data):
    result = upload_essay(client, student_headers, seed_data.essay_id)

    r = client.post(f"/results/{result['id']}/grade-essay", headers=admin_headers)
    assert r.status_code == 200, r.text


def test_model_for_falls_back_to_default():
    from exam_grader.models.assessment import Assessment

    assert model_for(None) == "gemini-2.0-flash"
    assert model_for(Assessment(name="x", model_id=None)) == "gemini-2.0-flash"
    assert "Write about rivers." in build_essay_prompt(Assessment(name="x", description="Write about rivers."))


def test_is_graded():
    from exam_grader.models.result import Result

    assert not is_graded(Result(score=0.0))
    assert is_graded(Result(score=4.0))

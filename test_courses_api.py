from conftest import COURSE_PAYLOAD


def test_create_course_requires_teacher(client, student, teacher):
    response = client.post("/courses", json=COURSE_PAYLOAD, headers=student)
    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"

    response = client.post("/courses", json=COURSE_PAYLOAD, headers=teacher)
    assert response.status_code == 201
    course = response.json()["data"]
    assert course["teacherId"] == "teacher-1"
    assert [s["sectionId"] for s in course["sections"]] == ["s1", "s2"]
    assert course["sections"][0]["chapters"][0]["type"] == "Text"


def test_get_course(client, course_id):
    response = client.get(f"/courses/{course_id}")
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Biology 101"

    response = client.get("/courses/missing")
    assert response.status_code == 404
    assert response.json() == {"message": "Course not found", "error": "NOT_FOUND"}


def test_enroll_is_idempotent(client, course_id, student):
    first = client.post(f"/courses/{course_id}/enroll", headers=student)
    second = client.post(f"/courses/{course_id}/enroll", headers=student)
    assert first.status_code == second.status_code == 200
    assert first.json()["data"]["enrolledAt"] == second.json()["data"]["enrolledAt"]


def test_chapter_progress(client, course_id, enroll, student):
    response = client.post(f"/courses/{course_id}/chapters/c1/complete", headers=student)
    assert response.status_code == 403

    enroll(student)
    client.post(f"/courses/{course_id}/chapters/c1/complete", headers=student)
    response = client.post(f"/courses/{course_id}/chapters/c1/complete", headers=student)
    assert response.status_code == 200
    assert response.json()["data"]["completedChapters"] == ["c1"]

    response = client.post(f"/courses/{course_id}/chapters/nope/complete", headers=student)
    assert response.status_code == 404

    client.post(f"/courses/{course_id}/chapters/c3/complete", headers=student)
    progress = client.get(f"/courses/{course_id}/progress", headers=student).json()["data"]
    assert sorted(progress["completedChapters"]) == ["c1", "c3"]
    assert progress["overallProgress"] == 66.67

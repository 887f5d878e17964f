import pytest

from conftest import auth_headers
from studyhub.database import SessionLocal
from studyhub.reviews.models import CourseRatingSummary, CourseReview
from studyhub.reviews.services import apply_review, ensure_summary, get_rating_stats, rebuild_rating_summary


def add_reviews(client, course_id, enroll, ratings, **categories):
    reviews = []
    for i, rating in enumerate(ratings):
        headers = auth_headers(f"reviewer-{i}")
        enroll(headers)
        payload = {"rating": rating}
        payload.update({key: values[i] for key, values in categories.items() if values[i] is not None})
        response = client.post(f"/courses/{course_id}/reviews", json=payload, headers=headers)
        assert response.status_code == 201
        reviews.append((response.json()["data"]["id"], headers))
    return reviews


def test_stats_with_no_reviews(client, course_id):
    response = client.get(f"/courses/{course_id}/rating-stats")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "No reviews found for this course"
    assert body["data"] == {
        "averageRating": 0.0,
        "totalReviews": 0,
        "ratingDistribution": {"5": 0, "4": 0, "3": 0, "2": 0, "1": 0},
        "categoryRatings": {"contentQuality": 0.0, "instructorEngagement": 0.0, "courseStructure": 0.0},
    }


def test_stats_average_and_distribution(client, course_id, enroll):
    add_reviews(
        client, course_id, enroll, [5, 3, 4],
        contentQuality=[4, 2, None],
        courseStructure=[5, None, None],
    )

    stats = client.get(f"/courses/{course_id}/rating-stats").json()["data"]
    assert stats["averageRating"] == pytest.approx(4.0)
    assert stats["totalReviews"] == 3
    assert stats["ratingDistribution"] == {"5": 1, "4": 1, "3": 1, "2": 0, "1": 0}
    assert stats["categoryRatings"]["contentQuality"] == pytest.approx(3.0)
    assert stats["categoryRatings"]["courseStructure"] == pytest.approx(5.0)
    assert stats["categoryRatings"]["instructorEngagement"] == 0.0


def test_stats_follow_updates_and_deletes(client, course_id, enroll):
    reviews = add_reviews(client, course_id, enroll, [5, 3, 4])

    review_id, headers = reviews[0]
    client.put(f"/reviews/{review_id}", json={"rating": 1}, headers=headers)
    stats = client.get(f"/courses/{course_id}/rating-stats").json()["data"]
    assert stats["averageRating"] == pytest.approx(8 / 3)
    assert stats["ratingDistribution"] == {"5": 0, "4": 1, "3": 1, "2": 0, "1": 1}

    review_id, headers = reviews[1]
    client.delete(f"/reviews/{review_id}", headers=headers)
    stats = client.get(f"/courses/{course_id}/rating-stats").json()["data"]
    assert stats["totalReviews"] == 2
    assert stats["averageRating"] == pytest.approx(2.5)
    assert stats["ratingDistribution"]["3"] == 0


def test_rebuild_summary_matches_incremental(client, course_id, enroll, db):
    add_reviews(client, course_id, enroll, [5, 2, 2], instructorEngagement=[3, 4, None])
    expected = get_rating_stats(db, course_id)

    summary = db.get(CourseRatingSummary, course_id)
    summary.total_reviews = 10
    summary.rating_sum = 1
    summary.stars_2 = 0
    db.commit()
    assert get_rating_stats(db, course_id) != expected

    rebuild_rating_summary(db, course_id)
    db.commit()
    assert get_rating_stats(db, course_id) == expected
    assert expected.average_rating == pytest.approx(3.0)
    assert expected.category_ratings.instructor_engagement == pytest.approx(3.5)


def test_course_starts_with_empty_summary(client, course_id, db):
    summary = db.get(CourseRatingSummary, course_id)
    assert summary is not None
    assert summary.total_reviews == 0


def test_interleaved_writers_keep_every_review(client, course_id, enroll):
    add_reviews(client, course_id, enroll, [5])

    first, second = SessionLocal(), SessionLocal()
    try:
        # Both writers have read the totals before either one commits
        assert first.get(CourseRatingSummary, course_id).total_reviews == 1
        assert second.get(CourseRatingSummary, course_id).total_reviews == 1

        apply_review(first, CourseReview(course_id=course_id, rating=3), +1)
        first.commit()
        apply_review(second, CourseReview(course_id=course_id, rating=1, content_quality=2), +1)
        second.commit()
    finally:
        first.close()
        second.close()

    stats = client.get(f"/courses/{course_id}/rating-stats").json()["data"]
    print(f"totals after three writes: {stats['totalReviews']} {stats['ratingDistribution']}")
    assert stats["totalReviews"] == 3
    assert stats["ratingDistribution"] == {"5": 1, "4": 0, "3": 1, "2": 0, "1": 1}
    assert stats["averageRating"] == pytest.approx(3.0)
    assert stats["categoryRatings"]["contentQuality"] == pytest.approx(2.0)


def test_first_reviews_recreate_missing_summary(client, course_id, enroll, db):
    db.query(CourseRatingSummary).filter(CourseRatingSummary.course_id == course_id).delete()
    db.commit()

    ensure_summary(db, course_id)
    ensure_summary(db, course_id)
    db.commit()
    assert db.query(CourseRatingSummary).count() == 1

    db.query(CourseRatingSummary).filter(CourseRatingSummary.course_id == course_id).delete()
    db.commit()

    add_reviews(client, course_id, enroll, [4, 2])
    stats = client.get(f"/courses/{course_id}/rating-stats").json()["data"]
    assert stats["totalReviews"] == 2
    assert stats["averageRating"] == pytest.approx(3.0)

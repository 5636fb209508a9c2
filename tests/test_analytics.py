"""
Analytics tests: streaks, month windows and the three dashboards
"""
from datetime import datetime, timedelta

import pytest

from smartstudy.services.analytics_service import (
    AnalyticsService,
    compute_streaks,
    monthly_counts,
    shift_months,
)

NOW = datetime(2024, 3, 15, 12, 0)
TODAY = NOW.date()


class TestStreaks:
    def test_three_consecutive_days_ending_today(self):
        days = [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

        assert compute_streaks(days, TODAY) == (3, 3)

    def test_no_activity_today_means_no_current_streak(self):
        days = [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]

        assert compute_streaks(days, TODAY) == (0, 2)

    def test_longest_run_can_be_in_the_past(self):
        days = [TODAY] + [TODAY - timedelta(days=offset) for offset in (5, 6, 7)]

        assert compute_streaks(days, TODAY) == (1, 3)

    def test_repeated_days_count_once(self):
        assert compute_streaks([TODAY, TODAY, TODAY], TODAY) == (1, 1)

    def test_empty(self):
        assert compute_streaks([], TODAY) == (0, 0)


@pytest.mark.parametrize(
    "moment, months, expected",
    [
        (datetime(2024, 3, 31), -1, datetime(2024, 2, 29)),
        (datetime(2024, 1, 15), -1, datetime(2023, 12, 15)),
        (datetime(2024, 3, 15, 12), -12, datetime(2023, 3, 15, 12)),
        (datetime(2023, 8, 31), 6, datetime(2024, 2, 29)),
    ],
)
def test_shift_months(moment, months, expected):
    assert shift_months(moment, months) == expected


def test_monthly_counts_are_ordered():
    moments = [datetime(2024, 2, 1), datetime(2023, 12, 5), datetime(2024, 2, 20)]

    assert list(monthly_counts(moments).items()) == [("2023-12", 1), ("2024-02", 2)]


class TestStudentProgress:
    def test_progress(self, db, teacher, student, make_note, make_download, make_review):
        math = make_note(teacher, subject="Mathematics", grade="10")
        physics = make_note(teacher, title="Forces", subject="Physics", grade="11")
        for offset in (0, 1, 2):
            make_download(student, math, downloaded_at=NOW - timedelta(days=offset))
        make_download(student, physics, downloaded_at=NOW - timedelta(days=10))
        make_download(student, math, downloaded_at=NOW - timedelta(days=400))
        make_review(math, student, 4)

        data = AnalyticsService(db, now=NOW).student_progress(student)

        assert data["overview"] == {
            "totalDownloads": 5,
            "uniqueSubjects": 2,
            "uniqueGrades": 2,
            "currentStreak": 3,
            "maxStreak": 3,
            "totalFileSize": 500,
        }
        assert data["learningStreak"] == {"current": 3, "max": 3}
        assert data["downloadsBySubject"] == {"Mathematics": 4, "Physics": 1}
        assert data["monthlyDownloads"] == {"2024-03": 4}
        assert data["subjectPerformance"] == {
            "Mathematics": {"averageRating": 4.0, "reviewsCount": 1, "notesCount": 1},
        }
        assert len(data["recentActivity"]) == 4
        assert data["recentActivity"][0] == {
            "date": "2024-03-15",
            "title": "Linear equations",
            "subject": "Mathematics",
            "grade": "10",
        }

    def test_progress_without_downloads(self, db, student):
        data = AnalyticsService(db, now=NOW).student_progress(student)

        assert data["overview"]["totalDownloads"] == 0
        assert data["learningStreak"] == {"current": 0, "max": 0}
        assert data["recentActivity"] == []

    def test_endpoint_is_for_students(self, client, teacher, student, auth_headers):
        assert client.get("/api/analytics/student-progress", headers=auth_headers(student)).status_code == 200
        assert client.get("/api/analytics/student-progress", headers=auth_headers(teacher)).status_code == 403


class TestTeacherAnalytics:
    def test_teacher_dashboard(
        self, db, teacher, other_teacher, student, other_student, make_note, make_download, make_review
    ):
        popular = make_note(teacher, title="Popular", download_count=5, view_count=9)
        quiet = make_note(teacher, title="Quiet", subject="Physics", download_count=1, view_count=2)
        make_note(other_teacher, title="Someone else", download_count=50)
        make_download(student, popular, downloaded_at=NOW - timedelta(days=3))
        make_download(other_student, popular, downloaded_at=datetime(2024, 1, 10))
        make_download(student, quiet, downloaded_at=NOW - timedelta(days=500))
        make_review(popular, student, 5)
        make_review(quiet, other_student, 2)

        data = AnalyticsService(db, now=NOW).teacher_analytics(teacher)

        assert data["overview"] == {
            "totalNotes": 2,
            "totalDownloads": 6,
            "totalViews": 11,
            "totalReviews": 2,
            "averageRating": 3.5,
            "uniqueStudents": 2,
        }
        assert data["notesBySubject"] == {"Mathematics": 1, "Physics": 1}
        assert data["monthlyDownloads"] == {"2024-01": 1, "2024-03": 1}
        assert sum(data["monthlyReviews"].values()) == 2
        assert [note["title"] for note in data["topNotes"]] == ["Popular", "Quiet"]
        assert data["topNotes"][0]["downloads"] == 5
        assert len(data["recentActivity"]) == 2

    def test_teacher_without_notes(self, db, teacher):
        overview = AnalyticsService(db, now=NOW).teacher_analytics(teacher)["overview"]

        assert overview["totalNotes"] == 0
        assert overview["averageRating"] == 0.0
        assert overview["uniqueStudents"] == 0

    def test_endpoint_is_for_teachers(self, client, teacher, student, auth_headers):
        assert client.get("/api/analytics/teacher-analytics", headers=auth_headers(teacher)).status_code == 200
        assert client.get("/api/analytics/teacher-analytics", headers=auth_headers(student)).status_code == 403


class TestPlatform:
    def test_platform_overview(self, client, teacher, other_teacher, student, make_note, make_download,
                               make_review, auth_headers):
        math = make_note(teacher, download_count=3)
        make_note(teacher, subject="Physics", download_count=1)
        make_note(other_teacher, subject="Physics", download_count=10)
        make_note(other_teacher, subject="Chemistry", is_public=False)
        make_download(student, math)
        make_review(math, student, 4)

        response = client.get("/api/analytics/platform", headers=auth_headers(student))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["overview"] == {"totalNotes": 3, "totalUsers": 3, "totalDownloads": 1, "totalReviews": 1}
        assert data["popularSubjects"][0] == {"subject": "Physics", "count": 2}
        assert data["topTeachers"][0] == {
            "teacherId": str(other_teacher.id),
            "teacherName": other_teacher.name,
            "noteCount": 1,
            "totalDownloads": 10,
        }
        assert data["topTeachers"][1]["noteCount"] == 2
        assert data["topTeachers"][1]["totalDownloads"] == 4

    def test_platform_requires_login(self, client):
        assert client.get("/api/analytics/platform").status_code == 401


def test_recent_activity_window_is_thirty_days(db, teacher, student, make_note, make_download):
    note = make_note(teacher)
    make_download(student, note, downloaded_at=NOW - timedelta(days=29))
    make_download(student, note, downloaded_at=NOW - timedelta(days=31))

    activity = AnalyticsService(db, now=NOW).student_progress(student)["recentActivity"]

    assert [entry["date"] for entry in activity] == [(NOW - timedelta(days=29)).date().isoformat()]

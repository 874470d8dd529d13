"""
End-to-end tests of the examination REST API.

Covers the authoring flow, the exam taker flow and the mapping of engine
errors to HTTP status codes.
"""

from datetime import timedelta
from io import StringIO

from django.contrib.auth.models import User
from django.core.management import call_command
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from examination.models import (
    AssessmentModule,
    Assignment,
    ModuleProgress,
    QuestionResponse,
)
from examination.services.sessions.progress_tracker import SessionProgressTracker
from examination.tests.helpers import ExaminationTestCase, single_choice_question

API = "/api/examination"


class AuthoringApiTests(ExaminationTestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.staff = User.objects.create_user(username="author", password="authorpassword", is_staff=True)
        cls.taker = User.objects.create_user(username="taker", password="takerpassword")

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.staff)

    def test_authoring_requires_staff(self):
        self.client.force_authenticate(user=self.taker)
        response = self.client.post(f"{API}/modules/", {"title": "Networking"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_update_and_publish(self):
        response = self.client.post(
            f"{API}/modules/",
            {"title": "Networking", "content": {"duration_in_minutes": 10}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        version_id = response.json()["id"]

        response = self.client.put(
            f"{API}/versions/{version_id}/",
            {"duration_in_minutes": 10, "questions": [single_choice_question(correct=None)]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.json()["questions"]), 1)

        response = self.client.post(f"{API}/versions/{version_id}/publish/")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        body = response.json()
        self.assertEqual(body["error_code"], "StructuralValidationFailed")
        self.assertEqual(len(body["details"]["questions"]), 1)

        self.client.put(
            f"{API}/versions/{version_id}/",
            {"duration_in_minutes": 10, "questions": [single_choice_question()]},
            format="json",
        )
        response = self.client.post(f"{API}/versions/{version_id}/publish/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.json()["version"]["is_published"])

        response = self.client.put(
            f"{API}/versions/{version_id}/", {"questions": []}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_draft_version_copies_forward(self):
        published = self.build_published_version("Networking")

        response = self.client.post(f"{API}/modules/{published.module_id}/versions/", format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["version"], 2)
        self.assertEqual(len(response.json()["questions"]), 1)

        response = self.client.post(f"{API}/modules/{published.module_id}/versions/", format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_latest_published_and_listing(self):
        published = self.build_published_version("Networking")

        response = self.client.get(f"{API}/modules/{published.module_id}/latest-published/")
        self.assertEqual(response.json()["id"], published.pk)

        response = self.client.get(f"{API}/modules/published/")
        self.assertEqual(response.json()[0]["module_title"], "Networking")

        response = self.client.get(f"{API}/modules/999999/latest-published/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_swap_members(self):
        modules = [self.build_published_version(title).module for title in ("First", "Second")]
        group, members = self.build_group(modules)

        response = self.client.post(
            f"{API}/groups/{group.pk}/members/swap/",
            {"member_a_id": members[0].pk, "member_b_id": members[1].pk},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [member["module_title"] for member in response.json()], ["Second", "First"]
        )

        response = self.client.post(
            f"{API}/groups/{group.pk}/members/swap/",
            {"member_a_id": members[0].pk, "member_b_id": members[0].pk},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


    def test_add_and_remove_members(self):
        first = self.build_published_version("First").module
        draft = self.registry.create_module("Drafts")
        group, members = self.build_group([first])

        response = self.client.post(
            f"{API}/groups/{group.pk}/members/", {"module_id": draft.module_id}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        second = self.build_published_version("Second").module
        response = self.client.post(
            f"{API}/groups/{group.pk}/members/", {"module_id": second.pk}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([member["order_number"] for member in response.json()], [1, 2])

        response = self.client.delete(f"{API}/groups/{group.pk}/members/{members[0].pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [(member["module_title"], member["order_number"]) for member in response.json()],
            [("Second", 1)],
        )


class ExamTakerApiTests(ExaminationTestCase):
    client_class = APIClient

    @classmethod
    def setUpTestData(cls):
        cls.taker = User.objects.create_user(username="taker", password="takerpassword")
        cls.other = User.objects.create_user(username="other", password="otherpassword")

    def setUp(self):
        super().setUp()
        self.version = self.build_published_version("Networking", duration_in_minutes=5)
        self.group, self.members = self.build_group([self.version.module])
        self.assignment = self.build_assignment(
            self.group, exam_takers=(str(self.taker.pk), str(self.other.pk))
        )
        self.question = self.version.questions.get()
        self.correct = self.question.answers.get(is_correct=True)
        self.client.force_authenticate(user=self.taker)

    def start(self):
        response = self.client.post(
            f"{API}/assignments/{self.assignment.pk}/modules/{self.version.module_id}/progress/"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.json()

    def test_anonymous_requests_are_rejected(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(
            f"{API}/assignments/{self.assignment.pk}/modules/{self.version.module_id}/progress/"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_full_session(self):
        progress = self.start()
        self.assertEqual(progress["duration_in_minutes"], 5)
        self.assertFalse(progress["is_expired"])

        response = self.client.get(f"{API}/assignments/{self.assignment.pk}/versions/{self.version.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn("is_correct", response.json()["questions"][0]["answers"][0])

        response = self.client.post(
            f"{API}/progress/{progress['id']}/answers/",
            {"question_id": self.question.pk, "selected_answer_ids": [self.correct.pk]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["selected_answer_ids"], [self.correct.pk])
        self.assertNotIn("is_correct", response.json())

        response = self.client.post(f"{API}/progress/{progress['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        completed_at = response.json()["completed_at_utc"]
        self.assertIsNotNone(completed_at)

        response = self.client.post(f"{API}/progress/{progress['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["completed_at_utc"], completed_at)

        response = self.client.post(
            f"{API}/progress/{progress['id']}/answers/",
            {"question_id": self.question.pk, "selected_answer_ids": [self.correct.pk]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_423_LOCKED)
        self.assertEqual(response.json()["error_code"], "ProgressLocked")

        response = self.client.get(
            f"{API}/assignments/{self.assignment.pk}/groups/{self.group.pk}/states/"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()[0]["status"], "Completed")
        self.assertTrue(response.json()[0]["completed"])

    def test_invalid_single_choice_payload(self):
        progress = self.start()
        response = self.client.post(
            f"{API}/progress/{progress['id']}/answers/",
            {"question_id": self.question.pk, "selected_answer_ids": []},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error_code"], "ValidationFailed")

    def test_expired_submission_is_gone(self):
        progress = self.start()
        ModuleProgress.objects.filter(pk=progress["id"]).update(
            started_at_utc=timezone.now() - timedelta(minutes=6)
        )

        response = self.client.post(
            f"{API}/progress/{progress['id']}/answers/",
            {
                "question_id": self.question.pk,
                "selected_answer_ids": [self.correct.pk],
                "is_expired": False,
                "remaining_seconds": 120,
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_410_GONE)
        self.assertFalse(QuestionResponse.objects.exists())

        response = self.client.post(f"{API}/progress/{progress['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_410_GONE)
        self.assertEqual(response.json()["error_code"], "TimeBudgetExpired")
        self.assertIsNone(ModuleProgress.objects.get(pk=progress["id"]).completed_at_utc)

    def test_progress_of_other_exam_taker_is_hidden(self):
        progress = self.start()
        self.client.force_authenticate(user=self.other)

        response = self.client.post(f"{API}/progress/{progress['id']}/complete/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIsNone(ModuleProgress.objects.get(pk=progress["id"]).completed_at_utc)

    def test_locked_module_conflicts(self):
        second = self.build_published_version("Security")
        group, _ = self.build_group([self.version.module, second.module], is_member_order_locked=True)
        assignment = self.build_assignment(group, exam_takers=(str(self.taker.pk),))

        response = self.client.post(
            f"{API}/assignments/{assignment.pk}/modules/{second.module_id}/progress/"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class SeedCommandTests(ExaminationTestCase):
    def test_seed_creates_published_demo_assignment(self):
        call_command("seed_exam_data", "--exam-taker", "demo-taker", stdout=StringIO())
        call_command("seed_exam_data", "--exam-taker", "demo-taker", stdout=StringIO())

        self.assertEqual(AssessmentModule.objects.count(), 2)
        assignment = Assignment.objects.get()
        taker = User.objects.get(username="demo-taker")
        self.assertTrue(assignment.includes_exam_taker(str(taker.pk)))

        module = assignment.group.members.get(order_number=1).module
        progress = SessionProgressTracker().get_or_create_progress(
            str(taker.pk), assignment.pk, module.pk
        )
        self.assertTrue(progress.module_version.is_published)

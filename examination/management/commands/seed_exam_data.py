"""
Seed Exam Data Management Command

Creates a small, fully published demo setup: two assessment modules, an
order-locked group containing both and an open assignment with one exam
taker. Content is created through the module version registry so that the
demo data passes the same structural checks as authored content.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from examination.exceptions import ExaminationError
from examination.models import (
    AssessmentModule,
    Assignment,
    ExamTakerAssignment,
    Group,
    ModuleProgress,
)
from examination.services.groups.group_sequencer import GroupSequencer
from examination.services.modules.version_registry import ModuleVersionRegistry

logger = logging.getLogger(__name__)

User = get_user_model()

DEMO_MODULES = {
    "Networking Basics": {
        "duration_in_minutes": 10,
        "questions": [
            {
                "text": "Which layer of the OSI model handles routing?",
                "type": "SingleChoice",
                "answers": [
                    {"text": "Network layer", "is_correct": True},
                    {"text": "Transport layer"},
                    {"text": "Session layer"},
                ],
            },
            {
                "text": "Which of these protocols are connection oriented?",
                "type": "MultipleChoice",
                "answers": [
                    {"text": "TCP", "is_correct": True},
                    {"text": "UDP"},
                    {"text": "SCTP", "is_correct": True},
                ],
            },
            {
                "text": "What does DNS stand for?",
                "type": "FreeText",
                "answers": [{"text": "Domain Name System"}],
            },
        ],
    },
    "Security Awareness": {
        "duration_in_minutes": 5,
        "questions": [
            {
                "text": "Is it safe to reuse passwords across services?",
                "type": "SingleChoice",
                "answers": [
                    {"text": "Yes"},
                    {"text": "No", "is_correct": True},
                ],
            },
        ],
    },
}

DEMO_GROUP_TITLE = "Onboarding Assessment"
DEMO_ASSIGNMENT_TITLE = "Onboarding Assessment (demo)"


class Command(BaseCommand):
    """Seed the database with a published demo assessment."""

    help = "Creates demo modules, a group and an assignment for local development."

    def add_arguments(self, parser):
        parser.add_argument(
            "--exam-taker",
            default="demo",
            help="Username of the exam taker to enroll (created if missing).",
        )
        parser.add_argument(
            "--flush",
            action="store_true",
            help="Delete the existing demo data before seeding.",
        )

    def _flush(self):
        assignments = Assignment.objects.filter(title=DEMO_ASSIGNMENT_TITLE)
        ModuleProgress.objects.filter(assignment__in=assignments).delete()
        assignments.delete()
        Group.objects.filter(title=DEMO_GROUP_TITLE).delete()
        AssessmentModule.objects.filter(title__in=DEMO_MODULES.keys()).delete()
        self.stdout.write("  - Demo data deleted.")

    def handle(self, *args, **options):
        registry = ModuleVersionRegistry()
        sequencer = GroupSequencer()

        try:
            with transaction.atomic():
                if options["flush"]:
                    self._flush()

                user, created = User.objects.get_or_create(username=options["exam_taker"])
                if created:
                    user.set_password(options["exam_taker"])
                    user.save()
                    self.stdout.write(f"  - Exam taker '{user.username}' created.")

                group, _ = Group.objects.get_or_create(
                    title=DEMO_GROUP_TITLE,
                    defaults={"is_member_order_locked": True},
                )

                for title, content in DEMO_MODULES.items():
                    module = AssessmentModule.objects.filter(title=title).first()
                    if module is None:
                        version = registry.create_module(title, content=content)
                        registry.publish_version(version.pk)
                        module = version.module
                        self.stdout.write(self.style.SUCCESS(f'Module created and published: "{title}"'))
                    if not group.members.filter(module=module).exists():
                        sequencer.add_member(group.pk, module.pk)

                now = timezone.now()
                assignment, _ = Assignment.objects.get_or_create(
                    title=DEMO_ASSIGNMENT_TITLE,
                    defaults={
                        "group": group,
                        "start_date_utc": now - timedelta(hours=1),
                        "end_date_utc": now + timedelta(days=30),
                        "randomize_answers": True,
                    },
                )
                ExamTakerAssignment.objects.get_or_create(
                    assignment=assignment, exam_taker_id=str(user.pk)
                )
        except ExaminationError as e:
            logger.error(f"Seeding demo data failed: {e.message}")
            raise CommandError(e.message)

        self.stdout.write(
            self.style.SUCCESS(
                f"Demo assignment {assignment.pk} ready for exam taker '{user.username}'."
            )
        )

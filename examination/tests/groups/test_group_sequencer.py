from datetime import timedelta

from django.utils import timezone

from examination.exceptions import ConflictError, NotFoundError, ValidationError
from examination.models import GroupMember
from examination.services.groups.group_sequencer import GroupSequencer, ModuleStatus
from examination.services.sessions.progress_tracker import SessionProgressTracker
from examination.tests.helpers import EXAM_TAKER, ExaminationTestCase


class UnlockRuleTests(ExaminationTestCase):
    def setUp(self):
        super().setUp()
        self.versions = [
            self.build_published_version(title, duration_in_minutes=10)
            for title in ("First", "Second", "Third")
        ]
        self.modules = [version.module for version in self.versions]
        self.sequencer = GroupSequencer()
        self.tracker = SessionProgressTracker(sequencer=self.sequencer)
        self.start = timezone.now()

    def unlocked(self, group, module, assignment, minutes=0):
        return self.sequencer.is_module_unlocked_for_user(
            group.pk,
            module.pk,
            EXAM_TAKER,
            assignment_id=assignment.pk,
            now=self.start + timedelta(minutes=minutes),
        )

    def test_unordered_group_unlocks_everything(self):
        group, _ = self.build_group(self.modules)
        assignment = self.build_assignment(group)

        for module in self.modules:
            self.assertTrue(self.unlocked(group, module, assignment))

    def test_ordered_group_requires_completion_of_previous_members(self):
        group, _ = self.build_group(self.modules, is_member_order_locked=True)
        assignment = self.build_assignment(group)

        self.assertTrue(self.unlocked(group, self.modules[0], assignment))
        self.assertFalse(self.unlocked(group, self.modules[1], assignment))

        progress = self.tracker.get_or_create_progress(
            EXAM_TAKER, assignment.pk, self.modules[0].pk, now=self.start
        )
        self.assertFalse(self.unlocked(group, self.modules[1], assignment, minutes=1))

        self.tracker.complete_module(progress.pk, now=self.start + timedelta(minutes=2))
        self.assertTrue(self.unlocked(group, self.modules[1], assignment, minutes=2))
        self.assertFalse(self.unlocked(group, self.modules[2], assignment, minutes=2))

    def test_wait_module_completion_keeps_next_module_locked_until_duration_elapsed(self):
        group, _ = self.build_group(
            self.modules, is_member_order_locked=True, wait_module_completion=True
        )
        assignment = self.build_assignment(group)
        progress = self.tracker.get_or_create_progress(
            EXAM_TAKER, assignment.pk, self.modules[0].pk, now=self.start
        )
        self.tracker.complete_module(progress.pk, now=self.start + timedelta(minutes=3))

        self.assertFalse(self.unlocked(group, self.modules[1], assignment, minutes=3))
        self.assertTrue(self.unlocked(group, self.modules[1], assignment, minutes=10))

    def test_expired_previous_module_counts_as_finished(self):
        group, _ = self.build_group(self.modules, is_member_order_locked=True)
        assignment = self.build_assignment(group)
        self.tracker.get_or_create_progress(EXAM_TAKER, assignment.pk, self.modules[0].pk, now=self.start)

        self.assertFalse(self.unlocked(group, self.modules[1], assignment, minutes=9))
        self.assertTrue(self.unlocked(group, self.modules[1], assignment, minutes=11))

    def test_unknown_group_or_module_not_found(self):
        group, _ = self.build_group(self.modules[:1])
        with self.assertRaises(NotFoundError):
            self.sequencer.is_module_unlocked_for_user(999999, self.modules[0].pk, EXAM_TAKER)
        with self.assertRaises(NotFoundError):
            self.sequencer.is_module_unlocked_for_user(group.pk, self.modules[2].pk, EXAM_TAKER)


class MemberStateTests(ExaminationTestCase):
    def setUp(self):
        super().setUp()
        self.versions = [
            self.build_published_version(title, duration_in_minutes=10)
            for title in ("First", "Second")
        ]
        self.group, self.members = self.build_group(
            [version.module for version in self.versions],
            is_member_order_locked=True,
            wait_module_completion=True,
        )
        self.assignment = self.build_assignment(self.group)
        self.sequencer = GroupSequencer()
        self.tracker = SessionProgressTracker(sequencer=self.sequencer)
        self.start = timezone.now()

    def states(self, minutes=0):
        return self.sequencer.get_group_member_states(
            EXAM_TAKER, self.assignment.pk, self.group.pk, now=self.start + timedelta(minutes=minutes)
        )

    def test_states_follow_progress(self):
        first, second = self.states()
        self.assertEqual(first.status, ModuleStatus.NOT_STARTED)
        self.assertTrue(first.unlocked)
        self.assertEqual(second.status, ModuleStatus.LOCKED)
        self.assertFalse(second.unlocked)

        progress = self.tracker.get_or_create_progress(
            EXAM_TAKER, self.assignment.pk, self.versions[0].module_id, now=self.start
        )
        first, second = self.states(minutes=1)
        self.assertEqual(first.status, ModuleStatus.IN_PROGRESS)
        self.assertEqual(first.remaining_seconds, 540)
        self.assertEqual(first.question_count, 1)

        self.tracker.complete_module(progress.pk, now=self.start + timedelta(minutes=2))
        first, second = self.states(minutes=2)
        self.assertTrue(first.completed)
        self.assertEqual(first.status, ModuleStatus.WAIT_FOR_MODULE_DURATION_TO_ELAPSE)
        self.assertEqual(second.status, ModuleStatus.WAIT_FOR_MODULE_DURATION_TO_ELAPSE)
        self.assertFalse(second.unlocked)

        first, second = self.states(minutes=10)
        self.assertEqual(first.status, ModuleStatus.COMPLETED)
        self.assertEqual(second.status, ModuleStatus.NOT_STARTED)
        self.assertTrue(second.unlocked)

    def test_expired_progress_reports_time_elapsed(self):
        self.tracker.get_or_create_progress(
            EXAM_TAKER, self.assignment.pk, self.versions[0].module_id, now=self.start
        )
        first, second = self.states(minutes=15)
        self.assertEqual(first.status, ModuleStatus.TIME_ELAPSED)
        self.assertFalse(first.completed)
        self.assertTrue(second.unlocked)

    def test_future_assignment_is_scheduled(self):
        assignment = self.build_assignment(self.group, starts_in=timedelta(days=1), ends_in=timedelta(days=2))
        states = self.sequencer.get_group_member_states(EXAM_TAKER, assignment.pk, self.group.pk)
        self.assertEqual(states[0].status, ModuleStatus.SCHEDULED)
        self.assertFalse(any(state.unlocked for state in states))

    def test_ended_assignment_unlocks_nothing(self):
        assignment = self.build_assignment(
            self.group, starts_in=timedelta(days=-2), ends_in=timedelta(hours=-1)
        )
        states = self.sequencer.get_group_member_states(EXAM_TAKER, assignment.pk, self.group.pk)

        self.assertFalse(any(state.unlocked for state in states))
        self.assertEqual(states[0].status, ModuleStatus.NOT_STARTED)

    def test_state_serialization(self):
        data = self.states()[0].to_dict()
        self.assertEqual(data["status"], "NotStarted")
        self.assertEqual(data["member_id"], self.members[0].pk)
        self.assertTrue(data["unlocked"])
        self.assertFalse(data["completed"])

    def test_states_require_enrollment_and_matching_group(self):
        with self.assertRaises(NotFoundError):
            self.sequencer.get_group_member_states("stranger", self.assignment.pk, self.group.pk)
        other_group, _ = self.build_group([])
        with self.assertRaises(NotFoundError):
            self.sequencer.get_group_member_states(EXAM_TAKER, self.assignment.pk, other_group.pk)

    def test_completion_reports_newly_unlocked_members(self):
        group, members = self.build_group(
            [version.module for version in self.versions], is_member_order_locked=True
        )
        assignment = self.build_assignment(group, exam_takers=("taker-2",))
        progress = self.tracker.get_or_create_progress(
            "taker-2", assignment.pk, self.versions[0].module_id, now=self.start
        )
        self.tracker.complete_module(progress.pk, now=self.start + timedelta(minutes=1))

        unlocked = self.sequencer.on_module_completed(progress, now=self.start + timedelta(minutes=1))
        self.assertEqual(unlocked, [members[1].pk])


class SwapOrderTests(ExaminationTestCase):
    def setUp(self):
        super().setUp()
        modules = [self.build_published_version(title).module for title in ("First", "Second", "Third")]
        self.group, self.members = self.build_group(modules)
        self.sequencer = GroupSequencer()

    def order_of(self, member):
        return GroupMember.objects.get(pk=member.pk).order_number

    def test_swap_exchanges_order_numbers(self):
        first, _, third = self.members
        self.sequencer.swap_order(self.group.pk, first.pk, third.pk)

        self.assertEqual(self.order_of(first), 3)
        self.assertEqual(self.order_of(third), 1)
        self.assertEqual(
            sorted(self.group.members.values_list("order_number", flat=True)), [1, 2, 3]
        )

    def test_swap_with_itself_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.sequencer.swap_order(self.group.pk, self.members[0].pk, self.members[0].pk)

    def test_swap_across_groups_is_rejected(self):
        other_module = self.build_published_version("Other").module
        _, other_members = self.build_group([other_module])

        with self.assertRaises(ValidationError):
            self.sequencer.swap_order(self.group.pk, self.members[0].pk, other_members[0].pk)
        self.assertEqual(self.order_of(self.members[0]), 1)

    def test_swap_unknown_member_not_found(self):
        with self.assertRaises(NotFoundError):
            self.sequencer.swap_order(self.group.pk, self.members[0].pk, 999999)


class MembershipTests(ExaminationTestCase):
    def setUp(self):
        super().setUp()
        self.modules = [
            self.build_published_version(title).module for title in ("First", "Second", "Third")
        ]
        self.group, self.members = self.build_group(self.modules)
        self.sequencer = GroupSequencer()

    def order_numbers(self):
        return list(self.group.members.order_by("order_number").values_list("order_number", flat=True))

    def test_add_member_appends_published_module(self):
        module = self.build_published_version("Fourth").module

        member = self.sequencer.add_member(self.group.pk, module.pk)

        self.assertEqual(member.order_number, 4)
        self.assertEqual(self.order_numbers(), [1, 2, 3, 4])

    def test_add_member_requires_published_version(self):
        draft = self.registry.create_module("Drafts")

        with self.assertRaises(ConflictError):
            self.sequencer.add_member(self.group.pk, draft.module_id)
        self.assertFalse(self.group.members.filter(module_id=draft.module_id).exists())

    def test_add_member_rejects_duplicates_and_unknown_ids(self):
        with self.assertRaises(ConflictError):
            self.sequencer.add_member(self.group.pk, self.modules[0].pk)
        with self.assertRaises(NotFoundError):
            self.sequencer.add_member(self.group.pk, 999999)
        with self.assertRaises(NotFoundError):
            self.sequencer.add_member(999999, self.modules[0].pk)

    def test_remove_member_renumbers_following_members(self):
        remaining = self.sequencer.remove_member(self.group.pk, self.members[0].pk)

        self.assertEqual([member.module_id for member in remaining], [m.pk for m in self.modules[1:]])
        self.assertEqual(self.order_numbers(), [1, 2])
        self.assertFalse(GroupMember.objects.filter(pk=self.members[0].pk).exists())

    def test_remove_member_of_assigned_group_conflicts(self):
        self.build_assignment(self.group)

        with self.assertRaises(ConflictError):
            self.sequencer.remove_member(self.group.pk, self.members[1].pk)
        self.assertEqual(self.order_numbers(), [1, 2, 3])

    def test_remove_member_of_other_group_not_found(self):
        other_group, other_members = self.build_group([self.modules[0]])

        with self.assertRaises(NotFoundError):
            self.sequencer.remove_member(self.group.pk, other_members[0].pk)

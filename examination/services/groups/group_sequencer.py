"""
Group Sequencer

Service deciding which modules of a group an exam taker may start, and
maintaining the members and member order of groups.

Rules:
- Groups without order lock: every module is available
- Order-locked groups: a module is available once every lower-ordered
  module is finished for the exam taker. A module is finished when it was
  completed or when its time budget ran out.
- Order-locked groups waiting for module completion: a completed module
  only counts as finished once its full duration has elapsed, even if the
  exam taker finished early

Membership:
- Only modules with a published version can join a group; new members are
  appended at the end
- Members of a group used by an assignment cannot be removed
- Order numbers stay contiguous from 1 after every add, remove and swap

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from examination.exceptions import ConflictError, NotFoundError, ValidationError
from examination.groups.models import Assignment, Group, GroupMember
from examination.modules.models import AssessmentModule, AssessmentModuleVersion
from examination.sessions.models import ModuleProgress

logger = logging.getLogger(__name__)


class ModuleStatus(Enum):
    """Derived status of a group member for one exam taker. Never stored."""

    LOCKED = "Locked"
    WAIT_FOR_MODULE_DURATION_TO_ELAPSE = "WaitForModuleDurationToElapse"
    SCHEDULED = "Scheduled"
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    TIME_ELAPSED = "TimeElapsed"


@dataclass
class GroupMemberState:
    """
    State of one group member for one exam taker.

    Attributes:
        member_id: Group member id
        module_id: Assessment module id
        module_title: Assessment module title
        order_number: Position inside the group
        unlocked: Whether the assignment window is open and no earlier member blocks the module
        completed: Whether the exam taker completed the module
        status: Derived module status
        progress_id: Progress record id, if the module was started
        version_id: Pinned module version id, if the module was started
    """

    member_id: int
    module_id: int
    module_title: str
    order_number: int
    unlocked: bool
    completed: bool
    status: ModuleStatus
    progress_id: Optional[int] = None
    version_id: Optional[int] = None
    started_at_utc: Optional[datetime] = None
    completed_at_utc: Optional[datetime] = None
    remaining_seconds: Optional[int] = None
    answer_count: int = 0
    question_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert member state to dictionary for serialization."""
        data = asdict(self)
        data["status"] = self.status.value
        return data


class GroupSequencer:
    """
    Service for group ordering and module unlock decisions.

    Example:
        >>> sequencer = GroupSequencer()
        >>> sequencer.is_module_unlocked_for_user(group.pk, module.pk, "taker-1")
        True
    """

    def __init__(self):
        self.logger = logger

    # --- Lookups ---

    def _get_group(self, group_id: int, lock: bool = False) -> Group:
        groups = Group.objects.select_for_update() if lock else Group.objects
        try:
            return groups.get(pk=group_id)
        except Group.DoesNotExist:
            raise NotFoundError(
                f"Group {group_id} does not exist.", details={"group_id": group_id}
            )

    def _progress_by_module(
        self,
        exam_taker_id: str,
        members: Sequence[GroupMember],
        assignment_id: Optional[int] = None,
    ) -> Dict[int, ModuleProgress]:
        """Map module id to the most recent progress of the exam taker."""
        progress_records = ModuleProgress.objects.filter(
            exam_taker_id=str(exam_taker_id),
            module_version__module_id__in=[member.module_id for member in members],
        ).select_related("module_version")
        if assignment_id is not None:
            progress_records = progress_records.filter(assignment_id=assignment_id)

        progress_map: Dict[int, ModuleProgress] = {}
        for progress in progress_records.order_by("started_at_utc", "pk"):
            progress_map[progress.module_version.module_id] = progress
        return progress_map

    # --- Unlock rules ---

    def _is_finished(
        self, group: Group, progress: Optional[ModuleProgress], now: datetime
    ) -> bool:
        if progress is None:
            return False

        budget = progress.time_budget(now)
        if progress.is_completed:
            if group.wait_module_completion and progress.duration_in_minutes is not None:
                return budget.is_expired
            return True

        return budget.is_expired

    def _blocking_member(
        self,
        group: Group,
        member: GroupMember,
        members: Sequence[GroupMember],
        progress_map: Dict[int, ModuleProgress],
        now: datetime,
    ) -> Optional[GroupMember]:
        """Return the first lower-ordered member that is not finished yet."""
        if not group.is_member_order_locked:
            return None

        for previous in members:
            if previous.order_number >= member.order_number:
                continue
            if not self._is_finished(group, progress_map.get(previous.module_id), now):
                return previous
        return None

    def is_module_unlocked_for_user(
        self,
        group_id: int,
        module_id: int,
        exam_taker_id: str,
        assignment_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Check whether an exam taker may start a module of a group.

        Args:
            group_id: Group containing the module
            module_id: Assessment module to check
            exam_taker_id: Exam taker id from the identity layer
            assignment_id: Restrict progress lookups to one assignment
            now: Reference time, defaults to the server clock

        Returns:
            True if the module is available, False otherwise

        Raises:
            NotFoundError: If the group does not exist or does not contain the module
        """
        now = now or timezone.now()
        group = self._get_group(group_id)
        members = list(group.members.order_by("order_number"))
        member = next((m for m in members if m.module_id == module_id), None)
        if member is None:
            raise NotFoundError(
                f"Module {module_id} is not a member of group '{group.title}'.",
                details={"group_id": group_id, "module_id": module_id},
            )

        if not group.is_member_order_locked:
            return True

        progress_map = self._progress_by_module(exam_taker_id, members, assignment_id)
        return self._blocking_member(group, member, members, progress_map, now) is None

    # --- Member states ---

    def _member_status(
        self,
        group: Group,
        assignment: Assignment,
        progress: Optional[ModuleProgress],
        blocking: Optional[GroupMember],
        progress_map: Dict[int, ModuleProgress],
        now: datetime,
    ) -> ModuleStatus:
        if progress is not None:
            budget = progress.time_budget(now)
            if progress.is_completed:
                if (
                    group.wait_module_completion
                    and progress.duration_in_minutes is not None
                    and not budget.is_expired
                ):
                    return ModuleStatus.WAIT_FOR_MODULE_DURATION_TO_ELAPSE
                return ModuleStatus.COMPLETED
            if budget.is_expired:
                return ModuleStatus.TIME_ELAPSED
            return ModuleStatus.IN_PROGRESS

        if not assignment.has_started(now):
            return ModuleStatus.SCHEDULED

        if blocking is not None:
            blocking_progress = progress_map.get(blocking.module_id)
            if blocking_progress is not None and blocking_progress.is_completed:
                return ModuleStatus.WAIT_FOR_MODULE_DURATION_TO_ELAPSE
            return ModuleStatus.LOCKED

        return ModuleStatus.NOT_STARTED

    def get_group_member_states(
        self,
        exam_taker_id: str,
        assignment_id: int,
        group_id: int,
        now: Optional[datetime] = None,
    ) -> List[GroupMemberState]:
        """
        Compute the state of every member of an assignment's group for one exam taker.

        States are always derived from the stored progress records.

        Raises:
            NotFoundError: If the assignment is unknown, the group is not the
                assignment's group, or the exam taker is not on the assignment
        """
        now = now or timezone.now()
        try:
            assignment = Assignment.objects.select_related("group").get(pk=assignment_id)
        except Assignment.DoesNotExist:
            raise NotFoundError(
                f"Assignment {assignment_id} does not exist.",
                details={"assignment_id": assignment_id},
            )

        if assignment.group_id != group_id:
            raise NotFoundError(
                f"Group {group_id} is not part of assignment '{assignment.title}'.",
                details={"assignment_id": assignment_id, "group_id": group_id},
            )
        if not assignment.includes_exam_taker(exam_taker_id):
            raise NotFoundError(
                f"Exam taker {exam_taker_id} is not assigned to '{assignment.title}'.",
                details={"assignment_id": assignment_id},
            )

        group = assignment.group
        members = list(group.members.select_related("module").order_by("order_number"))
        progress_map = self._progress_by_module(exam_taker_id, members, assignment_id)
        window_open = assignment.has_started(now) and not assignment.has_ended(now)

        states = []
        for member in members:
            progress = progress_map.get(member.module_id)
            blocking = self._blocking_member(group, member, members, progress_map, now)
            budget = progress.time_budget(now) if progress is not None else None

            states.append(
                GroupMemberState(
                    member_id=member.pk,
                    module_id=member.module_id,
                    module_title=member.module.title,
                    order_number=member.order_number,
                    unlocked=window_open and blocking is None,
                    completed=bool(progress and progress.is_completed),
                    status=self._member_status(
                        group, assignment, progress, blocking, progress_map, now
                    ),
                    progress_id=progress.pk if progress else None,
                    version_id=progress.module_version_id if progress else None,
                    started_at_utc=progress.started_at_utc if progress else None,
                    completed_at_utc=progress.completed_at_utc if progress else None,
                    remaining_seconds=budget.remaining_seconds if budget else None,
                    answer_count=progress.responses.count() if progress else 0,
                    question_count=(
                        progress.module_version.questions.count() if progress else None
                    ),
                )
            )
        return states

    def on_module_completed(
        self, progress: ModuleProgress, now: Optional[datetime] = None
    ) -> List[int]:
        """
        Re-evaluate the group of a freshly completed progress record.

        Returns:
            Ids of group members that are unlocked and not yet started
        """
        assignment = progress.assignment
        states = self.get_group_member_states(
            progress.exam_taker_id, assignment.pk, assignment.group_id, now=now
        )
        unlocked = [
            state.member_id
            for state in states
            if state.unlocked and state.status == ModuleStatus.NOT_STARTED
        ]
        if unlocked:
            self.logger.info(
                f"Exam taker {progress.exam_taker_id} can now start group members {unlocked} "
                f"of assignment {assignment.pk}"
            )
        return unlocked

    # --- Membership ---

    def add_member(self, group_id: int, module_id: int) -> GroupMember:
        """
        Append a module to the end of a group.

        Raises:
            NotFoundError: If the group or module does not exist
            ConflictError: If the module has no published version or is
                already a member of the group
        """
        with transaction.atomic():
            group = self._get_group(group_id, lock=True)

            module = AssessmentModule.objects.filter(pk=module_id).first()
            if module is None:
                raise NotFoundError(
                    f"Assessment module {module_id} does not exist.",
                    details={"module_id": module_id},
                )
            if not AssessmentModuleVersion.objects.filter(module=module, is_published=True).exists():
                raise ConflictError(
                    f"Module '{module.title}' does not have a published version.",
                    details={"group_id": group.pk, "module_id": module_id},
                )
            if group.members.filter(module=module).exists():
                raise ConflictError(
                    f"Module '{module.title}' is already a member of group '{group.title}'.",
                    details={"group_id": group.pk, "module_id": module_id},
                )

            member = group.append_module(module)
            group.save(update_fields=["updated_at"])

        self.logger.info(
            f"Added module {module_id} to group {group_id} at position {member.order_number}"
        )
        return member

    def remove_member(self, group_id: int, member_id: int) -> List[GroupMember]:
        """
        Remove a member from a group and close the gap in the order numbers.

        Returns:
            Remaining members in order

        Raises:
            NotFoundError: If the group or member does not exist
            ConflictError: If an assignment uses the group
        """
        with transaction.atomic():
            group = self._get_group(group_id, lock=True)

            member = GroupMember.objects.select_for_update().filter(pk=member_id, group=group).first()
            if member is None:
                raise NotFoundError(
                    f"Group member {member_id} does not exist in group '{group.title}'.",
                    details={"group_id": group.pk, "member_id": member_id},
                )

            assignment_titles = list(group.assignments.values_list("title", flat=True))
            if assignment_titles:
                raise ConflictError(
                    f"Group '{group.title}' is used by assignments and its members cannot be removed.",
                    details={"group_id": group.pk, "assignments": assignment_titles},
                )

            removed_order = member.order_number
            member.delete()

            following = (
                group.members.select_for_update()
                .filter(order_number__gt=removed_order)
                .order_by("order_number")
            )
            for later in following:
                later.order_number -= 1
                later.save(update_fields=["order_number"])

            group.save(update_fields=["updated_at"])

        self.logger.info(f"Removed member {member_id} from group {group_id} (position {removed_order})")
        return list(group.members.select_related("module").order_by("order_number"))

    # --- Ordering ---

    def swap_order(self, group_id: int, member_a_id: int, member_b_id: int) -> List[GroupMember]:
        """
        Exchange the order numbers of two members of the same group.

        The exchange runs in one transaction with both member rows locked and
        parks one member on a temporary order number so that the unique
        constraint holds at every step.

        Raises:
            ValidationError: If the ids are equal or the members belong to
                different groups
            NotFoundError: If the group or one of the members does not exist
        """
        if member_a_id == member_b_id:
            raise ValidationError(
                "Cannot swap a group member with itself.",
                details={"member_ids": [member_a_id, member_b_id]},
            )

        with transaction.atomic():
            group = self._get_group(group_id)
            members = {
                member.pk: member
                for member in GroupMember.objects.select_for_update().filter(
                    pk__in=[member_a_id, member_b_id]
                )
            }
            if len(members) != 2:
                missing = [pk for pk in (member_a_id, member_b_id) if pk not in members]
                raise NotFoundError(
                    f"Group members {missing} do not exist.",
                    details={"member_ids": missing},
                )

            member_a, member_b = members[member_a_id], members[member_b_id]
            if member_a.group_id != member_b.group_id or member_a.group_id != group.pk:
                raise ValidationError(
                    "Group members must belong to the same group.",
                    details={
                        "group_id": group.pk,
                        "member_groups": {
                            member_a.pk: member_a.group_id,
                            member_b.pk: member_b.group_id,
                        },
                    },
                )

            order_a, order_b = member_a.order_number, member_b.order_number
            parking = (group.members.aggregate(last=Max("order_number"))["last"] or 0) + 1

            member_a.order_number = parking
            member_a.save(update_fields=["order_number"])
            member_b.order_number = order_a
            member_b.save(update_fields=["order_number"])
            member_a.order_number = order_b
            member_a.save(update_fields=["order_number"])

            group.save(update_fields=["updated_at"])

        self.logger.info(
            f"Swapped members {member_a_id} and {member_b_id} of group {group_id} "
            f"({order_a} <-> {order_b})"
        )
        return [member_a, member_b]

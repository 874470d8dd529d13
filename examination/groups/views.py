from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from examination.services.groups.group_sequencer import GroupSequencer

from .models import GroupMember
from .serializers import AddMemberSerializer, GroupMemberSerializer, SwapMembersSerializer


class GroupMemberListView(APIView):
    """Append a module with a published version to a group."""

    permission_classes = [permissions.IsAdminUser]

    def post(self, request, group_id):
        serializer = AddMemberSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        GroupSequencer().add_member(group_id, serializer.validated_data["module_id"])
        members = GroupMember.objects.filter(group_id=group_id).select_related("module")
        return Response(GroupMemberSerializer(members, many=True).data, status=status.HTTP_201_CREATED)


class GroupMemberDetailView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def delete(self, request, group_id, member_id):
        members = GroupSequencer().remove_member(group_id, member_id)
        return Response(GroupMemberSerializer(members, many=True).data, status=status.HTTP_200_OK)


class GroupMemberSwapView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, group_id):
        serializer = SwapMembersSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        GroupSequencer().swap_order(
            group_id,
            serializer.validated_data["member_a_id"],
            serializer.validated_data["member_b_id"],
        )
        members = GroupMember.objects.filter(group_id=group_id).select_related("module")
        return Response(GroupMemberSerializer(members, many=True).data)


class GroupMemberStatesView(APIView):
    """Unlock and completion state of every group member for the current exam taker."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, assignment_id, group_id):
        states = GroupSequencer().get_group_member_states(
            str(request.user.pk), assignment_id, group_id
        )
        return Response([state.to_dict() for state in states])

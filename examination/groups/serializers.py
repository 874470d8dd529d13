from rest_framework import serializers

from .models import GroupMember


class AddMemberSerializer(serializers.Serializer):
    module_id = serializers.IntegerField()


class SwapMembersSerializer(serializers.Serializer):
    member_a_id = serializers.IntegerField()
    member_b_id = serializers.IntegerField()


class GroupMemberSerializer(serializers.ModelSerializer):
    module_title = serializers.CharField(source="module.title", read_only=True)

    class Meta:
        model = GroupMember
        fields = ["id", "group", "module", "module_title", "order_number"]

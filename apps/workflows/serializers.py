"""
Workflow Serializers
"""

from django.contrib.auth import get_user_model
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema_field
from rest_framework import serializers

from apps.authentication.serializers import UserSummarySerializer
from apps.core.exceptions import ResourceNotFoundException
from .models import ENTITY_TYPE_CHOICES, Approval, ChangeRequest, ProxyAction

User = get_user_model()


class ApprovalSerializer(serializers.ModelSerializer):
    approver = UserSummarySerializer(read_only=True)
    decided_by = UserSummarySerializer(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    days_pending = serializers.IntegerField(read_only=True)
    subject = serializers.SerializerMethodField()

    class Meta:
        model = Approval
        fields = [
            'id', 'entity_type', 'entity_id', 'level', 'status',
            'approver', 'comment', 'decided_at', 'decided_by', 'is_proxy',
            'is_overdue', 'days_pending', 'subject',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    @extend_schema_field(OpenApiTypes.OBJECT)
    def get_subject(self, obj):
        try:
            return obj.subject.summary()
        except ResourceNotFoundException:
            return None


class ApprovalDecisionSerializer(serializers.Serializer):
    APPROVE = 'APPROVE'
    REJECT = 'REJECT'

    action = serializers.ChoiceField(choices=[APPROVE, REJECT])
    comment = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['action'] == self.REJECT and not attrs.get('comment', '').strip():
            raise serializers.ValidationError({'comment': 'Comment is required when rejecting'})
        return attrs


class ApprovalStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    pending = serializers.IntegerField()
    overdue = serializers.IntegerField()
    approved = serializers.IntegerField()
    rejected = serializers.IntegerField()


class ProxyActionSerializer(serializers.ModelSerializer):
    performed_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = ProxyAction
        fields = [
            'id', 'action_type', 'entity_type', 'entity_id', 'performed_by',
            'reason', 'comment', 'metadata', 'created_at',
        ]
        read_only_fields = fields


class ProxyReasonSerializer(serializers.Serializer):
    reason = serializers.CharField()
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class ProxyEntitySerializer(ProxyReasonSerializer):
    entity_type = serializers.ChoiceField(choices=ENTITY_TYPE_CHOICES)
    entity_id = serializers.UUIDField()
    level = serializers.IntegerField(required=False, min_value=1, max_value=3)


class ProxyRejectSerializer(ProxyEntitySerializer):
    comment = serializers.CharField()


class ReassignApproverSerializer(ProxyReasonSerializer):
    approval = serializers.PrimaryKeyRelatedField(queryset=Approval.objects.all())
    new_approver = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())

    def validate_approval(self, value):
        if value.status != Approval.Status.PENDING:
            raise serializers.ValidationError('Only pending approvals can be reassigned')
        return value

    def validate_new_approver(self, value):
        if not value.is_active:
            raise serializers.ValidationError('New approver must be an active user')
        return value


class IssueChangeRequestSerializer(ProxyReasonSerializer):
    kpi = serializers.UUIDField()
    change_type = serializers.ChoiceField(
        choices=ChangeRequest.ChangeType.choices,
        default=ChangeRequest.ChangeType.OTHER,
    )


class ChangeRequestSerializer(serializers.ModelSerializer):
    requested_by = UserSummarySerializer(read_only=True)
    resolved_by = UserSummarySerializer(read_only=True)
    kpi_title = serializers.CharField(source='kpi.title', read_only=True)
    kpi_status = serializers.CharField(source='kpi.status', read_only=True)
    owner = UserSummarySerializer(source='kpi.owner', read_only=True)

    class Meta:
        model = ChangeRequest
        fields = [
            'id', 'kpi', 'kpi_title', 'kpi_status', 'owner', 'change_type', 'reason',
            'previous_status', 'status', 'requested_by', 'resolved_at', 'resolved_by',
            'resolution_comment', 'created_at',
        ]
        read_only_fields = fields


class ResolveChangeRequestSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default='')

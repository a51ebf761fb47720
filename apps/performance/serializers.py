"""
Performance Serializers
"""

from rest_framework import serializers

from apps.authentication.serializers import UserSummarySerializer
from apps.core.upload_validators import validate_upload
from .models import Cycle, Evidence, KpiActual, KpiDefinition, period_validator
from .services import scoring


class CycleSerializer(serializers.ModelSerializer):
    kpi_count = serializers.IntegerField(source='kpis.count', read_only=True)

    class Meta:
        model = Cycle
        fields = [
            'id', 'name', 'type', 'description', 'period_start', 'period_end',
            'status', 'target_users', 'settings', 'opened_at', 'closed_at',
            'kpi_count', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'status', 'opened_at', 'closed_at', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('period_start', getattr(self.instance, 'period_start', None))
        end = attrs.get('period_end', getattr(self.instance, 'period_end', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'period_end': 'End date must be after start date'})
        return attrs


class KpiDefinitionSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(read_only=True)
    approved_by = UserSummarySerializer(read_only=True)
    cycle_name = serializers.CharField(source='cycle.name', read_only=True)
    is_editable = serializers.BooleanField(read_only=True)

    class Meta:
        model = KpiDefinition
        fields = [
            'id', 'owner', 'cycle', 'cycle_name', 'title', 'description', 'type',
            'unit', 'target', 'weight', 'data_source', 'measurement_method',
            'category', 'ogsm_alignment', 'scoring_scale', 'status', 'is_editable',
            'rejection_reason', 'change_request_reason', 'submitted_at',
            'approved_at', 'approved_by', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'owner', 'status', 'rejection_reason', 'change_request_reason',
            'submitted_at', 'approved_at', 'approved_by', 'created_at', 'updated_at',
        ]

    def validate_scoring_scale(self, value):
        if value in (None, ''):
            return []
        if not isinstance(value, list):
            raise serializers.ValidationError('Scoring scale must be a list of threshold / score level pairs')
        return value

    def validate(self, attrs):
        kpi_type = attrs.get('type', getattr(self.instance, 'type', None))
        scale = attrs.get('scoring_scale', getattr(self.instance, 'scoring_scale', None))
        if kpi_type == scoring.MILESTONE:
            problems = scoring.validate_milestone_scale(scale or [])
            if problems:
                raise serializers.ValidationError({'scoring_scale': problems})
        if self.instance is not None and 'cycle' in attrs and attrs['cycle'].pk != self.instance.cycle_id:
            raise serializers.ValidationError({'cycle': 'A KPI cannot be moved to another cycle'})
        return attrs


class KpiSetItemSerializer(serializers.Serializer):
    """Loose KPI shape accepted by the validation dry-run"""
    title = serializers.CharField(required=False, allow_blank=True, default='')
    unit = serializers.CharField(required=False, allow_blank=True, default='')
    target = serializers.FloatField(required=False, default=0)
    weight = serializers.FloatField(required=False, default=0)
    type = serializers.CharField(required=False, allow_blank=True, default='')
    data_source = serializers.CharField(required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')


class KpiSetValidateSerializer(serializers.Serializer):
    kpis = KpiSetItemSerializer(many=True)


class KpiSubmitSetSerializer(serializers.Serializer):
    cycle = serializers.PrimaryKeyRelatedField(queryset=Cycle.objects.all())


class DecisionSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class RejectionSerializer(serializers.Serializer):
    comment = serializers.CharField()


class EvidenceSerializer(serializers.ModelSerializer):
    uploaded_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Evidence
        fields = ['id', 'actual', 'file', 'file_name', 'mime_type', 'size', 'uploaded_by', 'created_at']
        read_only_fields = fields


class EvidenceUploadSerializer(serializers.Serializer):
    file = serializers.FileField(validators=[validate_upload])


class KpiActualSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(read_only=True)
    kpi_title = serializers.CharField(source='kpi.title', read_only=True)
    kpi_type = serializers.CharField(source='kpi.type', read_only=True)
    target = serializers.DecimalField(source='kpi.target', max_digits=14, decimal_places=4, read_only=True)
    evidence = EvidenceSerializer(many=True, read_only=True)

    class Meta:
        model = KpiActual
        fields = [
            'id', 'kpi', 'kpi_title', 'kpi_type', 'target', 'owner', 'period',
            'actual_value', 'percentage', 'score', 'band', 'score_explanation',
            'self_comment', 'status', 'rejection_reason', 'submitted_at',
            'approved_at', 'ai_verification_status', 'ai_discrepancies',
            'ai_checked_at', 'evidence', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class KpiActualWriteSerializer(serializers.Serializer):
    kpi = serializers.PrimaryKeyRelatedField(queryset=KpiDefinition.objects.select_related('owner'))
    period = serializers.CharField(max_length=7, validators=[period_validator])
    actual_value = serializers.DecimalField(max_digits=14, decimal_places=4)
    self_comment = serializers.CharField(required=False, allow_blank=True, default='')
    submit = serializers.BooleanField(required=False, default=True)

"""Organisation serializers"""
from rest_framework import serializers

from .models import OrgUnit


class OrgUnitSerializer(serializers.ModelSerializer):
    parent_name = serializers.CharField(source='parent.name', read_only=True, default=None)
    manager_name = serializers.CharField(source='manager.name', read_only=True, default=None)
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = OrgUnit
        fields = [
            'id', 'name', 'type', 'parent', 'parent_name', 'manager', 'manager_name',
            'description', 'member_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_member_count(self, obj) -> int:
        return obj.members.count()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value

    def validate(self, attrs):
        parent = attrs.get('parent')
        if self.instance is not None and parent is not None:
            if parent.pk == self.instance.pk or any(a.pk == self.instance.pk for a in parent.ancestors()):
                raise serializers.ValidationError({'parent': 'An org unit cannot be its own ancestor.'})
        return attrs

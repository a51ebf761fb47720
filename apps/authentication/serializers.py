"""
Authentication Serializers
"""

from rest_framework import serializers

from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference embedded in other payloads"""

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'department']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """User serializer for listings, profile and admin updates"""

    manager_name = serializers.CharField(source='manager.name', read_only=True, default=None)
    hod_name = serializers.CharField(source='hod.name', read_only=True, default=None)
    org_unit_name = serializers.CharField(source='org_unit.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'employee_id', 'role', 'department',
            'org_unit', 'org_unit_name', 'manager', 'manager_name',
            'hod', 'hod_name', 'status', 'date_joined', 'last_login',
        ]
        read_only_fields = ['id', 'email', 'date_joined', 'last_login']

    def validate(self, attrs):
        instance = self.instance
        for field in ('manager', 'hod'):
            target = attrs.get(field)
            if instance is not None and target is not None and target.pk == instance.pk:
                raise serializers.ValidationError({field: 'A user cannot be their own approver.'})
        return attrs


class UserCreateSerializer(UserSerializer):
    """Admin user creation; email is writable and must be unique"""

    class Meta(UserSerializer.Meta):
        read_only_fields = ['id', 'date_joined', 'last_login']

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email=value).exists():
            raise serializers.ValidationError('User with this email already exists')
        return value

    def create(self, validated_data):
        email = validated_data.pop('email')
        return User.objects.create_user(email=email, **validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()

from rest_framework import serializers
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from .models import User, FileRecord


def _user_payload(user):
    return {
        'id': user.owner_id,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name
    }


class UserRegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'password', 'password_confirm',
                 'first_name', 'last_name')

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError("Password fields didn't match.")
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        return User.objects.create_user(**validated_data)

    def to_representation(self, instance):
        refresh = RefreshToken.for_user(instance)
        return {
            'user': _user_payload(instance),
            'access': str(refresh.access_token),
            'refresh': str(refresh)
        }


class UserLoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        user = authenticate(username=attrs['username'], password=attrs['password'])
        if not user:
            raise serializers.ValidationError('Invalid username or password.')
        if not user.is_active:
            raise serializers.ValidationError('User account is disabled.')

        refresh = RefreshToken.for_user(user)
        attrs['user'] = user
        attrs['access'] = str(refresh.access_token)
        attrs['refresh'] = str(refresh)
        return attrs

    def to_representation(self, instance):
        return {
            'user': _user_payload(instance['user']),
            'access': instance['access'],
            'refresh': instance['refresh']
        }


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()

    def save(self, **kwargs):
        try:
            RefreshToken(self.validated_data['refresh']).blacklist()
        except TokenError:
            raise serializers.ValidationError({'refresh': 'Invalid or expired refresh token.'})


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user's profile (/api/users/me/).
    `id` is the owner prefix used in storage paths.
    """
    id = serializers.CharField(source='owner_id', read_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'first_name', 'last_name', 'created_at')
        read_only_fields = fields


class FileRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = FileRecord
        fields = ('id', 'owner_id', 'storage_path', 'display_name', 'content_type',
                  'size_bytes', 'description', 'is_favorite', 'tags', 'share_token',
                  'created_at')
        read_only_fields = fields


class FileListSerializer(FileRecordSerializer):
    """
    Record plus its short-lived signed download URL
    """
    url = serializers.SerializerMethodField()

    class Meta(FileRecordSerializer.Meta):
        fields = FileRecordSerializer.Meta.fields + ('url',)
        read_only_fields = fields

    def get_url(self, obj):
        return getattr(obj, 'url', None)


class SharedFileSerializer(FileListSerializer):
    """
    Public projection served to share-link visitors. Ownership, tags,
    favorite state, storage path and the token itself never leave the server.
    """
    class Meta(FileRecordSerializer.Meta):
        fields = ('id', 'display_name', 'content_type', 'size_bytes', 'description',
                  'created_at', 'url')
        read_only_fields = fields


class RegisterFileSerializer(serializers.Serializer):
    filePath = serializers.CharField()
    fileName = serializers.CharField(max_length=255)
    fileType = serializers.CharField(max_length=255)
    fileSize = serializers.IntegerField(min_value=0)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class UploadUrlSerializer(serializers.Serializer):
    fileName = serializers.CharField(
        max_length=255,
        error_messages={'required': 'fileName and fileType are required',
                        'blank': 'fileName and fileType are required'}
    )
    fileType = serializers.CharField(
        max_length=255,
        error_messages={'required': 'fileName and fileType are required',
                        'blank': 'fileName and fileType are required'}
    )
    fileSize = serializers.IntegerField(min_value=0, required=False, allow_null=True)


class FileUpdateSerializer(serializers.Serializer):
    id = serializers.CharField(error_messages={'required': 'File ID required',
                                               'blank': 'File ID required'})
    is_favorite = serializers.BooleanField(required=False)
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50),
        required=False
    )
    generate_share_link = serializers.BooleanField(required=False, default=False)
    remove_share_link = serializers.BooleanField(required=False, default=False)

from django.conf import settings
from django.core.files.base import ContentFile
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenRefreshView
from .errors import InvalidInput, NotFound
from .lifecycle import MiB, normalize_content_type, photo_policy
from .serializers import (
    UserRegistrationSerializer, UserLoginSerializer, LogoutSerializer, UserProfileSerializer,
    FileRecordSerializer, FileListSerializer, SharedFileSerializer,
    RegisterFileSerializer, UploadUrlSerializer, FileUpdateSerializer,
)
from .services import get_lifecycle, get_object_store, get_share_resolver
from .storage import DOWNLOAD, UPLOAD


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def register(request):
    """
    Register a new user account
    """
    serializer = UserRegistrationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    return Response(serializer.to_representation(user), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """
    Authenticate user and get JWT tokens
    """
    serializer = UserLoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return Response(serializer.to_representation(serializer.validated_data), status=status.HTTP_200_OK)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """
    Blacklist refresh token (logout)
    """
    serializer = LogoutSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response(status=status.HTTP_205_RESET_CONTENT)


token_refresh = TokenRefreshView.as_view()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_profile(request):
    """
    Get current user's profile information
    """
    serializer = UserProfileSerializer(request.user)
    return Response(serializer.data)


def _record_id(request):
    record_id = request.query_params.get('id')
    if not record_id:
        raise InvalidInput('File ID required')
    return record_id


@api_view(['GET', 'POST', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def files(request):
    """
    GET lists the caller's files, POST uploads a batch, PATCH changes
    favorite/tags/share link, DELETE removes one file (?id=).
    """
    owner_id = request.user.owner_id
    lifecycle = get_lifecycle()

    if request.method == 'POST':
        uploads = request.FILES.getlist('files')
        if not uploads:
            raise InvalidInput('No files provided')
        max_files = settings.AIRDROP_MAX_FILES_PER_UPLOAD
        if len(uploads) > max_files:
            raise InvalidInput(f"Too many files (max {max_files} per upload)")

        result = lifecycle.upload(owner_id, uploads, description=request.data.get('description'))
        body = {
            'success': result.success,
            'uploaded': FileRecordSerializer(result.uploaded, many=True).data,
        }
        if result.errors:
            body['errors'] = result.errors
        return Response(body)

    if request.method == 'PATCH':
        # Fields missing from a form body must stay missing, not read as false
        serializer = FileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not data.get('id'):
            raise InvalidInput('File ID required')
        record = lifecycle.update(
            owner_id,
            data['id'],
            is_favorite=data.get('is_favorite'),
            tags=data.get('tags'),
            generate_share_link=data.get('generate_share_link', False),
            remove_share_link=data.get('remove_share_link', False),
        )
        return Response({'file': FileRecordSerializer(record).data})

    if request.method == 'DELETE':
        lifecycle.delete(owner_id, _record_id(request))
        return Response({'success': True})

    records = lifecycle.list(owner_id)
    return Response({'files': FileListSerializer(records, many=True).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def register_file(request):
    """
    Attach metadata to a blob that was uploaded through a signed upload URL
    """
    serializer = RegisterFileSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    record = get_lifecycle().register(
        request.user.owner_id,
        data['filePath'],
        data['fileName'],
        data['fileType'],
        data['fileSize'],
        description=data.get('description'),
    )
    return Response({'file': FileRecordSerializer(record).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def upload_url(request):
    """
    Issue a signed URL the client can PUT bytes to directly
    """
    serializer = UploadUrlSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return Response(get_lifecycle().prepare_direct_upload(
        request.user.owner_id,
        data['fileName'],
        data['fileType'],
        data.get('fileSize'),
    ))


@api_view(['PUT'])
@authentication_classes([])
@permission_classes([AllowAny])
def blob_upload(request, token):
    """
    Receive the raw bytes for a signed upload URL. The token is the only
    credential; it names exactly one path and never overwrites.
    """
    objects = get_object_store()
    path = objects.resolve_token(token, UPLOAD)

    body = request.body
    max_size = settings.AIRDROP_MAX_FILE_SIZE
    if len(body) > max_size:
        raise InvalidInput(f"File too large (max {max_size // MiB}MB)")

    objects.put(path, ContentFile(body), normalize_content_type(request.content_type))
    return Response({'filePath': path})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def blob_download(request, token):
    """
    Serve a blob to whoever holds a valid signed download link
    """
    objects = get_object_store()
    path = objects.resolve_token(token, DOWNLOAD)
    if not objects.has_object(path):
        raise NotFound('File not found in storage')
    content_type = objects.guess_type(path)
    # Only raster images render inline
    inline = content_type in settings.AIRDROP_PHOTO_TYPES
    return FileResponse(
        objects.open(path),
        content_type=content_type,
        as_attachment=not inline,
        filename=path.rsplit('/', 1)[-1],
    )


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def photos(request):
    """
    Single-image variant: JPEG/PNG/GIF/WebP only, 10MB per photo.
    """
    owner_id = request.user.owner_id
    lifecycle = get_lifecycle()

    if request.method == 'POST':
        upload = request.FILES.get('file')
        if upload is None:
            raise InvalidInput('No file provided')
        record = lifecycle.ingest(owner_id, upload, policy=photo_policy())
        return Response({'success': True, 'photo': FileRecordSerializer(record).data})

    if request.method == 'DELETE':
        lifecycle.delete(owner_id, _record_id(request))
        return Response({'success': True})

    records = lifecycle.list(owner_id, content_types=list(settings.AIRDROP_PHOTO_TYPES))
    return Response({'photos': FileListSerializer(records, many=True).data})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def share(request):
    """
    Public read of one shared file. No account needed, only the token.
    """
    token = request.query_params.get('token')
    if not token:
        raise InvalidInput('Share token required')
    record = get_share_resolver().resolve(token)
    return Response({'file': SharedFileSerializer(record).data})

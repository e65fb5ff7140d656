"""
Direct Upload API Tests

Test suite for the signed-URL upload flow:
- POST /api/files/upload-url/
- PUT /api/files/blob/upload/<token>/
- POST /api/files/register/
"""

from django.urls import reverse
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from .models import FileRecord
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class DirectUploadAPITests(TemporaryMediaMixin, APITestCase):

    def setUp(self):
        """Set up test data"""
        self.upload_url_url = reverse('file_upload_url')
        self.register_url = reverse('file_register')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )
        self.other_user = User.objects.create_user(
            username='otheruser',
            email='other@example.com',
            password='testpass123'
        )
        self.owner_id = str(self.user.pk)
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))

    def _request_upload(self, **overrides):
        data = {'fileName': 'photo.PNG', 'fileType': 'image/png', 'fileSize': 11}
        data.update(overrides)
        return self.client.post(self.upload_url_url, data, format='json')

    def _register_payload(self, file_path, **overrides):
        data = {
            'filePath': file_path,
            'fileName': 'photo.PNG',
            'fileType': 'image/png',
            'fileSize': 11,
        }
        data.update(overrides)
        return data

    def test_full_direct_upload_flow(self):
        """Test upload-url -> PUT bytes -> register creates a record pointing at the blob"""
        response = self._request_upload()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(set(response.data), {'signedUrl', 'token', 'filePath', 'fileName'})
        self.assertEqual(response.data['filePath'], f"{self.owner_id}/{response.data['fileName']}")
        self.assertTrue(response.data['fileName'].endswith('.png'))

        put = self.client.put(response.data['signedUrl'], b'png-bytes!!', content_type='image/png')
        self.assertEqual(put.status_code, status.HTTP_200_OK)
        self.assertEqual(put.data, {'filePath': response.data['filePath']})
        self.assertTrue(default_storage.exists(response.data['filePath']))

        register = self.client.post(
            self.register_url,
            self._register_payload(response.data['filePath'], description='from phone'),
            format='json'
        )

        self.assertEqual(register.status_code, status.HTTP_200_OK)
        record = register.data['file']
        self.assertEqual(record['storage_path'], response.data['filePath'])
        self.assertEqual(record['display_name'], 'photo.PNG')
        self.assertEqual(record['content_type'], 'image/png')
        self.assertEqual(record['size_bytes'], 11)
        self.assertEqual(record['description'], 'from phone')
        self.assertFalse(record['is_favorite'])
        self.assertEqual(record['tags'], [])
        self.assertIsNone(record['share_token'])

    def test_upload_url_missing_fields(self):
        """Test that fileName and fileType are required"""
        response = self.client.post(self.upload_url_url, {'fileName': 'a.txt'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('fileName and fileType are required', response.data['error'])

    @override_settings(AIRDROP_MAX_FILE_SIZE=10)
    def test_upload_url_oversize(self):
        """Test that a declared size over the ceiling is refused up front"""
        response = self._request_upload(fileSize=11)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('File too large', response.data['error'])

    def test_signed_upload_rejects_bad_token(self):
        """Test that a forged upload token is refused"""
        response = self.client.put(
            reverse('blob_upload', args=['forged:token']),
            b'data',
            content_type='text/plain'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_signed_upload_never_overwrites(self):
        """Test that a second PUT to the same signed url fails instead of replacing the blob"""
        signed_url = self._request_upload().data['signedUrl']
        first = self.client.put(signed_url, b'original', content_type='image/png')
        second = self.client.put(signed_url, b'replaced', content_type='image/png')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        with default_storage.open(first.data['filePath'], 'rb') as stored:
            self.assertEqual(stored.read(), b'original')

    @override_settings(AIRDROP_MAX_FILE_SIZE=4)
    def test_signed_upload_oversize_body(self):
        """Test that the upload target enforces the size ceiling on the actual bytes"""
        signed_url = self._request_upload(fileSize=None).data['signedUrl']
        response = self.client.put(signed_url, b'too many bytes', content_type='image/png')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_other_users_path_forbidden(self):
        """Test that claiming a path in another user's prefix is a 403 and creates nothing"""
        foreign_path = f'{self.other_user.pk}/x.png'
        default_storage.save(foreign_path, ContentFile(b'theirs'))

        response = self.client.post(self.register_url, self._register_payload(foreign_path), format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data, {'error': 'Invalid file path'})
        self.assertFalse(FileRecord.objects.exists())

    def test_register_traversal_path_forbidden(self):
        """Test that a path escaping the owner's prefix is refused"""
        sneaky = f'{self.owner_id}/../{self.other_user.pk}/x.png'
        response = self.client.post(self.register_url, self._register_payload(sneaky), format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(FileRecord.objects.exists())

    def test_register_missing_blob(self):
        """Test that metadata cannot be attached to a blob that is not there"""
        path = f'{self.owner_id}/never-uploaded.png'
        response = self.client.post(self.register_url, self._register_payload(path), format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'File not found in storage'})
        self.assertFalse(FileRecord.objects.exists())

    def test_register_same_path_twice(self):
        """Test that a second register of one blob is a client error and keeps the first record"""
        path = f'{self.owner_id}/twice.png'
        default_storage.save(path, ContentFile(b'png-bytes!!'))
        first = self.client.post(self.register_url, self._register_payload(path), format='json')

        response = self.client.post(self.register_url, self._register_payload(path), format='json')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'File already registered'})
        self.assertEqual(FileRecord.objects.filter(storage_path=path).count(), 1)

    def test_register_missing_fields(self):
        """Test that register validates its body"""
        response = self.client.post(self.register_url, {'filePath': f'{self.owner_id}/a.png'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('fileName', response.data['details'])

    def test_register_unauthenticated(self):
        """Test register without authentication"""
        self.client.credentials()
        response = self.client.post(self.register_url, self._register_payload('x/y.png'), format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

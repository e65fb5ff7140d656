from unittest.mock import patch
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.files.storage import default_storage
from .models import FileRecord
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class FileDeleteAPITests(TemporaryMediaMixin, APITestCase):
    """
    Test suite for file deletion:
    - DELETE /api/files/?id=
    """

    def setUp(self):
        """Set up test data"""
        self.files_url = reverse('files')

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

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))
        response = self.client.post(self.files_url, {
            'files': [SimpleUploadedFile('delete_me.txt', b'bye', content_type='text/plain')]
        }, format='multipart')
        self.record = response.data['uploaded'][0]

    def _delete(self, file_id):
        return self.client.delete(f'{self.files_url}?id={file_id}')

    def test_delete_removes_blob_and_record(self):
        """Test that delete removes both the blob and the metadata row"""
        self.assertTrue(default_storage.exists(self.record['storage_path']))

        response = self._delete(self.record['id'])

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True})
        self.assertFalse(default_storage.exists(self.record['storage_path']))
        self.assertFalse(FileRecord.objects.filter(id=self.record['id']).exists())

        listing = self.client.get(self.files_url)
        self.assertEqual(listing.data['files'], [])

    def test_delete_missing_id(self):
        """Test delete without an id"""
        response = self.client.delete(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'File ID required'})

    def test_delete_nonexistent_file(self):
        """Test deleting a record that does not exist"""
        response = self._delete('00000000-0000-0000-0000-000000000000')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_other_users_file(self):
        """Test that another user cannot delete the file, and nothing is touched"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.other_user))
        response = self._delete(self.record['id'])

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(default_storage.exists(self.record['storage_path']))
        self.assertTrue(FileRecord.objects.filter(id=self.record['id']).exists())

    def test_delete_twice(self):
        """Test that a second delete of the same record is a 404"""
        self._delete(self.record['id'])
        response = self._delete(self.record['id'])

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_unauthenticated(self):
        """Test delete without authentication"""
        self.client.credentials()
        response = self._delete(self.record['id'])

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_delete_file_with_storage_error(self):
        """Test that the record is removed even when the blob delete fails"""
        with patch.object(default_storage, 'delete', side_effect=OSError('Storage error')):
            response = self._delete(self.record['id'])

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(FileRecord.objects.filter(id=self.record['id']).exists())
        # The blob is left behind as an orphan
        self.assertTrue(default_storage.exists(self.record['storage_path']))

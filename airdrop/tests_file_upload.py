from unittest.mock import patch
from django.urls import reverse
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.files.storage import default_storage
from .errors import MetadataError, StorageError
from .models import FileRecord
from .records import FileRecordStore
from .storage import ObjectStore
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class FileUploadAPITests(TemporaryMediaMixin, APITestCase):
    """
    Test suite for the batch upload endpoint:
    - POST /api/files/
    """

    def setUp(self):
        """Set up test data"""
        self.files_url = reverse('files')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )
        self.owner_id = str(self.user.pk)
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))

        self.test_file_content = b"This is a test file content for upload testing."

    def _file(self, name, content=None, content_type='text/plain'):
        return SimpleUploadedFile(name, content if content is not None else self.test_file_content,
                                  content_type=content_type)

    def test_file_upload_success(self):
        """Test successful upload of a single file"""
        response = self.client.post(self.files_url, {'files': [self._file('test.txt')]}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertNotIn('errors', response.data)
        self.assertEqual(len(response.data['uploaded']), 1)

        record = response.data['uploaded'][0]
        self.assertEqual(record['display_name'], 'test.txt')
        self.assertEqual(record['owner_id'], self.owner_id)
        self.assertEqual(record['content_type'], 'text/plain')
        self.assertEqual(record['size_bytes'], len(self.test_file_content))
        self.assertFalse(record['is_favorite'])
        self.assertEqual(record['tags'], [])
        self.assertIsNone(record['share_token'])
        self.assertIsNone(record['description'])
        self.assertIn('created_at', record)

        # Blob is in place under the owner's prefix with the uploaded bytes
        self.assertTrue(record['storage_path'].startswith(f'{self.owner_id}/'))
        self.assertTrue(record['storage_path'].endswith('.txt'))
        self.assertTrue(default_storage.exists(record['storage_path']))
        with default_storage.open(record['storage_path'], 'rb') as stored:
            self.assertEqual(stored.read(), self.test_file_content)

    def test_file_upload_multiple_with_description(self):
        """Test that a shared description is applied to every file in the batch"""
        data = {
            'files': [self._file('a.txt'), self._file('b.txt')],
            'description': 'holiday notes'
        }
        response = self.client.post(self.files_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['uploaded']), 2)
        for record in response.data['uploaded']:
            self.assertEqual(record['description'], 'holiday notes')

        paths = {r['storage_path'] for r in response.data['uploaded']}
        self.assertEqual(len(paths), 2)
        self.assertEqual(FileRecord.objects.filter(owner_id=self.owner_id).count(), 2)

    @override_settings(AIRDROP_MAX_FILE_SIZE=1024)
    def test_oversized_file_does_not_affect_siblings(self):
        """Test that one oversized file is reported while the rest of the batch succeeds"""
        data = {
            'files': [
                self._file('ok.txt', b'x' * 512),
                self._file('big.bin', b'x' * 2048, 'application/octet-stream'),
            ]
        }
        response = self.client.post(self.files_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual([r['display_name'] for r in response.data['uploaded']], ['ok.txt'])
        self.assertEqual(len(response.data['errors']), 1)
        self.assertIn('big.bin', response.data['errors'][0])
        self.assertIn('File too large', response.data['errors'][0])
        self.assertFalse(FileRecord.objects.filter(display_name='big.bin').exists())

    @override_settings(AIRDROP_MAX_FILE_SIZE=16)
    def test_all_files_rejected(self):
        """Test that success is false when nothing in the batch was stored"""
        response = self.client.post(self.files_url, {'files': [self._file('big.txt')]}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['uploaded'], [])
        self.assertEqual(len(response.data['errors']), 1)

    def test_file_upload_missing_files(self):
        """Test upload with no files in the request"""
        response = self.client.post(self.files_url, {'description': 'nothing'}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'No files provided'})

    @override_settings(AIRDROP_MAX_FILES_PER_UPLOAD=2)
    def test_file_upload_too_many_files(self):
        """Test that a batch larger than the per-request limit is refused"""
        data = {'files': [self._file(f'{i}.txt') for i in range(3)]}
        response = self.client.post(self.files_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(FileRecord.objects.exists())

    def test_file_upload_unauthenticated(self):
        """Test upload without authentication"""
        self.client.credentials()
        response = self.client.post(self.files_url, {'files': [self._file('test.txt')]}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    def test_storage_name_extension_sanitized(self):
        """Test that the stored name keeps only a lowercase alphanumeric extension"""
        data = {
            'files': [
                self._file('Report.P-D_F', content_type='application/pdf'),
                self._file('README', content_type='image/png'),
                self._file('noext', content_type='not a mime type'),
            ]
        }
        response = self.client.post(self.files_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_name = {r['display_name']: r for r in response.data['uploaded']}
        self.assertTrue(by_name['Report.P-D_F']['storage_path'].endswith('.pdf'))
        self.assertTrue(by_name['README']['storage_path'].endswith('.png'))
        self.assertTrue(by_name['noext']['storage_path'].endswith('.bin'))
        self.assertEqual(by_name['noext']['content_type'], 'application/octet-stream')

    def test_same_filename_gets_distinct_paths(self):
        """Test that uploading the same name twice never collides in storage"""
        first = self.client.post(self.files_url, {'files': [self._file('same.txt')]}, format='multipart')
        second = self.client.post(self.files_url, {'files': [self._file('same.txt')]}, format='multipart')

        path1 = first.data['uploaded'][0]['storage_path']
        path2 = second.data['uploaded'][0]['storage_path']
        self.assertNotEqual(path1, path2)
        self.assertTrue(default_storage.exists(path1))
        self.assertTrue(default_storage.exists(path2))

    def test_metadata_failure_removes_blob(self):
        """Test that a failed insert cleans up the blob it just wrote"""
        with patch.object(FileRecordStore, 'insert', side_effect=MetadataError('Failed to save file metadata')):
            response = self.client.post(self.files_url, {'files': [self._file('test.txt')]}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['errors'], ['test.txt: Failed to save metadata'])

        _dirs, stored = default_storage.listdir(self.owner_id)
        self.assertEqual(stored, [])

    def test_storage_failure_reported_per_file(self):
        """Test that a storage error fails only that file and creates no record"""
        real_put = ObjectStore.put
        calls = []

        def flaky_put(store, path, content, content_type, overwrite=False):
            calls.append(path)
            if len(calls) == 1:
                raise StorageError('disk full')
            return real_put(store, path, content, content_type, overwrite=overwrite)

        with patch.object(ObjectStore, 'put', flaky_put):
            data = {'files': [self._file('first.txt'), self._file('second.txt')]}
            response = self.client.post(self.files_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['errors'], ['first.txt: Upload failed'])
        self.assertEqual([r['display_name'] for r in response.data['uploaded']], ['second.txt'])
        self.assertFalse(FileRecord.objects.filter(display_name='first.txt').exists())

"""
File Listing API Tests

Test suite for file listing functionality:
- GET /api/files/
- GET /api/files/blob/<token>/
"""

import time
from datetime import timedelta
from unittest.mock import patch
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from .models import FileRecord
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class FileListAPITests(TemporaryMediaMixin, APITestCase):
    """Test suite for the file listing endpoint and signed download links"""

    def setUp(self):
        """Set up test data"""
        self.files_url = reverse('files')

        self.user1 = User.objects.create_user(
            username='testuser1',
            email='test1@example.com',
            password='testpass123'
        )
        self.user2 = User.objects.create_user(
            username='testuser2',
            email='test2@example.com',
            password='testpass123'
        )

        self.setup_test_files()

    def setup_test_files(self):
        """Upload three files for user1, oldest first"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user1))

        test_files = [
            ('document.pdf', b'%PDF-1.4 fake pdf content', 'application/pdf'),
            ('image.jpg', b'fake jpeg content', 'image/jpeg'),
            ('text.txt', b'simple text file content', 'text/plain'),
        ]

        self.uploaded_files = []
        now = timezone.now()
        for offset, (filename, content, content_type) in enumerate(test_files):
            uploaded_file = SimpleUploadedFile(filename, content, content_type=content_type)
            response = self.client.post(self.files_url, {'files': [uploaded_file]}, format='multipart')
            record = response.data['uploaded'][0]
            # Pin creation times so ordering does not depend on clock resolution
            FileRecord.objects.filter(id=record['id']).update(
                created_at=now - timedelta(minutes=len(test_files) - offset)
            )
            self.uploaded_files.append(record)

    def test_file_list_success(self):
        """Test that the owner gets every file, newest first"""
        response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [f['display_name'] for f in response.data['files']]
        self.assertEqual(names, ['text.txt', 'image.jpg', 'document.pdf'])

    def test_file_list_response_format(self):
        """Test that each listed record carries the full record plus a url"""
        response = self.client.get(self.files_url)

        file_data = response.data['files'][0]
        for field in ('id', 'owner_id', 'storage_path', 'display_name', 'content_type',
                      'size_bytes', 'description', 'is_favorite', 'tags', 'share_token',
                      'created_at', 'url'):
            self.assertIn(field, file_data)
        self.assertIsNotNone(file_data['url'])

    def test_file_list_unauthenticated(self):
        """Test listing without authentication"""
        self.client.credentials()
        response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_file_list_user_isolation(self):
        """Test that users never see each other's files"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user2))
        self.client.post(self.files_url, {
            'files': [SimpleUploadedFile('mine.txt', b'user2 data', content_type='text/plain')]
        }, format='multipart')

        response = self.client.get(self.files_url)
        self.assertEqual([f['display_name'] for f in response.data['files']], ['mine.txt'])
        self.assertEqual(response.data['files'][0]['owner_id'], str(self.user2.pk))

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user1))
        response = self.client.get(self.files_url)
        self.assertEqual(len(response.data['files']), 3)
        self.assertTrue(all(f['owner_id'] == str(self.user1.pk) for f in response.data['files']))

    def test_file_list_no_files(self):
        """Test listing for a user with no files"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user2))
        response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'files': []})

    def test_signed_url_downloads_blob(self):
        """Test that the signed url serves the stored bytes without any credentials"""
        response = self.client.get(self.files_url)
        pdf = next(f for f in response.data['files'] if f['display_name'] == 'document.pdf')

        self.client.credentials()
        download = self.client.get(pdf['url'])

        self.assertEqual(download.status_code, status.HTTP_200_OK)
        self.assertEqual(download['Content-Type'], 'application/pdf')
        self.assertEqual(b''.join(download.streaming_content), b'%PDF-1.4 fake pdf content')
        download.close()

    def test_signed_url_disposition(self):
        """Test that raster images open inline and everything else downloads"""
        self.client.post(self.files_url, {
            'files': [SimpleUploadedFile('page.html', b'<script>alert(1)</script>', content_type='text/html')]
        }, format='multipart')
        files = {f['display_name']: f for f in self.client.get(self.files_url).data['files']}
        self.client.credentials()

        page = self.client.get(files['page.html']['url'])
        self.assertTrue(page['Content-Disposition'].startswith('attachment'))
        self.assertEqual(page['X-Content-Type-Options'], 'nosniff')
        page.close()

        image = self.client.get(files['image.jpg']['url'])
        self.assertTrue(image['Content-Disposition'].startswith('inline'))
        self.assertEqual(image['Content-Type'], 'image/jpeg')
        image.close()

    def test_signed_url_expires(self):
        """Test that a signed url stops working after its lifetime"""
        response = self.client.get(self.files_url)
        url = response.data['files'][0]['url']

        later = time.time() + 3601
        with patch('airdrop.storage.time.time', return_value=later):
            download = self.client.get(url)

        self.assertEqual(download.status_code, status.HTTP_403_FORBIDDEN)

    def test_tampered_signed_url_rejected(self):
        """Test that a modified token is refused"""
        token = 'not-a-real-token:abc'
        download = self.client.get(reverse('blob_download', args=[token]))

        self.assertEqual(download.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', download.data)

    def test_url_failure_degrades_to_null(self):
        """Test that a signing failure nulls the url but still lists the file"""
        with patch('airdrop.storage.signing.dumps', side_effect=RuntimeError('signer down')):
            response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['files']), 3)
        self.assertTrue(all(f['url'] is None for f in response.data['files']))

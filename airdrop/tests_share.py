from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class ShareAPITests(TemporaryMediaMixin, APITestCase):
    """
    Test suite for the public share endpoint:
    - GET /api/share/?token=
    """

    def setUp(self):
        """Upload a tagged, favorited, shared file"""
        self.files_url = reverse('files')
        self.share_url = reverse('share')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))

        upload = self.client.post(self.files_url, {
            'files': [SimpleUploadedFile('slides.pdf', b'%PDF-1.4 slides', content_type='application/pdf')],
            'description': 'talk slides'
        }, format='multipart')
        self.file_id = upload.data['uploaded'][0]['id']

        response = self.client.patch(self.files_url, {
            'id': self.file_id,
            'tags': ['private-tag'],
            'is_favorite': True,
            'generate_share_link': True
        }, format='json')
        self.token = response.data['file']['share_token']

        # Everything below is an anonymous visitor
        self.client.credentials()

    def test_share_success(self):
        """Test that a valid token returns the reduced projection"""
        response = self.client.get(self.share_url, {'token': self.token})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['id'], self.file_id)
        self.assertEqual(response.data['file']['display_name'], 'slides.pdf')
        self.assertEqual(response.data['file']['content_type'], 'application/pdf')
        self.assertEqual(response.data['file']['size_bytes'], len(b'%PDF-1.4 slides'))
        self.assertEqual(response.data['file']['description'], 'talk slides')
        self.assertIn('created_at', response.data['file'])
        self.assertIsNotNone(response.data['file']['url'])

    def test_share_hides_private_fields(self):
        """Test that owner, tags, favorite state, path and token never leak"""
        response = self.client.get(self.share_url, {'token': self.token})

        shared = response.data['file']
        for field in ('owner_id', 'tags', 'is_favorite', 'share_token', 'storage_path'):
            self.assertNotIn(field, shared)
        self.assertNotIn(self.token, str(response.content))

    def test_share_url_downloads(self):
        """Test that the shared url serves the file to an anonymous visitor"""
        response = self.client.get(self.share_url, {'token': self.token})

        download = self.client.get(response.data['file']['url'])
        self.assertEqual(download.status_code, status.HTTP_200_OK)
        self.assertEqual(b''.join(download.streaming_content), b'%PDF-1.4 slides')
        download.close()

    def test_share_missing_token(self):
        """Test that the token parameter is required"""
        response = self.client.get(self.share_url)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Share token required'})

    def test_share_unknown_token(self):
        """Test that an unknown token is a 404"""
        response = self.client.get(self.share_url, {'token': 'does-not-exist'})

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'File not found or not shared'})

from django.urls import reverse
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.files.storage import default_storage
from .models import FileRecord
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class PhotoAPITests(TemporaryMediaMixin, APITestCase):
    """
    Test suite for the image-only variant:
    - POST/GET/DELETE /api/photos/
    """

    def setUp(self):
        """Set up test data"""
        self.photos_url = reverse('photos')
        self.files_url = reverse('files')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )
        self.owner_id = str(self.user.pk)
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))

    def _photo(self, name='cat.jpg', content=b'\xff\xd8\xff fake jpeg', content_type='image/jpeg'):
        return SimpleUploadedFile(name, content, content_type=content_type)

    def test_photo_upload_success(self):
        """Test uploading a single allowed image"""
        response = self.client.post(self.photos_url, {'file': self._photo()}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        photo = response.data['photo']
        self.assertTrue(photo['storage_path'].startswith(f'{self.owner_id}/'))
        self.assertTrue(photo['storage_path'].endswith('.jpg'))
        self.assertEqual(photo['content_type'], 'image/jpeg')
        self.assertTrue(default_storage.exists(photo['storage_path']))

    def test_photo_missing_file(self):
        """Test photo upload without a file"""
        response = self.client.post(self.photos_url, {}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'No file provided'})

    def test_photo_disallowed_type(self):
        """Test that non-image types fail the whole request"""
        response = self.client.post(
            self.photos_url,
            {'file': self._photo('doc.pdf', b'%PDF', 'application/pdf')},
            format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid file type', response.data['error'])
        self.assertFalse(FileRecord.objects.exists())

    @override_settings(AIRDROP_MAX_PHOTO_SIZE=8)
    def test_photo_too_large(self):
        """Test that the photo ceiling is enforced"""
        response = self.client.post(self.photos_url, {'file': self._photo()}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('File too large', response.data['error'])
        self.assertFalse(FileRecord.objects.exists())

    def test_photo_list_only_images(self):
        """Test that the photo listing skips non-image files"""
        self.client.post(self.photos_url, {'file': self._photo('a.png', b'png', 'image/png')}, format='multipart')
        self.client.post(self.files_url, {
            'files': [SimpleUploadedFile('notes.txt', b'text', content_type='text/plain')]
        }, format='multipart')

        response = self.client.get(self.photos_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['display_name'] for p in response.data['photos']], ['a.png'])
        self.assertIsNotNone(response.data['photos'][0]['url'])

    def test_photo_delete(self):
        """Test deleting a photo removes blob and record"""
        photo = self.client.post(self.photos_url, {'file': self._photo()}, format='multipart').data['photo']

        response = self.client.delete(f"{self.photos_url}?id={photo['id']}")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True})
        self.assertFalse(default_storage.exists(photo['storage_path']))
        self.assertFalse(FileRecord.objects.filter(id=photo['id']).exists())

from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class UserProfileAPITests(TemporaryMediaMixin, APITestCase):
    """
    Test suite for /api/users/me/
    """

    def setUp(self):
        self.profile_url = reverse('user_profile')
        self.user = User.objects.create_user(
            username='alice',
            email='alice@example.com',
            password='correct-horse-42',
            first_name='Alice'
        )

    def test_profile_fields(self):
        """Test the profile payload, with created_at as the only moving part"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))
        response = self.client.get(self.profile_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        profile = dict(response.data)
        self.assertTrue(profile.pop('created_at'))
        self.assertEqual(profile, {
            'id': self.user.owner_id,
            'username': 'alice',
            'email': 'alice@example.com',
            'first_name': 'Alice',
            'last_name': ''
        })

    def test_profile_id_prefixes_storage_paths(self):
        """Test that the profile id is the prefix of the caller's uploads"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))
        upload = self.client.post(reverse('files'), {
            'files': [SimpleUploadedFile('a.txt', b'a', content_type='text/plain')]
        }, format='multipart')

        profile_id = self.client.get(self.profile_url).data['id']

        self.assertTrue(upload.data['uploaded'][0]['storage_path'].startswith(f'{profile_id}/'))
        self.assertEqual(upload.data['uploaded'][0]['owner_id'], profile_id)

    def test_profile_requires_authentication(self):
        response = self.client.get(self.profile_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

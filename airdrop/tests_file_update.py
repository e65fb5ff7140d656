from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from .models import FileRecord
from .testing import TemporaryMediaMixin, bearer

User = get_user_model()


class FileUpdateAPITests(TemporaryMediaMixin, APITestCase):
    """
    Test suite for owner mutations:
    - PATCH /api/files/ (favorite, tags, share link)
    """

    def setUp(self):
        """Set up test data"""
        self.files_url = reverse('files')
        self.share_url = reverse('share')

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
            'files': [SimpleUploadedFile('notes.txt', b'some notes', content_type='text/plain')]
        }, format='multipart')
        self.file_id = response.data['uploaded'][0]['id']

    def _patch(self, **data):
        data.setdefault('id', self.file_id)
        return self.client.patch(self.files_url, data, format='json')

    def test_toggle_favorite_only(self):
        """Test that setting is_favorite leaves tags and share token untouched"""
        self._patch(tags=['work'], generate_share_link=True)
        before = FileRecord.objects.get(id=self.file_id)

        response = self._patch(is_favorite=True)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['file']['is_favorite'])
        self.assertEqual(response.data['file']['tags'], ['work'])
        self.assertEqual(response.data['file']['share_token'], before.share_token)

    def test_toggle_favorite_twice_round_trip(self):
        """Test that toggling twice restores the original value"""
        original = FileRecord.objects.get(id=self.file_id).is_favorite

        self._patch(is_favorite=not original)
        response = self._patch(is_favorite=original)

        self.assertEqual(response.data['file']['is_favorite'], original)
        self.assertEqual(FileRecord.objects.get(id=self.file_id).is_favorite, original)

    def test_replace_tags(self):
        """Test that tags are replaced wholesale, keeping order and duplicates"""
        self._patch(tags=['a', 'b'])
        response = self._patch(tags=['z', 'a', 'z'])

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['tags'], ['z', 'a', 'z'])

    def test_clear_tags(self):
        """Test that an empty list clears the tags"""
        self._patch(tags=['a'])
        response = self._patch(tags=[])

        self.assertEqual(response.data['file']['tags'], [])

    def test_tag_too_long(self):
        """Test that over-long tags are rejected"""
        response = self._patch(tags=['x' * 51])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('tags', response.data['details'])
        self.assertEqual(FileRecord.objects.get(id=self.file_id).tags, [])

    def test_patch_without_changes_returns_record(self):
        """Test that a patch naming only the id returns the record unchanged"""
        response = self._patch()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['id'], self.file_id)

    def test_missing_id(self):
        """Test that the id is required"""
        response = self.client.patch(self.files_url, {'is_favorite': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('File ID required', response.data['error'])

    def test_not_owner_looks_like_not_found(self):
        """Test that another user's file is indistinguishable from a missing one"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.other_user))
        response = self._patch(is_favorite=True)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'File not found'})
        self.assertFalse(FileRecord.objects.get(id=self.file_id).is_favorite)

    def test_malformed_id(self):
        """Test that a malformed id is a plain not found"""
        response = self._patch(id='not-a-uuid', is_favorite=True)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_generate_share_link(self):
        """Test that generating a link makes the file publicly readable"""
        response = self._patch(generate_share_link=True)
        token = response.data['file']['share_token']

        self.assertTrue(token)
        self.client.credentials()
        shared = self.client.get(self.share_url, {'token': token})
        self.assertEqual(shared.status_code, status.HTTP_200_OK)
        self.assertEqual(shared.data['file']['id'], self.file_id)

    def test_regenerate_invalidates_old_link(self):
        """Test that a second generation kills the first token"""
        old_token = self._patch(generate_share_link=True).data['file']['share_token']
        new_token = self._patch(generate_share_link=True).data['file']['share_token']

        self.assertNotEqual(old_token, new_token)
        self.client.credentials()
        self.assertEqual(self.client.get(self.share_url, {'token': old_token}).status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(self.share_url, {'token': new_token}).status_code,
                         status.HTTP_200_OK)

    def test_remove_share_link(self):
        """Test that revoking makes the previous link return 404"""
        token = self._patch(generate_share_link=True).data['file']['share_token']

        response = self._patch(remove_share_link=True)
        self.assertIsNone(response.data['file']['share_token'])

        self.client.credentials()
        shared = self.client.get(self.share_url, {'token': token})
        self.assertEqual(shared.status_code, status.HTTP_404_NOT_FOUND)

    def test_generate_and_remove_together_removes(self):
        """Test that asking for both in one call leaves no share token"""
        old_token = self._patch(generate_share_link=True).data['file']['share_token']

        response = self._patch(generate_share_link=True, remove_share_link=True)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['file']['share_token'])
        self.assertIsNone(FileRecord.objects.get(id=self.file_id).share_token)
        self.client.credentials()
        self.assertEqual(self.client.get(self.share_url, {'token': old_token}).status_code,
                         status.HTTP_404_NOT_FOUND)

    def test_form_patch_leaves_absent_fields_alone(self):
        """Test that a multipart body naming only the share flag keeps favorite and tags"""
        self._patch(is_favorite=True, tags=['work'])

        response = self.client.patch(self.files_url, {
            'id': self.file_id,
            'generate_share_link': 'true'
        }, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        record = FileRecord.objects.get(id=self.file_id)
        self.assertTrue(record.is_favorite)
        self.assertEqual(record.tags, ['work'])
        self.assertIsNotNone(record.share_token)

    def test_form_patch_missing_id(self):
        """Test that a multipart body without an id is still rejected"""
        response = self.client.patch(self.files_url, {'is_favorite': 'true'}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'File ID required'})

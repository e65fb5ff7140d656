"""
Identity endpoints. The user id handed out here is the owner id that prefixes
every storage path, so most checks come back to that contract.
"""
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from django.contrib.auth import get_user_model

User = get_user_model()

SIGNUP = {
    'username': 'alice',
    'email': 'alice@example.com',
    'password': 'correct-horse-42',
    'password_confirm': 'correct-horse-42',
}


class SessionAPITests(APITestCase):

    def setUp(self):
        self.register_url = reverse('register')
        self.login_url = reverse('login')
        self.logout_url = reverse('logout')
        self.refresh_url = reverse('token_refresh')

    def _signup(self, **overrides):
        return self.client.post(self.register_url, {**SIGNUP, **overrides}, format='json')

    def _login(self, password=SIGNUP['password']):
        return self.client.post(self.login_url, {'username': 'alice', 'password': password}, format='json')

    def test_register_returns_owner_id_and_tokens(self):
        response = self._signup()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['id'], User.objects.get(username='alice').owner_id)
        self.assertTrue(response.data['access'])
        self.assertTrue(response.data['refresh'])

    def test_login_returns_same_owner_id(self):
        signup = self._signup()

        response = self._login()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], signup.data['user']['id'])

    def test_register_errors_use_error_envelope(self):
        self._signup()

        mismatch = self._signup(username='bob', email='bob@example.com', password_confirm='nope')
        duplicate = self._signup(username='carol')

        self.assertEqual(mismatch.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(mismatch.data['error'], "Password fields didn't match.")
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', duplicate.data['details'])

    def test_login_wrong_password(self):
        self._signup()

        response = self._login(password='wrong')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {
            'error': 'Invalid username or password.',
            'details': {'non_field_errors': ['Invalid username or password.']},
        })

    def test_logout_blacklists_refresh_token(self):
        tokens = self._signup().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        logout = self.client.post(self.logout_url, {'refresh': tokens['refresh']}, format='json')
        refresh = self.client.post(self.refresh_url, {'refresh': tokens['refresh']}, format='json')

        self.assertEqual(logout.status_code, status.HTTP_205_RESET_CONTENT)
        self.assertEqual(refresh.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', refresh.data)

    def test_logout_with_bad_refresh_token(self):
        tokens = self._signup().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post(self.logout_url, {'refresh': 'garbage'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'refresh: Invalid or expired refresh token.')

    def test_refresh_issues_new_access_token(self):
        tokens = self._signup().data

        response = self.client.post(self.refresh_url, {'refresh': tokens['refresh']}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_bad_bearer_token_is_unauthenticated(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')

        response = self.client.get(reverse('files'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

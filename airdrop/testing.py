import shutil
import tempfile

from django.test import override_settings
from rest_framework_simplejwt.tokens import RefreshToken


class TemporaryMediaMixin:
    """
    Points the default storage at a throwaway directory for one test class.
    List it before APITestCase in the bases.
    """

    @classmethod
    def setUpClass(cls):
        cls.media_root = tempfile.mkdtemp(prefix='airdrop-test-')
        cls._media_override = override_settings(MEDIA_ROOT=cls.media_root)
        cls._media_override.enable()
        super().setUpClass()

    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        cls._media_override.disable()
        shutil.rmtree(cls.media_root, ignore_errors=True)


def bearer(user):
    return f'Bearer {RefreshToken.for_user(user).access_token}'

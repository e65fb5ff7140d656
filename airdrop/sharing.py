from django.conf import settings

from .errors import NotFound


class ShareResolver:
    """
    Public read path: maps a share token to one record without any identity.
    Unknown and revoked tokens are indistinguishable.
    """

    def __init__(self, objects, records):
        self.objects = objects
        self.records = records

    def resolve(self, token):
        record = self.records.select_by_share_token(token)
        if record is None:
            raise NotFound('File not found or not shared')
        record.url = self.objects.signed_url(record.storage_path, settings.AIRDROP_SIGNED_URL_TTL)
        return record

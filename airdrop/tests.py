"""
Lifecycle coordinator tests against in-memory gateways, so the ordering and
compensation rules can be checked without a database or a disk.
"""
import itertools
from types import SimpleNamespace

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, override_settings

from .errors import Forbidden, InvalidInput, MetadataError, NotFound, ObjectExists, StorageError
from .lifecycle import FileLifecycle, UploadPolicy, normalize_content_type, storage_extension
from .sharing import ShareResolver


class FakeObjectStore:
    def __init__(self):
        self.blobs = {}
        self.calls = []
        self.fail_put = False
        self.fail_delete = False
        self.unsignable = set()

    def put(self, path, content, content_type, overwrite=False):
        self.calls.append(('put', path))
        if self.fail_put:
            raise StorageError('backend unavailable')
        if path in self.blobs and not overwrite:
            raise ObjectExists()
        self.blobs[path] = content.read()
        return path

    def delete(self, paths):
        self.calls.append(('delete', tuple(paths)))
        if self.fail_delete:
            return list(paths)
        for path in paths:
            self.blobs.pop(path, None)
        return []

    def exists(self, prefix, name):
        return f'{prefix}/{name}' in self.blobs

    def signed_url(self, path, ttl):
        if path in self.unsignable:
            return None
        return f'signed://{path}?ttl={ttl}'

    def signed_upload_url(self, path, ttl):
        return f'upload://{path}', 'upload-token'


class FakeRecordStore:
    def __init__(self, objects):
        self.rows = {}
        self.objects = objects
        self.fail_insert = False
        self._ids = itertools.count(1)

    def insert(self, **fields):
        self.objects.calls.append(('insert', fields['storage_path']))
        if self.fail_insert:
            raise MetadataError('Failed to save file metadata')
        record_id = str(next(self._ids))
        row = SimpleNamespace(id=record_id, is_favorite=False, tags=[], share_token=None,
                              created_at=int(record_id), **fields)
        self.rows[record_id] = row
        return row

    def select_by_owner(self, owner_id, content_types=None):
        rows = [r for r in self.rows.values() if r.owner_id == owner_id]
        if content_types is not None:
            rows = [r for r in rows if r.content_type in content_types]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    def select_by_id(self, record_id, owner_id):
        row = self.rows.get(record_id)
        return row if row is not None and row.owner_id == owner_id else None

    def select_by_share_token(self, token):
        return next((r for r in self.rows.values() if r.share_token == token), None)

    def has_storage_path(self, storage_path):
        return any(r.storage_path == storage_path for r in self.rows.values())

    def update_fields(self, record_id, owner_id, changes):
        row = self.select_by_id(record_id, owner_id)
        if row is None:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        return row

    def delete_by_id(self, record_id, owner_id):
        self.objects.calls.append(('delete_record', record_id))
        if self.select_by_id(record_id, owner_id) is None:
            return False
        del self.rows[record_id]
        return True


def upload(name, content=b'hello', content_type='text/plain'):
    return SimpleUploadedFile(name, content, content_type=content_type)


class StorageNameTests(SimpleTestCase):

    def test_extension_from_filename(self):
        self.assertEqual(storage_extension('Holiday.JPG', 'image/jpeg'), 'jpg')
        self.assertEqual(storage_extension('archive.tar.gz', 'application/gzip'), 'gz')
        self.assertEqual(storage_extension('odd.P-D_F', 'application/pdf'), 'pdf')

    def test_extension_falls_back_to_mime_subtype(self):
        self.assertEqual(storage_extension('README', 'text/markdown'), 'markdown')
        self.assertEqual(storage_extension('weird.!!!', 'image/svg+xml'), 'svgxml')

    def test_extension_falls_back_to_bin(self):
        self.assertEqual(storage_extension('README', 'application/octet-stream'), 'bin')
        self.assertEqual(storage_extension('', ''), 'bin')

    def test_normalize_content_type(self):
        self.assertEqual(normalize_content_type('Image/PNG; charset=binary'), 'image/png')
        self.assertEqual(normalize_content_type(''), 'application/octet-stream')
        self.assertEqual(normalize_content_type(None), 'application/octet-stream')
        self.assertEqual(normalize_content_type('garbage'), 'application/octet-stream')
        self.assertEqual(normalize_content_type('text/'), 'application/octet-stream')


class FileLifecycleTests(SimpleTestCase):

    def setUp(self):
        self.objects = FakeObjectStore()
        self.records = FakeRecordStore(self.objects)
        self.lifecycle = FileLifecycle(self.objects, self.records)
        self.policy = UploadPolicy(max_size=8)

    def test_upload_writes_blob_before_record(self):
        result = self.lifecycle.upload('u1', [upload('a.txt')], policy=self.policy)

        self.assertTrue(result.success)
        path = result.uploaded[0].storage_path
        self.assertTrue(path.startswith('u1/'))
        self.assertEqual(self.objects.calls, [('put', path), ('insert', path)])
        self.assertEqual(self.objects.blobs[path], b'hello')

    def test_upload_partial_success(self):
        result = self.lifecycle.upload(
            'u1', [upload('ok.txt'), upload('big.bin', b'x' * 9)], policy=self.policy
        )

        self.assertTrue(result.success)
        self.assertEqual([r.display_name for r in result.uploaded], ['ok.txt'])
        self.assertEqual(result.errors, ['big.bin: File too large (max 0MB)'])

    def test_upload_nothing_succeeds(self):
        self.objects.fail_put = True
        result = self.lifecycle.upload('u1', [upload('a.txt'), upload('b.txt')], policy=self.policy)

        self.assertFalse(result.success)
        self.assertEqual(result.errors, ['a.txt: Upload failed', 'b.txt: Upload failed'])
        self.assertEqual(self.records.rows, {})

    def test_failed_insert_deletes_blob(self):
        self.records.fail_insert = True
        result = self.lifecycle.upload('u1', [upload('a.txt')], policy=self.policy)

        self.assertEqual(result.errors, ['a.txt: Failed to save metadata'])
        self.assertEqual(self.objects.blobs, {})

    def test_failed_cleanup_keeps_original_error(self):
        self.records.fail_insert = True
        self.objects.fail_delete = True
        result = self.lifecycle.upload('u1', [upload('a.txt')], policy=self.policy)

        self.assertEqual(result.errors, ['a.txt: Failed to save metadata'])
        # Orphaned blob is tolerated, orphaned record is not
        self.assertEqual(len(self.objects.blobs), 1)
        self.assertEqual(self.records.rows, {})

    def test_ingest_raises_for_policy_violation(self):
        policy = UploadPolicy(max_size=100, allowed_types=['image/png'], type_message='Images only')
        with self.assertRaisesMessage(InvalidInput, 'Images only'):
            self.lifecycle.ingest('u1', upload('a.txt'), policy=policy)
        self.assertEqual(self.objects.calls, [])

    def test_register_requires_own_prefix(self):
        self.objects.blobs['u2/x.png'] = b'theirs'
        self.objects.blobs['u10/x.png'] = b'lookalike'

        for path in ('u2/x.png', 'u10/x.png', 'x.png', 'u1/', 'u1/a/b.png', 'u1/..'):
            with self.subTest(path=path):
                with self.assertRaises(Forbidden):
                    self.lifecycle.register('u1', path, 'x.png', 'image/png', 6)
        self.assertEqual(self.records.rows, {})

    def test_register_requires_blob(self):
        with self.assertRaisesMessage(NotFound, 'File not found in storage'):
            self.lifecycle.register('u1', 'u1/missing.png', 'x.png', 'image/png', 6)
        self.assertEqual(self.records.rows, {})

    def test_register_defaults(self):
        self.objects.blobs['u1/abc.png'] = b'mine'
        record = self.lifecycle.register('u1', 'u1/abc.png', 'Cat.png', '', 4, description='')

        self.assertEqual(record.owner_id, 'u1')
        self.assertEqual(record.content_type, 'application/octet-stream')
        self.assertIsNone(record.description)
        self.assertFalse(record.is_favorite)
        self.assertEqual(record.tags, [])
        self.assertIsNone(record.share_token)

    def test_register_twice_is_rejected(self):
        self.objects.blobs['u1/abc.png'] = b'mine'
        self.lifecycle.register('u1', 'u1/abc.png', 'Cat.png', 'image/png', 4)

        with self.assertRaisesMessage(InvalidInput, 'File already registered'):
            self.lifecycle.register('u1', 'u1/abc.png', 'Cat.png', 'image/png', 4)
        self.assertEqual(len(self.records.rows), 1)

    @override_settings(AIRDROP_SIGNED_URL_TTL=3600)
    def test_list_degrades_url_failures(self):
        first = self.lifecycle.ingest('u1', upload('first.txt'), policy=self.policy)
        second = self.lifecycle.ingest('u1', upload('second.txt'), policy=self.policy)
        self.lifecycle.ingest('u2', upload('theirs.txt'), policy=self.policy)
        self.objects.unsignable.add(first.storage_path)

        records = self.lifecycle.list('u1')

        self.assertEqual([r.display_name for r in records], ['second.txt', 'first.txt'])
        self.assertEqual(records[0].url, f'signed://{second.storage_path}?ttl=3600')
        self.assertIsNone(records[1].url)

    def test_update_only_touches_given_fields(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=self.policy)
        self.lifecycle.update('u1', record.id, tags=['x'], generate_share_link=True)
        token = record.share_token

        updated = self.lifecycle.update('u1', record.id, is_favorite=True)

        self.assertTrue(updated.is_favorite)
        self.assertEqual(updated.tags, ['x'])
        self.assertEqual(updated.share_token, token)

    def test_update_remove_wins_over_generate(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=self.policy)
        self.lifecycle.update('u1', record.id, generate_share_link=True)

        updated = self.lifecycle.update('u1', record.id, generate_share_link=True, remove_share_link=True)

        self.assertIsNone(updated.share_token)

    def test_update_foreign_record_not_found(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=self.policy)

        with self.assertRaises(NotFound):
            self.lifecycle.update('u2', record.id, is_favorite=True)
        self.assertFalse(record.is_favorite)

    def test_delete_removes_blob_then_record(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=self.policy)
        self.objects.calls.clear()

        self.lifecycle.delete('u1', record.id)

        self.assertEqual(self.objects.calls, [('delete', (record.storage_path,)), ('delete_record', record.id)])
        self.assertEqual(self.objects.blobs, {})
        self.assertEqual(self.records.rows, {})

    def test_delete_continues_when_blob_delete_fails(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=self.policy)
        self.objects.fail_delete = True

        self.lifecycle.delete('u1', record.id)

        self.assertEqual(self.records.rows, {})
        self.assertIn(record.storage_path, self.objects.blobs)

    def test_delete_foreign_record_not_found(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=self.policy)

        with self.assertRaises(NotFound):
            self.lifecycle.delete('u2', record.id)
        self.assertIn(record.storage_path, self.objects.blobs)

    @override_settings(AIRDROP_MAX_FILE_SIZE=100, AIRDROP_UPLOAD_URL_TTL=60)
    def test_prepare_direct_upload(self):
        prepared = self.lifecycle.prepare_direct_upload('u1', 'Scan.PDF', 'application/pdf', 50)

        self.assertTrue(prepared['filePath'].startswith('u1/'))
        self.assertTrue(prepared['fileName'].endswith('.pdf'))
        self.assertEqual(prepared['filePath'], f"u1/{prepared['fileName']}")
        self.assertEqual(prepared['signedUrl'], f"upload://{prepared['filePath']}")

        with self.assertRaises(InvalidInput):
            self.lifecycle.prepare_direct_upload('u1', 'big.pdf', 'application/pdf', 101)


class ShareResolverTests(SimpleTestCase):

    def setUp(self):
        self.objects = FakeObjectStore()
        self.records = FakeRecordStore(self.objects)
        self.lifecycle = FileLifecycle(self.objects, self.records)
        self.resolver = ShareResolver(self.objects, self.records)

    def test_resolve_shared_record(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=UploadPolicy(100))
        token = self.lifecycle.update('u1', record.id, generate_share_link=True).share_token

        shared = self.resolver.resolve(token)

        self.assertEqual(shared.id, record.id)
        self.assertTrue(shared.url.startswith('signed://'))

    def test_revoked_and_unknown_tokens_look_the_same(self):
        record = self.lifecycle.ingest('u1', upload('a.txt'), policy=UploadPolicy(100))
        token = self.lifecycle.update('u1', record.id, generate_share_link=True).share_token
        self.lifecycle.update('u1', record.id, remove_share_link=True)

        for candidate in (token, 'never-issued'):
            with self.subTest(token=candidate):
                with self.assertRaisesMessage(NotFound, 'File not found or not shared'):
                    self.resolver.resolve(candidate)

import io

from diskbucket.errors import ErrorKind
from diskbucket.storage.codec import parse
from diskbucket.storage.index_file import IndexFile


def _count(bucket, key):
    for line in bucket.ls():
        entry = parse(line)
        if entry and entry.key == key:
            return entry.count
    return None


def test_put_get_delete_scenario(registry):
    b = registry.acquire('test')
    res = b.put('a', b'hello')
    assert res.ok
    assert res.value == b.directory / 'a.blob'

    path = b.get('a')
    assert path is not None
    assert path.read_bytes() == b'hello'
    assert _count(b, 'a') == 1

    assert b.delete(['a']) is True
    assert b.get('a') is None
    assert not any(line.startswith('a,') for line in b.ls())
    assert not (b.directory / 'a.blob').exists()


def test_bucket_directory_layout(registry, bucket_config):
    b = registry.acquire('photos')
    b.put('k', b'v')
    expected = bucket_config.data_dir
    assert b.directory.parts[-2:] == ('DiskBucket', 'photos')
    assert str(b.directory).startswith(expected)
    assert sorted(p.name for p in b.directory.iterdir()) == ['bucket.map', 'k.blob']


def test_put_same_key_twice_keeps_one_line(registry):
    b = registry.acquire('test')
    b.put('k', b'first', meta='v1')
    b.get('k')
    b.put('k', b'second', meta='v2')
    lines = [l for l in b.ls() if l.startswith('k,')]
    assert len(lines) == 1
    assert parse(lines[0]).meta == 'v2'
    assert parse(lines[0]).count == 0
    assert b.get('k').read_bytes() == b'second'


def test_keys_are_matched_exactly_not_by_prefix(registry):
    b = registry.acquire('test')
    b.put('ab', b'long')
    b.put('a', b'short')
    assert b.get('a').read_bytes() == b'short'
    assert _count(b, 'ab') == 0
    assert b.delete(['a']) is True
    assert b.exists('ab') is True
    assert b.get('ab').read_bytes() == b'long'


def test_put_accepts_stream_and_text(registry):
    b = registry.acquire('test')
    assert b.put('s', io.BytesIO(b'streamed')).value.read_bytes() == b'streamed'
    assert b.put('t', 'hello').value.read_bytes() == b'hello'


def test_put_validation_errors_are_returned(registry):
    b = registry.acquire('test')
    for key, meta in (('', ''), ('x' * 49, ''), ('a,b', ''), ('k', 'm' * 65), ('k', 'a,b'),
                      ('a\x00b', ''), ('a\tb', ''), ('k', 'm\x00')):
        res = b.put(key, b'data', meta=meta)
        assert not res
        assert res.error.kind is ErrorKind.VALIDATION
    assert b.ls() == []


def test_count_increments_per_successful_get(registry):
    b = registry.acquire('test')
    b.put('k', b'v')
    assert _count(b, 'k') == 0
    for expected in (1, 2, 3):
        assert b.get('k') is not None
        assert _count(b, 'k') == expected


def test_get_with_missing_blob_fails_and_keeps_count(registry):
    b = registry.acquire('test')
    b.put('k', b'v')
    b.get('k')
    (b.directory / 'k.blob').unlink()
    assert b.get('k') is None
    assert _count(b, 'k') == 1


def test_get_unknown_or_empty_key(registry):
    b = registry.acquire('test')
    assert b.get('') is None
    assert b.get('missing') is None


def test_get_returns_path_even_if_counter_update_fails(registry, monkeypatch):
    b = registry.acquire('test')
    b.put('k', b'v')
    monkeypatch.setattr(IndexFile, 'commit', lambda self, lines: False)
    assert b.get('k') is not None
    monkeypatch.undo()
    assert _count(b, 'k') == 0


def test_failed_commit_on_put_removes_new_blob(registry, monkeypatch):
    b = registry.acquire('test')
    b.put('old', b'v')

    def failing_commit(self, lines):
        self._rollback()
        return False

    monkeypatch.setattr(IndexFile, 'commit', failing_commit)
    res = b.put('new', b'data')
    assert res.error.kind is ErrorKind.INDEX_COMMIT
    monkeypatch.undo()
    assert not (b.directory / 'new.blob').exists()
    assert [parse(l).key for l in b.ls()] == ['old']


def test_delete_without_matches_is_a_noop(registry):
    b = registry.acquire('test')
    b.put('k', b'v')
    assert b.delete([]) is False
    assert b.delete(['nope']) is False
    assert len(b.ls()) == 1
    assert not (b.directory / 'bucket.map.bak').exists()


def test_delete_multiple_keys_and_missing_blob(registry):
    b = registry.acquire('test')
    for k in ('a', 'b', 'c'):
        b.put(k, k.encode())
    (b.directory / 'b.blob').unlink()
    assert b.delete(['a', 'b', 'zzz']) is True
    assert [parse(l).key for l in b.ls()] == ['c']


def test_deleting_last_entry_leaves_empty_index(registry):
    b = registry.acquire('test')
    b.put('only', b'v')
    assert b.delete(['only']) is True
    assert b.ls() == []
    assert (b.directory / 'bucket.map').is_file()


def test_entries_and_exists(registry):
    b = registry.acquire('test')
    b.put('a', b'1', meta='first')
    b.put('b', b'2')
    assert [(e.key, e.meta) for e in b.entries()] == [('a', 'first'), ('b', '')]
    assert b.exists('a') is True
    assert b.exists('zzz') is False
    assert b.exists('') is False


def test_clean_removes_everything(registry):
    b = registry.acquire('test')
    b.put('a', b'1')
    directory = b.directory
    b.clean()
    assert not directory.exists()
    assert b.ls() == []
    assert b.put('a', b'again').ok


def test_interrupted_update_is_recovered_by_next_operation(registry):
    b = registry.acquire('test')
    b.put('a', b'1')
    b.put('b', b'2')
    before = b.ls()
    # simulate a crash right after the backup step
    IndexFile(b.directory).backup()
    assert not (b.directory / 'bucket.map').exists()

    registry.release('test')
    b2 = registry.acquire('test')
    assert b2.ls() == before
    assert b2.get('a').read_bytes() == b'1'


def test_corrupt_index_lines_are_skipped(registry):
    b = registry.acquire('test')
    b.put('a', b'1')
    with open(b.directory / 'bucket.map', 'a', encoding='utf-8') as f:
        f.write('not-an-entry\n')
    assert b.get('a') is not None
    assert [e.key for e in b.entries()] == ['a']


def test_unwritable_root_reports_io_failure(tmp_path):
    from diskbucket.bucket import Bucket
    from diskbucket.config import BucketConfig

    blocker = tmp_path / 'file'
    blocker.write_text('x', encoding='utf-8')
    b = Bucket('test', config=BucketConfig(data_dir=str(blocker)))
    res = b.put('k', b'v')
    assert res.error.kind is ErrorKind.IO_FAILURE
    assert b.get('k') is None
    assert b.ls() == []
    assert b.delete(['k']) is False


def test_undecodable_index_line_is_skipped_by_every_operation(registry):
    b = registry.acquire('test')
    b.put('a', b'1')
    with open(b.directory / 'bucket.map', 'ab') as f:
        f.write(b'\xff\xfe,,0,1\n')

    assert b.ls() == ['a,,0,1']
    assert b.get('a').read_bytes() == b'1'
    assert b.put('b', b'2').ok
    b.gc(byte_budget=10_000, entry_capacity=10)
    assert sorted(e.key for e in b.entries()) == ['a', 'b']


def test_leftover_backup_is_restored_for_live_bucket(registry):
    b = registry.acquire('test')
    b.put('a', b'1')
    b.get('a')
    before = b.ls()

    IndexFile(b.directory).backup()
    assert b.ls() == before

    IndexFile(b.directory).backup()
    assert b.get('a').read_bytes() == b'1'
    assert _count(b, 'a') == 2
    assert not (b.directory / 'bucket.map.bak').exists()


def test_delete_accepts_a_single_key_string(registry):
    b = registry.acquire('test')
    for k in ('a', 'b', 'c', 'abc'):
        b.put(k, k.encode())
    assert b.delete('abc') is True
    assert sorted(parse(l).key for l in b.ls()) == ['a', 'b', 'c']

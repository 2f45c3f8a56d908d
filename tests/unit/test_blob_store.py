import io

from diskbucket.storage.blob_store import BlobStore


def test_save_bytes_str_and_stream(tmp_path):
    store = BlobStore(tmp_path, extension='.dat')
    assert store.save('a', b'bytes').read_bytes() == b'bytes'
    assert store.save('b', 'text é').read_bytes() == 'text é'.encode('utf-8')
    stream = io.BytesIO(b'x' * 20000)
    path = store.save('c', stream)
    assert path == tmp_path / 'c.dat'
    assert path.stat().st_size == 20000
    assert not stream.closed


def test_save_replaces_existing_blob_and_leaves_no_temp(tmp_path):
    store = BlobStore(tmp_path)
    store.save('k', b'first version')
    store.save('k', b'v2')
    assert store.path_for('k').read_bytes() == b'v2'
    assert sorted(p.name for p in tmp_path.iterdir()) == ['k.blob']


def test_size_exists_and_delete(tmp_path):
    store = BlobStore(tmp_path)
    assert store.size('k') is None
    assert store.exists('k') is False
    store.save('k', b'1234')
    assert store.size('k') == 4
    assert store.exists('k') is True
    assert store.delete('k') is True
    assert store.delete('k') is False


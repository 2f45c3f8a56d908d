import threading
import time

from diskbucket.errors import ErrorKind
from diskbucket.storage.codec import parse


def _hold_exclusive(bucket, entered, leave):
    with bucket._guard.hold():
        entered.set()
        leave.wait(5)


def test_write_times_out_while_lock_is_held(registry):
    b = registry.acquire('busy')
    entered, leave = threading.Event(), threading.Event()
    t = threading.Thread(target=_hold_exclusive, args=(b, entered, leave))
    t.start()
    assert entered.wait(1)

    started = time.monotonic()
    res = b.put('k', b'v')
    assert res.error.kind is ErrorKind.LOCK_TIMEOUT
    assert b.get('k') is None
    assert b.delete(['k']) is False
    assert b.ls() == []
    assert time.monotonic() - started < 4 * 1.0

    leave.set()
    t.join(2)
    assert b.put('k', b'v').ok


def test_concurrent_puts_lose_nothing(registry):
    b = registry.acquire('parallel')
    errors = []

    def writer(n):
        for i in range(10):
            res = b.put(f'k{n}-{i}', f'{n}:{i}'.encode())
            if not res.ok:
                errors.append(res.error)

    b._guard.timeout = 5.0
    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    keys = [parse(line).key for line in b.ls()]
    assert len(keys) == 40
    assert len(set(keys)) == 40


def test_concurrent_gets_count_every_read(registry):
    b = registry.acquire('reads')
    b.put('hot', b'v')
    b._guard.timeout = 5.0

    def reader():
        for _ in range(10):
            assert b.get('hot') is not None

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert parse(b.ls()[0]).count == 40


def test_buckets_with_different_names_do_not_block_each_other(registry):
    a = registry.acquire('a')
    other = registry.acquire('b')
    entered, leave = threading.Event(), threading.Event()
    t = threading.Thread(target=_hold_exclusive, args=(a, entered, leave))
    t.start()
    assert entered.wait(1)
    assert other.put('k', b'v').ok
    leave.set()
    t.join(2)

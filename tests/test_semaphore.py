import threading
import time

import pytest

from kubestrap.proxy.semaphore import Semaphore


def test_acquire_release():
    sem = Semaphore()
    sem.acquire("etcd/v3.5.16")
    assert sem.in_flight("etcd/v3.5.16")
    sem.release("etcd/v3.5.16")
    assert not sem.in_flight("etcd/v3.5.16")


def test_release_unknown_key():
    sem = Semaphore()
    sem.release("never-held")
    assert not sem.in_flight("never-held")


def test_hold_releases_on_error():
    sem = Semaphore()

    with pytest.raises(RuntimeError):
        with sem.hold("kubelet/v1.31.0"):
            assert sem.in_flight("kubelet/v1.31.0")
            raise RuntimeError("download failed")

    assert not sem.in_flight("kubelet/v1.31.0")


def test_same_key_blocks():
    sem = Semaphore()
    acquired = threading.Event()

    def waiter():
        with sem.hold("kubelet/v1.31.0"):
            acquired.set()

    sem.acquire("kubelet/v1.31.0")
    thread = threading.Thread(target=waiter)
    thread.start()

    assert not acquired.wait(0.2)
    sem.release("kubelet/v1.31.0")
    assert acquired.wait(5)
    thread.join(5)
    assert not sem.in_flight("kubelet/v1.31.0")


def test_distinct_keys_do_not_block():
    sem = Semaphore()
    acquired = threading.Event()

    def other():
        with sem.hold("kube-scheduler/v1.31.0"):
            acquired.set()

    with sem.hold("kubelet/v1.31.0"):
        thread = threading.Thread(target=other)
        thread.start()
        assert acquired.wait(5)
        thread.join(5)


def test_mutual_exclusion():
    sem = Semaphore()
    lock = threading.Lock()
    inside = []
    most = []

    def worker():
        with sem.hold("coredns/v1.11.3"):
            with lock:
                inside.append(1)
                most.append(len(inside))
            time.sleep(0.01)
            with lock:
                inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert len(most) == 10
    assert max(most) == 1

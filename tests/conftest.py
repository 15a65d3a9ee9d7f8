'''
Copyright (c) 2016-2024  Ellie/@ellie on Github and Codeberg

This software is provided 'as-is', without any express or implied
warranty. In no event will the authors be held liable for any damages
arising from the use of this software.

Permission is granted to anyone to use this software for any purpose,
including commercial applications, and to alter it and redistribute it
freely, subject to the following restrictions:

1. The origin of this software must not be misrepresented; you must not
   claim that you wrote the original software. If you use this software
   in a product, an acknowledgment in the product documentation would be
   appreciated but is not required.
2. Altered source versions must be plainly marked as such, and must not be
   misrepresented as being the original software.
3. This notice may not be removed or altered from any source distribution.
'''

"""
In-memory stand-ins for the snapshot store, transport and notifier.
Store and transport share one ``calls`` list so tests can check the
order in which things happened.
"""

import datetime

import pytest

from zfsbackup import log
from zfsbackup.config import RunConfig
from zfsbackup.errors import StoreOperationFailure, TransportFailure
from zfsbackup.notify import Notifier
from zfsbackup.store import SnapshotInfo, SnapshotStore
from zfsbackup.transport import Transport

TODAY = datetime.date(2024, 3, 10)


class FakeSnapshotStore(SnapshotStore):
    def __init__(self, snapshots=None, fail_create=False,
            fail_destroy=False):
        super().__init__()
        # dataset -> {label: used}
        self.snapshots = {}
        for (dataset, labels) in (snapshots or {}).items():
            if isinstance(labels, dict):
                self.snapshots[dataset] = dict(labels)
            else:
                self.snapshots[dataset] = {label: 1024 for label in labels}
        self.fail_create = fail_create
        self.fail_destroy = fail_destroy
        self.calls = []
        self.fetched = []

    def labels(self, dataset):
        return sorted(self.snapshots.get(dataset, {}))

    def list(self, dataset, recursive=False):
        result = []
        for label in self.labels(dataset):
            used = self.snapshots[dataset][label]
            self.usage_cache.put(dataset, label, used)
            result.append(SnapshotInfo(dataset, label, used))
        return result

    def exists(self, dataset, label):
        self.calls.append(("exists", dataset, label))
        return super().exists(dataset, label)

    def fetch_usage(self, dataset, label):
        self.fetched.append((dataset, label))
        return self.snapshots[dataset][label]

    def create(self, request):
        self.calls.append(("create", request))
        if self.fail_create:
            raise StoreOperationFailure("creating snapshot failed",
                output=b"cannot create snapshot: out of space")
        self.snapshots.setdefault(request.dataset, {})[request.label] = 0

    def destroy(self, request):
        self.calls.append(("destroy", request))
        if self.fail_destroy:
            raise StoreOperationFailure("destroying snapshot failed")
        del self.snapshots[request.dataset][request.label]
        self.usage_cache.invalidate()

    def mutations(self):
        return [c for c in self.calls if c[0] != "exists"]


class FakeTransport(Transport):
    def __init__(self, calls, fail=False):
        self.calls = calls
        self.fail = fail
        self.requests = []

    def transfer(self, request):
        self.calls.append(("transfer", request))
        self.requests.append(request)
        if self.fail:
            raise TransportFailure("transfer failed",
                output=b"ssh: connect to host: Connection refused")


class RecordingNotifier(Notifier):
    def __init__(self):
        self.events = []

    def notify(self, level, message, context):
        self.events.append((level, message, context))

    def levels(self):
        return [e[0] for e in self.events]


@pytest.fixture(autouse=True)
def reset_log_file():
    yield
    log.set_log_file(None)


@pytest.fixture
def make_config():
    def make(**overrides):
        values = {
            "name": "tank-data",
            "source": "tank/data",
            "destination": "backup/data",
            "host": "backup.example.com",
            "user": "root",
            "keep": 5,
        }
        values.update(overrides)
        return RunConfig(**values).validate()
    return make


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_store():
    return FakeSnapshotStore


@pytest.fixture
def make_transport():
    return FakeTransport

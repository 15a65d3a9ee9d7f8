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
Snapshot storage. ``SnapshotStore`` is the contract the rotation engine
talks to, ``ZfsSnapshotStore`` implements it on top of the ``zfs`` tool.
"""

import subprocess
from dataclasses import dataclass
from typing import Optional

from zfsbackup import log
from zfsbackup.consistency import NoLock, wrap_command
from zfsbackup.errors import StoreOperationFailure


@dataclass(frozen=True)
class SnapshotInfo:
    dataset: str
    label: str
    used: Optional[int] = None

    @property
    def full_name(self):
        return self.dataset + "@" + self.label


@dataclass(frozen=True)
class CreateRequest:
    dataset: str
    label: str
    consistency: object = NoLock()
    recursive: bool = False


@dataclass(frozen=True)
class DestroyRequest:
    dataset: str
    label: str
    recursive: bool = False


class UsageCache:
    """ Byte usage per (dataset, label). Destroying any snapshot can shift
        the usage attributed to its neighbours, so the store drops the
        whole cache on every destroy.
    """
    def __init__(self):
        self._entries = {}

    def get(self, dataset, label):
        return self._entries.get((dataset, label))

    def put(self, dataset, label, used):
        self._entries[(dataset, label)] = used

    def invalidate(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


class SnapshotStore:
    def __init__(self):
        self.usage_cache = UsageCache()

    def list(self, dataset, recursive=False):
        """ Returns SnapshotInfo entries, oldest first. """
        raise NotImplementedError

    def create(self, request):
        raise NotImplementedError

    def destroy(self, request):
        raise NotImplementedError

    def fetch_usage(self, dataset, label):
        raise NotImplementedError

    def exists(self, dataset, label):
        return any(s.dataset == dataset and s.label == label
            for s in self.list(dataset))

    def usage(self, dataset, label):
        used = self.usage_cache.get(dataset, label)
        if used is None:
            used = self.fetch_usage(dataset, label)
            self.usage_cache.put(dataset, label, used)
        return used


class ZfsSnapshotStore(SnapshotStore):
    def __init__(self, zfs_binary="zfs"):
        super().__init__()
        self.zfs_binary = zfs_binary

    def _run(self, cmd, what):
        try:
            output = subprocess.check_output(cmd, stderr=subprocess.STDOUT)
        except subprocess.CalledProcessError as e:
            raise StoreOperationFailure(what + " failed, " +
                "command returned non-zero exit code " +
                str(e.returncode) + ": " + " ".join(cmd),
                output=e.output)
        except OSError as e:
            raise StoreOperationFailure(what + " failed, cannot run " +
                cmd[0] + ": " + str(e))
        try:
            output = output.decode("utf-8", "replace")
        except AttributeError:
            pass
        return output

    def list(self, dataset, recursive=False):
        cmd = [self.zfs_binary, "list", "-H", "-p", "-t", "snapshot",
            "-o", "name,used", "-s", "creation"]
        if recursive:
            cmd.append("-r")
        else:
            cmd += ["-d", "1"]
        cmd.append(dataset)
        output = self._run(cmd, "listing snapshots of " + dataset)

        snapshots = []
        for line in output.splitlines():
            parts = line.strip().split("\t")
            if len(parts) != 2 or parts[0].find("@") < 0:
                continue
            (snapshot_dataset, label) = parts[0].split("@", 1)
            used = None
            try:
                used = int(parts[1])
            except ValueError:
                pass
            if used is not None:
                self.usage_cache.put(snapshot_dataset, label, used)
            snapshots.append(SnapshotInfo(snapshot_dataset, label, used))
        return snapshots

    def fetch_usage(self, dataset, label):
        output = self._run([self.zfs_binary, "get", "-H", "-p",
            "-o", "value", "used", dataset + "@" + label],
            "querying usage of " + dataset + "@" + label)
        try:
            return int(output.strip())
        except ValueError:
            raise StoreOperationFailure("unexpected usage value for " +
                dataset + "@" + label + ": " + repr(output.strip()))

    def create(self, request):
        name = request.dataset + "@" + request.label
        cmd = [self.zfs_binary, "snapshot"]
        if request.recursive:
            cmd.append("-r")
        cmd.append(name)
        cmd = wrap_command(cmd, request.consistency)
        log.debug("executing: " + " ".join(cmd))
        output = self._run(cmd, "creating snapshot " + name)
        if request.consistency.locked:
            # The lock driver's exit code doesn't tell us whether the
            # snapshot command it ran succeeded:
            if not self.exists(request.dataset, request.label):
                raise StoreOperationFailure("creating snapshot " + name +
                    " failed, snapshot missing after locked create",
                    output=output)

    def destroy(self, request):
        name = request.dataset + "@" + request.label
        cmd = [self.zfs_binary, "destroy"]
        if request.recursive:
            cmd.append("-r")
        cmd.append(name)
        log.debug("executing: " + " ".join(cmd))
        try:
            self._run(cmd, "destroying snapshot " + name)
        finally:
            self.usage_cache.invalidate()


def format_size(used):
    if used is None:
        return "?"
    size = float(used)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if size < 1024 or unit == "TiB":
            break
        size /= 1024
    if unit == "B":
        return str(int(size)) + " B"
    return "%.1f %s" % (size, unit)

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
Consistency modes for snapshot creation.

``NoLock`` snapshots the dataset as-is. ``LockAndFlush`` runs the snapshot
command while a database driver holds its tables flushed and read-locked.
Drivers live in ``LOCK_DRIVERS`` and take the plain snapshot command plus
the mode, returning the command to actually execute.
"""

import shlex
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class NoLock:
    locked = False


@dataclass(frozen=True)
class LockAndFlush:
    driver: str = "mysql"
    defaults_file: Optional[str] = None
    locked = True


def mysql_locked_command(snapshot_cmd, mode):
    # The client keeps the lock for the whole session, so the snapshot
    # has to be taken from inside it via SYSTEM.
    cmd = ["mysql"]
    if mode.defaults_file:
        cmd.append("--defaults-file=" + mode.defaults_file)
    cmd += ["-e", "FLUSH TABLES WITH READ LOCK; " +
        "SYSTEM " + shlex.join(snapshot_cmd) + "; " +
        "UNLOCK TABLES;"]
    return cmd


LOCK_DRIVERS = {
    "mysql": mysql_locked_command,
}


def wrap_command(snapshot_cmd, mode):
    if not mode.locked:
        return list(snapshot_cmd)
    return LOCK_DRIVERS[mode.driver](snapshot_cmd, mode)

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
The rotation engine. One run does, strictly in this order:

1. validate: work out today's label, the newest existing snapshot within
   the retention window to send incrementally against, and the label that
   falls out of the window today,
2. create today's snapshot,
3. send it to the backup host,
4. destroy the snapshot exactly ``keep`` days old, if there is one.

Any failure stops the run where it is. Nothing gets rolled back: a snapshot
that was created but not sent stays around, and the next run refuses to
continue until somebody looks at it.
"""

import datetime
import enum
from dataclasses import dataclass
from typing import Optional

from zfsbackup import log
from zfsbackup.errors import BackupError, PreconditionViolation
from zfsbackup.naming import SnapshotNaming
from zfsbackup.notify import Notifier
from zfsbackup.store import CreateRequest, DestroyRequest, format_size
from zfsbackup.transport import TransferRequest


class RunState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CREATING = "creating"
    TRANSFERRING = "transferring"
    PRUNING = "pruning"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class RunResult:
    state: RunState
    label: str
    base_label: Optional[str] = None
    pruned_label: Optional[str] = None


class RotationEngine:
    def __init__(self, config, store, transport, notifier=None,
            now=datetime.datetime.now):
        self.config = config
        self.store = store
        self.transport = transport
        self.notifier = notifier if notifier is not None else Notifier()
        self.now = now
        self.state = RunState.IDLE
        self.context = None

    def _report(self, level, msg, **extra):
        getattr(log, level)(self.config.name + ": " + msg)
        context = dict(self.context)
        context.update(extra)
        self.notifier.notify(level, msg, context)

    def resolve_base(self, naming):
        """ Returns the label of the nearest snapshot within the retention
            window, or None if there is none.
        """
        for offset, label in naming.candidates():
            if self.store.exists(self.config.source, label):
                log.debug(self.config.name + ": incremental base found " +
                    str(offset) + " day(s) back: " + naming.full_name(label))
                return label
        return None

    def run(self):
        self.state = RunState.IDLE
        # one clock reading for both the label and the reported timestamp
        started = self.now()
        self.context = self.config.notify_context(
            started.isoformat(timespec="seconds"))
        try:
            return self._run(started.date())
        except BackupError as e:
            failed_in = self.state
            self.state = RunState.ABORTED
            self._report("error", "backup FAILED while " + failed_in.value +
                ": " + e.message, error=e.kind, state=failed_in.value)
            if e.output:
                log.error(log.format_output(e.output))
            raise

    def _run(self, today):
        config = self.config

        # Work out what to do:
        self.state = RunState.VALIDATING
        naming = SnapshotNaming(config.source, today, config.keep)
        label = naming.current()
        base_label = None
        if config.incremental:
            base_label = self.resolve_base(naming)
        prune_label = naming.oldest_label()

        if self.store.exists(config.source, label):
            raise PreconditionViolation("snapshot " +
                naming.full_name(label) + " already exists, either a " +
                "backup already ran today or a previous run was " +
                "interrupted, please check manually")
        if config.incremental and base_label is None:
            raise PreconditionViolation("no snapshot of " + config.source +
                " found within the last " + str(config.keep) +
                " day(s) to send incrementally against, the chain is " +
                "broken (use --init for a new full transfer)")

        # Create today's snapshot:
        self.state = RunState.CREATING
        self._report("info", "creating snapshot " + naming.full_name(label))
        self.store.create(CreateRequest(
            dataset=config.source,
            label=label,
            consistency=config.consistency,
            recursive=config.recursive,
        ))

        # Send it off:
        self.state = RunState.TRANSFERRING
        if base_label is not None:
            self._report("info", "transferring " + naming.full_name(label) +
                " incrementally from " + base_label + " to " +
                config.user + "@" + config.host + ":" + config.destination)
        else:
            self._report("info", "transferring " + naming.full_name(label) +
                " in full to " + config.user + "@" + config.host + ":" +
                config.destination)
        self.transport.transfer(TransferRequest(
            dataset=config.source,
            label=label,
            destination=config.destination,
            host=config.host,
            user=config.user,
            base_label=base_label,
            recursive=config.recursive,
        ))

        # Drop whatever fell out of the retention window today:
        self.state = RunState.PRUNING
        pruned_label = None
        if self.store.exists(config.source, prune_label):
            used = self.store.usage(config.source, prune_label)
            self._report("info", "pruning " + naming.full_name(prune_label) +
                " (" + format_size(used) + ")")
            self.store.destroy(DestroyRequest(
                dataset=config.source,
                label=prune_label,
                recursive=config.recursive,
            ))
            pruned_label = prune_label
        else:
            log.debug(config.name + ": nothing to prune, no snapshot " +
                naming.full_name(prune_label))

        self.state = RunState.DONE
        self._report("info", "backup COMPLETED: " + naming.full_name(label))
        return RunResult(RunState.DONE, label, base_label, pruned_label)

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
Run configuration, from command line flags or a YAML file:

```
log-file: /var/log/zfsbackup.log
webhook: https://alerts.example.com/hook
backups:
  tank-data:
    source: tank/data
    destination: backup/tank-data
    host: backup.example.com
    user: root
    keep: 5
    mysql: false
    recursive: false
```

``mysql`` may also be a mapping, e.g. ``{defaults-file: /root/.my.cnf}``.
"""

import os
from dataclasses import dataclass, field

import yaml

from zfsbackup.consistency import LOCK_DRIVERS, LockAndFlush, NoLock
from zfsbackup.errors import ConfigurationError

DEFAULT_KEEP = 5
DEFAULT_USER = "root"


@dataclass(frozen=True)
class RunConfig:
    name: str
    source: str
    destination: str
    host: str
    user: str = DEFAULT_USER
    keep: int = DEFAULT_KEEP
    consistency: object = field(default_factory=NoLock)
    recursive: bool = False
    incremental: bool = True

    def validate(self):
        for key in ("source", "destination", "host", "user"):
            value = getattr(self, key)
            if not isinstance(value, str) or value.strip() == "":
                raise ConfigurationError("backup '" + str(self.name) +
                    "': missing or empty '" + key + "'")
        for key in ("source", "destination"):
            if "@" in getattr(self, key):
                raise ConfigurationError("backup '" + str(self.name) +
                    "': '" + key + "' must be a dataset, not a " +
                    "snapshot: " + getattr(self, key))
        if isinstance(self.keep, bool) or not isinstance(self.keep, int):
            raise ConfigurationError("backup '" + str(self.name) +
                "': 'keep' must be an integer, got: " + repr(self.keep))
        if self.keep < 1:
            raise ConfigurationError("backup '" + str(self.name) +
                "': 'keep' must be at least 1, got: " + str(self.keep))
        if not isinstance(self.recursive, bool):
            raise ConfigurationError("backup '" + str(self.name) +
                "': 'recursive' must be true/false, got: " +
                repr(self.recursive))
        if self.consistency.locked and \
                self.consistency.driver not in LOCK_DRIVERS:
            raise ConfigurationError("backup '" + str(self.name) +
                "': unknown lock driver: " + str(self.consistency.driver))
        return self

    @property
    def mysql(self):
        return self.consistency.locked and self.consistency.driver == "mysql"

    def notify_context(self, run_timestamp):
        return {
            "job": self.name,
            "source": self.source,
            "destination": self.destination,
            "host": self.host,
            "user": self.user,
            "mysql": self.mysql,
            "keep": self.keep,
            "run_timestamp": run_timestamp,
        }

    def as_dict(self):
        """ The job as it would appear under ``backups:`` in a config file. """
        entry = {
            "source": self.source,
            "destination": self.destination,
            "host": self.host,
            "user": self.user,
            "keep": self.keep,
            "mysql": False,
            "recursive": self.recursive,
            "incremental": self.incremental,
        }
        if self.consistency.locked:
            entry["mysql"] = {"driver": self.consistency.driver}
            if self.consistency.defaults_file:
                entry["mysql"]["defaults-file"] = \
                    self.consistency.defaults_file
        return entry

    @classmethod
    def from_mapping(cls, name, entry, incremental=True):
        if not isinstance(entry, dict):
            raise ConfigurationError("backup '" + str(name) +
                "': entry must be a mapping")
        keep = entry.get("keep", DEFAULT_KEEP)
        if isinstance(keep, str):
            try:
                keep = int(keep)
            except ValueError:
                raise ConfigurationError("backup '" + str(name) +
                    "': 'keep' must be an integer, got: " + repr(keep))
        config = cls(
            name=str(name),
            source=entry.get("source"),
            destination=entry.get("destination"),
            host=entry.get("host"),
            user=entry.get("user", DEFAULT_USER),
            keep=keep,
            consistency=parse_consistency(name, entry.get("mysql", False)),
            recursive=entry.get("recursive", False),
            incremental=incremental,
        )
        return config.validate()


def parse_consistency(name, value):
    if value is None or value is False:
        return NoLock()
    if value is True:
        return LockAndFlush()
    if isinstance(value, dict):
        return LockAndFlush(
            driver=value.get("driver", "mysql"),
            defaults_file=value.get("defaults-file"),
        )
    raise ConfigurationError("backup '" + str(name) +
        "': 'mysql' must be true/false or a mapping, got: " + repr(value))


def load_config_file(path):
    """ Reads and sanity checks the YAML config file. Individual backup
        entries are validated later, one at a time, so that one broken
        entry doesn't stop the others.
    """
    if not os.path.exists(path):
        raise ConfigurationError("no such config file found: " + str(path))
    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f.read())
        except yaml.YAMLError as e:
            raise ConfigurationError("cannot parse config file " +
                str(path) + ": " + str(e))
    if not isinstance(data, dict) or \
            not isinstance(data.get("backups"), dict) or \
            len(data["backups"]) == 0:
        raise ConfigurationError("config file " + str(path) +
            " has no 'backups' section")
    return data

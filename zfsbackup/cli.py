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

import argparse
import os

import yaml

from zfsbackup import __version__, log
from zfsbackup.config import DEFAULT_KEEP, DEFAULT_USER, RunConfig, \
    load_config_file
from zfsbackup.engine import RotationEngine
from zfsbackup.errors import BackupError, ConfigurationError
from zfsbackup.notify import Notifier, WebhookNotifier
from zfsbackup.store import ZfsSnapshotStore, format_size
from zfsbackup.transport import SshTransport


def build_parser():
    parser = argparse.ArgumentParser(prog="zfsbackup",
        description="Incremental ZFS snapshot backup to a remote host")
    parser.add_argument("-c", "--config",
        default=None,
        help="The path for a YAML backup config with one or more " +
            "backups. If not given, a single backup is described " +
            "by the options below",
        dest="config")
    parser.add_argument("--name",
        help="Name of the backup in log output and notifications " +
            "(default: the source dataset)",
        dest="name", default=None)
    parser.add_argument("--source", help="Local dataset to back up",
        dest="source", default=None)
    parser.add_argument("--destination",
        help="Dataset on the backup host to receive into",
        dest="destination", default=None)
    parser.add_argument("--host", help="The backup host",
        dest="host", default=None)
    parser.add_argument("--user", help="User to log into the backup " +
        "host as (default: " + DEFAULT_USER + ")",
        dest="user", default=DEFAULT_USER)
    parser.add_argument("--keep", help="Days of snapshots to keep " +
        "(default: " + str(DEFAULT_KEEP) + ")",
        dest="keep", type=int, default=DEFAULT_KEEP)
    parser.add_argument("--mysql",
        help="Flush and read-lock all MySQL tables while taking the " +
            "snapshot",
        dest="mysql", default=False, action="store_true")
    parser.add_argument("--mysql-defaults-file",
        help="MySQL client option file with the credentials to use " +
            "for --mysql",
        dest="mysql_defaults_file", default=None)
    parser.add_argument("--recursive",
        help="Snapshot, send and prune child datasets too",
        dest="recursive", default=False, action="store_true")
    parser.add_argument("--init",
        help="Do a full initial transfer instead of an incremental " +
            "one. Use this for the very first backup, or to start a " +
            "new chain after it broke",
        dest="init", default=False, action="store_true")
    parser.add_argument("--log-file", help="Also append all output to " +
        "this file",
        dest="log_file", default=None)
    parser.add_argument("--webhook", help="URL to POST failure " +
        "notifications to as JSON",
        dest="webhook", default=None)
    parser.add_argument("--list",
        help="List the existing snapshots of each backup source with " +
            "their space usage and quit",
        dest="list_only", default=False, action="store_true")
    parser.add_argument("--print-config-only",
        help="Print the backup config that would be used and " +
            "quit, WITHOUT actually doing any backup work",
        dest="print_config_only", default=False, action="store_true")
    parser.add_argument("-v", "-V", "--version",
        default=False, action="store_true",
        help="Show program version and exit",
        dest="show_version")
    return parser


def _entries_from_args(args):
    entry = {
        "source": args.source,
        "destination": args.destination,
        "host": args.host,
        "user": args.user,
        "keep": args.keep,
        "mysql": False,
        "recursive": args.recursive,
    }
    if args.mysql:
        entry["mysql"] = {"driver": "mysql"}
        if args.mysql_defaults_file:
            entry["mysql"]["defaults-file"] = args.mysql_defaults_file
    name = args.name or args.source or "backup"
    return [(name, entry)]


def list_snapshots(store, config):
    for snapshot in store.list(config.source, recursive=config.recursive):
        print(snapshot.full_name + "\t" + format_size(
            store.usage(snapshot.dataset, snapshot.label)), flush=True)


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.show_version:
        print("zfsbackup V" + __version__)
        return 0

    # Command line sinks first, so a broken config file gets reported too:
    if args.log_file:
        log.set_log_file(args.log_file)
    notifier = WebhookNotifier(args.webhook) if args.webhook else Notifier()

    # Read config:
    settings = {}
    if args.config is not None:
        try:
            settings = load_config_file(args.config)
        except ConfigurationError as e:
            log.error(e.message)
            notifier.notify("error", e.message, {"config": args.config,
                "error": e.kind})
            return 1
        entries = list(settings["backups"].items())
    else:
        entries = _entries_from_args(args)
    if not args.log_file and settings.get("log-file"):
        log.set_log_file(settings["log-file"])
    if not args.webhook and settings.get("webhook"):
        notifier = WebhookNotifier(settings["webhook"])

    errors_occured = False
    configs = []
    for (name, entry) in entries:
        try:
            configs.append(RunConfig.from_mapping(name, entry,
                incremental=not args.init))
        except ConfigurationError as e:
            log.error(e.message)
            notifier.notify("error", e.message, {"job": str(name),
                "error": e.kind})
            errors_occured = True

    if args.print_config_only:
        print(yaml.safe_dump({"backups": {
            c.name: c.as_dict() for c in configs}}, sort_keys=False),
            end="", flush=True)
        return 1 if errors_occured else 0

    if os.getuid() != 0:
        log.error("not running as root, ABORTING.")
        notifier.notify("error", "not running as root, ABORTING.", {
            "jobs": [c.name for c in configs], "error": "permission"})
        return 1

    store = ZfsSnapshotStore()
    transport = SshTransport()

    if args.list_only:
        for config in configs:
            try:
                list_snapshots(store, config)
            except BackupError as e:
                log.error(config.name + ": " + e.message)
                if e.output:
                    log.error(log.format_output(e.output))
                errors_occured = True
        return 1 if errors_occured else 0

    # Process all backups:
    for config in configs:
        log.info("starting backup: " + config.name)
        engine = RotationEngine(config, store, transport, notifier)
        try:
            engine.run()
        except BackupError:
            errors_occured = True
            continue

    if not errors_occured:
        log.info("completed")
        return 0
    log.error("completed, but errors occurred")
    return 1

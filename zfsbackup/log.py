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
Console and log file output.

Lines look like ``zfsbackup: info: starting backup: tank-data``. info and
debug go to stdout, warnings and errors to stderr. If a log file was set,
every line is also appended there with a timestamp.
"""

import datetime
import sys

PROGRAM_NAME = "zfsbackup"

_log_file_path = None


def set_log_file(path):
    global _log_file_path
    _log_file_path = path


def format_output(output):
    """ Indent external tool output so it is easy to tell apart. """
    if output is None:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", "replace")
    output = output.rstrip("\n")
    return PROGRAM_NAME + ": >> " + output.replace(
        "\n", "\n" + PROGRAM_NAME + ": >> ")


def _emit(level, msg, to_stderr):
    line = PROGRAM_NAME + ": " + level + ": " + msg
    print(line, file=(sys.stderr if to_stderr else sys.stdout), flush=True)
    if _log_file_path is None:
        return
    stamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    try:
        with open(_log_file_path, "a") as f:
            f.write(stamp + " " + line + "\n")
    except OSError as e:
        print(PROGRAM_NAME + ": warning: cannot write to log file " +
            str(_log_file_path) + ": " + str(e), file=sys.stderr, flush=True)


def debug(msg):
    _emit("debug", msg, False)


def info(msg):
    _emit("info", msg, False)


def warning(msg):
    _emit("warning", msg, True)


def error(msg):
    _emit("error", msg, True)

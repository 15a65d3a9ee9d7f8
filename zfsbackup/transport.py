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
Sending snapshots to the backup host. ``SshTransport`` pipes
``zfs send`` into ``ssh user@host zfs receive``.
"""

import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Optional

from zfsbackup import log
from zfsbackup.errors import TransportFailure


@dataclass(frozen=True)
class TransferRequest:
    dataset: str
    label: str
    destination: str
    host: str
    user: str
    base_label: Optional[str] = None
    recursive: bool = False

    @property
    def incremental(self):
        return self.base_label is not None


class Transport:
    def transfer(self, request):
        raise NotImplementedError


class SshTransport(Transport):
    def __init__(self, zfs_binary="zfs", ssh_binary="ssh",
            ssh_options=None):
        self.zfs_binary = zfs_binary
        self.ssh_binary = ssh_binary
        if ssh_options is None:
            ssh_options = ["-o", "BatchMode=yes"]
        self.ssh_options = list(ssh_options)

    def send_command(self, request):
        cmd = [self.zfs_binary, "send"]
        if request.recursive:
            cmd.append("-R")
        if request.incremental:
            cmd += ["-i", request.dataset + "@" + request.base_label]
        cmd.append(request.dataset + "@" + request.label)
        return cmd

    def receive_command(self, request):
        cmd = ["zfs", "receive"]
        # Forcing a rollback on a recursive receive can wipe out
        # child datasets' history on the backup host:
        if not request.recursive:
            cmd.append("-F")
        cmd.append(request.destination)
        return [self.ssh_binary] + self.ssh_options + [
            request.user + "@" + request.host, shlex.join(cmd)]

    def transfer(self, request):
        send_cmd = self.send_command(request)
        receive_cmd = self.receive_command(request)
        log.debug("executing: " + " ".join(send_cmd) + " | " +
            " ".join(receive_cmd))

        # send's stderr goes to a file, a pipe nobody reads while the
        # stream is running fills up and stalls the whole transfer:
        with tempfile.TemporaryFile() as send_errors:
            try:
                send_proc = subprocess.Popen(send_cmd,
                    stdout=subprocess.PIPE, stderr=send_errors)
            except OSError as e:
                raise TransportFailure("cannot run " + send_cmd[0] + ": " +
                    str(e))
            try:
                receive_proc = subprocess.Popen(receive_cmd,
                    stdin=send_proc.stdout, stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT)
            except OSError as e:
                send_proc.kill()
                send_proc.wait()
                raise TransportFailure("cannot run " + receive_cmd[0] +
                    ": " + str(e))
            # Let zfs send get SIGPIPE if the receiving side goes away:
            send_proc.stdout.close()

            (receive_output, _) = receive_proc.communicate()
            send_exit_code = send_proc.wait()
            receive_exit_code = receive_proc.returncode
            send_errors.seek(0)
            send_output = send_errors.read()

        if send_exit_code != 0 or receive_exit_code != 0:
            output = b""
            if send_output:
                output += send_output
            if receive_output:
                output += receive_output
            raise TransportFailure("transfer of " + request.dataset + "@" +
                request.label + " to " + request.host + " failed, " +
                "zfs send exited " + str(send_exit_code) +
                ", zfs receive exited " + str(receive_exit_code),
                output=output)

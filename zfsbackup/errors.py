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
Errors that end a backup run. None of them are retried within a run,
the next scheduled invocation is the retry.
"""


class BackupError(Exception):
    kind = "error"

    def __init__(self, message, output=None):
        super().__init__(message)
        self.message = message
        self.output = output


class PreconditionViolation(BackupError):
    """ Raised when the snapshot chain is not in a state we can continue
        from, e.g. today's snapshot already exists or there is no
        incremental base.
    """
    kind = "precondition"


class StoreOperationFailure(BackupError):
    kind = "store"


class TransportFailure(BackupError):
    kind = "transport"


class ConfigurationError(BackupError):
    kind = "configuration"

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
Alerting sinks. The plain ``Notifier`` drops everything, which is what a
run without a configured sink uses.
"""

import requests

from zfsbackup import log

LEVELS = ("debug", "info", "warning", "error")


class Notifier:
    def notify(self, level, message, context):
        pass


class WebhookNotifier(Notifier):
    """ POSTs ``{"level": ..., "message": ..., "context": {...}}`` as JSON
        to a webhook URL, for every event at or above ``min_level``.
        Delivery problems are logged and otherwise ignored, so they never
        hide the failure being reported.
    """
    def __init__(self, url, min_level="error", timeout=10):
        if min_level not in LEVELS:
            raise ValueError("unknown notification level: " + str(min_level))
        self.url = url
        self.min_level = min_level
        self.timeout = timeout

    def wants(self, level):
        if level not in LEVELS:
            return True
        return LEVELS.index(level) >= LEVELS.index(self.min_level)

    def notify(self, level, message, context):
        if not self.wants(level):
            return
        try:
            resp = requests.post(self.url, json={
                "level": level,
                "message": message,
                "context": context,
            }, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("notification delivery to " + self.url +
                " failed: " + str(e))
            return
        if resp.status_code >= 300:
            log.warning("notification delivery to " + self.url +
                " failed: HTTP " + str(resp.status_code))

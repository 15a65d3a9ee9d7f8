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
Snapshot labels are plain calendar dates (``2024-03-10``), and the full
snapshot name is ``<dataset>@<label>``. All arithmetic is done on
``datetime.date`` so that DST switches can never skip or repeat a day.
"""

import datetime

LABEL_FORMAT = "%Y-%m-%d"


def label_for(day):
    return day.strftime(LABEL_FORMAT)


class SnapshotNaming:
    def __init__(self, dataset, today, keep):
        if keep < 1:
            raise ValueError("keep must be at least 1, got: " + str(keep))
        self.dataset = dataset
        self.today = today
        self.keep = keep

    def current(self):
        return label_for(self.today)

    def previous_candidate(self, offset):
        if offset < 1 or offset > self.keep:
            raise ValueError("offset must be within 1.." + str(self.keep) +
                ", got: " + str(offset))
        return label_for(self.today - datetime.timedelta(days=offset))

    def candidates(self):
        """ Yields (offset, label) from yesterday back to the prune
            boundary, nearest first.
        """
        for offset in range(1, self.keep + 1):
            yield offset, self.previous_candidate(offset)

    def oldest_label(self):
        return self.previous_candidate(self.keep)

    def full_name(self, label):
        return self.dataset + "@" + label

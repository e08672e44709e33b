# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
import logging
import math
import random
import time

# Sleep before retry attempt i of an optimistic write; attempt 0 doesn't
# wait, later attempts wait a randomized 2^i..2^(i+1) ms.
def backoff(i : int, unit : float = 0.001):
    if i == 0:
        return
    b = int(math.pow(2, i))
    delay = unit * random.randint(b, 2*b)
    logging.debug('backoff attempt %d %f', i, delay)
    time.sleep(delay)

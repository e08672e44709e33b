# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Dict, Optional
import logging
import re

# SMTP-style reply carried by an error mapping or a failed resolution.

# error mapping text without a leading code
DEFAULT_ERROR_CODE = 550

_CODE_RE = re.compile(r'^([45][0-9][0-9])(?: (.*))?$', re.DOTALL)

def _default_message(code : int) -> str:
    if 200 <= code <= 299:
        return 'ok'
    elif 400 <= code <= 499:
        return 'temporary error'
    elif 500 <= code <= 599:
        return 'permanent error'
    logging.warning('unexpected response code %s', code)
    return 'internal error'


class Response:
    code : int
    message : str

    def __init__(self, code : int = DEFAULT_ERROR_CODE,
                 message : Optional[str] = None):
        self.code = code
        self.message = message if message else _default_message(code)

    # "550 5.1.1 gone" -> (550, "5.1.1 gone"), "gone" -> (550, "gone")
    @staticmethod
    def from_str(s : str) -> 'Response':
        s = s.strip()
        if (m := _CODE_RE.match(s)) is not None:
            return Response(int(m.group(1)), m.group(2))
        return Response(DEFAULT_ERROR_CODE, s)

    def to_json(self) -> Dict[str, object]:
        return {'code': self.code, 'message': self.message}

    def __str__(self):
        return '%d %s' % (self.code, self.message)

    def __repr__(self):
        return 'Response(%s)' % str(self)

    def __eq__(self, rhs):
        if not isinstance(rhs, Response):
            return False
        return self.code == rhs.code and self.message == rhs.message

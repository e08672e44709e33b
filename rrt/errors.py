# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from enum import Enum
from typing import Optional

from rrt.response import Response

class ErrorKind(Enum):
    INVALID_ARGUMENT = 'InvalidArgument'
    NOT_FOUND = 'NotFound'
    WRONG_STATE = 'WrongState'
    SERVER_ERROR = 'ServerError'

    def http_status(self) -> int:
        return _HTTP_STATUS[self]

_HTTP_STATUS = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.WRONG_STATE: 409,
    ErrorKind.SERVER_ERROR: 500,
}


class RecipientRewriteTableException(Exception):
    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message : str):
        super().__init__(message)
        self.message = message


class InvalidArgumentException(RecipientRewriteTableException):
    kind = ErrorKind.INVALID_ARGUMENT

class SameSourceAndDestinationException(InvalidArgumentException):
    pass

class SourceDomainIsNotInDomainListException(InvalidArgumentException):
    pass

class InvalidRegexException(InvalidArgumentException):
    pass


class SourceUserNotFoundException(RecipientRewriteTableException):
    kind = ErrorKind.NOT_FOUND


class LoopDetectedException(RecipientRewriteTableException):
    kind = ErrorKind.WRONG_STATE

class MappingConflictException(RecipientRewriteTableException):
    kind = ErrorKind.WRONG_STATE


# resolution reached an Error mapping or the mapping limit
class ErrorMappingException(RecipientRewriteTableException):
    response : Response

    def __init__(self, response : Response):
        super().__init__(str(response))
        self.response = response

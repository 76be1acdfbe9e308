"""
Support for JSON-formatted error content for HTTP responses.

Proper REST service clients should use the HTTP status value for determining if an HTTP request as
resulted in an error; however, a service may want to provide more information about what went wrong
than what can be fit into the HTTP status and reason fields, and in a machine-readable format.  This
module provides functions and classes that provide a consistent model for returning error data as
a JSON "problem details" object (as described in RFC 9457).  Implementations can augment the object
with custom properties.

At a minimum a JSON problem message will contain the following properties:

``type``
     a URI reference identifying the problem type; by default, this points to the section of the
     HTTP specification describing the status code.
``title``
     a short, human-readable summary of the problem (e.g. "Simple Data Object Delete Error - Not Found")
``status``
     the HTTP status number (e.g. 400, 404, etc.).  This should match the value given in the response
     header.

A message may also contain:

``detail``
     a longer explanation specific to this occurrence of the problem.
``errors``
     for validation problems, an object whose properties are the names of the invalid fields and
     whose values are lists of messages describing what is wrong with them.

The function is :py:func:`is_problem_msg` can be used by clients to recognized a response message that
conforms the above model.
"""
import json
from logging import Logger
from collections import OrderedDict
from collections.abc import Mapping
from typing import Callable

from .base import Handler

PROBLEM_CONTENT_TYPE = "application/problem+json"
VALIDATION_TITLE = "One or more validation errors occurred."

_type_for_status = {
    400: "https://tools.ietf.org/html/rfc9110#section-15.5.1",
    404: "https://tools.ietf.org/html/rfc9110#section-15.5.5",
    405: "https://tools.ietf.org/html/rfc9110#section-15.5.6",
    406: "https://tools.ietf.org/html/rfc9110#section-15.5.7",
    409: "https://tools.ietf.org/html/rfc9110#section-15.5.10",
    500: "https://tools.ietf.org/html/rfc9110#section-15.6.1"
}

_reason_for_status = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    409: "Conflict",
    500: "Internal Server Error"
}

def reason_for(code: int) -> str:
    """
    return the standard HTTP reason phrase for a status code
    """
    return _reason_for_status.get(code, "Error")

def is_problem_msg(msgobj: Mapping):
    """
    return True if the given dictionary represents a JSON-formatted problem message
    """
    if not isinstance(msgobj, Mapping):
        return False
    return "status" in msgobj and "title" in msgobj

def make_problem(code: int, title: str=None, detail: str=None, extra: Mapping=None):
    """
    create a compliant problem message object from the inputs
    """
    out = OrderedDict([
        ("type", _type_for_status.get(code, "about:blank")),
        ("title", title or reason_for(code)),
        ("status", code)
    ])
    if detail:
        out["detail"] = detail
    if extra:
        for k,v in extra.items():
            out[k] = v
    return out

def make_validation_problem(errors: Mapping, title: str=VALIDATION_TITLE, detail: str=None):
    """
    create a problem message object describing field validation errors
    :param Mapping errors:  a mapping of field names to a list of messages for that field
    """
    return make_problem(400, title, detail, {"errors": OrderedDict((k, list(v)) for k,v in errors.items())})

class FatalError(Exception):
    """
    an exception that can be used to send data to be returned to the web client as an error
    JSON message object up the call stack.
    """
    def __init__(self, code: int, title: str, detail=None, extra=None):
        """
        :param int    code:  the HTTP code to respond with
        :param str   title:  the short summary of the problem; this is also returned as the HTTP
                             status message
        :param str  detail:  the more extensive explanation as to the reason for the error;
                             this is returned only in the body of the message
        :param dict  extra:  a dictionary of additional properties to include in the output
                             message object.
        """
        if not detail:
            detail = title or ''
        super(FatalError, self).__init__(detail)
        self.code = code
        self.title = title
        self.detail = detail
        self.data = extra

    def data_update(self, props: Mapping):
        """
        add or update the extra data attached to this FatalError
        """
        if self.data is None:
            self.data = OrderedDict()
        self.data.update(props)

    def to_dict(self):
        return make_problem(self.code, self.title, self.detail, self.data)

    def to_json(self, indent=None):
        return json.dumps(self.to_dict(), indent=indent)

class ErrorHandling:
    """
    a Handler mixin class that provides extra methods for returning problem message objects to
    web clients.
    """

    def send_problem(self, code: int, title: str=None, detail: str=None, extra: Mapping=None,
                     ashead=False):
        """
        send a JSON-formatted problem message back to the web client
        :param int    code:  the HTTP code to respond with
        :param str   title:  the short summary of the problem
        :param str  detail:  the more extensive explanation as to the reason for the error;
                             this is returned only in the body of the message
        :param dict  extra:  a dictionary of additional properties to include in the output
                             message object.
        """
        return self.send_json(make_problem(code, title, detail, extra), reason_for(code), code,
                              ashead, contenttype=PROBLEM_CONTENT_TYPE)

    def send_validation_problem(self, errors: Mapping, ashead=False):
        """
        send a 400 response describing the given field validation errors
        :param Mapping errors:  a mapping of field names to a list of messages for that field
        """
        return self.send_json(make_validation_problem(errors), reason_for(400), 400, ashead,
                              contenttype=PROBLEM_CONTENT_TYPE)

    def send_fatal_error(self, fatalex: FatalError, ashead=False):
        """
        report a FatalError as a JSON-formatted problem message back to the web client
        :param FatalError fatalex:  the error data as a FatalError exception
        :param bool        ashead:  True if the HTTP request was a HEAD request
        """
        return self.send_json(fatalex.to_dict(), reason_for(fatalex.code), fatalex.code, ashead,
                              contenttype=PROBLEM_CONTENT_TYPE)

class HandlerWithJSON(Handler, ErrorHandling):
    """
    a Handler that provides extra methods for returning to web clients error responses formatted in
    JSON.
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, config: dict={},
                 log: Logger=None, app=None):
        Handler.__init__(self, path, wsgienv, start_resp, config, log, app)

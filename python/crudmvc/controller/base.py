"""
Some common code for implementing the controllers:  the base ServiceApp and Handler classes that
hold the data layer and provide utility functions for parsing requests and sending responses.
"""
import json, logging
from collections import OrderedDict
from collections.abc import Mapping, Callable
from logging import Logger
from typing import Union

from ..web.rest import ServiceApp, HandlerWithJSON, FatalError, PROBLEM_CONTENT_TYPE
from ..web.utils import acceptable
from ..data import CRUDDataLayer, DataObject, STRING_KEY
from ..ext import space_capital_letters

__all__ = [ "CRUDServiceApp", "CRUDHandler", "parse_id", "where_key", "where_owner", "to_json_ready" ]

def parse_id(id: str, key_type: str=None) -> Union[int, str]:
    """
    interpret an identifier taken from a URL path.  If the key type is STRING_KEY, the identifier
    is always a string key; otherwise, an identifier made up entirely of digits is taken to be an
    integer key, and any other identifier is a string key.
    """
    if key_type != STRING_KEY and id.isdigit() and id.isascii():
        return int(id)
    return id

def where_key(id: Union[int, str]):
    """
    return a predicate that selects the record with the given key
    """
    if isinstance(id, int):
        return lambda r: r.integer_id == id
    return lambda r: r.string_id == id

def where_owner(owner_id: Union[int, str]):
    """
    return a predicate that selects the sub-resource records belonging to the given owner
    """
    if isinstance(owner_id, int):
        return lambda r: r.owner_integer_id == owner_id
    return lambda r: r.owner_string_id == owner_id

def to_json_ready(obj):
    """
    convert a data layer result--a record, list view, paged list, a list of these, or a plain
    value--to JSON-encodable data
    """
    if obj is None:
        return None
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, (list, tuple)):
        return [to_json_ready(o) for o in obj]
    return obj

class CRUDServiceApp(ServiceApp):
    """
    a base ServiceApp for controllers that provide access to the records managed by a data layer.

    In addition to the parameters supported by :py:class:`~crudmvc.web.rest.ServiceApp`, the
    configuration may include:

    ``record_type_name``
        the name to use for the record type in log and error messages.  The default is the name
        of the data layer's record class (e.g. "SimpleDataObject").
    """

    def __init__(self, datalayer: CRUDDataLayer, log: Logger, config: Mapping=None, appname: str=None):
        """
        :param CRUDDataLayer datalayer:  the data layer the controller will interact with
        :param Logger   log:  the logger the controller will write messages to
        :param Mapping config:  the controller configuration
        :param str  appname:  a name for the controller; the default is the record type name
        """
        if datalayer is None:
            # programming error
            raise ValueError("Missing data layer")
        if log is None:
            raise ValueError("Missing logger")
        if config is None:
            config = {}

        self.datalayer = datalayer
        self.type_name = config.get("record_type_name") or datalayer.record_class.type_name()
        super(CRUDServiceApp, self).__init__(appname or self.type_name, log, config)

    @property
    def record_class(self):
        """
        the class for the records managed by this controller's data layer
        """
        return self.datalayer.record_class

class CRUDHandler(HandlerWithJSON):
    """
    a base class for handling requests on records in a data layer.  It provides some common
    utility functions for parsing requests and sending responses.
    """
    _allowed_methods = ["GET"]
    _json_only = True

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, path: str="",
                 config: dict=None, log: Logger=None):
        """
        Initialize this handler with the request particulars.

        :param CRUDServiceApp app:  the controller receiving the request and calling this constructor
        :param dict  wsgienv:  the WSGI request context dictionary
        :param Callable start_resp:  the WSGI start-response function used to send the response
        :param str      path:  the relative path to be handled by this handler; typically, some starting
                               portion of the original request path has been stripped away to handle
                               produce this value.
        :param dict   config:  the handler's configuration; if not provided, the configuration will
                               be taken from `app`.  Normally, the constructor is called without this
                               parameter.
        :param Logger    log:  the logger to use within this handler; if not provided (typical), the
                               logger attached to the app will be used.
        """
        if config is None:
            config = app.cfg
        if not log:
            log = app.log
        super(CRUDHandler, self).__init__(path, wsgienv, start_resp, config, log, app)
        self._dl = app.datalayer
        self.type_name = app.type_name
        self.display_name = space_capital_letters(self.type_name)

    def parse_key(self, id: str) -> Union[int, str]:
        """
        interpret a record identifier from the request path according to the record type's key type
        """
        return parse_id(id, getattr(self._dl.record_class, "key_type", None))

    def parse_owner_key(self, owner_id: str) -> Union[int, str]:
        """
        interpret an owner identifier from the request path according to the record type's
        owner key type
        """
        return parse_id(owner_id, getattr(self._dl.record_class, "owner_key_type", None))

    def acceptable(self):
        """
        return True if the client's Accept request is compatible with this handler.

        This default implementation will return True if the Accept request permits JSON or if the
        Accept header is not specified.
        """
        accepts = self.get_accepts()
        return acceptable("application/json", accepts) or acceptable(PROBLEM_CONTENT_TYPE, accepts)

    def handle(self):
        if self._json_only and self._meth != "OPTIONS" and not self.acceptable():
            return self.send_unacceptable()
        return super(CRUDHandler, self).handle()

    def do_OPTIONS(self, path):
        return self.send_options(self._allowed_methods, self._env.get("HTTP_ORIGIN"))

    def get_json_body(self):
        """
        read in the request body assuming that it is in JSON format
        :raises FatalError:  if the body is missing or cannot be parsed as JSON
        """
        bodyin = self._env.get('wsgi.input')
        if bodyin is None:
            raise FatalError(400, "Missing input", "Missing expected input JSON data")

        body = None
        try:
            body = bodyin.read()
            if not body:
                raise FatalError(400, "Missing input", "Missing expected input JSON data")
            if isinstance(body, bytes):
                body = body.decode('utf-8')
            return json.loads(body, object_pairs_hook=OrderedDict)

        except (ValueError, TypeError) as ex:
            if self.log.isEnabledFor(logging.DEBUG):
                self.log.error("Failed to parse input: %s", str(ex))
                self.log.debug("\n%s", body)
            raise FatalError(400, "Input not parseable as JSON",
                             "Input document is not parse-able as JSON: "+str(ex))

    def get_record_body(self) -> DataObject:
        """
        read in the request body as a record of the type managed by the data layer
        :raises FatalError:  if the body is missing, cannot be parsed as JSON, or is not a JSON object
        """
        data = self.get_json_body()
        if not isinstance(data, Mapping):
            raise FatalError(400, "Input not a record",
                             "Input document is not a JSON object describing a %s" % self.display_name)
        return self._dl.record_class.from_dict(data)

    def send_json(self, data, message="OK", code=200, ashead=False, encoding='utf-8',
                  contenttype="application/json"):
        return super(CRUDHandler, self).send_json(to_json_ready(data), message, code, ashead,
                                                  encoding, contenttype)

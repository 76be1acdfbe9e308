"""
The base REST framework classes
"""
import re, json
from abc import ABCMeta, abstractmethod
from functools import reduce
from logging import Logger
from urllib.parse import parse_qs
from typing import Mapping, Callable, List

from wsgiref.headers import Headers

from ..utils import order_accepts
from ...config import ConfigurationException

__all__ = ["Handler", "NotFoundHandler", "ServiceApp", "WSGIApp", "WSGIAppSuite", "WSGIServiceApp"]

class Handler(object):
    """
    a default web request handler that also serves as a base class for the
    handlers specialized for the supported resource paths.  A handler is created to handle a
    single request; its :py:meth:`handle` method dispatches the request to a method of the form
    ``do_<METHOD>(path)``, which subclasses provide.
    """

    def __init__(self, path: str, wsgienv: dict, start_resp: Callable, config: dict={},
                 log: Logger=None, app=None):
        self._path = path
        self._env = wsgienv
        self._start = start_resp
        self._hdr = Headers([])
        self._code = 0
        self._msg = "unknown status"
        self.cfg = config
        self.log = log

        self._app = app
        if self._app and hasattr(app, 'include_headers'):
            self._hdr = Headers(list(app.include_headers.items()))

        self._meth = self._env.get('REQUEST_METHOD', 'GET')

    @property
    def app(self):
        """
        the ServiceApp instance that created this handler
        """
        return self._app

    def send_error(self, code, message, content=None, contenttype=None, ashead=None, encoding='utf-8'):
        """
        respond to the client with an error of a given code and reason

        This method is meant to be called by a method handler (or an override of :py:meth:`handle`)
        and is provided as a simple way to send an error response (instead of calling
        :py:meth:`set_response` and :py:meth:`end_headers` directly).

        :param int code:        the HTTP response code to assign
        :param str message:     the briefly-stated reason to give for the error; this text
                                is sent as the message that accompanies the code in the HTTP
                                response header
        :param content:         Content to return as the body.
                                :type content: str or byte or a list of either
        :param str contenttype: the MIME type to associate with the returned content.
        :param bool ashead:     True if this is being sent as if in response to a HEAD request; if so,
                                the size and type of the content will be included in the headers, but
                                the actual content will be withheld.  If not provided, it will be set
                                to True if the originally requested method is "HEAD"; otherwise it is
                                False
        :param str encoding:    The encoding required to turn the content--when given as str--into bytes.
                                The default is 'utf-8'.
        """
        return self._send(code, message, content, contenttype, ashead, encoding)

    def send_unacceptable(self, message="Not Acceptable", content=None, contenttype=None, ashead=None,
                          encoding='utf-8'):
        return self.send_error(406, message, content, contenttype, ashead, encoding)

    def send_ok(self, content=None, contenttype=None, message="OK", code=200, ashead=None, encoding='utf-8'):
        """
        respond to the client a response of success.

        This method is meant to be called by a method handler (or an override of :py:meth:`handle`)
        and is provided as a short-cut for small, simple successful responses instead of calling
        :py:meth:`set_response` and :py:meth:`end_headers` directly.

        :param content:         Content to return as the body.  If not provided, the body will be
                                empty.
                                :type content: str or byte
        :param str contenttype: the MIME type to associate with the returned content.
        :param str message:     the briefly-stated reason to give with the status; the default is "OK".
        :param int code:        the HTTP response code to assign.  This should be between greater
                                than or equal to 200 and less than 300; the default is 200.
        """
        return self._send(code, message, content, contenttype, ashead, encoding)

    def send_json(self, data, message="OK", code=200, ashead=False, encoding='utf-8',
                  contenttype="application/json"):
        """
        Send some data formatted as JSON.
        :param data:     the data to encode in JSON
                         :type data: dict, list, or string
        """
        return self._send(code, message, json.dumps(data, indent=2), contenttype, ashead, encoding)

    def send_html(self, html: str, message="OK", code=200, ashead=None, encoding='utf-8'):
        """
        send some rendered HTML content
        """
        return self._send(code, message, html, "text/html; charset="+encoding, ashead, encoding)

    def send_redirect(self, location: str, code=302, message="Found"):
        """
        redirect the client to another URL
        :param str location:  the URL (typically, an absolute path) to redirect the client to
        :param int     code:  the redirect status code (default: 302)
        """
        self.add_header("Location", location)
        return self._send(code, message, None, None, False, 'utf-8')

    def send_options(self, allowed_methods: List[str]=None, origin: str=None, extra=None,
                     forcors: bool=True):
        """
        send a response to a OPTIONS request.  This implememtation is primarily for CORS preflight requests
        :param List[str] allowed_methods:   a list of the HTTP methods that are allowed for request
        :param str                origin:   the origin to allow access from
        :param dict|Headers        extra:   extra headers to include in the output.  This is either a
                                            dictionary-like object or a list of 2-tuples (like
                                            wsgiref.header.Headers).
        """
        meths = list(allowed_methods or [])
        if 'OPTIONS' not in meths:
            meths.append('OPTIONS')
        self.add_header('Allow', ", ".join(meths))
        if forcors:
            self.add_header('Access-Control-Allow-Methods', ", ".join(meths))
            if origin:
                self.add_header('Access-Control-Allow-Origin', origin)
            self.add_header('Access-Control-Allow-Headers', "Content-Type")
        if isinstance(extra, Mapping):
            for k,v in extra.items():
                self.add_header(k, v)
        elif isinstance(extra, (list, tuple)):
            for k,v in extra:
                self.add_header(k, v)

        return self.send_ok(message="No Content")

    def _send(self, code, message, content, contenttype, ashead, encoding):
        if ashead is None:
            ashead = self._meth.upper() == "HEAD"
        self.set_response(code, message)

        if content:
            if not isinstance(content, list):
                content = [ content ]
            badtype = [type(c) for c in content if not isinstance(c, (str, bytes))]
            if badtype:
                raise TypeError("send_*: non-str/bytes found in content")
            if not contenttype:
                contenttype = (isinstance(content[0], str) and "text/plain") or "application/octet-stream"
        else:
            content = []
        # convert to bytes
        content = [(isinstance(c, str) and c.encode(encoding)) or c for c in content]

        if contenttype:
            self.add_header("Content-Type", contenttype)
        if len(content) > 0:
            self.add_header("Content-Length", str(reduce(lambda x, t: x+len(t), content, 0)))

        self.end_headers()
        return (not ashead and content) or []

    def add_header(self, name, value):
        """
        record a name-value pair to be sent as part of the response header.

        :param str name:  the name of the header field to cache
        :param str value: the value to give to the header field
        :raises UnicodeEncodeError:  if name or value includes Unicode characters (see PEP 333)
        """
        # HTTP headers must be ISO-8859-1-encodable (PEP 3333)
        e = "ISO-8859-1"
        (name.encode(e), value.encode(e))

        self._hdr.add_header(name, value)

    def set_response(self, code, message):
        """
        record the response code and message to be sent when the response is triggered to push out.
        """
        self._code = code
        self._msg = message

    def end_headers(self):
        """
        trigger the delivery of response's header to the web client.

        This method is meant to be called by a method handler (or an override of :py:meth:`handle`).
        It should be preceded with a call to :py:meth:`set_response`; afterward, the handler should
        return the body content (as an iterable).
        """
        status = "{0} {1}".format(str(self._code), self._msg)
        self._start(status, self._hdr.items(), None)

    def handle(self):
        """
        handle the request encapsulated in this Handler (at construction time).

        The default implementation looks for a Handler method of the form, `do_`METH(), where METH is
        is the HTTP method requested (e.g. GET, HEAD, etc.) and calls it with the requested URL path
        (as set at construction).  If the requested method is HEAD and there is no HEAD, `do_GET()`
        is called with a second argument set to True which should prevent the content from the
        path to be excluded.
        """
        meth = self._meth
        if self._env.get('HTTP_X_HTTP_METHOD_OVERRIDE'):
            meth = self._env.get('HTTP_X_HTTP_METHOD_OVERRIDE')

        meth_handler = 'do_'+meth

        try:
            if hasattr(self, meth_handler):
                return getattr(self, meth_handler)(self._path)
            elif meth == "HEAD" and hasattr(self, 'do_GET'):
                return self.do_GET(self._path, ashead=True)
            else:
                return self.send_error(405, meth + " not supported on this resource")
        except Exception as ex:
            if self.log:
                self.log.exception("Unexpected failure: "+str(ex))
            return self.send_error(500, "Server failure")

    def get_accepts(self):
        """
        return the requested content types as a list ordered by their q-values.  An empty list
        is returned if no types were specified.
        """
        accepts = self._env.get('HTTP_ACCEPT')
        if not accepts:
            return [];
        return order_accepts(accepts)

    def get_query_params(self) -> Mapping:
        """
        return the query parameters attached to the request URL as a dictionary whose values are
        lists of strings.
        """
        qs = self._env.get('QUERY_STRING')
        if not qs:
            return {}
        return parse_qs(qs, keep_blank_values=True)

class NotFoundHandler(Handler):
    """
    a request Handler that always returns 404 Not Found.  This can be used in :py:class:`ServiceApp`
    implementations that create a handler (via :py:meth:`~ServiceApp.create_handler`) based on the
    requested path.  If the path is not recognized, an instance of this class can be returned.
    """
    def handle(self):
        if self._meth == "OPTIONS":
            return self.send_options(["GET"])
        return self.send_error(404, "Not Found")


class ServiceApp(metaclass=ABCMeta):
    """
    a base class WSGI implementation intended to run as a delegate handling a particular path
    within another WSGI application.  A ServiceApp is usually plugged into a larger WSGI app to
    handle requests for a particular path and its descendent paths (as in <path> and <path>/*).

    The configuration may include the following parameter:

    ``include_headers``
        a dictionary (or a list of name-value pairs) of HTTP headers that should be added to
        every response (e.g. ``Access-Control-Allow-Origin``).
    """

    def __init__(self, appname: str, log: Logger, config: Mapping=None):
        self.log = log
        if config is None:
            config = {}
        self.cfg = config
        self._name = appname

        self.include_headers = Headers()
        if config.get("include_headers"):
            try:
                if isinstance(config.get("include_headers"), Mapping):
                    self.include_headers = Headers(list(config.get("include_headers").items()))
                elif isinstance(config.get("include_headers"), list):
                    self.include_headers = Headers([tuple(h) for h in config.get("include_headers")])
                else:
                    raise TypeError("Not a list of 2-tuples")
            except (TypeError, ValueError) as ex:
                raise ConfigurationException("include_headers: must be either a dict or a list of "+
                                             "name-value pairs", "include_headers", ex)
    @property
    def name(self):
        """
        a name for the service provided by this ServiceApp instance (set at construction time).
        This can be used in messages targeted to clients.
        """
        return self._name

    @abstractmethod
    def create_handler(self, env: dict, start_resp: Callable, path: str) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested.  This is usually
                             relative to a parent path that this ServiceApp is configured to
                             handle.
        """
        raise NotImplementedError()

    def handle_path_request(self, env: dict, start_resp: Callable, path: str=None):
        """
        respond to a request on a particular (relative) URL path.
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested.  This is usually
                             relative to a parent path that this ServiceApp is configured to
                             handle.  If None, the value of env['PATH_INFO'] should be
                             assumed.
        """
        if path is None:
            path = env.get('PATH_INFO', '')
        return self.create_handler(env, start_resp, path).handle()

    def __call__(self, env, start_resp):
        return self.handle_path_request(env, start_resp)

class WSGIApp(metaclass=ABCMeta):
    """
    A WSGI application base class for wrapping one or more ServiceApp classes.

    This base implementation will leverage two parameters from the configuration:

    ``base_ep``
        _str_ (optional).  The base endpoint URL for the web app given as a path starting with
                           a forward slash, ``/``.  All resource path requests must start with
                           this path; otherwise 404 (Not Found) is returned.
    ``name``
        _str_ (optional).  A short name to use to identify this web app (e.g. in log messages)

    WSGIApp subclasses may expand on this base set of configuration parameters.
    """

    def __init__(self, config: Mapping, log: Logger, base_ep: str = None, name: str = None):
        """
        initialize the base information for the app.
        :param dict config:  configuration data for the app.  (See
                             :py:class:`the class documentation<WSGIApp>` as well as for
                             subclasses for more information.)
        :param Logger  log:  the Logger this app should use to record log messages
        :param str base_ep:  the base endpoint URL for the suite of services.  If not provided,
                             the base URL is set by the configuration (via the ``base_ep``
                             parameter).
        :param str    name:  a name to use to identify this app for context (e.g. in logs)
        """
        self.log = log
        self.cfg = config
        self.name = name
        if not self.name:
            self.name = self.cfg.get("name", "")
        self.base_ep = None
        if not base_ep:
            base_ep = self.cfg.get("base_ep", "")
        base_ep = base_ep.strip('/')
        if base_ep:
            self.base_ep = '/%s/' % base_ep

    def handle_request(self, env: Mapping, start_resp: Callable):
        path = re.sub(r'/+', '/', env.get('PATH_INFO', '/'))

        if self.base_ep:
            if path.startswith(self.base_ep):
                path = path[len(self.base_ep):]

            elif self.base_ep == path+'/':
                path = ''

            elif self.base_ep.startswith(path.rstrip('/')+'/'):
                # client asked for a parent resource of the base_ep
                return Handler(path, env, start_resp).send_error(403, "Forbidden")

            else:
                # path does not match the required base endpoint path at all
                return Handler(path, env, start_resp).send_error(404, "Not Found")

        return self.handle_path_request(path.strip('/'), env, start_resp)

    @abstractmethod
    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable):
        """
        Dispatch a request on a resource path to a handler.
        :param str path:  the path requested by the client.  This path will be relative to the base
                          endpoint path for the service, and will not start with a slash.  Thus, if
                          this WSGIApp was set with a base path, it will be stripped from this
                          path.
        :param dict env:  the WSGI environment containing all request information
        :param func start_resp:  the start-response function provided by the WSGI engine.
        """
        raise NotImplementedError()

    def __call__(self, env, start_resp):
        return self.handle_request(env, start_resp)

class WSGIAppSuite(WSGIApp):
    """
    A WSGI application class that aggregates one or more :py:class:ServiceApp: instances.  This supports
    a model where each ServiceApp represents a different logical service and each with its own base URL;
    they are all brought together into a single WSGI application.
    """

    def __init__(self, config: Mapping, svcapps: Mapping[str, ServiceApp], log: Logger,
                 base_ep: str = None):
        """
        initialize the suite of web services
        :param dict  config:  the configuration for the suite of services
        :param dict svcapps:  a mapping of resource paths (relative to the base endpoint URL)
                              to the ServiceApp instances that should serve them.
        :param Logger   log:  the base logger to use among the suite
        :param str  base_ep:  the base endpoint URL for the suite of services.  If not provided,
                              the base URL is set by the configuration (via the ``base_ep``
                              parameter).
        """
        super(WSGIAppSuite, self).__init__(config, log, base_ep)
        self.svcapps = dict(svcapps.items())

    def _set_service_route(self, path: str, svcapp: ServiceApp):
        """
        configure a resource path to be handled by a particular ServiceApp instance
        """
        self.svcapps[path.strip('/')] = svcapp

    def handle_path_request(self, path: str, env: Mapping, start_resp: Callable):
        """
        Dispatch a request on a resource path to the ServiceApp registered for the longest matching
        parent path.
        :param str path:  the path requested by the client, relative to the base endpoint path.
        :param dict env:  the WSGI environment containing all request information
        :param func start_resp:  the start-response function provided by the WSGI engine.
        """
        base = re.sub(r'/+', '/', path).strip('/')
        apppath = ''
        svcapp = None
        isaparent = False
        while not svcapp:
            svcapp = self.svcapps.get(base)
            if svcapp:
                # Found!
                continue

            if not base:
                if isaparent:
                    return Handler(path, env, start_resp).send_error(403, "Forbidden")
                else:
                    return Handler(path, env, start_resp).send_error(404, "Not Found")

            elif not isaparent:
                isaparent = any([p.startswith(base+'/') for p in self.svcapps.keys()])

            parts = base.rsplit('/', 1)
            if len(parts) < 2:
                parts = ['', base]
            apppath = "/".join([parts[1], apppath]).strip('/')
            base = parts[0]

        return svcapp.handle_path_request(env, start_resp, apppath)

class WSGIServiceApp(WSGIAppSuite):
    """
    a wrapper around a single ServiceApp instance.
    """

    def __init__(self, svcapp: ServiceApp, log: Logger, base_ep: str = None, config: Mapping={}):
        """
        wrap a single ServiceApp
        """
        super(WSGIServiceApp, self).__init__(config, {'': svcapp}, log, base_ep)

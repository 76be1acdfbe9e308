"""
Framework classes for creating REST web interfaces via WSGI

The small framework provided by this module provides foundation classes for RESTful web APIs
that wrap around a data layer.  The framework allows for a strict approach to RESTful service
design via the following features:
  *  a resource-based model for handling requests.  The :py:class:`~crudmvc.web.rest.base.Handler`
     class is implemented to handle a single resource (given by a path).  A Handler can either
     handle all of its sub-resources itself or pass requests for them to other Handlers.
     Routing is explicitly in the hands of the service implementation.
  *  the ability to compose multiple resources into a single WSGI application via the
     :py:class:`~crudmvc.web.rest.base.ServiceApp` and
     :py:class:`~crudmvc.web.rest.base.WSGIAppSuite` classes.
  *  full but simple control over the returned HTTP status for proper error handling
  *  extra convenience support for JSON-formatted responses, including "problem details" error
     messages (see :py:mod:`~crudmvc.web.rest.jsonerr`).

A :py:class:`~crudmvc.web.rest.base.ServiceApp` instance is a compliant WSGI application by itself.
When responding to a web request, it creates a :py:class:`~crudmvc.web.rest.base.Handler` subclass
instance based on the requested resource path; that handler then calls the ``do_<METHOD>``
function matching the HTTP method requested.
"""
from .base import *
from .jsonerr import (FatalError, ErrorHandling, HandlerWithJSON, make_problem, make_validation_problem,
                      is_problem_msg, reason_for, PROBLEM_CONTENT_TYPE)

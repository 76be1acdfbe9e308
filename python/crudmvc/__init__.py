"""
crudmvc:  a generic CRUD and MVC controller layer for WSGI web services.

This package provides reusable web controllers that bind HTTP verbs and resource paths to a 
pluggable persistence abstraction (a *data layer*) for arbitrary record types.  The controllers 
themselves hold no business logic: they receive the HTTP request, call the injected data layer, map 
its result or exception to an HTTP status and payload, and log what happened.  

The package is organized into the following modules:

``data``
    the contract expected of a data layer: records, list views, paged lists, query definitions, 
    the exceptions a data layer may raise, and an in-memory reference implementation.
``controller``
    the CRUD API and MVC view controllers (and their owner-scoped "sub-resource" variants), 
    implemented as WSGI :py:class:`~crudmvc.web.rest.ServiceApp` classes.
``ext``
    string and model-state formatting helpers.
``web``
    the small WSGI REST framework the controllers are built on.
``wsgi``
    an application class that assembles a suite of controllers from a configuration.
``config``
    configuration loading and logging set-up.
"""
try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

_SYSNAME = "CRUD/MVC Controller Layer"
_SYSABBREV = "crudmvc"

class CRUDMVCException(Exception):
    """
    a general base class for exceptions raised by the crudmvc framework or its data layers
    """
    pass

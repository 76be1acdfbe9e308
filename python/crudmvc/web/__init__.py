"""
A small framework for building WSGI web services.

This package is organized into the following modules:

``utils``
    functions for interpreting the HTTP request, in particular the ``Accept`` and ``Content-Type``
    headers and form-encoded bodies.
``rest``
    a simple framework for creating strict REST services out of resource handlers
"""

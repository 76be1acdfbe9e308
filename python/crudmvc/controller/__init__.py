"""
Web controllers that expose the records managed by a data layer.

Two kinds of controllers are provided, each implemented as a WSGI
:py:class:`~crudmvc.web.rest.ServiceApp` that can be installed under a resource path:

  *  :py:class:`~crudmvc.controller.api.StandardCRUDApp` -- a JSON web service (API) supporting
     create, read, update, and delete operations along with counts and paged queries.
  *  :py:class:`~crudmvc.controller.mvc.StandardModelViewApp` -- an HTML (MVC) interface that returns
     rendered views and accepts form submissions.

Each has an owner-scoped variant (:py:class:`~crudmvc.controller.api.StandardSubCRUDApp` and
:py:class:`~crudmvc.controller.mvc.StandardSubModelViewApp`) for sub-resource records.
"""
from .api import StandardCRUDApp, StandardSubCRUDApp
from .mvc import StandardModelViewApp, StandardSubModelViewApp, ValidationFailedAction
from .views import ViewResult, ViewRenderer, PreppyViewRenderer, ViewNotFound

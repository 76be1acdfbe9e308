"""
The MVC (HTML view) controllers for records managed by a data layer.

A :py:class:`StandardModelViewApp` serves the following resources, relative to the path it is
installed under (resource names are matched without regard to case):

``Index`` (or the base path)
    GET: the ``<Type>Index`` view listing all of the records
``AddView``, ``AddPartialView``
    GET: the ``<Type>Add`` view or the ``_<Type>AddPartial`` partial view
``Create``, ``Update``
    POST: create or update a record from a submitted form (or JSON document)
``Delete/{id}``
    POST: delete the record with the given key
``DeleteView/{id}``, ``DeletePartialView/{id}``
    GET: the ``<Type>Delete`` view or the ``_<Type>DeletePartial`` partial view for a record
``EditView/{id}``, ``EditPartialView/{id}``
    GET: the ``<Type>Edit`` view or the ``_<Type>EditPartial`` partial view for a record

The app's configuration controls how the actions respond:

``redirect_on_success``
    if True (default), a successful create, update, or delete redirects the client to the
    ``Index`` view; otherwise, the saved record is returned as JSON.
``details_on_error``
    if True, 404, 409, and 500 responses include a JSON problem message; otherwise (default),
    a bare status is returned, leaving it to the web server to show a friendly error page.
``validation_failed_action``
    what to return when a submitted record is invalid:  ``view`` (default) re-renders the Add or
    Edit view with the errors; ``partial_view`` renders the partial view instead; ``json``
    returns a 400 JSON problem listing the errors.
``views``
    the configuration for the default view renderer, a
    :py:class:`~crudmvc.controller.views.PreppyViewRenderer`; its ``template_dir`` parameter gives
    the directory containing the view templates.

A :py:class:`StandardSubModelViewApp` adds owner-scoped versions of the ``Index`` and Add views
(``Index/{ownerId}``, ``AddView/{ownerId}``, ``AddPartialView/{ownerId}``) which pass the owner's
identifier to the view as ``owner_id`` in the view data; successful actions redirect to the
``Index/{ownerId}`` view.
"""
import re
from enum import Enum
from logging import Logger
from collections import OrderedDict
from collections.abc import Mapping, Callable
from urllib.parse import quote
from typing import Union

from .base import CRUDServiceApp, CRUDHandler, where_key, where_owner
from .views import ViewResult, ViewRenderer, PreppyViewRenderer
from ..web.rest import Handler, NotFoundHandler, FatalError, reason_for
from ..web.utils import media_type, parse_form
from ..data import (CRUDDataLayer, SubCRUDDataLayer, DataObject, DataObjectValidationError,
                    UpdateConflict, IDNotFound, DeleteConflict)
from ..ext import ModelState, copy_to_model_state
from ..config import ConfigurationException

__all__ = [ "StandardModelViewApp", "StandardSubModelViewApp", "ValidationFailedAction", "bind_form",
            "ModelViewHandler", "IndexHandler", "AddViewHandler", "RecordViewHandler",
            "CreateHandler", "UpdateHandler", "DeleteHandler" ]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
APP_PATH_KEY = "crudmvc.app_path"

class ValidationFailedAction(Enum):
    """
    the possible responses to a submitted record that fails validation
    """
    RETURN_VIEW = "view"
    RETURN_PARTIAL_VIEW = "partial_view"
    RETURN_JSON = "json"

    @classmethod
    def from_config(cls, value):
        """
        return the action matching a configuration value, given either as a member, a member value
        (e.g. "partial_view"), or a member name (e.g. "RETURN_PARTIAL_VIEW")
        :raises ConfigurationException:  if the value is not recognized
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace('-', '_')
        try:
            return cls(name)
        except ValueError:
            pass
        try:
            return cls[name.upper()]
        except KeyError:
            raise ConfigurationException("validation_failed_action: not a recognized value: "+str(value),
                                         "validation_failed_action")

def _coerce(value: str, types):
    if "integer" in types:
        return int(value)
    if "number" in types:
        out = float(value)
        return int(out) if out.is_integer() and '.' not in value else out
    if "boolean" in types:
        if value.lower() in ("true", "on", "1"):
            return True
        if value.lower() in ("false", "off", "0"):
            return False
        raise ValueError(value)
    return value

def bind_form(record_class: type, fields: Mapping, model_state: ModelState) -> DataObject:
    """
    create a record from submitted form fields, converting each value to the type declared for
    it in the record type's schema.  A value that cannot be converted is left out of the record and
    an error is recorded for it in the given model state.  Fields that are not record properties
    are ignored.
    """
    props = record_class.get_schema().get("properties", {})
    data = OrderedDict()
    for name, value in fields.items():
        if name not in props:
            continue
        types = props[name].get("type", "string")
        if isinstance(types, str):
            types = [types]

        if value == "":
            if "null" in types:
                data[name] = None
            elif "string" in types:
                data[name] = value
            continue

        try:
            data[name] = _coerce(value, types)
        except ValueError:
            model_state.add_model_error(name, "The value '%s' is not valid for %s." % (value, name))

    return record_class.from_dict(data)

class ModelViewHandler(CRUDHandler):
    """
    a base class for the MVC controller handlers.  It adds support for rendering views, for
    binding submitted records, and for responding to failures according to the app's configuration.
    """
    _json_only = False

    def send_view(self, view_name: str, model=None, partial: bool=False, view_data: Mapping=None,
                  model_state: ModelState=None, ashead=False):
        """
        render a view with the app's renderer and send it to the client
        """
        html = self.app.renderer.render(ViewResult(view_name, model, view_data, partial, model_state))
        return self.send_html(html, ashead=ashead)

    def send_negative(self, code: int, title: str, detail: str, ashead=False):
        """
        send an error response, including a problem message only if the app is configured to
        include details
        """
        if self.app.details_on_error:
            return self.send_problem(code, title, detail, ashead=ashead)
        return self.send_error(code, reason_for(code), ashead=ashead)

    def send_not_found(self, title: str, ashead=False):
        return self.send_negative(404, title,
                                  ("The %s record was not found; please refresh the page because another "+
                                   "user may have deleted it.") % self.display_name, ashead=ashead)

    def controller_url(self) -> str:
        """
        return the URL path to the app's base resource (ending with a slash).  This is determined
        from the request URL with the portion handled by the app removed.
        """
        path = re.sub(r'/+', '/', self._env.get('SCRIPT_NAME', '') + self._env.get('PATH_INFO', '/'))
        path = path.rstrip('/')
        rel = self._env.get(APP_PATH_KEY, '').strip('/')
        if rel and path.lower().endswith('/'+rel.lower()):
            path = path[:-(len(rel)+1)]
        return path + '/'

    def index_url(self, owner_id: Union[int, str]=None) -> str:
        """
        return the URL path to the Index view, optionally for a given owner
        """
        url = self.controller_url() + "Index"
        if owner_id is not None:
            url += "/" + quote(str(owner_id), safe='')
        return url

    def send_success(self, dataobj: DataObject):
        """
        respond to a successful create, update, or delete of the given record
        """
        if self.app.redirect_on_success:
            return self.send_redirect(self.index_url(self.app.index_owner_for(dataobj)))
        return self.send_json(dataobj)

class IndexHandler(ModelViewHandler):
    """
    handle requests for the Index view listing all of the records (or all belonging to an owner)
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, owner_id: str=None,
                 config: dict=None, log: Logger=None):
        super(IndexHandler, self).__init__(app, wsgienv, start_resp, owner_id or "", config, log)
        self._owner = self.parse_owner_key(owner_id) if owner_id else None

    def do_GET(self, path, ashead=False):
        try:
            view_data = {}
            if self._owner is None:
                dataobjs = self._dl.get_all()
            else:
                view_data["owner_id"] = self._owner
                dataobjs = self._dl.get_all(where_owner(self._owner))
            return self.send_view("%sIndex" % self.type_name, dataobjs, view_data=view_data, ashead=ashead)

        except Exception as ex:
            self.log.exception("Failed to return the Index View for the %s.", self.type_name)
            return self.send_negative(500, "%s Index View Error" % self.display_name,
                                      "Failed to find the %s Index View because of an error on the server." %
                                      self.display_name, ashead=ashead)

class AddViewHandler(ModelViewHandler):
    """
    handle requests for the (full or partial) view for adding a new record
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, partial: bool=False,
                 owner_id: str=None, config: dict=None, log: Logger=None):
        super(AddViewHandler, self).__init__(app, wsgienv, start_resp, owner_id or "", config, log)
        self._partial = partial
        self._owner = self.parse_owner_key(owner_id) if owner_id else None

    def do_GET(self, path, ashead=False):
        if self._partial:
            view_name = "_%sAddPartial" % self.type_name
            label = "Add Partial View"
        else:
            view_name = "%sAdd" % self.type_name
            label = "Add View"

        try:
            view_data = {}
            if self._owner is not None:
                view_data["owner_id"] = self._owner
            return self.send_view(view_name, None, self._partial, view_data, ashead=ashead)

        except Exception as ex:
            self.log.exception("Failed to return the %s for the %s.", label, self.type_name)
            return self.send_negative(500, "%s %s Error" % (self.display_name, label),
                                      "Failed to find the %s %s because of an error on the server." %
                                      (self.display_name, label), ashead=ashead)

class RecordViewHandler(ModelViewHandler):
    """
    handle requests for a (full or partial) view displaying a particular record:  the Delete and
    Edit views
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, id: str,
                 kind: str="Edit", partial: bool=False, config: dict=None, log: Logger=None):
        """
        :param str     id:  the key of the record to display
        :param str   kind:  the kind of view, either "Delete" or "Edit"
        :param bool partial:  True if the partial view is requested
        """
        super(RecordViewHandler, self).__init__(app, wsgienv, start_resp, id, config, log)
        self._id = self.parse_key(id)
        self._kind = kind
        self._partial = partial

    def do_GET(self, path, ashead=False):
        if self._partial:
            view_name = "_%s%sPartial" % (self.type_name, self._kind)
            label = "%s Partial View" % self._kind
        else:
            view_name = "%s%s" % (self.type_name, self._kind)
            label = "%s View" % self._kind

        try:
            dataobj = self._dl.get_single(where_key(self._id))
            if dataobj is None:
                self.log.error("Failed to find the %s when fetching the %s for the %s.",
                               self._id, label, self.type_name)
                return self.send_not_found("%s %s Error - Not Found" % (self.display_name, label), ashead)

            return self.send_view(view_name, dataobj, self._partial,
                                  self.app.view_data_for(dataobj), ashead=ashead)

        except Exception as ex:
            self.log.exception("Failed to return the %s for the %s using the %s ID.",
                               label, self.type_name, self._id)
            return self.send_negative(500, "%s %s Error" % (self.display_name, label),
                                      "Failed to find the %s %s View because of an error on the server." %
                                      (self.display_name, self._kind), ashead=ashead)

class SubmissionHandler(ModelViewHandler):
    """
    a base class for handling the submission of a record via a form or JSON document
    """
    _allowed_methods = ["POST"]
    _kind = "Add"

    def read_model(self):
        """
        read the submitted record from the request body and validate it.  A form-encoded body is
        bound to the record type's properties; any other body is expected to be JSON.
        :return:  the record and the ModelState listing the errors found in it
        :raises FatalError:  if the body is not parseable
        """
        model_state = ModelState()
        if media_type(self._env.get('CONTENT_TYPE')) == FORM_CONTENT_TYPE:
            bodyin = self._env.get('wsgi.input')
            body = bodyin.read() if bodyin is not None else ''
            try:
                fields = parse_form(body)
            except UnicodeDecodeError as ex:
                self.log.error("Failed to parse form input: %s", str(ex))
                raise FatalError(400, "Input not parseable",
                                 "Form input is not parse-able as UTF-8 text: "+str(ex))
            dataobj = bind_form(self._dl.record_class, fields, model_state)
        else:
            dataobj = self.get_record_body()

        copy_to_model_state(self._dl.validate(dataobj), model_state)
        return dataobj, model_state

    def send_validation_failed(self, dataobj: DataObject, model_state: ModelState):
        """
        respond to an invalid submission according to the app's ``validation_failed_action``
        """
        action = self.app.validation_failed_action
        if action == ValidationFailedAction.RETURN_JSON:
            return self.send_validation_problem(model_state)

        partial = action == ValidationFailedAction.RETURN_PARTIAL_VIEW
        if partial:
            view_name = "_%s%sPartial" % (self.type_name, self._kind)
        else:
            view_name = "%s%s" % (self.type_name, self._kind)
        return self.send_view(view_name, dataobj, partial, self.app.view_data_for(dataobj), model_state)

class CreateHandler(SubmissionHandler):
    """
    handle the submission of a new record
    """
    _kind = "Add"

    def do_POST(self, path):
        try:
            dataobj, model_state = self.read_model()
        except FatalError as ex:
            return self.send_fatal_error(ex)

        try:
            if not model_state.is_valid:
                self.log.warning("Failed to create the %s because of a model validation error.",
                                 self.type_name)
                return self.send_validation_failed(dataobj, model_state)

            saved = self._dl.create(dataobj)
            self.log.info("The %s was successfully created.", self.type_name)
            return self.send_success(saved)

        except DataObjectValidationError as ex:
            self.log.warning("Failed to create the %s because of a server-side validation error: %s",
                             self.type_name, str(ex))
            copy_to_model_state(ex, model_state)
            return self.send_validation_failed(dataobj, model_state)

        except Exception as ex:
            self.log.exception("Failed to create the %s.", self.type_name)
            return self.send_negative(500, "%s Create Error" % self.display_name,
                                      "Failed to create the %s record because of an error on the server." %
                                      self.display_name)

class UpdateHandler(SubmissionHandler):
    """
    handle the submission of an updated record
    """
    _kind = "Edit"

    def do_POST(self, path):
        try:
            dataobj, model_state = self.read_model()
        except FatalError as ex:
            return self.send_fatal_error(ex)

        id = dataobj.key
        try:
            if not model_state.is_valid:
                self.log.warning("Failed to update the %s %s because of a model validation error.",
                                 id, self.type_name)
                return self.send_validation_failed(dataobj, model_state)

            saved = self._dl.update(dataobj)
            self.log.info("The %s for the %s was successfully updated.", id, self.type_name)
            return self.send_success(saved)

        except UpdateConflict as ex:
            self.log.warning("Failed to update %s %s because the data was considered old.",
                             id, self.type_name)
            return self.send_negative(409, "%s Update Error - Data Conflict" % self.display_name,
                                      ("The submitted %s data was detected to be out of date; please "+
                                       "refresh the page and try again.") % self.display_name)

        except DataObjectValidationError as ex:
            self.log.warning("Failed to update the %s %s because of a server-side validation error: %s",
                             id, self.type_name, str(ex))
            copy_to_model_state(ex, model_state)
            return self.send_validation_failed(dataobj, model_state)

        except IDNotFound as ex:
            self.log.warning("Failed to update the %s %s because it was not found.", id, self.type_name)
            return self.send_not_found("%s Update Error - Not Found" % self.display_name)

        except Exception as ex:
            self.log.exception("Failed to update the %s for %s.", self.type_name, id)
            return self.send_negative(500, "%s Update Error" % self.display_name,
                                      "Failed to update the %s record because of an error on the server." %
                                      self.display_name)

class DeleteHandler(ModelViewHandler):
    """
    handle the deletion of a record identified by its key
    """
    _allowed_methods = ["POST"]

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, id: str,
                 config: dict=None, log: Logger=None):
        super(DeleteHandler, self).__init__(app, wsgienv, start_resp, id, config, log)
        self._id = self.parse_key(id)

    def do_POST(self, path):
        try:
            dataobj = self._dl.get_single(where_key(self._id))
            if dataobj is None:
                self.log.warning("The %s for the %s was not found so no delete occurred.",
                                 self._id, self.type_name)
                return self.send_not_found("%s Delete Error - Not Found" % self.display_name)

            self._dl.delete(dataobj)
            self.log.info("The %s for the %s was successfully deleted.", self._id, self.type_name)
            return self.send_success(dataobj)

        except DeleteConflict as ex:
            self.log.error("Failed to delete the %s %s because of a data conflict: %s",
                           self._id, self.type_name, str(ex))
            return self.send_negative(409, "%s Delete Error - Data Conflict" % self.display_name,
                                      ("The %s record has a dependency that prevents it from being "+
                                       "deleted; the dependency needs to be deleted first.") %
                                      self.display_name)

        except Exception as ex:
            self.log.exception("Failed to delete the %s %s.", self._id, self.type_name)
            return self.send_negative(500, "%s Delete Error" % self.display_name,
                                      "Failed to delete the %s record because of an error on the server." %
                                      self.display_name)

_record_views = {
    "deleteview":        ("Delete", False),
    "deletepartialview": ("Delete", True),
    "editview":          ("Edit",   False),
    "editpartialview":   ("Edit",   True)
}

class StandardModelViewApp(CRUDServiceApp):
    """
    a ServiceApp providing HTML views of, and form-based actions on, the records managed by a data
    layer.  See the :py:mod:`module documentation<crudmvc.controller.mvc>` for the supported
    configuration parameters.
    """
    _index_handler = IndexHandler
    _add_view_handler = AddViewHandler
    _record_view_handler = RecordViewHandler
    _create_handler = CreateHandler
    _update_handler = UpdateHandler
    _delete_handler = DeleteHandler

    def __init__(self, datalayer: CRUDDataLayer, log: Logger, config: Mapping=None,
                 renderer: ViewRenderer=None, appname: str=None):
        """
        :param CRUDDataLayer datalayer:  the data layer the controller will interact with
        :param Logger   log:  the logger the controller will write messages to
        :param Mapping config:  the controller configuration
        :param ViewRenderer renderer:  the renderer to use to produce the views; if not provided,
                              a :py:class:`~crudmvc.controller.views.PreppyViewRenderer` is created
                              from the ``views`` configuration.
        :param str  appname:  a name for the controller; the default is the record type name
        """
        super(StandardModelViewApp, self).__init__(datalayer, log, config, appname)

        self.redirect_on_success = bool(self.cfg.get("redirect_on_success", True))
        self.details_on_error = bool(self.cfg.get("details_on_error", False))
        self.validation_failed_action = \
            ValidationFailedAction.from_config(self.cfg.get("validation_failed_action",
                                                            ValidationFailedAction.RETURN_VIEW))

        if not renderer:
            tmpldir = self.cfg.get("views", {}).get("template_dir")
            if not tmpldir:
                raise ConfigurationException("views.template_dir: a template directory is required " +
                                             "when no renderer is provided", "views.template_dir")
            renderer = PreppyViewRenderer(tmpldir)
        self.renderer = renderer

    def index_owner_for(self, dataobj: DataObject):
        """
        return the owner identifier to include in the URL to the Index view that the client is
        redirected to after a successful action on the given record, or None if none should be
        included.
        """
        return None

    def view_data_for(self, dataobj: DataObject) -> Mapping:
        """
        return the view data to pass along with a view of the given record
        """
        return {}

    def create_handler(self, env: dict, start_resp: Callable, path: str) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested, relative to the path this
                             app is installed under
        """
        env[APP_PATH_KEY] = path
        parts = [p for p in path.strip('/').split('/') if p]
        action = parts[0].lower() if parts else "index"
        args = parts[1:]

        if action == "index":
            return self._create_owned_handler(self._index_handler, env, start_resp, args)
        if action == "addview":
            return self._create_owned_handler(self._add_view_handler, env, start_resp, args, False)
        if action == "addpartialview":
            return self._create_owned_handler(self._add_view_handler, env, start_resp, args, True)

        if action == "create" and not args:
            return self._create_handler(self, env, start_resp)
        if action == "update" and not args:
            return self._update_handler(self, env, start_resp)
        if action == "delete" and len(args) == 1:
            return self._delete_handler(self, env, start_resp, args[0])
        if action in _record_views and len(args) == 1:
            kind, partial = _record_views[action]
            return self._record_view_handler(self, env, start_resp, args[0], kind, partial)

        return NotFoundHandler(path, env, start_resp, log=self.log, app=self)

    def _create_owned_handler(self, hdlrcls, env, start_resp, args, *hdlrargs):
        if args:
            return NotFoundHandler("/".join(args), env, start_resp, log=self.log, app=self)
        return hdlrcls(self, env, start_resp, *hdlrargs)

class StandardSubModelViewApp(StandardModelViewApp):
    """
    a ServiceApp providing HTML views of, and form-based actions on, sub-resource records, adding
    views scoped to a particular owner.
    """

    def __init__(self, datalayer: SubCRUDDataLayer, log: Logger, config: Mapping=None,
                 renderer: ViewRenderer=None, appname: str=None):
        if datalayer is not None and not isinstance(datalayer, SubCRUDDataLayer):
            # programming error
            raise ValueError("StandardSubModelViewApp: datalayer must be a SubCRUDDataLayer")
        super(StandardSubModelViewApp, self).__init__(datalayer, log, config, renderer, appname)

    def index_owner_for(self, dataobj: DataObject):
        return dataobj.owner_id

    def view_data_for(self, dataobj: DataObject) -> Mapping:
        return { "owner_id": dataobj.owner_id }

    def _create_owned_handler(self, hdlrcls, env, start_resp, args, *hdlrargs):
        if len(args) > 1:
            return NotFoundHandler("/".join(args), env, start_resp, log=self.log, app=self)
        return hdlrcls(self, env, start_resp, *hdlrargs, owner_id=(args[0] if args else None))

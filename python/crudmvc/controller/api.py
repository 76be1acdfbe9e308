"""
The JSON web service (API) controllers for records managed by a data layer.

A :py:class:`StandardCRUDApp` serves the following resources, relative to the path it is installed
under (resource names are matched without regard to case):

``Count``
    GET: the number of records
(base path)
    POST: create a new record from the JSON body; PUT: update a record from the JSON body
``{id}``
    DELETE: delete the record with the given key
``All``, ``All/ListView``
    GET: all the records, as full records or as list views
``Page``, ``Page/ListView``
    GET: a page of records selected by the query given in the URL query string (see
    :py:mod:`crudmvc.data.query`)
``Single``, ``Single/{id}``
    GET: the first record or the record with the given key (or ``null`` if it does not exist)

A :py:class:`StandardSubCRUDApp` adds owner-scoped versions of the ``All`` and ``Page`` resources
(e.g. ``All/{ownerId}``, ``Page/ListView/{ownerId}``) for sub-resource records.

An identifier given in a path that is made up entirely of digits is taken to be an integer key;
otherwise, it is taken to be a string key.
"""
from logging import Logger
from collections.abc import Mapping, Callable

from .base import CRUDServiceApp, CRUDHandler, where_key, where_owner
from ..web.rest import Handler, NotFoundHandler, FatalError
from ..data import (CRUDDataLayer, SubCRUDDataLayer, QueryDefinition, FilterDefinition,
                    DataObjectValidationError, UpdateConflict, IDNotFound, DeleteConflict)
from ..data.query import EQUALS, STRING_EQUALS
from ..ext import ModelState, copy_to_model_state

__all__ = [ "StandardCRUDApp", "StandardSubCRUDApp", "CountHandler", "CollectionHandler",
            "RecordHandler", "SelectionHandler", "PageHandler", "SingleHandler",
            "SubSelectionHandler", "SubPageHandler" ]

class CountHandler(CRUDHandler):
    """
    handle requests for the number of records
    """

    def do_GET(self, path, ashead=False):
        try:
            count = self._dl.count()
        except Exception as ex:
            self.log.exception("Failed to return the count for the %s data objects.", self.type_name)
            return self.send_problem(500, "%s Count Error" % self.display_name,
                                     "Failed to return the %s count because of an error on the server." %
                                     self.display_name, ashead=ashead)
        return self.send_json(count, ashead=ashead)

class CollectionHandler(CRUDHandler):
    """
    handle the creation (POST) and update (PUT) of records
    """
    _allowed_methods = ["POST", "PUT"]

    def do_POST(self, path):
        try:
            dataobj = self.get_record_body()
        except FatalError as ex:
            return self.send_fatal_error(ex)

        try:
            dataobj = self._dl.create(dataobj)
        except DataObjectValidationError as ex:
            self.log.warning("Failed to create the %s because of a server-side validation error: %s",
                             self.type_name, str(ex))
            return self.send_validation_problem(copy_to_model_state(ex, ModelState()))
        except Exception as ex:
            self.log.exception("Failed to create the %s.", self.type_name)
            return self.send_problem(500, "%s Create Error" % self.display_name,
                                     "Failed to create the %s record because of an error on the server." %
                                     self.display_name)

        self.log.info("The %s was successfully created.", self.type_name)
        return self.send_json(dataobj)

    def do_PUT(self, path):
        try:
            dataobj = self.get_record_body()
        except FatalError as ex:
            return self.send_fatal_error(ex)

        id = dataobj.key
        try:
            dataobj = self._dl.update(dataobj)
        except UpdateConflict as ex:
            self.log.warning("Failed to update %s %s because the data was considered old.",
                             id, self.type_name)
            return self.send_problem(409, "%s Update Error - Data Conflict" % self.display_name,
                                     ("The submitted %s data was detected to be out of date; please "+
                                      "refresh the page and try again.") % self.display_name)
        except DataObjectValidationError as ex:
            self.log.warning("Failed to update the %s %s because of a server-side validation error: %s",
                             id, self.type_name, str(ex))
            return self.send_validation_problem(copy_to_model_state(ex, ModelState()))
        except IDNotFound as ex:
            self.log.warning("Failed to update the %s %s because it was not found.", id, self.type_name)
            return self.send_problem(404, "%s Update Error - Not Found" % self.display_name,
                                     ("The %s record was not found; please refresh the page because "+
                                      "another user may have deleted it.") % self.display_name)
        except Exception as ex:
            self.log.exception("Failed to update the %s for %s.", self.type_name, id)
            return self.send_problem(500, "%s Update Error" % self.display_name,
                                     "Failed to update the %s record because of an error on the server." %
                                     self.display_name)

        self.log.info("The %s was successfully updated.", self.type_name)
        return self.send_json(dataobj)

class RecordHandler(CRUDHandler):
    """
    handle requests on a particular record identified by its key:  deletion
    """
    _allowed_methods = ["DELETE"]

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, id: str,
                 config: dict=None, log: Logger=None):
        super(RecordHandler, self).__init__(app, wsgienv, start_resp, id, config, log)
        self._id = self.parse_key(id)

    def do_DELETE(self, path):
        try:
            dataobj = self._dl.get_single(where_key(self._id))
            if dataobj is None:
                self.log.warning("The %s for the %s was not found so no delete occurred.",
                                 self._id, self.type_name)
                return self.send_problem(404, "%s Delete Error - Not Found" % self.display_name,
                                         ("The %s record was not found; please refresh the page "+
                                          "because another user may have deleted it.") % self.display_name)
            self._dl.delete(dataobj)

        except DeleteConflict as ex:
            self.log.error("Failed to delete the %s %s because of a data conflict: %s",
                           self._id, self.type_name, str(ex))
            return self.send_problem(409, "%s Delete Error - Data Conflict" % self.display_name,
                                     ("The %s record has a dependency that prevents it from being "+
                                      "deleted; the dependency needs to be deleted first.") %
                                     self.display_name)
        except Exception as ex:
            self.log.exception("Failed to delete the %s %s.", self._id, self.type_name)
            return self.send_problem(500, "%s Delete Error" % self.display_name,
                                     "Failed to delete the %s record because of an error on the server." %
                                     self.display_name)

        self.log.info("The %s for the %s was successfully deleted.", self._id, self.type_name)
        return self.send_ok()

class SelectionHandler(CRUDHandler):
    """
    handle requests for all of the records, either as full records or as list views
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, path: str="",
                 listview: bool=False, config: dict=None, log: Logger=None):
        super(SelectionHandler, self).__init__(app, wsgienv, start_resp, path, config, log)
        self._listview = listview

    @property
    def _as_lv(self):
        return " as list views" if self._listview else ""

    def _title(self):
        return "%s Get All%s Error" % (self.display_name, " List View" if self._listview else "")

    def select(self):
        if self._listview:
            return self._dl.get_all_list_view()
        return self._dl.get_all()

    def do_GET(self, path, ashead=False):
        try:
            out = self.select()
        except Exception as ex:
            self.log.exception("Failed to return all the %s data objects%s.", self.type_name, self._as_lv)
            return self.send_problem(500, self._title(),
                                     "Failed to return all the %s records%s because of an error on the server." %
                                     (self.display_name, self._as_lv), ashead=ashead)
        return self.send_json(out, ashead=ashead)

class PageHandler(SelectionHandler):
    """
    handle requests for a page of records selected by a query given in the URL query string
    """

    def _title(self):
        return "%s Get Page%s Error" % (self.display_name, " List View" if self._listview else "")

    def get_query(self) -> QueryDefinition:
        """
        parse the query definition from the request's query string
        :raises FatalError:  if the query is not parseable
        """
        try:
            return QueryDefinition.from_query_string(self._env.get('QUERY_STRING', ''))
        except ValueError as ex:
            raise FatalError(400, "Invalid query", "The page query is not valid: "+str(ex))

    def select_page(self, query: QueryDefinition):
        if self._listview:
            return self._dl.get_page_list_view(query)
        return self._dl.get_page(query)

    def do_GET(self, path, ashead=False):
        try:
            query = self.get_query()
        except FatalError as ex:
            self.log.warning("Rejected page request for %s: %s", self.type_name, ex.detail)
            return self.send_fatal_error(ex, ashead=ashead)

        try:
            out = self.select_page(query)
        except Exception as ex:
            self.log.exception("Failed to return a page of %s data objects%s.", self.type_name, self._as_lv)
            return self.send_problem(500, self._title(),
                                     "Failed to return a page of the %s records%s because of an error on the server." %
                                     (self.display_name, self._as_lv), ashead=ashead)
        return self.send_json(out, ashead=ashead)

class SingleHandler(CRUDHandler):
    """
    handle requests for a single record:  either the first one or one identified by its key
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, id: str=None,
                 config: dict=None, log: Logger=None):
        super(SingleHandler, self).__init__(app, wsgienv, start_resp, id or "", config, log)
        self._id = self.parse_key(id) if id else None

    def do_GET(self, path, ashead=False):
        try:
            if self._id is None:
                dataobj = self._dl.get_single()
            else:
                dataobj = self._dl.get_single(where_key(self._id))
        except Exception as ex:
            if self._id is None:
                self.log.exception("Failed to return the first %s data object.", self.type_name)
            else:
                self.log.exception("Failed to return the %s %s data object.", self._id, self.type_name)
            return self.send_problem(500, "%s Get Single Error" % self.display_name,
                                     "Failed to return the %s record because of an error on the server." %
                                     self.display_name, ashead=ashead)
        return self.send_json(dataobj, ashead=ashead)

class SubSelectionHandler(SelectionHandler):
    """
    handle requests for all of the records belonging to an owner
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, owner_id: str=None,
                 listview: bool=False, config: dict=None, log: Logger=None):
        super(SubSelectionHandler, self).__init__(app, wsgienv, start_resp, owner_id or "", listview,
                                                  config, log)
        self._owner = self.parse_owner_key(owner_id) if owner_id else None

    def select(self):
        if self._owner is None:
            return super(SubSelectionHandler, self).select()
        if self._listview:
            return self._dl.get_all_list_view(where_owner(self._owner))
        return self._dl.get_all(where_owner(self._owner))

    def do_GET(self, path, ashead=False):
        if self._owner is None:
            return super(SubSelectionHandler, self).do_GET(path, ashead)

        try:
            self.log.info("Attempting to retrieve all the %s data objects%s for the owner %s.",
                          self.type_name, self._as_lv, self._owner)
            out = self.select()
            self.log.info("All the %s data objects%s were successfully retrieved for the owner %s.",
                          self.type_name, self._as_lv, self._owner)
        except Exception as ex:
            self.log.exception("Failed to return all the %s data objects%s for owner %s.",
                               self.type_name, self._as_lv, self._owner)
            return self.send_problem(500, self._title(),
                                     ("Failed to return all the %s records%s for an owner because of an "+
                                      "error on the server.") % (self.display_name, self._as_lv),
                                     ashead=ashead)
        return self.send_json(out, ashead=ashead)

class SubPageHandler(PageHandler):
    """
    handle requests for a page of the records belonging to an owner
    """

    def __init__(self, app: CRUDServiceApp, wsgienv: dict, start_resp: Callable, owner_id: str=None,
                 listview: bool=False, config: dict=None, log: Logger=None):
        super(SubPageHandler, self).__init__(app, wsgienv, start_resp, owner_id or "", listview,
                                             config, log)
        self._owner = self.parse_owner_key(owner_id) if owner_id else None

    def get_query(self) -> QueryDefinition:
        query = super(SubPageHandler, self).get_query()
        if self._owner is not None:
            if isinstance(self._owner, int):
                ownerfilter = FilterDefinition("ownerIntegerID", EQUALS, str(self._owner))
            else:
                ownerfilter = FilterDefinition("ownerStringID", STRING_EQUALS, self._owner)
            query.filter_definitions.insert(0, ownerfilter)
        return query

    def do_GET(self, path, ashead=False):
        if self._owner is None:
            return super(SubPageHandler, self).do_GET(path, ashead)

        try:
            query = self.get_query()
        except FatalError as ex:
            self.log.warning("Rejected page request for %s: %s", self.type_name, ex.detail)
            return self.send_fatal_error(ex, ashead=ashead)

        try:
            self.log.info("Attempting to retrieve a page of %s data objects%s for the owner %s.\n%s",
                          self.type_name, self._as_lv, self._owner, query.to_json())
            out = self.select_page(query)
            self.log.info("A page of %s data objects%s for the owner %s were successfully retrieved.\n%s",
                          self.type_name, self._as_lv, self._owner, query.to_json())
        except Exception as ex:
            self.log.exception("Failed to return a page of the %s data objects%s for owner %s.\n%s",
                               self.type_name, self._as_lv, self._owner, query.to_json())
            return self.send_problem(500, self._title(),
                                     ("Failed to return a page of %s records%s for an owner because of an "+
                                      "error on the server.") % (self.display_name, self._as_lv),
                                     ashead=ashead)
        return self.send_json(out, ashead=ashead)

class StandardCRUDApp(CRUDServiceApp):
    """
    a ServiceApp providing the JSON web service interface to the records managed by a data layer.

    Subclasses can change the handling of a resource by overriding the handler class attributes
    (e.g. ``_page_handler``).
    """
    _count_handler = CountHandler
    _collection_handler = CollectionHandler
    _record_handler = RecordHandler
    _selection_handler = SelectionHandler
    _page_handler = PageHandler
    _single_handler = SingleHandler

    def __init__(self, datalayer: CRUDDataLayer, log: Logger, config: Mapping=None, appname: str=None):
        super(StandardCRUDApp, self).__init__(datalayer, log, config, appname)

    def create_handler(self, env: dict, start_resp: Callable, path: str) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested, relative to the path this
                             app is installed under
        """
        parts = [p for p in path.strip('/').split('/') if p]
        if not parts:
            return self._collection_handler(self, env, start_resp)

        resource = parts[0].lower()
        if resource == "count" and len(parts) == 1:
            return self._count_handler(self, env, start_resp, "")

        if resource in ("all", "page"):
            listview = len(parts) > 1 and parts[1].lower() == "listview"
            rest = parts[2:] if listview else parts[1:]
            hdlrcls = self._selection_handler if resource == "all" else self._page_handler
            return self._create_selection_handler(hdlrcls, env, start_resp, listview, rest)

        if resource == "single" and len(parts) < 3:
            return self._single_handler(self, env, start_resp, parts[1] if len(parts) > 1 else None)

        if len(parts) == 1:
            return self._record_handler(self, env, start_resp, parts[0])

        return NotFoundHandler(path, env, start_resp, log=self.log, app=self)

    def _create_selection_handler(self, hdlrcls, env, start_resp, listview, rest):
        if rest:
            return NotFoundHandler("/".join(rest), env, start_resp, log=self.log, app=self)
        return hdlrcls(self, env, start_resp, "", listview)

class StandardSubCRUDApp(StandardCRUDApp):
    """
    a ServiceApp providing the JSON web service interface to sub-resource records, adding
    resources for selecting the records that belong to a particular owner.
    """
    _selection_handler = SubSelectionHandler
    _page_handler = SubPageHandler

    def __init__(self, datalayer: SubCRUDDataLayer, log: Logger, config: Mapping=None, appname: str=None):
        if datalayer is not None and not isinstance(datalayer, SubCRUDDataLayer):
            # programming error
            raise ValueError("StandardSubCRUDApp: datalayer must be a SubCRUDDataLayer")
        super(StandardSubCRUDApp, self).__init__(datalayer, log, config, appname)

    def _create_selection_handler(self, hdlrcls, env, start_resp, listview, rest):
        if len(rest) > 1:
            return NotFoundHandler("/".join(rest), env, start_resp, log=self.log, app=self)
        return hdlrcls(self, env, start_resp, rest[0] if rest else None, listview)

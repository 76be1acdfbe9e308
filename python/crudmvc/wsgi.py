"""
A module that assembles a suite of crudmvc controllers into one WSGI App.

The :py:class:`CRUDMVCApp` class is a WSGI application class that installs a controller (a
:py:class:`~crudmvc.web.rest.ServiceApp`) under each of a set of configured resource paths.  Which
controllers are made available depends on the configuration provided at construction time.

The configuration that is expected by ``CRUDMVCApp`` is a (JSON) object with the following properties:

``base_endpoint``
    (str) _optional_.  the URL resource path where the base of the service suite is accessed.  The
    default value is "/", the root path.
``strict``
    (bool) _optional_.  if True and if a resource type (see below) given in this configuration is
    not recognized, a ``ConfigurationException`` will be raised; otherwise (default), the resource
    is skipped with a warning.
``about``
    (object) _optional_.  an object of data describing this suite of services that should be
    returned when the base path is requested.  (See the :py:class:`About` class for an example.)
``data_layers``
    (object) _optional_.  an object in which each property is a data layer name and its value is
    the configuration for that data layer; this is used to create the data layers if they are not
    provided to the constructor.  See :py:func:`create_data_layer` for the supported parameters.
``resource_defaults``
    (object) _optional_.  default configuration parameters for all of the resource controllers;
    these are merged with (and overridden by) each resource's own configuration.
``resources``
    (object) _required_.  an object in which each property is a resource path (relative to the
    base endpoint) and its value is the configuration for the controller to install there.

A resource configuration supports the following properties, in addition to those supported by its
controller type:

``type``
    (str) _required_.  the name of the controller type:  one of "api", "sub-api", "mvc", or "sub-mvc"
    (or another type registered with the :py:class:`ServiceAppFactory`).
``data_layer``
    (str) _required_.  the name of the data layer (one of those given in ``data_layers``) that the
    controller should use.
``about``
    (object) _optional_.  data describing the resource to include in the :py:class:`About` response.
"""
import logging, importlib
from logging import Logger
from collections import OrderedDict
from collections.abc import Mapping, MutableMapping, Callable
from copy import deepcopy

from . import _SYSNAME, _SYSABBREV, __version__
from .web.rest import ServiceApp, Handler, WSGIAppSuite
from .data import CRUDDataLayer, SubDataObject
from .data.inmem import InMemoryCRUDDataLayer, InMemorySubCRUDDataLayer
from .controller import (StandardCRUDApp, StandardSubCRUDApp, StandardModelViewApp,
                         StandardSubModelViewApp)
from .config import ConfigurationException, merge_config

log = logging.getLogger(_SYSABBREV).getChild('wsgi')

DEF_BASE_PATH = "/"
DEF_DATA_LAYER_FACTORY = "inmem"

def load_record_class(name: str) -> type:
    """
    import and return the record class identified by the given name of the form,
    "_module_:_class_" (e.g. "mypkg.records:SimpleDataObject")
    :raises ConfigurationException:  if the class cannot be found
    """
    if not isinstance(name, str) or ':' not in name:
        raise ConfigurationException("record_class: not of the form module:class: "+str(name),
                                     "record_class")
    modname, clsname = name.split(':', 1)
    try:
        return getattr(importlib.import_module(modname), clsname)
    except (ImportError, AttributeError) as ex:
        raise ConfigurationException("record_class: unable to load %s: %s" % (name, str(ex)),
                                     "record_class", ex)

def create_data_layer(config: Mapping) -> CRUDDataLayer:
    """
    create a data layer from its configuration.  The following parameters are supported:

    ``factory``
        (str) _optional_.  the type of data layer to create; currently, only "inmem" (the default)
        is supported.
    ``record_class``
        (str) _required_.  the record class, given as "_module_:_class_"
    ``id_type``
        (str) _optional_.  the expected key type of the records ("integer" or "string"); if given,
        it must match the record class's ``key_type``.
    ``initial_records``
        (list) _optional_.  records to prime the data layer with

    :raises ConfigurationException:  if the configuration is incomplete or not supported
    """
    factory = config.get('factory', DEF_DATA_LAYER_FACTORY)
    if factory != "inmem":
        raise ConfigurationException("data layer factory not supported: "+str(factory), "factory")
    if not config.get('record_class'):
        raise ConfigurationException("Missing required config parameter: record_class", "record_class")

    reccls = load_record_class(config['record_class'])
    if config.get('id_type') and config['id_type'] != getattr(reccls, 'key_type', None):
        raise ConfigurationException("id_type: %s does not match key type of %s" %
                                     (config['id_type'], config['record_class']), "id_type")

    try:
        if isinstance(reccls, type) and issubclass(reccls, SubDataObject):
            return InMemorySubCRUDDataLayer(reccls, config)
        return InMemoryCRUDDataLayer(reccls, config)
    except ValueError as ex:
        raise ConfigurationException("record_class: "+str(ex), "record_class", ex)

def create_data_layers(config: Mapping) -> MutableMapping:
    """
    create all of the data layers described in the given ``data_layers`` configuration, returning
    them as a map of names to data layer instances.
    """
    if not isinstance(config, Mapping):
        raise ConfigurationException("Config parameter type error: data_layers: not a dictionary: "+
                                     str(type(config)), "data_layers")
    out = OrderedDict()
    for name, dlcfg in config.items():
        try:
            out[name] = create_data_layer(dlcfg)
        except ConfigurationException as ex:
            raise ConfigurationException("While creating data layer %s: %s" % (name, str(ex)),
                                         ex.param, ex)
    return out

class ServiceAppFactory:
    """
    a factory for creating the controller ServiceApps based on a configuration.  Individual ServiceApps
    can be instantiated on demand or all at once (for :py:class:`CRUDMVCApp`).
    """

    def __init__(self, config: Mapping, apptypes: Mapping):
        """
        :param Mapping config:   the configuration for the full collection of controllers that
                                 should be included in the output.
        :param Mapping apptypes: a mapping of type names (referred to in the configuration) to a
                                 ServiceApp class (or factory function that produces a ServiceApp) that
                                 takes three arguments--a data layer, a ``Logger`` instance, and the
                                 resource configuration--and an optional ``appname`` keyword argument.
        """
        self.cfg = config
        if "resources" not in self.cfg:
            raise ConfigurationException("Missing required config parameter: resources", "resources")
        if not isinstance(self.cfg["resources"], Mapping):
            raise ConfigurationException("Config parameter type error: resources: not a dictionary: "+
                                         str(type(self.cfg["resources"])), "resources")
        self.apptypes = dict(apptypes)

    def register_app_type(self, typename: str, factory: Callable):
        """
        Make a ServiceApp class available through this factory class via a given type name
        """
        self.apptypes[typename] = factory

    def config_for_resource(self, path: str) -> MutableMapping:
        """
        return the complete configuration for the controller at the given resource path (with the
        suite's default parameters merged in), or None if the path is not configured.
        """
        rescfg = self.cfg["resources"].get(path)
        if rescfg is None:
            return None
        defcfg = deepcopy(self.cfg.get("resource_defaults", {}))
        if self.cfg.get("include_headers") and "include_headers" not in defcfg:
            defcfg["include_headers"] = deepcopy(self.cfg["include_headers"])
        return merge_config(deepcopy(rescfg), defcfg)

    def create_app(self, log: Logger, datalayer: CRUDDataLayer, rescfg: Mapping, path: str="",
                   typename: str=None) -> ServiceApp:
        """
        instantiate a ServiceApp as specified by the given configuration
        :param Logger        log:  the Logger instance to inject into the ServiceApp
        :param CRUDDataLayer datalayer:  the data layer the ServiceApp should use
        :param Mapping    rescfg:  the resource configuration to initialize the ServiceApp with
        :param str          path:  the resource path the ServiceApp will be installed under
        :param str      typename:  the name to use to look-up the ServiceApp's factory function.  If not
                                   provided, the value of the configuration's ``type`` property will be
                                   used instead.
        :raises ConfigurationException:  if the type name is not provided and is not otherwise set in
                                   the configuration
        :raises KeyError:  if the type name is not recognized as registered ServiceApp
        """
        if not typename:
            typename = rescfg.get('type')
        if typename is None:
            raise ConfigurationException("Missing configuration parameter: type", "type")
        factory = self.apptypes[typename]

        return factory(datalayer, log, rescfg, appname=(rescfg.get('name') or path))

    def create_suite(self, log: Logger, data_layers: Mapping) -> MutableMapping:
        """
        instantiate all of the controllers found in the configuration provided at construction time,
        returning them as a map of web resource paths to ServiceApp instances.  Also included (at the
        base path) will be an About ServiceApp that provides information and proof-of-life for the
        suite.
        """
        out = OrderedDict()
        aboutcfg = self.cfg.get("about", {})
        if any(hasattr(dl, 'reset') for dl in data_layers.values()):
            # use only in development/unit-test mode!
            log.warning("using dev-only, resetable data layers")
            about = DevAbout(log, data_layers, aboutcfg)
        else:
            about = About(log, aboutcfg)

        for path in self.cfg["resources"]:
            rescfg = self.config_for_resource(path)
            if not isinstance(rescfg, Mapping):
                # wrong type; skip
                continue
            path = path.strip('/')

            dlname = rescfg.get("data_layer")
            if not dlname:
                raise ConfigurationException("Missing config parameter for resource %s: data_layer" % path,
                                             "data_layer")
            if dlname not in data_layers:
                raise ConfigurationException("Resource %s: data layer not configured: %s" % (path, dlname),
                                             "data_layer")

            try:
                out[path] = self.create_app(log.getChild(path.replace('/', '.') or 'root'),
                                            data_layers[dlname], rescfg, path)
            except KeyError as ex:
                if self.cfg.get("strict", False):
                    raise ConfigurationException("Resource type not recognized: "+str(ex), "type")
                else:
                    log.warning("Skipping unrecognized resource type: "+str(ex))
                    continue
            except ConfigurationException as ex:
                raise ConfigurationException("While creating controller for %s: %s" % (path, str(ex)),
                                             ex.param, ex)

            desc = deepcopy(rescfg.get("about", {}))
            desc.setdefault("type", rescfg.get("type"))
            desc.setdefault("recordType", out[path].type_name)
            about.add_resource(path, desc)

        out[""] = about
        return out

class About(ServiceApp):
    """
    a ServiceApp intended to provide information about the resources available as part of the overall
    WSGI App.

    This ServiceApp only supports a GET response, to which it responds with a JSON document containing
    data provided to this ServiceApp at construction time and subsequently added to via ``add_*`` methods.
    This document might look something like this:

    .. code-block::
       :caption:  An example About response document describing a suite of controllers

       {
           "message":  "Service is available",
           "title": "CRUD/MVC Controller Layer",
           "version": "1.0.0",
           "resources": {
               "api/simple": {
                   "type": "api",
                   "recordType": "SimpleDataObject"
               },
               "simple": {
                   "type": "mvc",
                   "recordType": "SimpleDataObject"
               }
           }
       }

    """

    def __init__(self, log, base_data: Mapping=None):
        """
        initialize the ServiceApp.  Some default properties may be added to base_data.
        :param Mapping base_data:  the initial data the should appear in the GET response JSON object
        """
        super(About, self).__init__("about", log, {})
        if not base_data:
            base_data = OrderedDict()
        self.data = self._init_data(base_data)

    def _init_data(self, data: Mapping):
        data = deepcopy(data)
        if "message" not in data:
            data["message"] = "Service is available"
        data.setdefault("title", _SYSNAME)
        data.setdefault("version", __version__)
        return data

    def add_component(self, compcat, compname, data):
        """
        append data for a named component of the about information to return.  Within GET responses,
        components are listed by its category by its name (e.g. "resources") which is an object; each
        key in that object is the component's name.

        :param str compcat:  the component category name to add the data to (e.g. "resources"); if a
                             property does not exist in the base data with this name, it will be added.
        :param str compname: the name of the component; the data will be added within the ``compcat``
                             object property as the value of a subproperty with this name.  If this
                             subproperty already exists, it will be overridden.
        :param Mapping data: the data to add for the component
        :raises ValueError:  if the ``compcat`` property already exists in the base data but is not an
                             object.
        """
        if compcat not in self.data:
            self.data[compcat] = OrderedDict()
        if not isinstance(self.data[compcat], MutableMapping):
            raise ValueError("Category property is not an object: %s: %s" % (compcat, type(self.data[compcat])))

        self.data[compcat][compname] = data

    def add_resource(self, path, data):
        """
        add a description of the resource installed at the given path to the ``resources`` property
        """
        self.add_component("resources", path, data)

    class _Handler(Handler):

        def __init__(self, parentapp, path: str, wsgienv: Mapping, start_resp: Callable,
                     config: Mapping={}, log: Logger=None):
            Handler.__init__(self, path, wsgienv, start_resp, config, log, parentapp)

        def handle(self):
            # no sub resources are supported via this ServiceApp
            if self._path.strip('/'):
                return self.send_error(404, "Not found")

            return super().handle()

        def do_OPTIONS(self, path):
            return self.send_options(["GET"], self._env.get("HTTP_ORIGIN"))

        def do_GET(self, path, ashead=False):
            return self.send_json(self._app.data, ashead=ashead)

    def create_handler(self, env: dict, start_resp: Callable, path: str) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        :param Mapping env:  the WSGI environment containing the request
        :param Callable start_resp:  the start_resp function to use initiate the response
        :param str path:     the path to the resource being requested.  This is usually
                             relative to a parent path that this ServiceApp is configured to
                             handle.
        """
        return self._Handler(self, path, env, start_resp, log=self.log)

class DevAbout(About):
    """
    an alternative About ServiceApp intended for use in development and unit tests.  It exposes a
    DELETE method that can be used for resetting the data layers to their original states.
    """
    def __init__(self, log: Logger, data_layers: Mapping, base_data: Mapping=None):
        super(DevAbout, self).__init__(log, base_data)
        self._dls = [dl for dl in data_layers.values() if hasattr(dl, 'reset')]

    def reset(self):
        for dl in self._dls:
            dl.reset()

    class _DevHandler(About._Handler):

        def do_OPTIONS(self, path):
            return self.send_options(["GET", "DELETE"], self._env.get("HTTP_ORIGIN"))

        def do_DELETE(self, path):
            try:
                self._app.reset()
                self.log.info("data layers reset to initial state")
            except Exception as ex:
                self.log.exception("Failed to reset data layers: %s", str(ex))
                return self.send_error(500, "Server Error")

            data = deepcopy(self._app.data)
            data['message'] = "Data reset"
            return self.send_json(data)

    _Handler = _DevHandler

_CRUDMVCServiceApps = {
    "api":      StandardCRUDApp,
    "sub-api":  StandardSubCRUDApp,
    "mvc":      StandardModelViewApp,
    "sub-mvc":  StandardSubModelViewApp
}

class CRUDMVCApp(WSGIAppSuite):
    """
    A complete WSGI App providing a suite of controllers.  The controllers that are included are driven
    by the configuration (see the :py:mod:`module documentation <crudmvc.wsgi>`).
    """

    def __init__(self, config: Mapping, data_layers: Mapping=None, base_ep: str=None,
                 app_types: Mapping=None):
        """
        initialize the App
        :param Mapping config:  the collected configuration for the App (see the
                                :py:mod:`wsgi module documentation <crudmvc.wsgi>` for the schema)
        :param Mapping data_layers:  a map of names to the data layers the controllers can use.  If not
                                provided, the data layers are created from the ``data_layers``
                                configuration parameter.
        :param str base_ep:     the resource path to assume as the base of all services provided by
                                this App.  If not provided, a value set in the configuration is
                                used (which itself defaults to "/").
        :param Mapping app_types: a map of resource type names to ``ServiceApp`` classes that can be
                                installed in this App.  If not provided (typical), an internal map
                                supporting "api", "sub-api", "mvc", and "sub-mvc" is used.
        """
        if base_ep is None:
            base_ep = config.get('base_endpoint', DEF_BASE_PATH)
        if not config.get("resources"):
            raise ConfigurationException("No controllers configured (missing 'resources' parameter)",
                                         "resources")

        if not app_types:
            app_types = _CRUDMVCServiceApps
        if data_layers is None:
            data_layers = create_data_layers(config.get("data_layers", {}))
        self.data_layers = data_layers

        factory = ServiceAppFactory(config, app_types)
        super(CRUDMVCApp, self).__init__(config, factory.create_suite(log, data_layers), log, base_ep)


app = CRUDMVCApp

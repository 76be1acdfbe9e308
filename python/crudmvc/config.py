"""
Utilities for obtaining a configuration for crudmvc applications and for setting up logging.

A configuration is a (possibly nested) dictionary of parameters, usually read from a YAML or JSON
file.  The :py:func:`resolve_configuration` function is the usual entry point: given a file path or
``file:`` URL, it returns the parsed configuration.  :py:func:`merge_config` combines a set of
overriding parameters with a set of defaults.  :py:func:`configure_log` sets up the root logger
based on a configuration's logging parameters.
"""
import os, sys, json, logging
from collections.abc import Mapping
from copy import deepcopy
from urllib.parse import urlparse

import yaml

from . import CRUDMVCException

__all__ = [ "ConfigurationException", "load_from_file", "resolve_configuration", "merge_config",
            "configure_log", "global_logdir", "global_logfile" ]

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
DEF_LOGFILE = "crudmvc.log"

global_logdir = None       # set by configure_log()
global_logfile = None      # set by configure_log()

class ConfigurationException(CRUDMVCException):
    """
    an exception indicating a problem with the configuration data: a required parameter is missing,
    or a parameter value is of the wrong type or is otherwise illegal.
    """

    def __init__(self, msg, param=None, cause=None):
        """
        :param str     msg:  a message describing the problem
        :param str   param:  the name of the parameter at fault, if known
        :param Exception cause:  the underlying exception that triggered this one, if any
        """
        super(ConfigurationException, self).__init__(msg)
        self.message = msg
        self.param = param
        self.cause = cause

    def __str__(self):
        return self.message

def load_from_file(configfile: str) -> Mapping:
    """
    read the configuration from the given file and return it as a dictionary.  The file must be
    either in YAML or JSON format; the format is determined by the file extension (".yml" or ".yaml"
    for YAML, ".json" for JSON).  A file with any other extension is read as YAML.

    :raises ConfigurationException:  if the file cannot be read or parsed
    """
    try:
        with open(configfile) as fd:
            if configfile.endswith(".json"):
                data = json.load(fd)
            else:
                data = yaml.safe_load(fd)
    except (OSError, IOError) as ex:
        raise ConfigurationException("Unable to read configuration file, %s: %s" %
                                     (configfile, str(ex)), cause=ex)
    except (ValueError, yaml.YAMLError) as ex:
        raise ConfigurationException("Configuration file, %s, is not parseable: %s" %
                                     (configfile, str(ex)), cause=ex)

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationException("%s: configuration does not contain an object" % configfile)
    return data

def resolve_configuration(location: str) -> Mapping:
    """
    return the configuration data located at the given location.  The location can be a
    filesystem path or a ``file:`` URL.

    :raises ConfigurationException:  if the location type is not supported or the file cannot be
                                     loaded.
    """
    if not location:
        raise ConfigurationException("No configuration location provided")

    url = urlparse(location)
    if url.scheme in ('', 'file'):
        return load_from_file(url.path if url.scheme else location)

    raise ConfigurationException("Unsupported configuration location type: " + location)

def merge_config(primary: Mapping, defconf: Mapping) -> Mapping:
    """
    merge the parameters from a primary configuration with a set of default parameters and return
    the result.  Values in the primary configuration override those in the defaults; dictionary
    values are merged recursively.  Neither input is altered.
    """
    out = deepcopy(defconf)
    for key, val in primary.items():
        if isinstance(val, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(val, out[key])
        else:
            out[key] = deepcopy(val)
    return out

_log_handler = None

def configure_log(logfile: str=None, level: int=None, format: str=None, config: Mapping=None,
                  addstderr: bool=False):
    """
    configure the root logger to send messages to a log file.  Where a parameter is not given
    explicitly, its value is taken from the configuration.  The following configuration parameters
    are recognized:

    ``logfile``
         the name of the file to write messages to; if not absolute, it is taken relative to
         ``logdir``.  (Default: "crudmvc.log")
    ``logdir``
         the directory to write log files to.  (Default: the ``working_dir`` parameter, or the
         current directory)
    ``loglevel``
         the minimum level of messages to record, as a name (e.g. "INFO") or number.
         (Default: DEBUG)
    ``logformat``
         the format to apply to log messages

    :param str logfile:  the log file path, overriding the configuration
    :param int   level:  the logging level, overriding the configuration
    :param str  format:  the message format, overriding the configuration
    :param Mapping config:  the configuration containing the logging parameters
    :param bool addstderr:  if True, also send messages to standard error
    """
    global global_logdir, global_logfile, _log_handler
    if config is None:
        config = {}

    if not logfile:
        logfile = config.get('logfile', DEF_LOGFILE)
    if not os.path.isabs(logfile):
        global_logdir = config.get('logdir', config.get('working_dir', os.getcwd()))
        logfile = os.path.join(global_logdir, logfile)
    else:
        global_logdir = os.path.dirname(logfile)
    global_logfile = logfile

    if level is None:
        level = config.get('loglevel', logging.DEBUG)
    if isinstance(level, str):
        lev = logging.getLevelName(level.upper())
        if not isinstance(lev, int):
            raise ConfigurationException("loglevel: not a recognized logging level: "+level,
                                         "loglevel")
        level = lev
    if not format:
        format = config.get('logformat', LOG_FORMAT)

    rootlog = logging.getLogger()
    if _log_handler:
        rootlog.removeHandler(_log_handler)
        _log_handler.close()

    if not os.path.exists(global_logdir):
        os.makedirs(global_logdir)
    _log_handler = logging.FileHandler(logfile)
    _log_handler.setFormatter(logging.Formatter(format))
    _log_handler.setLevel(level)
    rootlog.addHandler(_log_handler)
    rootlog.setLevel(level)

    if addstderr:
        hdlr = logging.StreamHandler(sys.stderr)
        hdlr.setFormatter(logging.Formatter(format))
        hdlr.setLevel(level)
        rootlog.addHandler(hdlr)

    rootlog.info("FYI: Writing log messages to %s", logfile)

"""
the uWSGI script for launching a crudmvc controller suite.

This script launches the web service using uwsgi.  For example, one can
launch the service with the following command:

  uwsgi --plugin python3 --http-socket :9090 --wsgi-file crudmvc-uwsgi.py     \
        --set-ph crudmvc_config_file=crudmvc_conf.yml --set-ph crudmvc_working_dir=_test

The configuration data is provided to this script via a file (as illustrated above); see the
documentation for crudmvc.wsgi for the configuration parameters supported by this service.  The
following uwsgi variables are recognized:

   crudmvc_config_file   the path (or file: URL) of the YAML or JSON configuration file; this
                            overrides the CRUDMVC_CONFIG_FILE environment variable.
   crudmvc_working_dir   the directory to write log files to (unless set by the configuration)
   crudmvc_log_file      the name of the log file, overriding the configuration
"""
import os, sys, logging

import uwsgi

import crudmvc
from crudmvc import config, wsgi

def _dec(obj):
    # decode an object if it is not None
    return obj.decode() if isinstance(obj, (bytes, bytearray)) else obj

# determine where the configuration is coming from
confsrc = _dec(uwsgi.opt.get("crudmvc_config_file")) or os.environ.get("CRUDMVC_CONFIG_FILE")
if not confsrc:
    raise config.ConfigurationException("crudmvc: configuration file not provided")
cfg = config.resolve_configuration(confsrc)

workdir = _dec(uwsgi.opt.get("crudmvc_working_dir"))
if workdir:
    cfg['working_dir'] = workdir
    if not os.path.exists(workdir):
        os.makedirs(workdir)

if uwsgi.opt.get("crudmvc_log_file"):
    cfg["logfile"] = _dec(uwsgi.opt.get("crudmvc_log_file"))

config.configure_log(config=cfg)

data_layers = wsgi.create_data_layers(cfg.get("data_layers", {}))
application = wsgi.app(cfg, data_layers)

msg = "crudmvc service (v%s) ready with %d data layer(s)" % (crudmvc.__version__, len(data_layers))
print(msg)
logging.info(msg)

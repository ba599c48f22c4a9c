"""Runtime shims that redirect loopback database addresses to compose services."""

from jinja2 import Template

LOOPBACK_HOSTS = ["localhost", "127.0.0.1"]

# Hostnames the Python shim rewrites, keyed on destination port
PYTHON_REDIRECT_HOSTS = ["localhost", "127.0.0.1", "db", "database"]
PORT_HOSTS = {
    3306: "mysql",
    5432: "postgres",
    27017: "mongo",
    6379: "redis",
}

# Preloaded with `node -r`. Wraps mysql/mysql2 connection factories so a
# config pointing at loopback (or nowhere) targets the mysql service, and
# swaps root credentials for the dev user. net.connect rewrites loopback by
# destination port for clients that bypass those factories.
NODE_SHIM = Template("""\
const Module = require('module');
const net = require('net');

const LOOPBACK = {{ loopback | tojson }};
const TARGET_HOST = {{ host | tojson }};

const patchConfig = (config) => {
  if (typeof config !== 'object' || config === null) return config;
  if (!config.host || LOOPBACK.includes(config.host)) {
    config.host = TARGET_HOST;
  }
  if (config.user === 'root') {
    config.user = {{ user | tojson }};
    config.password = {{ password | tojson }};
  }
  return config;
};

const wrapFactory = (exports, name) => {
  const original = exports[name];
  if (typeof original !== 'function' || original.__devupPatched) return;
  const wrapped = function (config, ...rest) {
    return original.call(this, patchConfig(config), ...rest);
  };
  wrapped.__devupPatched = true;
  exports[name] = wrapped;
};

const originalRequire = Module.prototype.require;
Module.prototype.require = function (id) {
  const exports = originalRequire.apply(this, arguments);
  if (id === 'mysql' || id === 'mysql2' || id === 'mysql2/promise') {
    wrapFactory(exports, 'createConnection');
    wrapFactory(exports, 'createPool');
  }
  return exports;
};

const PORT_HOSTS = {{ port_hosts | tojson }};

const originalConnect = net.connect;
net.connect = net.createConnection = function (...args) {
  const options = args[0];
  if (options && typeof options === 'object' && LOOPBACK.includes(options.host)) {
    const host = PORT_HOSTS[options.port];
    if (host) options.host = host;
  } else if (typeof options === 'number' || typeof options === 'string') {
    // net.connect(port[, host][, listener])
    const given = typeof args[1] === 'string' ? args[1] : undefined;
    const host = PORT_HOSTS[options];
    if (host && (given === undefined || LOOPBACK.includes(given))) {
      if (given === undefined) {
        args.splice(1, 0, host);
      } else {
        args[1] = host;
      }
    }
  }
  return originalConnect.apply(this, args);
};
""")

# Installed as sitecustomize.py, so it runs before any application import.
PYTHON_SHIM = Template('''\
"""Redirect loopback database addresses to docker compose services."""

import socket

_REDIRECT_HOSTS = frozenset({{ redirect_hosts | tojson }})
_PORT_HOSTS = {
{%- for port, host in port_hosts.items() %}
    {{ port }}: {{ host | tojson }},
{%- endfor %}
}

_getaddrinfo = socket.getaddrinfo


def _target(host, port):
    if host not in _REDIRECT_HOSTS:
        return host
    try:
        return _PORT_HOSTS.get(int(port), host)
    except (TypeError, ValueError):
        return host


def _devup_getaddrinfo(host, port, *args, **kwargs):
    return _getaddrinfo(_target(host, port), port, *args, **kwargs)


socket.getaddrinfo = _devup_getaddrinfo
''')

import logging
import os, sys, time, random
from urllib.parse import urlparse
from . import HOME_FOLDER, DOMAIN

_quiet = False

def setupLogging(filename=None):
  log = logging.getLogger('drydock')
  log.setLevel(logging.DEBUG)

  if not filename:
    filename = os.path.join(homeFolder(), 'drydock.log')

  folder = os.path.dirname(filename)
  if folder and not os.path.exists(folder):
    os.makedirs(folder)

  formatter = logging.Formatter("%(asctime)s %(levelname)-10s %(message)s")
  filehandler = logging.FileHandler(filename, 'w')
  filehandler.setLevel(logging.DEBUG)
  filehandler.setFormatter(formatter)
  log.addHandler(filehandler)
  return log

def setQuiet(quiet):
  global _quiet
  _quiet = quiet

def status(message):
  logging.getLogger('drydock').info(message)
  if not _quiet:
    sys.stdout.write(message + "\n")
    sys.stdout.flush()

def waitFor(check, timeout, interval=1, cancel=None):
  """
  Call check until it returns something truthy, the timeout in seconds
  elapses or the cancel event is set. Returns True only when check succeeded.
  """
  deadline = time.monotonic() + timeout
  while True:
    if check():
      return True

    remaining = deadline - time.monotonic()
    if remaining <= 0:
      return False

    if cancel is not None:
      if cancel.wait(min(interval, remaining)):
        return False
    else:
      time.sleep(min(interval, remaining))

def homeFolder():
  return os.path.expanduser(os.environ.get('DRYDOCK_HOME', HOME_FOLDER))

def fqdn(name, resource_type, module=None):
  if module:
    return "%s.%s.%s.%s" % (name, module, resource_type.replace('_', '-'), DOMAIN)
  return "%s.%s.%s" % (name, resource_type.replace('_', '-'), DOMAIN)

def fqdnVolumeName(name):
  return "%s.volume.%s" % (name, DOMAIN)

def networkName(reference):
  """
  Docker network name for a network reference: the resource name, suffixed
  with the module for networks declared inside one.
  """
  # type.name or type.name.module
  parts = reference.split('.')
  if len(parts) < 2:
    return reference
  return ".".join(parts[1:])

def kubeConfigPaths(name, home=None, module=None):
  """
  Returns the folder and the two kubeconfig paths for a cluster, creating
  the folder when it does not exist yet.
  """
  if module:
    name = "%s.%s" % (name, module)

  folder = os.path.join(home or homeFolder(), 'config', name)
  if not os.path.exists(folder):
    os.makedirs(folder)

  return folder, os.path.join(folder, 'kubeconfig.yaml'), os.path.join(folder, 'kubeconfig-docker.yaml')

def dockerHost(host):
  """
  Hostname of a remote Docker engine given a DOCKER_HOST value, None when the
  engine is local (unset or a unix socket).
  """
  if not host or host.startswith('unix://') or host.startswith('npipe://'):
    return None

  parsed = urlparse(host)
  if not parsed.hostname or parsed.hostname in ('localhost', '127.0.0.1'):
    return None

  return parsed.hostname

def randomPort(low=64000, high=65000):
  return random.randint(low, high)

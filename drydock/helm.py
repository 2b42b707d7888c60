import logging, shutil, subprocess, threading
from .exceptions import ProviderError, NotFoundError

# helm writes its repository cache and release state without any locking of
# its own, only one invocation may run at a time
helm_lock = threading.Lock()

class Helm:
  def __init__(self, binary='helm'):
    self.log = logging.getLogger('drydock')
    self.binary = binary

  def create(self, kubeconfig, name, namespace, create_namespace, chart, values=None, values_string=None):
    args = [self.binary, 'install', name, chart, '--kubeconfig', kubeconfig, '--namespace', namespace]
    if create_namespace:
      args.append('--create-namespace')

    if values:
      args += ['--values', values]

    for key, value in sorted((values_string or {}).items()):
      args += ['--set-string', '%s=%s' % (key, value)]

    self.log.debug('Creating chart %s from %s', name, chart)
    self._run(args, name, 'helm install')

  def destroy(self, kubeconfig, name, namespace):
    args = [self.binary, 'uninstall', name, '--kubeconfig', kubeconfig, '--namespace', namespace]

    self.log.debug('Removing chart %s', name)
    try:
      self._run(args, name, 'helm uninstall')
    except ProviderError as e:
      if 'not found' in str(e):
        raise NotFoundError("release %s does not exist" % name, step='helm uninstall')
      raise

  def status(self, kubeconfig, name, namespace):
    """Names of the installed releases called name, empty when there is none."""
    args = [self.binary, 'status', name, '--kubeconfig', kubeconfig, '--namespace', namespace]
    try:
      self._run(args, name, 'helm status')
    except ProviderError as e:
      if 'not found' in str(e):
        return []
      raise
    return [name]

  def available(self):
    return shutil.which(self.binary) is not None

  def _run(self, args, name, step):
    try:
      with helm_lock:
        result = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, universal_newlines=True)
    except OSError as e:
      raise ProviderError("unable to run %s: %s" % (self.binary, e), name, step)

    if result.returncode != 0:
      raise ProviderError(result.stderr.strip() or "exit status %d" % result.returncode, name, step)

    return result.stdout

"""
Applies and destroys the resources in a Config.

Both operations walk the dependency graph with one asyncio task per node.
A task waits only for the tasks of its direct neighbours (dependencies on
apply, dependents on destroy) so independent branches run side by side,
while the blocking provider calls themselves run in the default thread pool.
"""
import asyncio, logging, threading
from . import graph as dag, providers, utils
from .resources import APPLIED, CREATING, DESTROYED, FAILED
from .exceptions import (DrydockError, ProviderError, NotFoundError, DependencyError,
  ApplyError, DestroyError)

class Engine:
  def __init__(self, config, backend=None, kube=None, helm=None, settings=None):
    self.log = logging.getLogger('drydock')
    self.config = config

    if backend is None:
      from .backend import DockerBackend
      backend = DockerBackend()
    if kube is None:
      from .kube import Kubernetes
      kube = Kubernetes()
    if helm is None:
      from .helm import Helm
      helm = Helm()
    if settings is None:
      from .config import Settings
      settings = Settings()

    self.backend = backend
    self.kube = kube
    self.helm = helm
    self.settings = settings

    self.graph = None
    self.errors = []
    self.cancelled = threading.Event()
    self._status_lock = threading.Lock()

  def apply(self):
    """
    Creates every resource, dependencies first. Raises ApplyError listing
    every failure once all branches that could run have finished.
    """
    self.graph = dag.build(self.config)
    self.errors = []

    if self.settings.wan_network:
      self.backend.create_network(self.settings.wan_network, self.settings.wan_subnet)

    asyncio.run(self._walk(self.graph.dependencies, self._apply_node))

    if self.errors:
      raise ApplyError(self.errors)

  def destroy(self):
    """Destroys every resource, dependents first."""
    self.graph = dag.build(self.config)
    self.errors = []

    asyncio.run(self._walk(self.graph.direct_dependents, self._destroy_node))

    if self.errors:
      raise DestroyError(self.errors)

    if self.settings.wan_network:
      try:
        self.backend.remove_network(self.settings.wan_network)
      except NotFoundError:
        self.log.debug('WAN network %s already removed', self.settings.wan_network)

  def cancel(self):
    """Stops any readiness or health polling at its next interval."""
    self.cancelled.set()

  def provider(self, resource):
    return providers.generate(resource, self.backend, self.kube, self.helm, self.settings, self.cancelled)

  async def _walk(self, wait_on, visit):
    tasks = {}

    async def _run(node):
      neighbours = wait_on(node)
      results = await asyncio.gather(*[tasks[n] for n in neighbours])
      failed = [n for n, ok in zip(neighbours, results) if not ok]
      return await visit(node, failed)

    for node in self.graph.nodes:
      tasks[node] = asyncio.ensure_future(_run(node))

    await asyncio.gather(*tasks.values())

  async def _apply_node(self, node, failed):
    if node is dag.ROOT:
      return True

    if node.disabled:
      self.log.info('Skipping disabled resource %s', node.reference)
      return True

    if failed:
      self._set_status(node, FAILED)
      self.errors.append(DependencyError(node.reference, failed[0].reference))
      return False

    provider = self.provider(node)
    loop = asyncio.get_running_loop()

    if node.status == APPLIED:
      try:
        existing = await loop.run_in_executor(None, provider.lookup)
      except Exception as e:
        self._fail(node, e, 'lookup')
        return False

      if existing:
        self.log.info('Resource %s already applied, skipping', node.reference)
        return True
      self.log.info('Resource %s marked applied but not found, creating again', node.reference)

    self._set_status(node, CREATING)

    try:
      await loop.run_in_executor(None, provider.create)
    except Exception as e:
      self._fail(node, e, 'create')
      return False

    self._set_status(node, APPLIED)
    return True

  async def _destroy_node(self, node, failed):
    if node is dag.ROOT:
      return True

    if node.disabled:
      return True

    if failed:
      self.errors.append(ProviderError("dependent %s was not destroyed" % failed[0].reference,
        node.reference, "destroy"))
      return False

    provider = self.provider(node)

    try:
      await asyncio.get_running_loop().run_in_executor(None, provider.destroy)
    except NotFoundError:
      self.log.debug('%s already removed', node.reference)
    except Exception as e:
      self._fail(node, e, 'destroy')
      return False

    self._set_status(node, DESTROYED)
    return True

  def _fail(self, resource, error, step):
    if not isinstance(error, DrydockError):
      self.log.exception('Unexpected error for %s', resource.reference)
      error = ProviderError(str(error), resource.reference, step)
    elif not error.reference:
      error = ProviderError(str(error), resource.reference, error.step or step)

    self.log.error('%s', error)
    utils.status("Failed: %s" % error)

    self._set_status(resource, FAILED)
    self.errors.append(error)

  def _set_status(self, resource, status):
    with self._status_lock:
      resource.status = status
      if status in (APPLIED, DESTROYED):
        for child in resource.children:
          child.status = status

    self.log.debug('%s is %s', resource.reference, status)

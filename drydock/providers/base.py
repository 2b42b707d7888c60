import logging
from ..config import Settings
from ..exceptions import NotFoundError

class Provider:
  """
  Create, Destroy and Lookup for a single resource. Lookup returns the ids of
  the runtime objects currently backing the resource.
  """

  def __init__(self, config, backend=None, settings=None, cancel=None):
    self.log = logging.getLogger('drydock')
    self.config = config
    self.backend = backend
    self.settings = settings or Settings()
    # threading.Event set by the engine to abort polling loops
    self.cancel = cancel

  def create(self):
    raise NotImplementedError()

  def destroy(self):
    raise NotImplementedError()

  def lookup(self):
    return []

  def _remove_containers(self, ids):
    for container_id in ids:
      self.log.debug('Removing container %s for %s', container_id, self.config.reference)
      try:
        self.backend.remove_container(container_id)
      except NotFoundError:
        self.log.debug('Container %s already removed', container_id)

from .. import utils
from ..exceptions import ProviderError
from .base import Provider

class ContainerProvider(Provider):
  def create(self):
    utils.status("Creating container %s" % self.config.reference)

    if self.config.image is None:
      raise ProviderError("no image specified", self.config.reference, "pull")

    self.backend.pull_image(self.config.image)
    container_id = self.backend.create_container(self.config, self.settings.wan_network)

    self.log.info('Container started: %s %s', self.config.reference, container_id)
    return container_id

  def destroy(self):
    ids = self.lookup()
    if not ids:
      self.log.debug('No containers found for %s', self.config.reference)
      return

    utils.status("Destroying container %s" % self.config.reference)
    self._remove_containers(ids)

  def lookup(self):
    return self.backend.find_container_ids(self.config.name, self.config.owner_type, self.config.module)

from .. import utils
from .base import Provider

class NetworkProvider(Provider):
  def create(self):
    utils.status("Creating network %s" % self.config.reference)
    return self.backend.create_network(self._network_name(), self.config.subnet)

  def destroy(self):
    utils.status("Destroying network %s" % self.config.reference)
    self.backend.remove_network(self._network_name())

  def lookup(self):
    network_id = self.backend.find_network(self._network_name())
    return [network_id] if network_id else []

  def _network_name(self):
    return utils.networkName(self.config.reference)

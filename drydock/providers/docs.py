from .. import utils
from ..resources import Container, Image, Port, Volume
from .base import Provider

DOCS_IMAGE = 'shipyardrun/docs:v0.3.0'

class DocsProvider(Provider):
  def create(self):
    utils.status("Creating documentation %s" % self.config.reference)

    docs = self.config.add_child(Container(self.config.name))
    docs.image = self.config.image or Image(DOCS_IMAGE)
    docs.networks = list(self.config.networks)

    if self.config.path:
      docs.volumes = [Volume(self.config.path, '/shipyard/docs')]

    docs.ports = [
      Port(80, self.config.port),
      Port(37950, self.config.live_reload_port),
    ]

    self.backend.pull_image(docs.image)
    return self.backend.create_container(docs, self.settings.wan_network)

  def destroy(self):
    ids = self.lookup()
    if ids:
      utils.status("Destroying documentation %s" % self.config.reference)
    self._remove_containers(ids)

  def lookup(self):
    return self.backend.find_container_ids(self.config.name, self.config.type, self.config.module)

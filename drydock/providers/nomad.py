import requests
from .. import utils
from ..exceptions import AlreadyExistsError, ProviderTimeoutError
from ..resources import Container, Image, Port
from .base import Provider

SERVER_IMAGE = 'hashicorp/nomad'
API_PORT = 4646

class NomadClusterProvider(Provider):
  """Single node Nomad cluster running a dev agent in a privileged container."""

  start_timeout = 120
  poll_interval = 1

  def create(self):
    utils.status("Creating Nomad cluster %s" % self.config.reference)

    if self.lookup():
      raise AlreadyExistsError("cluster already exists", self.config.reference, "pre-check")

    image = Image("%s:%s" % (SERVER_IMAGE, self.config.version))
    self.backend.pull_image(image)

    server = self.config.add_child(Container("server.%s" % self.config.name))
    server.image = image
    server.privileged = True
    server.networks = list(self.config.networks)
    server.volumes = list(self.config.volumes)
    server.environment = dict(self.config.environment)
    server.command = ['agent', '-dev', '-bind=0.0.0.0']

    host_port = utils.randomPort()
    server.ports = [Port(API_PORT, host_port)]

    container_id = self.backend.create_container(server, self.settings.wan_network)

    self.config.api_address = "http://%s:%d" % (utils.dockerHost(self.settings.docker_host) or 'localhost', host_port)
    self._wait_for_leader()

    return container_id

  def destroy(self):
    ids = self.lookup()
    if not ids:
      return

    utils.status("Destroying Nomad cluster %s" % self.config.reference)
    self._remove_containers(ids)

  def lookup(self):
    return self.backend.find_container_ids("server.%s" % self.config.name, self.config.type, self.config.module)

  def _wait_for_leader(self):
    url = self.config.api_address + '/v1/status/leader'

    def _check():
      try:
        response = requests.get(url, timeout=2)
        return response.status_code == 200 and bool(response.json())
      except (requests.exceptions.RequestException, ValueError) as e:
        self.log.debug('Nomad api %s not ready: %s', url, e)
        return False

    if not utils.waitFor(_check, self.start_timeout, self.poll_interval, self.cancel):
      raise ProviderTimeoutError("no leader elected within %ss" % self.start_timeout,
        self.config.reference, "readiness timeout")

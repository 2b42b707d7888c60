"""
Kubernetes clusters backed by a single k3s server container.

Bring up runs in order: check nothing is running yet, pull the server image
and the image staging volume, create the privileged server container, wait
for k3s to log that the kubelet is running, fetch and rewrite the
kubeconfig, wait for the system pods and finally import any images the
cluster should start with. A failure after the server container exists
leaves it running so it can be inspected.
"""
import shlex
import yaml
from .. import utils
from ..exceptions import AlreadyExistsError, ConfigError, ProviderError, ProviderTimeoutError
from ..resources import Container, Image, Port, Volume
from .base import Provider

SERVER_IMAGE = 'rancher/k3s'

# k3s logs this once the node is up
READY_MARKER = 'Running kubelet'

# named volume shared by all clusters to stage images for import
IMAGE_VOLUME = 'images'
IMAGE_FOLDER = '/images'

KUBECONFIG_OUTPUT = '/output/kubeconfig.yaml'

NODE_PORTS = [30000, 30001]

# the pods k3s needs before anything can be scheduled
DEFAULT_HEALTH_CHECK = ['app=local-path-provisioner', 'k8s-app=kube-dns']

class K8sClusterProvider(Provider):
  start_timeout = 120
  poll_interval = 1

  def __init__(self, config, backend, kube, settings=None, cancel=None):
    Provider.__init__(self, config, backend, settings, cancel)
    self.kube = kube

  def create(self):
    utils.status("Creating cluster %s" % self.config.reference)

    if self.config.nodes > 1:
      raise ConfigError("only single node clusters are supported", self.config.reference, "pre-check")

    ids = self.lookup()
    if ids:
      raise AlreadyExistsError("cluster already exists", self.config.reference, "pre-check")

    image = Image("%s:%s" % (SERVER_IMAGE, self.config.version))
    self.backend.pull_image(image)

    volume = self.backend.create_volume(IMAGE_VOLUME)

    address = self._routable_address()
    server = self._server_container(image, volume, address)
    container_id = self.backend.create_container(server, self.settings.wan_network)

    self._wait_for_start(container_id)

    docker_kubeconfig = self._create_kubeconfig(container_id, server.api_port, address)

    client = self.kube.set_config(docker_kubeconfig)
    selectors = self.config.health_check or DEFAULT_HEALTH_CHECK
    try:
      client.health_check_pods(selectors, self.start_timeout, cancel=self.cancel)
    except ProviderTimeoutError as e:
      raise ProviderTimeoutError(str(e), self.config.reference, "pod health check")

    if self.config.images:
      self._import_images(container_id, volume)

    self.log.info('Cluster %s ready, api on port %d', self.config.reference, server.api_port)
    return container_id

  def destroy(self):
    ids = self.lookup()
    if not ids:
      self.log.debug('No server found for %s', self.config.reference)
      return

    utils.status("Destroying cluster %s" % self.config.reference)
    self._remove_containers(ids)

  def lookup(self):
    return self.backend.find_container_ids(self._server_name(), self.config.type, self.config.module)

  def _server_name(self):
    return "server.%s" % self.config.name

  def _server_container(self, image, volume, address):
    server = self.config.add_child(Container(self._server_name()))
    server.image = image
    server.privileged = True
    server.networks = list(self.config.networks)

    server.volumes = [Volume(volume, IMAGE_FOLDER, 'volume')] + list(self.config.volumes)

    server.environment = dict(self.config.environment)
    server.environment['K3S_KUBECONFIG_OUTPUT'] = KUBECONFIG_OUTPUT
    server.environment['K3S_KUBECONFIG_MODE'] = '666'

    # the api port is the same inside and outside so the kubeconfig k3s
    # writes only needs its host rewritten
    api_port = utils.randomPort()
    used = set([api_port])
    server.ports = [Port(api_port, api_port)]
    for node_port in NODE_PORTS:
      host_port = utils.randomPort()
      while host_port in used:
        host_port = utils.randomPort()
      used.add(host_port)
      server.ports.append(Port(node_port, host_port))

    server.ports += list(self.config.ports)
    server.port_ranges = list(self.config.port_ranges)
    server.api_port = api_port

    server.command = [
      'server',
      '--https-listen-port=%d' % api_port,
      '--disable=traefik',
    ]
    if address:
      server.command.append('--tls-san=%s' % address)

    return server

  def _wait_for_start(self, container_id):
    def _check():
      return READY_MARKER in self.backend.container_logs(container_id)

    self.log.debug('Waiting for %s to start', self.config.reference)
    if not utils.waitFor(_check, self.start_timeout, self.poll_interval, self.cancel):
      raise ProviderTimeoutError("server did not start within %ss" % self.start_timeout,
        self.config.reference, "readiness timeout")

  def _routable_address(self):
    """
    Address of the cluster api for clients outside of the container network
    namespace: the remote engine host, else the gateway of the first network
    the cluster is attached to.
    """
    remote = utils.dockerHost(self.settings.docker_host)
    if remote:
      return remote

    for attachment in self.config.networks:
      gateway = self.backend.network_gateway(utils.networkName(attachment.name))
      if gateway:
        return gateway

    return None

  def _create_kubeconfig(self, container_id, api_port, address):
    _, kubeconfig, docker_kubeconfig = utils.kubeConfigPaths(self.config.name, self.settings.home, self.config.module)

    try:
      self.backend.copy_from_container(container_id, KUBECONFIG_OUTPUT, kubeconfig)
    except ProviderError as e:
      raise ProviderError("unable to copy kubeconfig: %s" % e, self.config.reference, "kubeconfig")

    with open(kubeconfig, 'r') as input_file:
      raw = yaml.safe_load(input_file)

    remote = utils.dockerHost(self.settings.docker_host)

    _write_kubeconfig(raw, kubeconfig, remote or '127.0.0.1', api_port)
    _write_kubeconfig(raw, docker_kubeconfig, address or '127.0.0.1', api_port)

    return docker_kubeconfig

  def _import_images(self, container_id, volume):
    names = []
    for image in self.config.images:
      self.backend.pull_image(image)
      names.append(image.name)

    utils.status("Importing images %s into %s" % (", ".join(names), self.config.reference))
    paths = self.backend.copy_local_images_to_volume(names, volume, IMAGE_FOLDER)

    script = 'for f in %s; do ctr image import "$f" || exit 1; done' % " ".join([shlex.quote(p) for p in paths])
    try:
      self.backend.execute_command(container_id, ['sh', '-c', script])
    except ProviderError as e:
      raise ProviderError("unable to import images: %s" % e, self.config.reference, "image import")

def _write_kubeconfig(raw, path, host, port):
  config = yaml.safe_load(yaml.safe_dump(raw))
  for cluster in config.get('clusters') or []:
    cluster['cluster']['server'] = "https://%s:%d" % (host, port)

  with open(path, 'w') as output_file:
    yaml.safe_dump(config, output_file, default_flow_style=False)

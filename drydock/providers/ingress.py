from .. import utils
from ..resources import Container, Image, Port, Volume
from .base import Provider

INGRESS_IMAGE = 'bitnami/kubectl:1.27'

class IngressProvider(Provider):
  """
  Exposes a service running inside a k8s_cluster on a local port with a
  container that port-forwards to it.
  """

  def create(self):
    utils.status("Creating ingress %s" % self.config.reference)

    cluster = self.config.find_dependent_resource(self.config.cluster)
    _, _, docker_kubeconfig = utils.kubeConfigPaths(cluster.name, self.settings.home, cluster.module)

    proxy = self.config.add_child(Container(self.config.name))
    proxy.image = Image(INGRESS_IMAGE)
    proxy.networks = list(self.config.networks or cluster.networks)
    proxy.volumes = [Volume(docker_kubeconfig, '/kubeconfig.yaml', 'bind', read_only=True)]
    proxy.environment = {'KUBECONFIG': '/kubeconfig.yaml'}
    proxy.ports = [Port(self.config.source_port, self.config.source_port)]
    proxy.command = [
      'port-forward',
      '--address', '0.0.0.0',
      '--namespace', self.config.namespace,
      'svc/%s' % self.config.service,
      '%s:%s' % (self.config.source_port, self.config.port),
    ]

    self.backend.pull_image(proxy.image)
    return self.backend.create_container(proxy, self.settings.wan_network)

  def destroy(self):
    ids = self.lookup()
    if ids:
      utils.status("Destroying ingress %s" % self.config.reference)
    self._remove_containers(ids)

  def lookup(self):
    return self.backend.find_container_ids(self.config.name, self.config.type, self.config.module)

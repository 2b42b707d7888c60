from .. import utils
from .base import Provider

class HelmProvider(Provider):
  """Installs a chart into a k8s_cluster using the cluster's in-process kubeconfig."""

  def __init__(self, config, helm, settings=None, cancel=None):
    Provider.__init__(self, config, None, settings, cancel)
    self.helm = helm

  def create(self):
    utils.status("Creating Helm chart %s" % self.config.reference)

    self.helm.create(
      self._kubeconfig(),
      self.config.name,
      self.config.namespace,
      self.config.create_namespace,
      self.config.chart,
      self.config.values,
      self.config.values_string,
    )

  def destroy(self):
    utils.status("Destroying Helm chart %s" % self.config.reference)
    self.helm.destroy(self._kubeconfig(), self.config.name, self.config.namespace)

  def lookup(self):
    return self.helm.status(self._kubeconfig(), self.config.name, self.config.namespace)

  def _kubeconfig(self):
    cluster = self.config.find_dependent_resource(self.config.cluster)
    _, _, docker_kubeconfig = utils.kubeConfigPaths(cluster.name, self.settings.home, cluster.module)
    return docker_kubeconfig

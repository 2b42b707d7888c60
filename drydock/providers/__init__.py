from .base import Provider
from .container import ContainerProvider
from .network import NetworkProvider
from .cluster import K8sClusterProvider
from .nomad import NomadClusterProvider
from .helm import HelmProvider
from .ingress import IngressProvider
from .docs import DocsProvider
from ..exceptions import ConfigError

__all__ = ["Provider", "ContainerProvider", "NetworkProvider", "K8sClusterProvider",
  "NomadClusterProvider", "HelmProvider", "IngressProvider", "DocsProvider", "generate"]

def generate(resource, backend, kube=None, helm=None, settings=None, cancel=None):
  """Returns the provider for a resource based on its type."""
  if resource.type == 'container':
    return ContainerProvider(resource, backend, settings, cancel)
  if resource.type == 'network':
    return NetworkProvider(resource, backend, settings, cancel)
  if resource.type == 'k8s_cluster':
    return K8sClusterProvider(resource, backend, kube, settings, cancel)
  if resource.type == 'nomad_cluster':
    return NomadClusterProvider(resource, backend, settings, cancel)
  if resource.type == 'helm':
    return HelmProvider(resource, helm, settings, cancel)
  if resource.type == 'ingress':
    return IngressProvider(resource, backend, settings, cancel)
  if resource.type == 'docs':
    return DocsProvider(resource, backend, settings, cancel)

  raise ConfigError("no provider for resource type %s" % resource.type, resource.reference)

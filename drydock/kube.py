import logging
import urllib3
from kubernetes import client as k8s_client, config as k8s_config
from kubernetes.client.rest import ApiException
from . import utils
from .exceptions import ProviderError, ProviderTimeoutError

class Kubernetes:
  """Typed client for a cluster. set_config returns a new client bound to a kubeconfig."""

  def __init__(self, core_api=None):
    self.log = logging.getLogger('drydock')
    self.core_api = core_api

  def set_config(self, kubeconfig):
    try:
      api_client = k8s_config.new_client_from_config(config_file=kubeconfig)
    except (k8s_config.ConfigException, OSError) as e:
      raise ProviderError("unable to load kubeconfig %s: %s" % (kubeconfig, e), step="kubernetes client")

    return Kubernetes(k8s_client.CoreV1Api(api_client))

  def get_pods(self, selector):
    if self.core_api is None:
      raise ProviderError("kubernetes client has no config", step="kubernetes client")
    return self.core_api.list_pod_for_all_namespaces(label_selector=selector).items

  def health_check_pods(self, selectors, timeout, interval=2, cancel=None):
    """
    Blocks until at least one pod matches every selector and all matching
    pods are ready, or raises ProviderTimeoutError once timeout elapses.
    """
    def _check():
      for selector in selectors:
        try:
          pods = self.get_pods(selector)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
          self.log.debug('Unable to list pods for selector "%s": %s', selector, e)
          return False

        if not pods:
          self.log.debug('No pods found for selector "%s"', selector)
          return False

        for pod in pods:
          if not _pod_ready(pod):
            self.log.debug('Pod %s/%s is not ready', pod.metadata.namespace, pod.metadata.name)
            return False

      return True

    if not utils.waitFor(_check, timeout, interval, cancel):
      raise ProviderTimeoutError("pods %s not ready after %ss" % (", ".join(['"%s"' % s for s in selectors]), timeout))

def _pod_ready(pod):
  # completed job pods never become ready
  if pod.status.phase == 'Succeeded':
    return True

  if pod.status.phase != 'Running':
    return False

  for status in pod.status.container_statuses or []:
    if not status.ready:
      return False

  return True

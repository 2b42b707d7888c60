import io, os, re, logging, tarfile, tempfile
import docker
from docker.errors import APIError, DockerException, NotFound
from docker.types import Mount, IPAMConfig, IPAMPool
from docker.utils import parse_repository_tag
from requests.exceptions import RequestException
from . import utils
from .exceptions import ProviderError, NotFoundError
from .resources import Image

# helper image used to write into volumes
VOLUME_HELPER_IMAGE = 'alpine:3.18'

class DockerBackend:
  """
  Container tasks on top of the low level Docker API client. The client is
  shared by every provider and is safe to use from several threads.
  """

  def __init__(self, docker_client=None):
    self.log = logging.getLogger('drydock')
    if docker_client is None:
      try:
        docker_client = docker.from_env().api
      except DockerException as e:
        raise ProviderError("unable to connect to the Docker engine: %s" % e, step="docker client")
    self.docker_client = docker_client

  def ping(self):
    """Checks the engine answers, returning its version."""
    try:
      self.docker_client.ping()
      return self.docker_client.version().get('Version')
    except (APIError, RequestException) as e:
      raise ProviderError("Docker engine is not reachable: %s" % e, step="check")

  ## Container management

  def create_container(self, container, wan_network=None):
    """
    Creates and starts a container for a Container resource, returning the
    id. Once the container exists any failure removes it again before the
    error is raised.
    """
    image = container.image.name if container.image else None
    if not image:
      raise ProviderError("no image specified", container.reference, "create")

    mounts = [self._mount(container, v) for v in container.volumes]
    ports, bindings = self._ports(container)

    host_args = {
      'mounts': mounts,
      'port_bindings': bindings,
      'privileged': container.privileged,
    }

    if container.dns:
      host_args['dns'] = container.dns

    if container.limits:
      if container.limits.cpu:
        host_args['nano_cpus'] = int(container.limits.cpu * 1000000)
      if container.limits.cpu_pin:
        host_args['cpuset_cpus'] = ",".join([str(c) for c in container.limits.cpu_pin])
      if container.limits.memory:
        host_args['mem_limit'] = container.limits.memory * 1024 * 1024

    try:
      host_config = self.docker_client.create_host_config(**host_args)
      container_id = self.docker_client.create_container(
        image,
        name=container.fqdn,
        hostname=container.name,
        command=container.command or None,
        entrypoint=container.entrypoint or None,
        environment=["%s=%s" % (k, v) for k, v in container.environment.items()],
        ports=ports,
        host_config=host_config,
        labels=self._labels(container),
        detach=True,
        stdin_open=True,
      )['Id']
    except APIError as e:
      raise ProviderError("unable to create container: %s" % e, container.reference, "create")

    self.log.debug('Created container %s for %s', container_id, container.reference)

    step = 'network attach'
    try:
      networks = [(utils.networkName(n.name), n) for n in container.networks]
      if wan_network:
        networks.append((wan_network, None))

      if networks:
        # containers start on the default bridge, only declared networks are wanted
        self.docker_client.disconnect_container_from_network(container_id, 'bridge')

      for name, attachment in networks:
        self.log.debug('Attaching %s to network %s', container.reference, name)
        if attachment is not None:
          self.docker_client.connect_container_to_network(
            container_id, name, ipv4_address=attachment.ip_address, aliases=attachment.aliases or None)
        else:
          self.docker_client.connect_container_to_network(container_id, name)

      step = 'start'
      self.docker_client.start(container_id)
    except Exception as e:
      self._rollback(container, container_id)
      raise ProviderError("unable to %s: %s" % (step, e), container.reference, step)

    return container_id

  def remove_container(self, container_id):
    try:
      self.docker_client.remove_container(container_id, v=True, force=True)
    except NotFound:
      raise NotFoundError("container %s does not exist" % container_id)
    except APIError as e:
      raise ProviderError("unable to remove container %s: %s" % (container_id, e), step="remove")

  def find_container_ids(self, name, resource_type, module=None):
    """Ids of running or stopped containers created for name and type."""
    full_name = utils.fqdn(name, resource_type, module)
    try:
      result = self.docker_client.containers(all=True, filters={
        'name': full_name,
        'label': 'drydock.type=%s' % resource_type,
      })
    except APIError as e:
      raise ProviderError("unable to lookup containers: %s" % e, full_name, "lookup")

    # the name filter matches on substrings
    return [c['Id'] for c in result if '/' + full_name in (c.get('Names') or [])]

  def container_logs(self, container_id):
    try:
      output = self.docker_client.logs(container_id, stdout=True, stderr=True)
    except APIError as e:
      raise ProviderError("unable to read logs for %s: %s" % (container_id, e), step="logs")

    if isinstance(output, bytes):
      return output.decode('utf-8', 'replace')
    return output

  def copy_from_container(self, container_id, source, destination):
    """Copies a single file out of a container to a local path."""
    try:
      stream, _ = self.docker_client.get_archive(container_id, source)
      data = io.BytesIO(b''.join(stream))
    except APIError as e:
      raise ProviderError("unable to copy %s from %s: %s" % (source, container_id, e), step="copy")

    with tarfile.open(fileobj=data) as archive:
      member = archive.next()
      if member is None or not member.isfile():
        raise ProviderError("%s is not a file" % source, step="copy")

      folder = os.path.dirname(destination)
      if folder and not os.path.exists(folder):
        os.makedirs(folder)

      with open(destination, 'wb') as output_file:
        output_file.write(archive.extractfile(member).read())

  def execute_command(self, container_id, command):
    try:
      exec_id = self.docker_client.exec_create(container_id, command, stdout=True, stderr=True)['Id']
      output = self.docker_client.exec_start(exec_id)
      result = self.docker_client.exec_inspect(exec_id)
    except APIError as e:
      raise ProviderError("unable to execute %s: %s" % (" ".join(command), e), step="exec")

    if result.get('ExitCode'):
      if isinstance(output, bytes):
        output = output.decode('utf-8', 'replace')
      raise ProviderError("command %s exited with %s: %s" % (" ".join(command), result['ExitCode'], output), step="exec")

    return output

  ## Image management

  def pull_image(self, image, force=False):
    """Pulls image unless it is cached locally and neither force flag is set."""
    if not force and not image.force:
      try:
        if self.docker_client.images(name=image.name):
          self.log.debug('Image %s found in local cache', image.name)
          return
      except APIError as e:
        raise ProviderError("unable to list images: %s" % e, image.name, "pull")

    repository, tag = parse_repository_tag(image.name)

    utils.status("Pulling image %s" % image.name)
    try:
      for line in self.docker_client.pull(repository, tag=tag or 'latest', stream=True, decode=True):
        if 'error' in line:
          raise ProviderError("no image could be pulled under the name: %s" % line['error'], image.name, "pull")
    except APIError as e:
      raise ProviderError("unable to pull image: %s" % e, image.name, "pull")

  def copy_local_images_to_volume(self, images, volume, destination='/images'):
    """
    Saves every image to an archive and writes all of them into volume in a
    single copy. Returns the archive paths inside the volume.
    """
    self.pull_image(Image(VOLUME_HELPER_IMAGE))

    helper = None
    try:
      with tempfile.TemporaryFile() as bundle:
        paths = []
        with tarfile.open(fileobj=bundle, mode='w') as archive:
          for name in images:
            filename = re.sub(r'[^a-zA-Z0-9_.-]', '_', name) + '.tar'
            with tempfile.TemporaryFile() as saved:
              for chunk in self.docker_client.get_image(name):
                saved.write(chunk)
              info = tarfile.TarInfo(filename)
              info.size = saved.tell()
              saved.seek(0)
              archive.addfile(info, saved)
            paths.append("%s/%s" % (destination, filename))

        bundle.seek(0)
        helper = self.docker_client.create_container(
          VOLUME_HELPER_IMAGE,
          command=['true'],
          host_config=self.docker_client.create_host_config(
            mounts=[Mount(destination, volume, type='volume')]),
          labels={'drydock.type': 'volume-helper'},
        )['Id']

        self.docker_client.put_archive(helper, destination, bundle.read())
    except APIError as e:
      raise ProviderError("unable to copy images to volume: %s" % e, volume, "image copy")
    finally:
      if helper:
        self._remove_helper(helper)

    return paths

  ## Volume management

  def create_volume(self, name):
    """Creates a named volume, an existing volume of the same name is reused."""
    full_name = utils.fqdnVolumeName(name)
    try:
      self.docker_client.create_volume(name=full_name, labels={'drydock.type': 'volume'})
    except APIError as e:
      raise ProviderError("unable to create volume: %s" % e, full_name, "volume")
    return full_name

  def remove_volume(self, name):
    full_name = utils.fqdnVolumeName(name)
    try:
      self.docker_client.remove_volume(full_name, force=True)
    except NotFound:
      raise NotFoundError("volume %s does not exist" % full_name)
    except APIError as e:
      raise ProviderError("unable to remove volume: %s" % e, full_name, "volume")

  ## Network management

  def find_network(self, name):
    try:
      result = self.docker_client.networks(names=[name])
    except APIError as e:
      raise ProviderError("unable to lookup network: %s" % e, name, "lookup")

    for network in result:
      if network['Name'] == name:
        return network['Id']
    return None

  def create_network(self, name, subnet=None):
    existing = self.find_network(name)
    if existing:
      self.log.debug('Network %s already exists, reusing %s', name, existing)
      return existing

    ipam = None
    if subnet:
      ipam = IPAMConfig(pool_configs=[IPAMPool(subnet=subnet)])

    try:
      return self.docker_client.create_network(
        name, driver='bridge', ipam=ipam, labels={'drydock.type': 'network'})['Id']
    except APIError as e:
      raise ProviderError("unable to create network: %s" % e, name, "network")

  def remove_network(self, name):
    try:
      self.docker_client.remove_network(name)
    except NotFound:
      raise NotFoundError("network %s does not exist" % name)
    except APIError as e:
      raise ProviderError("unable to remove network: %s" % e, name, "network")

  def network_gateway(self, name):
    """Gateway address of a network, the host as seen from its containers."""
    try:
      state = self.docker_client.inspect_network(name)
    except APIError as e:
      raise ProviderError("unable to inspect network: %s" % e, name, "network")

    for pool in (state.get('IPAM') or {}).get('Config') or []:
      if pool.get('Gateway'):
        return pool['Gateway']
    return None

  ## Helpers

  def _rollback(self, container, container_id):
    self.log.info('Rolling back container %s for %s', container_id, container.reference)
    try:
      self.docker_client.remove_container(container_id, v=True, force=True)
    except Exception as e:
      self.log.error('Unable to remove container %s during rollback: %s', container_id, e)

  def _remove_helper(self, helper):
    try:
      self.docker_client.remove_container(helper, force=True)
    except APIError as e:
      self.log.error('Unable to remove volume helper %s: %s', helper, e)

  def _labels(self, container):
    return {
      'drydock.name': container.name,
      'drydock.type': container.owner_type,
      'drydock.reference': container.reference,
    }

  def _mount(self, container, volume):
    if volume.type not in ('bind', 'volume', 'tmpfs'):
      raise ProviderError("unknown volume type %s" % volume.type, container.reference, "volumes")

    if volume.type == 'bind' and not os.path.isabs(volume.source):
      raise ProviderError("bind mount source %s must be an absolute path" % volume.source, container.reference, "volumes")

    if volume.type == 'tmpfs':
      return Mount(volume.destination, None, type='tmpfs', read_only=volume.read_only)

    return Mount(volume.destination, volume.source, type=volume.type, read_only=volume.read_only,
      propagation=volume.bind_propagation if volume.type == 'bind' else None)

  def _ports(self, container):
    ports = []
    bindings = {}

    for port in container.ports:
      ports.append((port.local, port.protocol))
      if port.host:
        bindings["%d/%s" % (port.local, port.protocol)] = ('0.0.0.0', port.host)

    for port_range in container.port_ranges:
      for port in port_range.ports():
        ports.append((port, port_range.protocol))
        if port_range.enable_host:
          bindings["%d/%s" % (port, port_range.protocol)] = ('0.0.0.0', port)

    return ports, bindings

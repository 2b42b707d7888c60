"""
Resource types that can be declared in a drydock file.

Every resource is addressed by a reference of the form ``type.name`` or
``type.name.module`` when it was declared inside a module. Besides the
explicit ``depends_on`` list each type knows which of its own fields point at
other resources; ``referenced_resources`` returns both so the graph builder
never has to inspect type specific fields itself.
"""
import os
from . import utils
from .exceptions import ConfigError

PENDING_CREATION = 'pending_creation'
CREATING = 'creating'
APPLIED = 'applied'
DISABLED = 'disabled'
FAILED = 'failed'
DESTROYED = 'destroyed'

STATUSES = [PENDING_CREATION, CREATING, APPLIED, DISABLED, FAILED, DESTROYED]

MODULE_PREFIX = 'module.'

class Image:
  def __init__(self, name, force=False):
    self.name = name
    # pull even when the image is already cached
    self.force = force

  @classmethod
  def parse(cls, value):
    if isinstance(value, dict):
      if 'name' not in value:
        raise ConfigError("image block requires a name")
      return cls(value['name'], value.get('pull_always', False))
    return cls(value)

  def __eq__(self, other):
    return isinstance(other, Image) and self.name == other.name and self.force == other.force

  def __repr__(self):
    return "Image(%s)" % self.name

class NetworkAttachment:
  def __init__(self, name, ip_address=None, aliases=None):
    # reference to a network resource, e.g. network.cloud
    self.name = name
    self.ip_address = ip_address
    self.aliases = aliases or []

  @classmethod
  def parse(cls, value):
    if isinstance(value, str):
      return cls(value)
    return cls(value['name'], value.get('ip_address'), value.get('aliases'))

class Volume:
  def __init__(self, source, destination, type='bind', read_only=False, bind_propagation=None):
    self.source = source
    self.destination = destination
    self.type = type or 'bind'
    self.read_only = read_only
    self.bind_propagation = bind_propagation

  @classmethod
  def parse(cls, value):
    try:
      return cls(value['source'], value['destination'], value.get('type', 'bind'),
        value.get('read_only', False), value.get('bind_propagation'))
    except KeyError as e:
      raise ConfigError("volume block is missing %s" % e)

class Port:
  def __init__(self, local, host=None, protocol='tcp'):
    self.local = int(local)
    self.host = int(host) if host else None
    self.protocol = protocol or 'tcp'

  @classmethod
  def parse(cls, value):
    if isinstance(value, (int, str)):
      return cls(value, value)
    return cls(value['local'], value.get('host'), value.get('protocol', 'tcp'))

class PortRange:
  def __init__(self, range, enable_host=False, protocol='tcp'):
    self.range = str(range)
    self.enable_host = enable_host
    self.protocol = protocol or 'tcp'

    try:
      start, end = [int(p) for p in self.range.split('-')]
    except ValueError:
      raise ConfigError("invalid port range %s, expected start-end" % self.range)

    if start > end:
      raise ConfigError("invalid port range %s, start is after end" % self.range)

    self.start = start
    self.end = end

  def ports(self):
    return range(self.start, self.end + 1)

  @classmethod
  def parse(cls, value):
    if isinstance(value, str):
      return cls(value)
    return cls(value['range'], value.get('enable_host', False), value.get('protocol', 'tcp'))

class Limits:
  def __init__(self, cpu=0, cpu_pin=None, memory=0):
    # 1 CPU = 1000
    self.cpu = cpu
    self.cpu_pin = cpu_pin or []
    # MB
    self.memory = memory

  @classmethod
  def parse(cls, value):
    return cls(value.get('cpu', 0), value.get('cpu_pin'), value.get('memory', 0))

class Resource:
  type = None

  def __init__(self, name, attrs=None, module=None):
    attrs = attrs or {}

    self.name = name
    self.module = module
    self.depends_on = list(attrs.get('depends_on', []))
    self.status = DISABLED if attrs.get('disabled') else PENDING_CREATION
    self.children = []
    self.parent = None
    # the registry this resource belongs to, set by Config.add_resource
    self.config = None

    self.parse(attrs)

  def parse(self, attrs):
    pass

  @property
  def reference(self):
    if self.module:
      return "%s.%s.%s" % (self.type, self.name, self.module)
    return "%s.%s" % (self.type, self.name)

  @property
  def owner_type(self):
    if self.parent is not None:
      return self.parent.owner_type
    return self.type

  @property
  def fqdn(self):
    return utils.fqdn(self.name, self.owner_type, self.module)

  @property
  def disabled(self):
    return self.status == DISABLED

  def referenced_resources(self):
    result = list(self.depends_on)
    for ref in self.implicit_dependencies():
      if ref not in result:
        result.append(ref)
    return result

  def implicit_dependencies(self):
    return []

  def add_child(self, child):
    """Attaches child, replacing any earlier child of the same name."""
    child.parent = self
    child.module = self.module
    child.config = self.config
    self.children = [c for c in self.children if c.name != child.name]
    self.children.append(child)
    return child

  def find_dependent_resource(self, reference):
    if self.config is None:
      raise ConfigError("resource is not registered", self.reference)
    return self.config.find_resource(reference)

  def process(self, folder):
    """Resolves paths relative to the folder of the file that declared the resource."""
    pass

  def __repr__(self):
    return "<%s %s>" % (self.__class__.__name__, self.reference)

def _absolute(path, folder):
  if path and not os.path.isabs(path) and folder:
    return os.path.normpath(os.path.join(folder, path))
  return path

def _process_volumes(volumes, folder):
  for volume in volumes:
    if volume.type == 'bind':
      volume.source = _absolute(volume.source, folder)

class Network(Resource):
  type = 'network'

  def parse(self, attrs):
    self.subnet = attrs.get('subnet')

class Container(Resource):
  type = 'container'

  def parse(self, attrs):
    self.image = Image.parse(attrs['image']) if attrs.get('image') else None
    self.entrypoint = _list(attrs.get('entrypoint'))
    self.command = _list(attrs.get('command'))
    self.environment = dict(attrs.get('env', {}))
    self.volumes = [Volume.parse(v) for v in attrs.get('volumes', [])]
    self.ports = [Port.parse(p) for p in attrs.get('ports', [])]
    self.port_ranges = [PortRange.parse(p) for p in attrs.get('port_ranges', [])]
    self.limits = Limits.parse(attrs['resources']) if attrs.get('resources') else None
    self.privileged = attrs.get('privileged', False)
    self.networks = [NetworkAttachment.parse(n) for n in attrs.get('networks', [])]
    self.dns = attrs.get('dns', [])

  def implicit_dependencies(self):
    return [n.name for n in self.networks]

  def process(self, folder):
    _process_volumes(self.volumes, folder)

class K8sCluster(Resource):
  type = 'k8s_cluster'

  def parse(self, attrs):
    self.driver = attrs.get('driver', 'k3s')
    self.version = attrs.get('version', 'v1.27.4-k3s1')
    self.nodes = attrs.get('nodes', 1)
    self.images = [Image.parse(i) for i in attrs.get('images', [])]
    self.networks = [NetworkAttachment.parse(n) for n in attrs.get('networks', [])]
    self.ports = [Port.parse(p) for p in attrs.get('ports', [])]
    self.port_ranges = [PortRange.parse(p) for p in attrs.get('port_ranges', [])]
    self.volumes = [Volume.parse(v) for v in attrs.get('volumes', [])]
    self.environment = dict(attrs.get('env', {}))
    # label selectors for the pods that must be ready before the cluster is usable
    self.health_check = attrs.get('health_check')

    if self.driver != 'k3s':
      raise ConfigError("unsupported cluster driver %s" % self.driver, self.reference)

  def implicit_dependencies(self):
    return [n.name for n in self.networks]

  def process(self, folder):
    _process_volumes(self.volumes, folder)

class NomadCluster(Resource):
  type = 'nomad_cluster'

  def parse(self, attrs):
    self.version = attrs.get('version', '1.6.1')
    self.networks = [NetworkAttachment.parse(n) for n in attrs.get('networks', [])]
    self.volumes = [Volume.parse(v) for v in attrs.get('volumes', [])]
    self.environment = dict(attrs.get('env', {}))

  def implicit_dependencies(self):
    return [n.name for n in self.networks]

  def process(self, folder):
    _process_volumes(self.volumes, folder)

class Helm(Resource):
  type = 'helm'

  def parse(self, attrs):
    self.cluster = attrs.get('cluster')
    self.chart = attrs.get('chart')
    self.values = attrs.get('values')
    self.values_string = dict(attrs.get('values_string', {}))
    self.namespace = attrs.get('namespace', 'default')
    self.create_namespace = attrs.get('create_namespace', False)

    if not self.cluster or not self.chart:
      raise ConfigError("helm requires a cluster and a chart", self.reference)

  def implicit_dependencies(self):
    return [self.cluster]

  def process(self, folder):
    self.values = _absolute(self.values, folder)
    if self.chart and self.chart.startswith('.'):
      self.chart = _absolute(self.chart, folder)

class Ingress(Resource):
  type = 'ingress'

  def parse(self, attrs):
    destination = attrs.get('destination', {})
    source = attrs.get('source', {})

    # cluster the traffic is routed to and the service inside it
    self.cluster = destination.get('cluster')
    self.service = destination.get('address')
    self.namespace = destination.get('namespace', 'default')
    self.port = destination.get('port')
    self.source_port = source.get('port', self.port)
    self.networks = [NetworkAttachment.parse(n) for n in attrs.get('networks', [])]

    if not self.cluster or not self.service or not self.port:
      raise ConfigError("ingress requires a destination cluster, address and port", self.reference)

  def implicit_dependencies(self):
    return [self.cluster] + [n.name for n in self.networks]

class Docs(Resource):
  type = 'docs'

  def parse(self, attrs):
    self.path = attrs.get('path')
    self.port = attrs.get('port', 80)
    self.live_reload_port = attrs.get('live_reload_port', 37950)
    self.image = Image.parse(attrs['image']) if attrs.get('image') else None
    self.networks = [NetworkAttachment.parse(n) for n in attrs.get('networks', [])]

  def implicit_dependencies(self):
    return [n.name for n in self.networks]

  def process(self, folder):
    self.path = _absolute(self.path, folder)

def _list(value):
  if value is None:
    return []
  if isinstance(value, str):
    return value.split()
  return list(value)

TYPES = dict([(t.type, t) for t in [Network, Container, K8sCluster, NomadCluster, Helm, Ingress, Docs]])

def create(resource_type, name, attrs=None, module=None):
  if resource_type not in TYPES:
    raise ConfigError("unknown resource type %s" % resource_type, "%s.%s" % (resource_type, name))

  return TYPES[resource_type](name, attrs, module)

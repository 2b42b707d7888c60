import os, logging
import yaml
from . import resources, HOME_FOLDER
from .exceptions import ConfigError, ResourceExistsError, ResourceNotFoundError

class Settings:
  """Environment driven settings."""

  def __init__(self, environ=None):
    env = os.environ if environ is None else environ

    self.home = os.path.expanduser(env.get('DRYDOCK_HOME', HOME_FOLDER))
    # remote engine override, changes the address written into kubeconfig files
    self.docker_host = env.get('DOCKER_HOST')
    self.wan_network = env.get('DRYDOCK_WAN_NETWORK', 'wan')
    self.wan_subnet = env.get('DRYDOCK_WAN_SUBNET', '192.168.200.0/24')
    self.log_file = env.get('DRYDOCK_LOG_FILE', os.path.join(self.home, 'drydock.log'))
    self.state_file = os.path.join(self.home, 'state.yml')

class Config:
  def __init__(self):
    self.log = logging.getLogger('drydock')
    self.resources = []

  def add_resource(self, resource):
    for existing in self.resources:
      if existing.reference == resource.reference:
        raise ResourceExistsError("resource already exists", resource.reference)

    resource.config = self
    self.resources.append(resource)

  def find_resource(self, reference):
    for resource in self.resources:
      if resource.reference == reference:
        return resource

    raise ResourceNotFoundError(reference)

  def find_module_resources(self, module):
    return [r for r in self.resources if r.module == module]

  def remove_resource(self, resource):
    for i, existing in enumerate(self.resources):
      if existing is resource:
        del self.resources[i]
        return

    raise ResourceNotFoundError(resource.reference if resource is not None else None)

  def resource_count(self):
    return len(self.resources)

  def dump(self):
    result = {'resources': {}}
    for resource in self.resources:
      entry = {'status': resource.status}
      if resource.children:
        entry['children'] = dict([(c.name, c.status) for c in resource.children])

      result['resources'][resource.reference] = entry

    return yaml.dump(result, Dumper=yaml.SafeDumper, default_flow_style=False)

  def save(self, filename):
    self.log.info('Saving environment state to: %s', filename)

    folder = os.path.dirname(filename)
    if folder and not os.path.exists(folder):
      os.makedirs(folder)

    with open(filename, 'w') as output_file:
      output_file.write(self.dump())

  def load_state(self, filename):
    """Restores resource status saved by a previous run."""
    if not os.path.exists(filename):
      return

    self.log.info('Loading environment state from: %s', filename)
    with open(filename, 'r') as input_file:
      try:
        state = yaml.safe_load(input_file) or {}
      except yaml.YAMLError as e:
        raise ConfigError("unable to parse state file %s: %s" % (filename, e))

    for reference, entry in state.get('resources', {}).items():
      try:
        resource = self.find_resource(reference)
      except ResourceNotFoundError:
        self.log.debug('Ignoring state for unknown resource %s', reference)
        continue

      if entry.get('status') in resources.STATUSES and not resource.disabled:
        resource.status = entry['status']

def loads(text, folder=None):
  try:
    document = yaml.safe_load(text) or {}
  except yaml.YAMLError as e:
    raise ConfigError("unable to parse configuration: %s" % e)

  if not isinstance(document, dict):
    raise ConfigError("configuration must be a mapping of resource types")

  config = Config()

  modules = document.pop('modules', None) or {}
  _add_block(config, document, folder)
  for module, block in modules.items():
    _add_block(config, block or {}, folder, module)

  return config

def load(filename):
  if not os.path.exists(filename):
    raise ConfigError("no drydock configuration found %s" % filename)

  with open(filename, 'r') as input_file:
    return loads(input_file.read(), os.path.dirname(os.path.abspath(filename)))

def _add_block(config, block, folder, module=None):
  for resource_type, declarations in block.items():
    if not isinstance(declarations, dict):
      raise ConfigError("expected a mapping of names for resource type %s" % resource_type)

    for name, attrs in declarations.items():
      resource = resources.create(resource_type, name, attrs or {}, module)
      resource.process(folder)
      config.add_resource(resource)

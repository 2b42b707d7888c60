"""
Dependency graph for the resources in a Config.

Edges point from a resource to the resources it depends on, so walking
"down" the graph from a node visits everything it needs. Every resource that
does not depend on anything is connected to a single synthetic root node,
which keeps the graph connected and gives the walk one place to start.
"""
from .resources import MODULE_PREFIX
from .exceptions import CycleError, UnresolvedDependencyError, ResourceNotFoundError

class _Root:
  name = 'root'
  reference = 'root'

  def __repr__(self):
    return '<root>'

ROOT = _Root()

class Graph:
  def __init__(self):
    self.nodes = [ROOT]
    self._down = {ROOT: []}
    self._up = {ROOT: []}

  def add(self, node):
    if node in self._down:
      return
    self.nodes.append(node)
    self._down[node] = []
    self._up[node] = []

  def connect(self, source, target):
    """source depends on target"""
    if target not in self._down[source]:
      self._down[source].append(target)
      self._up[target].append(source)

  def resources(self):
    return self.nodes[1:]

  def edges(self):
    return [(source, target) for source in self.nodes for target in self._down[source]]

  def dependencies(self, node):
    return list(self._down[node])

  def direct_dependents(self, node):
    return list(self._up[node])

  def descendants(self, node):
    """Everything node transitively depends on, the root included."""
    return self._closure(node, self._down)

  def dependents(self, node):
    """Everything that transitively depends on node."""
    return self._closure(node, self._up)

  def walk_order(self):
    """Topological order, dependencies before dependents, root first."""
    remaining = dict([(n, len(self._down[n])) for n in self.nodes])
    ready = [n for n in self.nodes if remaining[n] == 0]
    order = []

    while ready:
      node = ready.pop(0)
      order.append(node)
      for dependent in self._up[node]:
        remaining[dependent] -= 1
        if remaining[dependent] == 0:
          ready.append(dependent)

    return order

  def check_cycles(self):
    visiting, done = set(), set()

    def _visit(node):
      visiting.add(node)
      for target in self._down[node]:
        if target in visiting:
          raise CycleError(node.reference, target.reference)
        if target not in done:
          _visit(target)
      visiting.discard(node)
      done.add(node)

    for node in self.nodes:
      if node not in done:
        _visit(node)

  def _closure(self, node, edges):
    result = []
    seen = set([node])
    pending = list(edges[node])
    while pending:
      current = pending.pop(0)
      if current in seen:
        continue
      seen.add(current)
      result.append(current)
      pending.extend(edges[current])

    return result

def build(config):
  """
  Builds the graph for every resource in config. An unresolved reference or
  a cycle raises before anything is returned.
  """
  graph = Graph()
  for resource in config.resources:
    graph.add(resource)

  for resource in config.resources:
    dependencies = []
    for reference in resource.referenced_resources():
      for dependency in _resolve(config, resource, reference):
        if dependency not in dependencies:
          dependencies.append(dependency)

    if not dependencies:
      graph.connect(resource, ROOT)

    for dependency in dependencies:
      if dependency is resource:
        raise CycleError(resource.reference, resource.reference)
      graph.connect(resource, dependency)

  graph.check_cycles()
  return graph

def _resolve(config, resource, reference):
  if reference.startswith(MODULE_PREFIX):
    found = [r for r in config.find_module_resources(reference[len(MODULE_PREFIX):]) if r is not resource]
    if not found:
      raise UnresolvedDependencyError(reference, resource.reference)
    return found

  try:
    return [config.find_resource(reference)]
  except ResourceNotFoundError:
    raise UnresolvedDependencyError(reference, resource.reference)

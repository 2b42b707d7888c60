class DrydockError(Exception):
  """Base error, optionally tagged with the resource reference and the step that failed."""

  def __init__(self, message, reference=None, step=None):
    self.reference = reference
    self.step = step

    prefix = []
    if reference:
      prefix.append(reference)
    if step:
      prefix.append(step)

    if prefix:
      message = "%s: %s" % (" ".join(prefix), message)

    Exception.__init__(self, message)

class ConfigError(DrydockError):
  pass

class ResourceExistsError(ConfigError):
  pass

class UnresolvedDependencyError(ConfigError):
  def __init__(self, dependency, reference):
    self.dependency = dependency
    ConfigError.__init__(self, "unable to resolve dependency %s" % dependency, reference, "dependency resolution")

class CycleError(ConfigError):
  def __init__(self, source, target):
    self.edge = (source, target)
    ConfigError.__init__(self, "dependency cycle between %s and %s" % (source, target), source, "cycle check")

class NotFoundError(DrydockError):
  pass

class ResourceNotFoundError(NotFoundError):
  def __init__(self, reference):
    NotFoundError.__init__(self, "resource not found", reference)

class ProviderError(DrydockError):
  pass

class ProviderTimeoutError(ProviderError):
  pass

class DependencyError(ProviderError):
  def __init__(self, reference, dependency):
    self.dependency = dependency
    ProviderError.__init__(self, "dependency %s failed" % dependency, reference, "dependency")

class ApplyError(DrydockError):
  def __init__(self, errors):
    self.errors = errors
    DrydockError.__init__(self, "%d resource(s) failed to apply:\n  %s" % (
      len(errors), "\n  ".join([str(e) for e in errors])))

class DestroyError(DrydockError):
  def __init__(self, errors):
    self.errors = errors
    DrydockError.__init__(self, "%d resource(s) failed to destroy:\n  %s" % (
      len(errors), "\n  ".join([str(e) for e in errors])))

class AlreadyExistsError(ProviderError):
  pass

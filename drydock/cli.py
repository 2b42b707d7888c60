import sys, os
import cmdln
from . import backend, config, engine, helm, utils
from .exceptions import DrydockError, NotFoundError
from .providers.cluster import IMAGE_VOLUME

class DrydockCli(cmdln.Cmdln):
    """Usage:
        drydock SUBCOMMAND [ARGS...]
        drydock help SUBCOMMAND

    drydock creates and destroys local environments made of containers,
    networks and clusters from a single configuration.

    ${command_list}
    ${help_list}
    """
    name = "drydock"

    def __init__(self, *args, **kwargs):
      cmdln.Cmdln.__init__(self, *args, **kwargs)
      cmdln.Cmdln.do_help.aliases.append("h")
      self.settings = config.Settings()

    @cmdln.option("-f", "--drydock_file",
                  help='path to the drydock file to use')
    @cmdln.option("-s", "--state_file",
                  help='path to the state file holding the status of each resource')
    def do_apply(self, subcmd, opts, *args):
      """Create every resource in the drydock file in dependency order.

        usage:
            apply

        ${cmd_option_list}
      """
      environment, state = self._load(opts)

      try:
        engine.Engine(environment, settings=self.settings).apply()
      except DrydockError as e:
        sys.stderr.write("Error: {0}\n".format(e))
        return 1
      finally:
        environment.save(state)

      print("Applied.")

    @cmdln.option("-f", "--drydock_file",
                  help='path to the drydock file to use')
    @cmdln.option("-s", "--state_file",
                  help='path to the state file holding the status of each resource')
    def do_destroy(self, subcmd, opts, *args):
      """Destroy every resource in the drydock file, dependents first.

        usage:
            destroy

        ${cmd_option_list}
      """
      environment, state = self._load(opts)

      try:
        engine.Engine(environment, settings=self.settings).destroy()
      except DrydockError as e:
        sys.stderr.write("Error: {0}\n".format(e))
        return 1
      finally:
        environment.save(state)

      print("Destroyed.")

    @cmdln.option("-f", "--drydock_file",
                  help='path to the drydock file to use')
    @cmdln.option("-s", "--state_file",
                  help='path to the state file holding the status of each resource')
    def do_status(self, subcmd, opts, *args):
      """Show the status of each resource and the ids of the objects backing it.

        usage:
            status

        ${cmd_option_list}
      """
      environment, _ = self._load(opts)
      try:
        e = engine.Engine(environment, settings=self.settings)
      except DrydockError as err:
        sys.stderr.write("Error: {0}\n".format(err))
        return 1

      columns = '{0:<40}{1:<18}{2}'
      print(columns.format('RESOURCE', 'STATUS', 'IDS'))
      for resource in environment.resources:
        try:
          ids = ", ".join([i[:12] for i in e.provider(resource).lookup()])
        except DrydockError as err:
          ids = 'lookup failed: {0}'.format(err)
        print(columns.format(resource.reference, resource.status, ids))

    def do_purge(self, subcmd, opts, *args):
      """Remove the cached images volume shared by clusters.

        usage:
            purge
      """
      utils.setupLogging(self.settings.log_file)

      try:
        backend.DockerBackend().remove_volume(IMAGE_VOLUME)
      except NotFoundError:
        print("Nothing to purge.")
        return
      except DrydockError as e:
        sys.stderr.write("Error: {0}\n".format(e))
        return 1

      print("Removed cached images.")

    def do_check(self, subcmd, opts, *args):
      """Check the tools drydock needs are installed and reachable.

        usage:
            check
      """
      utils.setupLogging(self.settings.log_file)
      failed = False

      try:
        version = backend.DockerBackend().ping()
        print("[ OK ] Docker engine {0}".format(version))
      except DrydockError as e:
        print("[FAIL] Docker engine: {0}".format(e))
        failed = True

      if helm.Helm().available():
        print("[ OK ] helm")
      else:
        print("[FAIL] helm: binary not found in PATH")
        failed = True

      if failed:
        return 1

    def _load(self, opts):
      """
      Load the drydock file and restore the state of a previous run.
      """
      utils.setupLogging(self.settings.log_file)

      filename = opts.drydock_file
      if not filename:
        filename = os.path.join(os.getcwd(), 'drydock.yml')

      if not filename.startswith('/'):
        filename = os.path.join(os.getcwd(), filename)

      state = opts.state_file or self.settings.state_file

      try:
        environment = config.load(filename)
        environment.load_state(state)
      except DrydockError as e:
        sys.stderr.write("Error: {0}\n".format(e))
        sys.exit(1)

      return environment, state

def main(argv=None):
  return DrydockCli().main(argv or sys.argv)

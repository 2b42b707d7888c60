__all__ = ["config", "resources", "graph", "engine", "backend", "kube", "helm", "providers", "utils", "cli"]

__version__ = "0.2.0"

# Cached kubeconfigs, the log and the state file live under the
# home folder unless DRYDOCK_HOME points somewhere else.
HOME_FOLDER = "~/.drydock"

# Suffix used for the names of every container, volume and network drydock creates
DOMAIN = "drydock.run"

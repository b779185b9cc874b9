import kubernetes
import typer

from paasplane.config import load_config
from paasplane.errors import ConfigError
from paasplane.k8s.store import KubeStore


def connect():
    """ Load the controller config and a store for the current kube context.
    """
    try:
        config = load_config()
    except ConfigError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)

    try:
        kubernetes.config.load_kube_config()
    except kubernetes.config.ConfigException:
        kubernetes.config.load_incluster_config()

    return config, KubeStore()

import typer

from typing import Optional
from typing_extensions import Annotated

import paasplane.cli.utils as cli_utils
from paasplane.crd.registry import CRDRegistry
from paasplane.errors import AwaitTimeoutError, PaasplaneError
from paasplane.k8s.awaiter import ConditionAwaiter
from paasplane.k8s.conditions import READY
import paasplane.models  # noqa: F401

app = typer.Typer()


@app.command(name="wait")
def wait(
    kind: Annotated[str, typer.Argument(help="Resource kind, e.g. CFSpace or cfspaces")],
    name: Annotated[str, typer.Argument(help="Resource name")],
    namespace: Annotated[
        str, typer.Option("-n", "--namespace", help="Namespace of the resource")
    ],
    condition: Annotated[
        str, typer.Option("--condition", help="Condition type to wait for")
    ] = READY,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Seconds to wait, defaults to the configured timeout"),
    ] = None,
):
    """
    Block until a resource has a fresh True condition.

    Exits non-zero when the condition is not reached within the timeout.
    """
    model_info = CRDRegistry().find_model(kind)
    if model_info is None:
        typer.echo(f"Unknown kind {kind}", err=True)
        raise typer.Exit(code=2)

    config, store = cli_utils.connect()
    model = model_info["model"]
    awaiter = ConditionAwaiter(timeout or config.conditionTimeout, model)

    try:
        obj = model.from_body(store.get(model_info["kind"], name, namespace))
        awaiter.await_condition(store, obj, condition)
    except AwaitTimeoutError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    except PaasplaneError as e:
        typer.echo(f"Failed to wait for {kind} {namespace}/{name}: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"{model_info['kind'].kind} {namespace}/{name} is {condition}")

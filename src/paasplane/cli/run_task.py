import typer

from typing import List, Optional
from typing_extensions import Annotated

import paasplane.cli.utils as cli_utils
from paasplane.errors import AwaitTimeoutError, PaasplaneError
from paasplane.services.task_runner import TaskRunner

app = typer.Typer()


@app.command(name="run-task")
def run_task(
    app_name: Annotated[str, typer.Argument(help="Name of the CFApp to run the task for")],
    command: Annotated[List[str], typer.Argument(help="Command to run")],
    namespace: Annotated[
        str, typer.Option("-n", "--namespace", help="Space namespace of the app")
    ],
    name: Annotated[
        Optional[str], typer.Option("--name", help="Task name, generated if omitted")
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Seconds to wait, defaults to the configured timeout"),
    ] = None,
):
    """
    Create a task for an app and wait until it is initialised.
    """
    config, store = cli_utils.connect()
    runner = TaskRunner(store, timeout or config.conditionTimeout)

    try:
        task = runner.create_task(namespace, app_name, command, name=name)
    except AwaitTimeoutError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    except PaasplaneError as e:
        typer.echo(f"Failed to run task for app {namespace}/{app_name}: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Task {namespace}/{task.name} initialised")

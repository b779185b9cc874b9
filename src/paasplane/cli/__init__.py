import typer
from paasplane.cli.wait import app as wait_command
from paasplane.cli.run_task import app as run_task_command

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

app = typer.Typer(
    help="Paasplane: org and space control plane and Kubernetes operator",
    add_completion=False,
)

# Add client commands
app.add_typer(wait_command)
app.add_typer(run_task_command)


# Add operator commands
@app.command("operator")
def run_operator():
    """Run the Kubernetes operator (connects to cluster)."""
    from paasplane.main import main

    main()


@app.command("list-kinds")
def list_kinds():
    """List the resource kinds known to paasplane."""
    from paasplane.crd.registry import CRDRegistry
    import paasplane.models  # noqa: F401

    for key in CRDRegistry().list_registered_models():
        typer.echo(key)


if __name__ == "__main__":
    app()

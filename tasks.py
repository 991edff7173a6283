# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create the development environment with uv."""
    ctx.run("uv venv")
    ctx.run('uv pip install -e ".[test,dev]"')


@task
def clean(ctx):
    """
    Remove untracked files and directories.
    Use caution as this operation cannot be undone.
    """

    ctx.run("git clean -nfdx")

    response = (
        input("Are you sure you want to remove all untracked files? (y/n) [n]: ")
        .strip()
        .lower()
    )
    if response == "y":
        ctx.run("git clean -fdx")


@task
def lint(ctx):
    """
    Run ruff and mypy over the package and tests.
    """
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """
    Run tests with coverage information.
    """
    ctx.run("pytest --cov=rrfbridge --cov-report=term-missing", pty=True)


@task
def mock(ctx, port=8888):
    """Serve a mock printer on localhost for trying out the bridge."""
    ctx.run(f"rrf-bridge --debug mock --port {port}", pty=True)


@task
def bridge(ctx, host="127.0.0.1:8888", broker="tcp://127.0.0.1:1883"):
    """Bridge a (mock) printer to a local broker with a short poll interval."""
    ctx.run(
        f"rrf-bridge -p reprap bridge {host} --broker {broker} --interval 5s",
        pty=True,
    )


@task
def build_package(ctx):
    """
    Build package using uv.
    """

    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task
def release(ctx):
    """Run CI, build package, and publish to PyPI using uv."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    ctx.run("invoke lint test")

    print("Building package...")
    ctx.run("invoke build-package")

    print("Publishing to PyPI...")
    ctx.run(f"uv publish --token {token}")

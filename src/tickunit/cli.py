from __future__ import annotations

from pathlib import Path

import typer

app = typer.Typer(name="tickunit", help="Run tickunit test cases listed in a suite file")


@app.command()
def run(
    suite: str = typer.Argument(help="Path to suite YAML config"),
    case: str | None = typer.Option(
        None, "--case", help="Run only this class, method or Class.method"
    ),
    output_dir: str = typer.Option("runs", help="Output directory for run results"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output to terminal"
    ),
):
    """Run the test methods listed in a suite file."""
    from pydantic import ValidationError

    from tickunit.config import load_config
    from tickunit.metrics import summarize
    from tickunit.runner import Runner

    suite_path = Path(suite)
    if not suite_path.exists():
        typer.echo(f"Error: suite file not found: {suite}", err=True)
        raise typer.Exit(1)

    try:
        suite_config = load_config(suite_path)
    except (ValueError, ValidationError) as e:
        typer.echo(f"Error: invalid suite file {suite}: {e}", err=True)
        raise typer.Exit(1)

    runner = Runner(
        config=suite_config,
        output_dir=Path(output_dir),
        case_filter=case,
        verbose=verbose,
    )

    try:
        run_dir = runner.execute()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if runner.interrupted:
        typer.echo(f"Partial run saved: {run_dir}")
    else:
        typer.echo(f"Run complete: {run_dir}")
    if not verbose:
        typer.echo(f"Debug log: {run_dir / 'debug.log'}")

    # Exit with non-zero if any method failed, errored or the run was interrupted
    if runner.interrupted:
        raise typer.Exit(1)

    if not summarize(runner.outcomes).all_passed:
        raise typer.Exit(1)


@app.command()
def init(
    dir: str = typer.Option(
        "tickunit", "--dir", help="Directory to initialize the test project in"
    ),
):
    """Initialize a new test project with an example suite."""
    project_dir = Path(dir)

    if not project_dir.exists():
        project_dir.mkdir(parents=True, exist_ok=True)

    suite = project_dir / "suite.yaml"
    if suite.exists():
        typer.echo(f"suite.yaml already exists in {dir}, skipping.")
        return

    suite.write_text("""\
timeout: 30
paths: ["."]
cases:
  - target: example_tests:CounterTests
    methods: [test_counts_up, test_settles_after_ticks]
""")

    (project_dir / "example_tests.py").write_text('''\
from tickunit import TestCase


class CounterTests(TestCase):
    def set_up(self):
        self.count = 0

    def test_counts_up(self):
        self.count += 1
        self.equal(1, self.count)

    async def test_settles_after_ticks(self):
        async def bump():
            await self.tick()
            self.count += 1

        self.spawn(bump())
        await self.tick(2)
        self.equal(1, self.count)
''')

    typer.echo(f"Initialized test project in {dir}:")
    typer.echo("  suite.yaml        - example suite config")
    typer.echo("  example_tests.py  - example test case")

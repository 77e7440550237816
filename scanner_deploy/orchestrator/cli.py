from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

import typer

from scanner_deploy.cluster.client import OcClient
from scanner_deploy.common.config import DeploymentConfiguration
from scanner_deploy.common.console import configure_logging, print_failure, print_step
from scanner_deploy.common.errors import (
    AggregateTeardownError,
    ConfigurationError,
    ScannerDeployError,
    StepFailedError,
    WorkloadTimeoutError,
)

from .lifecycle import LifecycleOrchestrator

app = typer.Typer(help="Build, deploy, monitor and clean up the TLS scanner Job.")

ACTIONS = ("build", "push", "deploy", "cleanup", "full-deploy", "wait", "status", "default")
_LOCAL_ACTIONS = {"build", "push"}
USAGE = "Usage: scanner-deploy [build|push|deploy|cleanup|full-deploy|wait|status]"


def load_configuration(
    action: str,
    environ: Mapping[str, str],
    *,
    image: Optional[str] = None,
    namespace: Optional[str] = None,
    template: Optional[Path] = None,
    job_name: Optional[str] = None,
    oc_cmd: Optional[str] = None,
    context_dir: Optional[Path] = None,
    timeout: Optional[float] = None,
    poll_interval: Optional[float] = None,
    retries: Optional[int] = None,
) -> DeploymentConfiguration:
    env = dict(environ)
    if namespace:
        env["NAMESPACE"] = namespace
    resolver = None
    if action not in _LOCAL_ACTIONS:
        resolver = OcClient(oc_cmd or env.get("OC_CMD") or "oc").current_namespace
    config = DeploymentConfiguration.from_env(env, resolver)
    return config.with_overrides(
        image_reference=image,
        template_path=template,
        workload_name=job_name,
        oc_cmd=oc_cmd,
        context_dir=context_dir,
        timeout=timeout,
        poll_interval=poll_interval,
        retries=retries,
    )


def build_orchestrator(config: DeploymentConfiguration) -> LifecycleOrchestrator:
    return LifecycleOrchestrator(config)


@app.command()
def main(
    action: str = typer.Argument(
        "default",
        help="One of: build, push, deploy, cleanup, full-deploy, wait, status, default.",
    ),
    image: Optional[str] = typer.Option(
        None,
        "--image",
        help="Scanner image reference (overrides SCANNER_IMAGE).",
    ),
    namespace: Optional[str] = typer.Option(
        None,
        "--namespace",
        "-n",
        help="Target namespace (overrides NAMESPACE; defaults to the active oc project).",
    ),
    template: Optional[Path] = typer.Option(
        None,
        "--template",
        help="Job manifest template (overrides JOB_TEMPLATE).",
    ),
    job_name: Optional[str] = typer.Option(
        None,
        "--job-name",
        help="Name of the scanner Job (overrides JOB_NAME).",
    ),
    oc_cmd: Optional[str] = typer.Option(
        None,
        "--oc",
        help="oc binary used for cluster operations.",
    ),
    context_dir: Optional[Path] = typer.Option(
        None,
        "--context",
        help="Directory holding the scanner sources and Dockerfile.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        min=1,
        help="Seconds to wait for the Job before giving up (wait action).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        min=0.1,
        help="Seconds between Job status polls.",
    ),
    retries: Optional[int] = typer.Option(
        None,
        "--retries",
        min=0,
        help="Extra attempts for rejected cluster mutations during deploy.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="LOG_LEVEL",
        help="Logging level for diagnostic output.",
    ),
) -> None:
    configure_logging(log_level)
    if action not in ACTIONS:
        typer.echo(f"Error: Unknown action '{action}'.", err=True)
        typer.echo(USAGE, err=True)
        raise typer.Exit(code=1)

    try:
        config = load_configuration(
            action,
            os.environ,
            image=image,
            namespace=namespace,
            template=template,
            job_name=job_name,
            oc_cmd=oc_cmd,
            context_dir=context_dir,
            timeout=timeout,
            poll_interval=poll_interval,
            retries=retries,
        )
    except ConfigurationError as exc:
        print_failure("configuration", str(exc))
        raise typer.Exit(code=1) from exc

    orchestrator = build_orchestrator(config)
    try:
        _dispatch(orchestrator, action)
    except StepFailedError as exc:
        print_failure(exc.label, str(exc.cause))
        raise typer.Exit(code=1) from exc
    except WorkloadTimeoutError as exc:
        print_failure("wait", str(exc))
        typer.echo("Resources were left in place. Run 'scanner-deploy cleanup' to remove them.", err=True)
        raise typer.Exit(code=1) from exc
    except AggregateTeardownError as exc:
        raise typer.Exit(code=1) from exc
    except ScannerDeployError as exc:
        print_failure(action, str(exc))
        raise typer.Exit(code=1) from exc


def _dispatch(orchestrator: LifecycleOrchestrator, action: str) -> None:
    if action == "build":
        orchestrator.build()
    elif action == "push":
        orchestrator.push()
    elif action == "deploy":
        orchestrator.deploy()
    elif action == "full-deploy":
        orchestrator.full_deploy()
    elif action == "default":
        orchestrator.full_deploy()
        typer.echo("")
        print_step("Full deployment initiated. Manual cleanup will be required.")
        print_step("Run 'scanner-deploy cleanup' when scan is complete.")
    elif action == "wait":
        result = orchestrator.wait()
        if not result.succeeded:
            typer.echo(f"Scanner Job {result.handle.name} failed.", err=True)
            raise typer.Exit(code=1)
    elif action == "cleanup":
        orchestrator.cleanup()
    elif action == "status":
        typer.echo(orchestrator.infer_state().value)


if __name__ == "__main__":  # pragma: no cover
    app()

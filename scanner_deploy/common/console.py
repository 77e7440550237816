from __future__ import annotations

import logging

import typer

RULE = "=" * 72
BANNER = "!" * 72


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format="%(levelname)s: %(message)s")


def print_header(title: str) -> None:
    typer.echo(RULE)
    typer.echo(f"=> {title}")
    typer.echo(RULE)


def print_step(message: str) -> None:
    typer.echo(f"--> {message}")


def print_failure(step: str, detail: str) -> None:
    typer.echo(BANNER, err=True)
    typer.echo(f"An error occurred during: '{step}'", err=True)
    typer.echo(detail, err=True)
    typer.echo("Exiting.", err=True)
    typer.echo(BANNER, err=True)


__all__ = ["configure_logging", "print_failure", "print_header", "print_step"]

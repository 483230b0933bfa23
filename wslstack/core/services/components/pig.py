"""Pig — archive only, runs against the Hadoop install."""

from __future__ import annotations

from wslstack.core.engine.context import StepContext
from wslstack.core.models.step import InstallStep
from wslstack.core.services.archive import install_archive
from wslstack.core.services.download import apache_target


def pig_install(ctx: StepContext) -> None:
    config = ctx.config
    version = config.versions.pig
    install_archive(
        apache_target(config, f"pig/pig-{version}", f"pig-{version}.tar.gz"),
        config.install_dir,
        f"pig-{version}",
        "pig",
        ctx.downloader,
    )


STEPS = [InstallStep("pig_install", pig_install, "Pig")]

# steps/s10_dl_master_deploy.py
from __future__ import annotations
from engine.context import StepContext
from steps.vm_deploy import DL_PROFILE, deploy


def run(ctx: StepContext) -> int:
    return deploy(ctx, DL_PROFILE)

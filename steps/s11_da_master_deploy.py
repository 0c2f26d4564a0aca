# steps/s11_da_master_deploy.py
from __future__ import annotations
from engine.context import StepContext
from steps.vm_deploy import DA_PROFILE, deploy


def run(ctx: StepContext) -> int:
    return deploy(ctx, DA_PROFILE)

# steps/s09_dp_download.py
"""Download the DP deploy script and qcow2 image from ACPS.

Releases before 6.2.1 publish the image under its short local name. From
6.2.1 on the server name carries the OS/python tag and a .sha1 sidecar; the
image is verified and then renamed to the short name the deploy script expects.
"""
from __future__ import annotations
import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import InstallerConfig
from engine.context import StepContext
from engine.results import HANDLER_SUCCESS
from errors import OperatorCancelled, PreconditionUnmet
from logger import log
from steps.common import read_text

IMAGE_DIR = Path("/stellar/dl/images")
DEPLOY_SCRIPT = "virt_deploy_uvp_centos.sh"
# The deploy script is only published for this release and reused by newer ones.
DEPLOY_SCRIPT_RELEASE = "6.2.0"
MIN_LOCAL_IMAGE_BYTES = 1000 * 1024 * 1024


@dataclass(frozen=True)
class DownloadPlan:
    script_url: str
    image_url: str
    image_remote_name: str
    image_local_name: str
    sha1_url: Optional[str] = None


def local_image_name(version: str) -> str:
    return f"aella-dataprocessor-{version}.qcow2"


def release_url(config: InstallerConfig, release: str, name: str) -> str:
    return f"{config.acps_base_url.rstrip('/')}/release/{release}/dataprocessor/{name}"


def legacy_plan(config: InstallerConfig) -> DownloadPlan:
    ver = config.dp_version
    name = local_image_name(ver)
    return DownloadPlan(
        script_url=release_url(config, ver, DEPLOY_SCRIPT),
        image_url=release_url(config, ver, name),
        image_remote_name=name,
        image_local_name=name,
    )


def current_plan(config: InstallerConfig) -> DownloadPlan:
    ver = config.dp_version
    remote = f"aella-dataprocessor-ubuntu2404-py2-{ver}.qcow2"
    return DownloadPlan(
        script_url=release_url(config, DEPLOY_SCRIPT_RELEASE, DEPLOY_SCRIPT),
        image_url=release_url(config, ver, remote),
        image_remote_name=remote,
        image_local_name=local_image_name(ver),
        sha1_url=release_url(config, ver, f"{remote}.sha1"),
    )


def sha1_of(path: Path) -> str:
    h = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def expected_sha1(sidecar_text: str) -> Optional[str]:
    m = re.match(r"\s*([0-9a-fA-F]{40})\b", sidecar_text)
    return m.group(1).lower() if m else None


def patch_deploy_script(text: str, image_name: str) -> str:
    """Point the deploy script's package URL at the short local image name."""
    line = f"uvp_package_url=https://${{FS_SERVER}}/release/${{RELEASE}}/dataprocessor/{image_name}"
    return re.sub(r"^#?uvp_package_url=.*$", line, text, flags=re.MULTILINE)


def find_local_image(search_dir: Path = Path(".")) -> Optional[Path]:
    candidates = [
        p for p in search_dir.glob("*.qcow2")
        if p.is_file() and p.stat().st_size >= MIN_LOCAL_IMAGE_BYTES
    ]
    return max(candidates, key=lambda p: p.stat().st_mtime) if candidates else None


def _require_credentials(config: InstallerConfig) -> None:
    missing = [k for k, v in (("DP_VERSION", config.dp_version),
                              ("ACPS_USERNAME", config.acps_username),
                              ("ACPS_PASSWORD", config.acps_password)) if not v]
    if missing:
        raise PreconditionUnmet(
            "Missing configuration: " + ", ".join(missing) + ". Set them in the configuration menu."
        )


def _curl(ctx: StepContext, url: str, dest: Path) -> None:
    # Credentials go through stdin so they never reach the command log.
    cfg = ctx.config
    ctx.commands.run(
        ["curl", "-f", "-k", "-L", "-o", str(dest), "--config", "-", url],
        input_text=f'user = "{cfg.acps_username}:{cfg.acps_password}"\n',
        timeout=6 * 3600,
    )


def _fetch_image(ctx: StepContext, plan: DownloadPlan) -> Path:
    dest = IMAGE_DIR / plan.image_remote_name
    local = find_local_image()
    if local and ctx.prompter.confirm(
        f"{ctx.tag} - Reuse Local qcow2",
        f"Found a local qcow2 image:\n\n  {local}\n\nUse it instead of downloading?\n"
        f"(It will be saved as '{plan.image_local_name}'.)",
    ):
        log.info("[%s] Using local image %s", ctx.tag, local)
        ctx.commands.run(["cp", str(local), str(dest)])
    elif (IMAGE_DIR / plan.image_local_name).exists():
        log.info("[%s] %s already present (skipping download)", ctx.tag, plan.image_local_name)
        return IMAGE_DIR / plan.image_local_name
    else:
        _curl(ctx, plan.image_url, dest)
    return dest


def _verify(ctx: StepContext, plan: DownloadPlan, image: Path) -> None:
    if ctx.dry_run or plan.sha1_url is None or image.name != plan.image_remote_name:
        return
    sidecar = IMAGE_DIR / f"{plan.image_remote_name}.sha1"
    _curl(ctx, plan.sha1_url, sidecar)
    expected = expected_sha1(read_text(sidecar))
    actual = sha1_of(image)
    if expected == actual:
        log.info("[%s] sha1 verified for %s", ctx.tag, image.name)
        return
    log.warning("[%s] sha1 mismatch for %s: expected %s, got %s", ctx.tag, image.name, expected, actual)
    if not ctx.prompter.confirm(
        f"{ctx.tag} - sha1 Verification Failed",
        "sha1 verification failed. The file may be corrupted.\n\nProceed anyway?",
        default_no=True,
    ):
        raise OperatorCancelled("image verification rejected")


def download(ctx: StepContext, plan: DownloadPlan) -> int:
    _require_credentials(ctx.config)
    log.info("[%s] DP_VERSION=%s base=%s image=%s -> %s", ctx.tag, ctx.config.dp_version,
             ctx.config.acps_base_url, plan.image_remote_name, plan.image_local_name)
    ctx.commands.run(["mkdir", "-p", str(IMAGE_DIR)])

    script = IMAGE_DIR / DEPLOY_SCRIPT
    _curl(ctx, plan.script_url, script)

    image = _fetch_image(ctx, plan)
    _verify(ctx, plan, image)
    if image.name != plan.image_local_name:
        ctx.commands.run(["mv", str(image), str(IMAGE_DIR / plan.image_local_name)])

    if not ctx.dry_run:
        text = read_text(script)
        patched = patch_deploy_script(text, plan.image_local_name)
        if patched != text:
            ctx.commands.write_file(script, patched, mode=0o755)
    ctx.commands.run(["chmod", "+x", str(script)])
    return HANDLER_SUCCESS


def run_legacy(ctx: StepContext) -> int:
    return download(ctx, legacy_plan(ctx.config))


def run(ctx: StepContext) -> int:
    return download(ctx, current_plan(ctx.config))


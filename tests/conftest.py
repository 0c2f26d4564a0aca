# tests/conftest.py
import sys, os, tempfile
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Keep the log file and default paths out of /root during tests.
os.environ.setdefault("XDR_INSTALLER_HOME", tempfile.mkdtemp(prefix="xdr-installer-test-"))

from typing import Dict, List, Optional, Tuple

import pytest
from command import CmdResult, CommandRunner
from config import InstallerConfig
from engine.context import StepContext
from engine.registry import StepDescriptor, StepId, StepRegistry
from engine.state_store import ExecutionStateStore
from network.identity import HardwareIdentityResolver
from state import ExecutionState, HardwareIdentity, Role


class FakePrompter:
    """Scripted operator. Unscripted confirms answer `default_confirm`."""

    def __init__(self, confirms=None, texts=None, choices=None, many=None, default_confirm=True):
        self.confirms = list(confirms or [])
        self.texts = list(texts or [])
        self.choices = list(choices or [])
        self.many = list(many or [])
        self.default_confirm = default_confirm
        self.calls: List[Tuple[str, str]] = []

    def confirm(self, title, message, *, default_no=False):
        self.calls.append(("confirm", title))
        return self.confirms.pop(0) if self.confirms else self.default_confirm

    def notify(self, title, message):
        self.calls.append(("notify", title))

    def ask_text(self, title, message, default="", *, password=False):
        self.calls.append(("ask_text", title))
        return self.texts.pop(0) if self.texts else default

    def choose(self, title, message, options):
        self.calls.append(("choose", title))
        return self.choices.pop(0) if self.choices else None

    def choose_many(self, title, message, options):
        self.calls.append(("choose_many", title))
        return self.many.pop(0) if self.many else None

    def titles(self, kind):
        return [t for k, t in self.calls if k == kind]


class FakeLinks:
    """In-memory link table: name -> (pci, mac, physical)."""

    def __init__(self, links: Dict[str, Tuple[Optional[str], Optional[str], bool]], dry_run=False):
        self.links = dict(links)
        self.dry_run = dry_run
        self.renames: List[Tuple[str, str]] = []

    def names(self):
        return sorted(self.links)

    def exists(self, name):
        return name in self.links

    def is_physical(self, name):
        return name in self.links and self.links[name][2]

    def pci_address(self, name):
        return self.links.get(name, (None, None, False))[0]

    def mac_address(self, name):
        return self.links.get(name, (None, None, False))[1]

    def rename(self, old, new):
        self.renames.append((old, new))
        if not self.dry_run:
            self.links[new] = self.links.pop(old)


class FakeCommands(CommandRunner):
    """CommandRunner that never touches the host; probes answer from `responses`."""

    def __init__(self, dry_run=True, responses=None):
        super().__init__(dry_run=dry_run)
        self.responses = dict(responses or {})
        self.executed: List[List[str]] = []
        self.written: Dict[str, str] = {}

    def _exec(self, argv, input_text, timeout):
        self.executed.append(list(argv))
        for prefix, result in self.responses.items():
            if tuple(argv[:len(prefix)]) == prefix:
                rc, out = result
                return CmdResult(argv=argv, returncode=rc, stdout=out)
        return CmdResult(argv=argv, returncode=0)

    def write_file(self, path, content, mode=0o644):
        if not self.dry_run:
            self.written[str(path)] = content

    def ran(self, *prefix):
        return [a for a in self.executed if tuple(a[:len(prefix)]) == prefix]


def make_registry(handlers=None, count=13):
    """Registry over the real step ids with stub handlers (default: succeed)."""
    handlers = handlers or {}
    ids = list(StepId)[:count]
    return StepRegistry(
        StepDescriptor(sid, f"{sid.value} stub", handlers.get(sid, lambda ctx: 0))
        for sid in ids
    )


@pytest.fixture
def prompter():
    return FakePrompter()


@pytest.fixture
def links():
    return FakeLinks({
        "eno1": ("0000:03:00.0", "aa:aa:aa:aa:aa:01", True),
        "eno2": ("0000:04:00.0", "aa:aa:aa:aa:aa:02", True),
        "ens5f0": ("0000:5e:00.0", "aa:aa:aa:aa:aa:03", True),
        "virbr0": (None, "52:54:00:00:00:01", False),
    })


@pytest.fixture
def state():
    s = ExecutionState()
    s.identities[Role.MANAGEMENT] = HardwareIdentity("eno1", "0000:03:00.0", "aa:aa:aa:aa:aa:01", "eno1")
    s.identities[Role.CLUSTER] = HardwareIdentity("eno2", "0000:04:00.0", "aa:aa:aa:aa:aa:02", "eno2")
    s.identities[Role.HOST_ACCESS] = HardwareIdentity("ens5f0", "0000:5e:00.0", "aa:aa:aa:aa:aa:03", "ens5f0")
    return s


@pytest.fixture
def resolver(state, links, tmp_path):
    return HardwareIdentityResolver(state, links, tmp_path / "rename_conflicts.log")


@pytest.fixture
def make_ctx(tmp_path, state, resolver, prompter):
    """Build a StepContext for a handler test."""

    def _make(step_id=StepId.HW_DETECT, config=None, commands=None):
        registry = make_registry()
        return StepContext(
            step_id=step_id,
            config=config or InstallerConfig(),
            config_path=tmp_path / "xdr_install.conf",
            state=state,
            resolver=resolver,
            prompter=prompter,
            commands=commands or FakeCommands(),
            store=ExecutionStateStore(registry, tmp_path / "xdr_install.state"),
        )

    return _make

"""Detection of GitHub Actions workflows by trigger event.

Used to decide whether waiting for PR checks makes sense at all and which
workflows a release is expected to start.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from pubflow.core.result import Err, Ok, Result
from pubflow.core.structured import as_obj_list, as_str_dict

WORKFLOWS_DIR = Path(".github") / "workflows"

# Push-triggered runs on the PR head also report as PR checks.
_CHECK_EVENTS = frozenset({"pull_request", "pull_request_target", "push"})


@dataclass(frozen=True, slots=True)
class WorkflowFile:
    path: Path
    name: str
    events: frozenset[str]


@dataclass(frozen=True, slots=True)
class WorkflowScanError:
    path: Path
    message: str


def _events(trigger: object) -> frozenset[str]:
    if isinstance(trigger, str):
        return frozenset({trigger})
    items = as_obj_list(trigger)
    if items is not None:
        return frozenset(item for item in items if isinstance(item, str))
    table = as_str_dict(trigger)
    if table is not None:
        return frozenset(table.keys())
    return frozenset()


def load_workflow(path: Path) -> Result[WorkflowFile, WorkflowScanError]:
    try:
        raw: object = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(WorkflowScanError(path=path, message=str(e)))
    except yaml.YAMLError as e:
        return Err(WorkflowScanError(path=path, message=f"invalid YAML: {e}"))

    # Untyped keys on purpose: YAML 1.1 reads a bare `on:` key as boolean True.
    doc = raw if isinstance(raw, dict) else {}
    trigger = doc.get("on", doc.get(True))
    name = doc.get("name")
    return Ok(
        WorkflowFile(
            path=path,
            name=name.strip() if isinstance(name, str) and name.strip() else path.stem,
            events=_events(trigger),
        )
    )


def scan_workflows(repo_root: Path) -> tuple[list[WorkflowFile], list[WorkflowScanError]]:
    directory = repo_root / WORKFLOWS_DIR
    if not directory.is_dir():
        return ([], [])

    found: list[WorkflowFile] = []
    errors: list[WorkflowScanError] = []
    paths = sorted([*directory.glob("*.yml"), *directory.glob("*.yaml")])
    for path in paths:
        match load_workflow(path):
            case Ok(workflow):
                found.append(workflow)
            case Err(error):
                errors.append(error)
    return (found, errors)


def has_pull_request_workflows(repo_root: Path) -> bool:
    """True unless the repository provably has no workflow reporting PR checks.

    Unparseable workflow files count as "maybe", so the caller still waits.
    """
    found, errors = scan_workflows(repo_root)
    if errors:
        return True
    return any(_CHECK_EVENTS & workflow.events for workflow in found)


def release_workflow_names(repo_root: Path) -> Result[list[str], list[WorkflowScanError]]:
    found, errors = scan_workflows(repo_root)
    if errors:
        return Err(errors)
    return Ok([w.name for w in found if "release" in w.events])


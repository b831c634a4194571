"""
Mirror a subject's generated templates/ tree into the target projects.

All destination roots are checked before anything is copied. A failure on a
single file is recorded and the walk continues.
"""
import os
import shutil
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from forge.pipeline.errors import CopyError, DependencyError

# (template subfolder, target project, path inside the target project)
DEFAULT_MAPPINGS = [
    ("shared", "shared", ""),
    ("api/Controllers", "api", "src/Admin.Api/Controllers"),
    ("api/Repositories", "api", "src/Admin.Infrastructure/Repositories"),
    ("api/Services", "api", "src/Admin.Infrastructure/Services"),
    ("api/Mapping", "api", "src/Admin.Infrastructure/Mapping"),
    ("ui/Controllers", "ui", "Controllers"),
    ("ui/Services", "ui", "Services"),
    ("ui/ViewModels", "ui", "ViewModels"),
    ("ui/Views", "ui", "Views"),
    ("ui/wwwroot", "ui", "wwwroot"),
]


@dataclass(frozen=True)
class DeployMapping:
    source: str
    target_root: str
    dest: str = ""

    @property
    def destination(self) -> str:
        return os.path.join(self.target_root, self.dest) if self.dest else self.target_root


@dataclass
class CopyResult:
    files: int = 0
    planned: List[str] = field(default_factory=list)
    errors: List[CopyError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def build_mappings(targets: Dict[str, Optional[str]], table=None) -> List[DeployMapping]:
    table = table if table is not None else DEFAULT_MAPPINGS
    mappings = []
    for source, target, dest in table:
        root = targets.get(target)
        if not root:
            raise DependencyError(f"No path configured for deployment target '{target}'",
                                  missing=[target],
                                  remediation=f"Set targets.{target} in the settings file")
        mappings.append(DeployMapping(source=source, target_root=root, dest=dest))
    return mappings


def check_destination_roots(mappings: List[DeployMapping]) -> None:
    absent = []
    for m in mappings:
        if not os.path.isdir(m.target_root) and m.target_root not in absent:
            absent.append(m.target_root)
    if absent:
        raise DependencyError(
            "Target directories do not exist: " + ", ".join(absent),
            missing=absent,
            remediation="Verify the targets paths in the settings file; nothing was copied.",
        )


def _copy_tree(src: str, dest: str, dry_run: bool, result: CopyResult) -> None:
    for root, dirs, files in os.walk(src):
        dirs.sort()
        rel_dir = os.path.relpath(root, src)
        dest_dir = dest if rel_dir == "." else os.path.join(dest, rel_dir)
        for name in sorted(files):
            src_path = os.path.join(root, name)
            dest_path = os.path.join(dest_dir, name)
            result.planned.append(dest_path)
            if dry_run:
                print(f"  [dry-run] would copy {os.path.relpath(src_path, src)} -> {dest_path}")
                result.files += 1
                continue
            try:
                os.makedirs(dest_dir, exist_ok=True)
                shutil.copyfile(src_path, dest_path)
            except OSError as e:
                result.errors.append(CopyError(src_path, dest_path, str(e)))
                print(f"  [error] {src_path}: {e}")
                continue
            result.files += 1
            print(f"  [copied] {os.path.relpath(src_path, src)}")


def deploy_tree(source_root: str, mappings: List[DeployMapping], dry_run: bool = False) -> CopyResult:
    """
    Copy each mapping's source subfolder (relative to source_root) into its
    destination. In dry-run mode nothing on disk changes but the count of files
    that would be copied is still reported.
    """
    check_destination_roots(mappings)
    result = CopyResult()
    for m in mappings:
        src = os.path.join(source_root, m.source)
        if not os.path.isdir(src):
            print(f"[warn] no templates at {src}; skipping")
            continue
        print(f"[deploy] {m.source} -> {m.destination}")
        _copy_tree(src, m.destination, dry_run, result)
    return result

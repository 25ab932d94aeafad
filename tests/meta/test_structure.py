import pytest
from pathlib import Path

# Files skipped by the check
IGNORED_FILES = {"__init__.py"}

def test_src_files_are_documented():
    """
    Every Python module under src/ must be listed in specs/repo_structure.md.
    """
    # Layout: project_root/tests/meta/test_structure.py
    current_file = Path(__file__).resolve()
    project_root = current_file.parents[2]

    specs_path = project_root / "specs" / "repo_structure.md"
    src_path = project_root / "src"

    if not specs_path.exists():
        pytest.fail(f"Structure map missing: {specs_path} not found.")

    if not src_path.exists():
        pytest.fail(f"Source directory missing: {src_path} not found.")

    spec_content = specs_path.read_text(encoding="utf-8")

    undocumented_files = []
    for file_path in src_path.rglob("*.py"):
        if file_path.name in IGNORED_FILES:
            continue

        # POSIX form, e.g. "src/rl_simulator/training/loop.py"
        rel_path = file_path.relative_to(project_root).as_posix()

        # Module paths under src/ are matched in full; file names repeat across subpackages.
        if rel_path.removeprefix("src/") not in spec_content:
            undocumented_files.append(rel_path)

    if undocumented_files:
        error_msg = (
            f"\n\n[Documentation Drift Detected]\n"
            f"The following files exist in the codebase but are missing from '{specs_path.name}':\n"
            f"{'-' * 60}\n" +
            "\n".join(f"- {f}" for f in undocumented_files) +
            f"\n{'-' * 60}\n"
            f"Please update {specs_path.name} to include these files."
        )
        pytest.fail(error_msg)

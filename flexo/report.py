"""Operator report: one consolidated summary per run.

Messages produced by recipes are queued while packages are processed and
only rendered once the whole batch is done, so output from different
packages never interleaves with the per-package progress lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field

REVIEW_NOTICE = [
    "Some files may have been created or updated to configure your new packages.",
    "Please review, edit and commit them: these files are yours.",
]


@dataclass
class MessageBlock:
    package_name: str
    lines: list[str] = field(default_factory=list)


class DeferredMessageQueue:
    """Ordered operator messages, grouped per package."""

    def __init__(self):
        self._blocks: list[MessageBlock] = []

    def add(self, package_name: str, lines: list[str]) -> None:
        if not lines:
            return
        self._blocks.append(MessageBlock(package_name=package_name, lines=list(lines)))

    def extend(self, other: DeferredMessageQueue) -> None:
        for block in other.blocks:
            self.add(block.package_name, block.lines)

    @property
    def blocks(self) -> list[MessageBlock]:
        return list(self._blocks)

    def lines(self) -> list[str]:
        """Render the queue without clearing it.

        ``["", notice..., "", block 1..., "", block 2..., ""]``; an empty
        queue renders to nothing.
        """
        if not self._blocks:
            return []
        output = ["", *REVIEW_NOTICE]
        for block in self._blocks:
            output.append("")
            output.extend(block.lines)
        output.append("")
        return output

    def flush(self) -> list[str]:
        output = self.lines()
        self.clear()
        return output

    def clear(self) -> None:
        self._blocks.clear()

    def __len__(self) -> int:
        return len(self._blocks)


@dataclass
class PackageResult:
    """What happened to one package during a run."""

    package_name: str
    status: str  # configured | unconfigured | skipped | failed
    description: str = ""  # Provenance summary or error message


@dataclass
class RunReport:
    """Everything the operator sees at the end of a run."""

    session_id: str = ""
    results: list[PackageResult] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def add(self, package_name: str, status: str, description: str = "") -> None:
        self.results.append(PackageResult(package_name, status, description))

    def _with_status(self, status: str) -> list[PackageResult]:
        return [r for r in self.results if r.status == status]

    @property
    def configured(self) -> list[PackageResult]:
        return self._with_status("configured")

    @property
    def unconfigured(self) -> list[PackageResult]:
        return self._with_status("unconfigured")

    @property
    def skipped(self) -> list[PackageResult]:
        return self._with_status("skipped")

    @property
    def failures(self) -> list[PackageResult]:
        return self._with_status("failed")

    @property
    def recipe_count(self) -> int:
        return len(self.configured) + len(self.unconfigured)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0

    def header(self) -> str:
        count = self.recipe_count
        text = f"Recipe operations: {count} recipe{'' if count == 1 else 's'}"
        if self.session_id:
            text += f" ({self.session_id})"
        return text

    def summary_lines(self) -> list[str]:
        """Header plus one line per configured, unconfigured or failed package."""
        if not self.recipe_count and not self.failures:
            return []
        lines = [self.header()]
        for result in self.results:
            if result.status == "configured":
                lines.append(f"  - Configuring {result.description}")
            elif result.status == "unconfigured":
                lines.append(f"  - Unconfiguring {result.description}")
            elif result.status == "failed":
                lines.append(f"  - Failed {result.package_name}: {result.description}")
        lines.append("")
        return lines

    def lines(self) -> list[str]:
        return self.summary_lines() + self.messages

    def render(self) -> str:
        return "\n".join(self.lines())

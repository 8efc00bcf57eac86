"""Generation engine: resolve once, render every target, write the modules.

:func:`generate` is the programmatic entry point the ``generate`` command
wraps. The resolved :class:`~clientgen.ir.ModuleDescriptor` is immutable,
so backends share it read-only and run concurrently on a thread pool. Each
backend builds its own descriptors and naming policy; the only shared
state is the writer's per-path lock.

A failure in one target is recorded in its :class:`GenerationResult` and
never affects another target's output. Resolution errors are not caught:
without a complete IR no target can be generated.
"""

from __future__ import annotations

import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from clientgen.backends.registry import get_backend
from clientgen.backends.templates import load_template
from clientgen.exceptions import ClientgenError, WriteConflictError
from clientgen.ir import ModuleDescriptor
from clientgen.models import GeneratorConfig
from clientgen.parser.resolver import resolve
from clientgen.writer import WriteStatus, write_module

logger = logging.getLogger(__name__)


class ResultStatus(str, enum.Enum):
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of generating one target module."""

    target: str
    path: Optional[Path]
    status: ResultStatus
    error: Optional[ClientgenError] = None

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.WRITTEN, ResultStatus.UNCHANGED)

    @property
    def exit_code(self) -> int:
        return self.error.exit_code if self.error is not None else 0


def render_target(
    module: ModuleDescriptor,
    target: str,
    config: GeneratorConfig,
    output_dir: Path,
) -> GenerationResult:
    """Render and write the module for one *target*.

    Every :class:`~clientgen.exceptions.ClientgenError` is captured in the
    returned result. Validation happens before the writer runs, so a
    rejected module never reaches the filesystem.
    """
    path: Optional[Path] = None
    try:
        backend = get_backend(target)
        prefix = config.module_prefix or backend.default_module_prefix
        path = backend.output_path(output_dir, prefix)
        template_path = config.templates.get(backend.name)
        template = load_template(template_path) if template_path else None

        described = module.model_copy(update={"module_prefix": prefix})
        text = backend.render_module(described, template)
        status = write_module(path, text, overwrite=config.overwrite)
    except WriteConflictError as exc:
        logger.info("%s: %s", target, exc)
        return GenerationResult(target, path, ResultStatus.CONFLICT, exc)
    except ClientgenError as exc:
        logger.info("%s: generation failed: %s", target, exc)
        return GenerationResult(target, path, ResultStatus.FAILED, exc)

    result_status = ResultStatus.WRITTEN if status == WriteStatus.WRITTEN else ResultStatus.UNCHANGED
    return GenerationResult(target, path, result_status)


def generate(
    document: dict[str, Any],
    config: GeneratorConfig,
    output_dir: Union[str, Path, None] = None,
) -> list[GenerationResult]:
    """Generate one module per configured target.

    Args:
        document: A loaded OpenAPI document (see
            :func:`~clientgen.parser.loader.load_document`).
        config: Effective generator configuration.
        output_dir: Base directory for generated files; defaults to
            ``config.output_dir``.

    Returns:
        One :class:`GenerationResult` per target, in ``config.targets``
        order.

    Raises:
        ResolutionError: If the document cannot be resolved.
    """
    module = resolve(
        document,
        config.module_prefix or "Api",
        generation_timestamp=config.generation_timestamp,
        prune_unused=config.prune_unused,
    )
    base = Path(output_dir if output_dir is not None else config.output_dir)
    targets = list(dict.fromkeys(config.targets))

    logger.debug("Generating %s into %s", ", ".join(targets), base)
    workers = max(1, min(config.max_workers, len(targets)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(render_target, module, t, config, base) for t in targets]
        return [f.result() for f in futures]

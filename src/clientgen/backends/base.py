"""Abstract base class for language backends.

A backend turns a :class:`~clientgen.generator.descriptors.DescriptorSet`
into one source module of its target language. Every backend subclasses
:class:`LanguageBackend` and implements the abstract members; module
assembly, template rendering and descriptor construction are shared.

Backends hold no state. One instance may serve concurrent generation runs,
because everything mutable (the naming policy in particular) lives in the
descriptor set built per run.

Backends are registered as entry points in the ``clientgen.backends`` group
and resolved by :func:`~clientgen.backends.registry.get_backend`.

Example:
    Minimal backend skeleton::

        class KotlinBackend(LanguageBackend):
            @property
            def name(self) -> str:
                return "kotlin"

            def generate_types(self, descriptors):
                return tuple(Fragment(t.name, f"data class {t.name}()") for t in descriptors.declared)
            ...
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from clientgen.backends.templates import render_template
from clientgen.generator.descriptors import DescriptorSet, build_descriptors
from clientgen.generator.naming import NamingRules
from clientgen.generator.type_mapper import TypeSyntax
from clientgen.ir import ModuleDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fragment:
    """One named top-level construct of generated code."""

    name: str
    text: str


@dataclass(frozen=True)
class LanguageArtifact:
    """Everything one backend generated for a module, per template slot."""

    types: tuple[Fragment, ...]
    codecs: tuple[Fragment, ...]
    requests: tuple[Fragment, ...]
    error_types: tuple[Fragment, ...]

    def code(self) -> str:
        fragments = (*self.types, *self.error_types, *self.codecs, *self.requests)
        return "\n".join(f.text for f in fragments)


@dataclass(frozen=True)
class ImportRule:
    """An import line, emitted only when *usage* matches the generated code.

    A rule without *usage* is always emitted. Rules sharing a *group* are
    printed together; groups are separated by a blank line.
    """

    line: str
    usage: Optional[re.Pattern[str]] = None
    group: int = 0


@dataclass(frozen=True)
class ModuleContext:
    """Values for the module template placeholders, plus an optional override template."""

    module_name: str
    api_description: str
    generation_timestamp: str
    imports: str
    types: str
    codecs: str
    requests: str
    error_types: str
    template: Optional[str] = None

    def placeholders(self) -> dict[str, str]:
        return {
            "module_name": self.module_name,
            "api_description": self.api_description,
            "generation_timestamp": self.generation_timestamp,
            "imports": self.imports,
            "types": self.types,
            "codecs": self.codecs,
            "requests": self.requests,
            "error_types": self.error_types,
        }


class LanguageBackend(ABC):
    """Base class for all target-language backends.

    Subclasses implement the identity members (:attr:`name`,
    :attr:`file_extension`), the language tables (:attr:`naming_rules`,
    :attr:`type_syntax`, :attr:`default_template`), the four fragment
    generators, :meth:`validate_output` and :meth:`output_path`.

    The generation pipeline for one module is:

    1. :meth:`describe` -- build descriptors with a fresh naming policy.
    2. :meth:`generate_artifact` -- run the four fragment generators.
    3. :meth:`build_context` -- join fragments into template values.
    4. :meth:`generate_module` -- render the default or override template.
    5. :meth:`validate_output` -- reject text that is not a valid module.

    :meth:`render_module` runs all five.
    """

    fragment_separator = "\n\n\n"
    import_rules: tuple[ImportRule, ...] = ()

    # ------------------------------------------------------------------
    # Identity and language tables
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def name(self) -> str:
        """Target tag, e.g. ``"elm"``."""
        ...

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Extension of generated files, without the dot."""
        ...

    @property
    def default_module_prefix(self) -> str:
        return "Api"

    @property
    @abstractmethod
    def naming_rules(self) -> NamingRules:
        ...

    @property
    @abstractmethod
    def type_syntax(self) -> TypeSyntax:
        ...

    @property
    @abstractmethod
    def default_template(self) -> str:
        """Template used when no override is configured."""
        ...

    @abstractmethod
    def module_name(self, prefix: str) -> str:
        """Fully qualified name of the generated module for *prefix*."""
        ...

    # ------------------------------------------------------------------
    # Fragment generators
    # ------------------------------------------------------------------

    @abstractmethod
    def generate_types(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        ...

    @abstractmethod
    def generate_codecs(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        ...

    @abstractmethod
    def generate_requests(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        ...

    @abstractmethod
    def generate_error_types(self, descriptors: DescriptorSet) -> tuple[Fragment, ...]:
        ...

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @abstractmethod
    def validate_output(self, text: str) -> None:
        """Check generated module text.

        Raises:
            OutputValidationError: With the reason the text was rejected.
        """
        ...

    @abstractmethod
    def output_path(self, base: Path, prefix: str) -> Path:
        """Path of the generated module below *base*."""
        ...

    def escape_doc(self, text: str) -> str:
        """Make *text* safe to embed in the module's doc comment."""
        return text

    def collect_imports(self, artifact: LanguageArtifact) -> str:
        """Return the import block :attr:`import_rules` select for *artifact*."""
        code = artifact.code()
        groups: dict[int, list[str]] = {}
        for rule in self.import_rules:
            if rule.usage is None or rule.usage.search(code):
                groups.setdefault(rule.group, []).append(rule.line)
        return "\n\n".join("\n".join(groups[g]) for g in sorted(groups))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def describe(self, module: ModuleDescriptor) -> DescriptorSet:
        return build_descriptors(module, self.naming_rules, self.type_syntax)

    def generate_artifact(self, descriptors: DescriptorSet) -> LanguageArtifact:
        return LanguageArtifact(
            types=self.generate_types(descriptors),
            codecs=self.generate_codecs(descriptors),
            requests=self.generate_requests(descriptors),
            error_types=self.generate_error_types(descriptors),
        )

    def build_context(
        self,
        module: ModuleDescriptor,
        artifact: LanguageArtifact,
        template: Optional[str] = None,
    ) -> ModuleContext:
        def join(fragments: tuple[Fragment, ...]) -> str:
            return self.fragment_separator.join(f.text.rstrip("\n") for f in fragments)

        return ModuleContext(
            module_name=self.module_name(module.module_prefix),
            api_description=self.escape_doc(module.api_description),
            generation_timestamp=module.generation_timestamp,
            imports=self.collect_imports(artifact),
            types=join(artifact.types),
            codecs=join(artifact.codecs),
            requests=join(artifact.requests),
            error_types=join(artifact.error_types),
            template=template,
        )

    def generate_module(self, context: ModuleContext) -> str:
        """Render *context* through the override template, or the default one.

        Raises:
            TemplateError: If the template is invalid.
        """
        template = context.template if context.template is not None else self.default_template
        return render_template(template, context.placeholders())

    def render_module(self, module: ModuleDescriptor, template: Optional[str] = None) -> str:
        """Generate and validate the complete module text for *module*.

        Raises:
            TemplateError: If the template is invalid.
            OutputValidationError: If the rendered text is rejected.
        """
        descriptors = self.describe(module)
        context = self.build_context(module, self.generate_artifact(descriptors), template)
        text = self.generate_module(context)
        self.validate_output(text)
        logger.debug(
            "Rendered %s module %s (%d types, %d requests)",
            self.name,
            context.module_name,
            len(descriptors.declared),
            len(descriptors.requests),
        )
        return text

"""Metadata type knowledge needed to apply retrieved files."""

import os
from collections import defaultdict
from pathlib import Path

import structlog

from sourcepull.models.config import MetadataConfig
from sourcepull.models.results import FileProperty

log = structlog.stdlib.get_logger()


class MetadataRegistry:
    """Knows which types are composite bundles and which type wraps a manifest.

    A composite type is one logical member stored as a directory: a definition
    file (e.g. ``root/root.cmp``) plus sibling files (controller, styles).
    """

    def __init__(
        self,
        composite_types: dict[str, list[str]] | None = None,
        manifest_type: str = "Package",
    ):
        self._composite_types: dict[str, list[str]] = dict(composite_types or {})
        self.manifest_type: str = manifest_type

    @classmethod
    def from_config(cls, config: MetadataConfig) -> "MetadataRegistry":
        return cls(composite_types=config.composite_types, manifest_type=config.manifest_type)

    def is_composite(self, member_type: str) -> bool:
        return member_type in self._composite_types

    def is_manifest_wrapper(self, member_type: str) -> bool:
        return member_type == self.manifest_type

    def definition_suffixes(self, member_type: str) -> list[str]:
        return list(self._composite_types.get(member_type, []))

    def get_definition_properties(
        self, file_properties: list[FileProperty]
    ) -> dict[str, FileProperty]:
        """
        Map every composite sibling file to its bundle's definition properties.

        Computed over the whole result so siblings resolve to the same owner no
        matter their order, including when the definition file itself was not
        part of the batch.

        Args:
            file_properties: All file properties of one retrieval result

        Returns:
            Dictionary mapping sibling file_name to the definition FileProperty
        """
        bundles: dict[tuple[str, str], list[FileProperty]] = defaultdict(list)
        for prop in file_properties:
            if self.is_composite(prop.type):
                bundles[(prop.type, bundle_dir(prop.file_name))].append(prop)

        definitions: dict[str, FileProperty] = {}
        for (member_type, directory), siblings in bundles.items():
            definition = self._find_definition(member_type, directory, siblings)
            for sibling in siblings:
                definitions[sibling.file_name] = definition

        log.debug(
            "composite_definitions_resolved",
            bundles=len(bundles),
            files=len(definitions),
        )
        return definitions

    def _find_definition(
        self, member_type: str, bundle_dir: str, siblings: list[FileProperty]
    ) -> FileProperty:
        bundle_name = os.path.basename(bundle_dir)
        suffixes = self.definition_suffixes(member_type)
        by_basename = {os.path.basename(prop.file_name): prop for prop in siblings}

        for suffix in suffixes:
            definition = by_basename.get(f"{bundle_name}{suffix}")
            if definition is not None:
                return definition

        # Definition not retrieved in this batch
        default_suffix = suffixes[0] if suffixes else ""
        return FileProperty(
            type=member_type,
            full_name=bundle_name,
            file_name=os.path.join(bundle_dir, f"{bundle_name}{default_suffix}"),
        )


def bundle_dir(file_name: str) -> str:
    """
    Directory of the bundle a composite file belongs to.

    Bundle files live under ``{type dir}/{bundle}/``; files in nested
    sub-folders (``lwc/foo/utils/helper.js``) still belong to ``lwc/foo``.
    """
    parts = Path(file_name).parts
    if len(parts) > 2:
        return os.path.join(*parts[:2])
    return os.path.dirname(file_name)

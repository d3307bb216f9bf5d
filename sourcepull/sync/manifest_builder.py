"""Retrieval manifest (package.xml) creation."""

import xml.etree.ElementTree as ET
from collections import defaultdict
from pathlib import Path

import structlog

from sourcepull.models.members import Package
from sourcepull.models.results import RetrievalManifest

log = structlog.stdlib.get_logger()

MANIFEST_NAMESPACE = "http://soap.sforce.com/2006/04/metadata"
MANIFEST_FILENAME = "package.xml"


class ManifestBuilder:
    """Builds retrieval manifests for packages."""

    def __init__(self, default_api_version: str):
        """
        Initialize manifest builder.

        Args:
            default_api_version: API version used when the caller gives none
        """
        self._default_api_version: str = default_api_version

    def build(
        self,
        package: Package,
        output_dir: Path,
        api_version: str | None = None,
        manifest_override: Path | None = None,
    ) -> RetrievalManifest:
        """
        Build the retrieval manifest for a package.

        Args:
            package: Package whose members are retrieved
            output_dir: Directory the manifest file is written to
            api_version: Optional API version override
            manifest_override: Pre-built manifest used verbatim

        Returns:
            RetrievalManifest, or the empty sentinel if nothing is retrieved
        """
        if not package.has_retrievable_members:
            log.debug("manifest_empty", package=package.name)
            return RetrievalManifest.empty()

        if manifest_override is not None:
            log.info("manifest_override_used", package=package.name, file=str(manifest_override))
            return RetrievalManifest(
                file=Path(manifest_override),
                members=read_manifest(manifest_override),
                version=api_version,
            )

        version = api_version or self._default_api_version
        package.version = version

        members_by_type: dict[str, set[str]] = defaultdict(set)
        for member in package.members:
            members_by_type[member.type].add(member.full_name)

        ET.register_namespace("", MANIFEST_NAMESPACE)
        root = ET.Element(f"{{{MANIFEST_NAMESPACE}}}Package")
        for member_type in sorted(members_by_type):
            types_el = ET.SubElement(root, f"{{{MANIFEST_NAMESPACE}}}types")
            for full_name in sorted(members_by_type[member_type]):
                ET.SubElement(types_el, f"{{{MANIFEST_NAMESPACE}}}members").text = full_name
            ET.SubElement(types_el, f"{{{MANIFEST_NAMESPACE}}}name").text = member_type
        ET.SubElement(root, f"{{{MANIFEST_NAMESPACE}}}version").text = version

        tree = ET.ElementTree(root)
        ET.indent(tree, space="    ")

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        manifest_path = output_dir / MANIFEST_FILENAME
        tree.write(manifest_path, encoding="UTF-8", xml_declaration=True)

        members = [
            (member_type, full_name)
            for member_type in sorted(members_by_type)
            for full_name in sorted(members_by_type[member_type])
        ]
        log.info(
            "manifest_created",
            package=package.name,
            file=str(manifest_path),
            member_count=len(members),
            version=version,
        )
        return RetrievalManifest(file=manifest_path, version=version, members=members)


def read_manifest(path: Path) -> list[tuple[str, str]]:
    """
    Parse a manifest file into (type, full_name) pairs.

    Args:
        path: Path to a package.xml manifest

    Returns:
        Members listed in the manifest, in document order
    """
    root = ET.parse(path).getroot()
    members: list[tuple[str, str]] = []
    for types_el in root.iter(f"{{{MANIFEST_NAMESPACE}}}types"):
        name_el = types_el.find(f"{{{MANIFEST_NAMESPACE}}}name")
        if name_el is None or not name_el.text:
            continue
        for member_el in types_el.findall(f"{{{MANIFEST_NAMESPACE}}}members"):
            if member_el.text:
                members.append((name_el.text.strip(), member_el.text.strip()))
    return members

"""Document model of a master changelog.

A master changelog is read into one ordered list of include entries and
other top-level elements (properties, preconditions, inline changesets),
and rendered back to XML in the same order. The temporary master used to roll back a single file is the real
master with one more include appended.
"""

import copy
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from src.changelog_sync import files
from src.changelog_sync.exceptions import PersistenceError

logger = logging.getLogger(__name__)

ROOT_ELEMENT = "databaseChangeLog"
INCLUDE_ELEMENTS = ("include", "includeAll")
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("xsi", XSI_NAMESPACE)


def _split_tag(tag: str):
    if tag.startswith("{"):
        ns, _, local = tag[1:].partition("}")
        return ns, local
    return "", tag


@dataclass
class Include:
    """An ``<include file=...>`` or ``<includeAll path=...>`` entry."""

    path: str
    kind: str = "include"
    attributes: Dict[str, str] = field(default_factory=dict)

    def to_attrib(self) -> Dict[str, str]:
        key = "file" if self.kind == "include" else "path"
        attrib = {key: self.path}
        attrib.update({k: v for k, v in self.attributes.items() if k != key})
        return attrib


@dataclass
class MasterChangelog:
    """Top-level entries of a master changelog, in document order."""

    namespace: str = ""
    root_attributes: Dict[str, str] = field(default_factory=dict)
    entries: List[Union[Include, ET.Element]] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str, source: Optional[str] = None) -> "MasterChangelog":
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise PersistenceError(f"Cannot parse master changelog: {e}", filename=source) from e

        namespace, local = _split_tag(root.tag)
        if local != ROOT_ELEMENT:
            raise PersistenceError(
                f"Expected <{ROOT_ELEMENT}> root element, found <{local}>", filename=source
            )

        master = cls(namespace=namespace, root_attributes=dict(root.attrib))
        for child in root:
            if not isinstance(child.tag, str):
                continue  # comments, processing instructions
            _, child_local = _split_tag(child.tag)
            if child_local in INCLUDE_ELEMENTS:
                key = "file" if child_local == "include" else "path"
                attrib = dict(child.attrib)
                path = attrib.pop(key, None)
                if path is None:
                    raise PersistenceError(
                        f"<{child_local}> without a {key} attribute", filename=source
                    )
                master.entries.append(Include(path=path, kind=child_local, attributes=attrib))
            else:
                master.entries.append(copy.deepcopy(child))
        return master

    @classmethod
    def load(cls, path: Path) -> "MasterChangelog":
        return cls.parse(files.read_text(path), source=str(path))

    @property
    def includes(self) -> List[Include]:
        return [e for e in self.entries if isinstance(e, Include)]

    @property
    def other(self) -> List[ET.Element]:
        return [e for e in self.entries if not isinstance(e, Include)]

    @property
    def included_files(self) -> List[str]:
        return [i.path for i in self.includes if i.kind == "include"]

    def _qname(self, local: str) -> str:
        return f"{{{self.namespace}}}{local}" if self.namespace else local

    def with_include(self, filename: str) -> "MasterChangelog":
        """Copy of this master with one more include appended last."""
        return MasterChangelog(
            namespace=self.namespace,
            root_attributes=dict(self.root_attributes),
            entries=[copy.deepcopy(e) for e in self.entries] + [Include(path=filename)],
        )

    def render(self) -> str:
        if self.namespace:
            ET.register_namespace("", self.namespace)
        root = ET.Element(self._qname(ROOT_ELEMENT), dict(self.root_attributes))
        for entry in self.entries:
            if isinstance(entry, Include):
                ET.SubElement(root, self._qname(entry.kind), entry.to_attrib())
            else:
                root.append(copy.deepcopy(entry))
        ET.indent(root, space="    ")
        body = ET.tostring(root, encoding="unicode")
        return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def write_temp_master(master_file: Path, temp_master_file: Path, filename: str) -> None:
    """Render the real master plus an include of ``filename`` to the temp path."""
    master = MasterChangelog.load(master_file).with_include(filename)
    files.write_new(temp_master_file, master.render())
    logger.info("Created temporary master %s including %s", temp_master_file, filename)

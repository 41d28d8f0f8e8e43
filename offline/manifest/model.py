# offline/manifest/model.py
from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError
from ruamel.yaml.scalarstring import ScalarString

from offline.core.errors import MalformedManifestError, UnsupportedShapeError
from offline.manifest.mounts import MountSpec

SERVICES_KEY = "services"
IMAGE_KEY = "image"
VOLUMES_KEY = "volumes"

# Mount entries are either parsed short-syntax specs or opaque nodes
# (long-form mappings, numbers, ...) that are carried through untouched.
MountEntry = Union[MountSpec, Any]

Position = Tuple[int, int]

_ANCHOR = re.compile(r"&[^\s,\[\]{}]+\s+")
_PLAIN_SAFE = re.compile(r"[A-Za-z0-9_./~$][^\s#,\[\]{}\"']*")
_PLAIN_RESOLVED = re.compile(
    r"(?i:true|false|yes|no|on|off|null|~)|[-+]?(\d[\d_]*)?\.?\d+([eE][-+]?\d+)?"
)


def _yaml(indent: Tuple[int, int, int] = (2, 2, 0), explicit_start: bool = False) -> YAML:
    yaml_rt = YAML(typ="rt")
    yaml_rt.preserve_quotes = True
    yaml_rt.width = 4096
    mapping, sequence, offset = indent
    yaml_rt.indent(mapping=mapping, sequence=sequence, offset=offset)
    yaml_rt.explicit_start = explicit_start
    return yaml_rt


def _like(original: object, value: str) -> str:
    # keep the original quoting style of the scalar we replace
    if isinstance(original, ScalarString):
        return type(original)(value)
    return value


def _is_flow(node: object) -> bool:
    fa = getattr(node, "fa", None)
    return bool(fa is not None and fa.flow_style())


def _value_position(node: CommentedMap, key: str) -> Optional[Position]:
    # keys pulled in through `<<:` merges have no position of their own
    try:
        line, column = node.lc.value(key)
    except (AttributeError, KeyError, TypeError):
        return None
    return line, column


def _item_position(seq: Any, index: int) -> Optional[Position]:
    try:
        line, column = seq.lc.item(index)
    except (AttributeError, KeyError, TypeError):
        return None
    return line, column


def _closing_quote(text: str, quote: str) -> Optional[int]:
    i = 1
    while i < len(text):
        ch = text[i]
        if quote == '"' and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if quote == "'" and text[i + 1 : i + 2] == "'":
                i += 2
                continue
            return i
        i += 1
    return None


def _scalar_span(line: str, column: int, value: str, flow: bool) -> Optional[Tuple[int, int, str]]:
    """
    (start, end, style) of the scalar `value` written at `column` of `line`,
    style being '"', "'" or "" for plain. None when the text there does not
    spell exactly `value` on this one line.
    """
    anchor = _ANCHOR.match(line, column)
    if anchor:
        column = anchor.end()
    rest = line[column:]

    if rest[:1] in ('"', "'"):
        quote = rest[0]
        end = _closing_quote(rest, quote)
        if end is None:
            return None
        inner = rest[1:end]
        if quote == '"':
            decoded = re.sub(r"\\(.)", r"\1", inner)
        else:
            decoded = inner.replace("''", "'")
        if decoded != value:
            return None
        return column, column + end + 1, quote

    if not value or not rest.startswith(value):
        return None
    tail = rest[len(value) :]
    if flow:
        nxt = tail.lstrip()
        if nxt and nxt[0] not in ",]}#":
            return None
    elif tail.strip() and not (tail[:1].isspace() and tail.lstrip().startswith("#")):
        return None
    return column, column + len(value), ""


def _render(value: str, style: str) -> str:
    if style == "'":
        return "'" + value.replace("'", "''") + "'"
    if style == "" and _PLAIN_SAFE.fullmatch(value) and not value.endswith(":"):
        if not _PLAIN_RESOLVED.fullmatch(value):
            return value
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass(frozen=True)
class ScalarEdit:
    line: int
    column: int
    before: str
    after: str
    flow: bool = False


class SourcePatch:
    """
    Scalar replacements against the text a Manifest was parsed from.

    Serializing splices only the edited scalars into that text, so every
    other byte (flow lists, anchors, folded blocks, per-list indentation)
    stays as written. An edit whose position is unknown, or whose text no
    longer spells the old value, makes `apply()` give up and return None.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.edits: Dict[Position, ScalarEdit] = {}
        self.unplaced = False

    def record(
        self, position: Optional[Position], before: object, after: str, *, flow: bool = False
    ) -> None:
        if position is None or before is None:
            self.unplaced = True
            return
        previous = self.edits.get(position)
        original = previous.before if previous is not None else str(before)
        self.edits[position] = ScalarEdit(position[0], position[1], original, after, flow)

    def apply(self) -> Optional[str]:
        if self.unplaced:
            return None
        if not self.edits:
            return self.text

        lines = self.text.split("\n")
        # right to left, so earlier columns on a shared line stay valid
        for edit in sorted(self.edits.values(), key=lambda e: (e.line, e.column), reverse=True):
            if edit.line >= len(lines):
                return None
            line = lines[edit.line]
            span = _scalar_span(line, edit.column, edit.before, edit.flow)
            if span is None:
                return None
            start, end, style = span
            lines[edit.line] = line[:start] + _render(edit.after, style) + line[end:]
        return "\n".join(lines)


class ServiceDefinition:
    """
    One entry under `services:`. Typed access to `image` and `volumes`;
    everything else stays in the underlying node untouched.
    """

    def __init__(
        self, name: str, node: CommentedMap, patch: Optional[SourcePatch] = None
    ) -> None:
        self.name = name
        self.node = node
        self.patch = patch

    @property
    def image(self) -> str:
        raw = self.node.get(IMAGE_KEY)
        return "" if raw is None else str(raw).strip()

    def set_image(self, value: str) -> None:
        current = self.node.get(IMAGE_KEY)
        if self.patch is not None:
            self.patch.record(
                _value_position(self.node, IMAGE_KEY), current, value, flow=_is_flow(self.node)
            )
        self.node[IMAGE_KEY] = _like(current, value)

    def mount_entries(self) -> List[MountEntry]:
        raw = self.node.get(VOLUMES_KEY)
        if raw is None:
            return []
        return [MountSpec.parse(v) if isinstance(v, str) else v for v in raw]

    def set_mount(self, index: int, mount: MountSpec) -> None:
        seq = self.node[VOLUMES_KEY]
        if self.patch is not None:
            self.patch.record(
                _item_position(seq, index), seq[index], str(mount), flow=_is_flow(seq)
            )
        seq[index] = _like(seq[index], str(mount))

    def fields(self) -> Dict[str, Any]:
        return {
            str(k): v
            for k, v in self.node.items()
            if k not in (IMAGE_KEY, VOLUMES_KEY)
        }

    def __repr__(self) -> str:
        return f"ServiceDefinition(name={self.name!r}, image={self.image!r})"


@dataclass
class Manifest:
    document: CommentedMap
    services: Dict[str, ServiceDefinition] = field(default_factory=dict)
    indent: Tuple[int, int, int] = (2, 2, 0)
    explicit_start: bool = False
    patch: Optional[SourcePatch] = None

    def __iter__(self) -> Iterator[ServiceDefinition]:
        return iter(self.services.values())

    def __len__(self) -> int:
        return len(self.services)

    def service(self, name: str) -> Optional[ServiceDefinition]:
        return self.services.get(name)

    @property
    def document_fields(self) -> Dict[str, Any]:
        """Top-level keys other than services (version, networks, volumes, ...)."""
        return {str(k): v for k, v in self.document.items() if k != SERVICES_KEY}

    def copy(self) -> "Manifest":
        return parse(serialize(self))


def _guess_indent(text: str) -> Tuple[int, int, int]:
    """
    (mapping, sequence, offset) indentation of the source, used when the
    document has to be dumped as a whole. Compose files commonly nest lists
    two spaces under their key:

      volumes:
        - ./data:/data     -> (2, 4, 2)
    """
    mapping: Optional[int] = None
    sequence: Optional[int] = None
    offset: Optional[int] = None
    parent: Optional[int] = None

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lead = len(line) - len(line.lstrip(" "))

        if parent is not None:
            if stripped.startswith("- ") and offset is None and lead >= parent:
                offset = lead - parent
                content = lead + 1 + (len(stripped) - 1 - len(stripped[1:].lstrip(" ")))
                sequence = content - parent
            elif not stripped.startswith("- ") and mapping is None and lead > parent:
                mapping = lead - parent

        parent = lead if stripped.endswith(":") and not stripped.startswith("- ") else None
        if mapping is not None and offset is not None:
            break

    mapping = mapping or 2
    if offset is None or sequence is None or sequence < offset + 2:
        return (mapping, mapping, 0) if mapping >= 2 else (2, 2, 0)
    return (mapping, sequence, offset)


def _build_services(
    document: CommentedMap, patch: Optional[SourcePatch] = None
) -> Dict[str, ServiceDefinition]:
    if SERVICES_KEY not in document:
        raise MalformedManifestError("Compose document has no 'services' section")

    services_node = document[SERVICES_KEY]
    if services_node is None:
        # a bare `services:` declares no services
        return {}
    if not isinstance(services_node, CommentedMap):
        raise UnsupportedShapeError(
            f"'services' must be a mapping, got {type(services_node).__name__}"
        )

    services: Dict[str, ServiceDefinition] = {}
    for name, node in services_node.items():
        if not isinstance(node, CommentedMap):
            raise UnsupportedShapeError(
                f"Service {name!r} must be a mapping, got {type(node).__name__}"
            )

        image = node.get(IMAGE_KEY)
        if image is not None and not isinstance(image, str):
            raise UnsupportedShapeError(
                f"Service {name!r}: 'image' must be a string, got {type(image).__name__}"
            )

        volumes = node.get(VOLUMES_KEY)
        if volumes is not None and not isinstance(volumes, list):
            raise UnsupportedShapeError(
                f"Service {name!r}: 'volumes' must be a list, got {type(volumes).__name__}"
            )

        services[str(name)] = ServiceDefinition(str(name), node, patch)
    return services


def parse(document: Union[str, bytes]) -> Manifest:
    """
    Parse a compose document into a Manifest.

    Raises MalformedManifestError for undecodable bytes, invalid YAML or a
    missing services section, UnsupportedShapeError for services/image/volumes
    of an unexpected type.
    """
    if isinstance(document, bytes):
        try:
            text = document.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedManifestError(f"Compose document is not valid UTF-8: {exc}") from exc
    else:
        text = str(document)

    indent = _guess_indent(text)
    explicit_start = text.lstrip().startswith("---")

    try:
        data = _yaml(indent).load(text)
    except YAMLError as exc:
        raise MalformedManifestError(f"Compose document is not valid YAML: {exc}") from exc

    if not isinstance(data, CommentedMap):
        raise MalformedManifestError(
            f"Expected a mapping at top-level, got {type(data).__name__}"
        )

    patch = SourcePatch(text)
    return Manifest(
        document=data,
        services=_build_services(data, patch),
        indent=indent,
        explicit_start=explicit_start,
        patch=patch,
    )


def serialize(manifest: Manifest) -> str:
    """
    The source text with the edited scalars spliced in, or a full dump of
    the document tree when an edit cannot be placed in the source.
    """
    if manifest.patch is not None:
        text = manifest.patch.apply()
        if text is not None:
            return text

    buf = io.StringIO()
    _yaml(manifest.indent, manifest.explicit_start).dump(manifest.document, buf)
    return buf.getvalue()

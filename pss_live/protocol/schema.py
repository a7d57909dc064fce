"""
Protocol schema documents.

The scoring vendor describes each stream in a plain-text section:

    # POINTS
    # Stream broadcasted when points are added.

    MAIN_STREAMS:
      pt1;  Main stream for athlete 1
      pt2;  Main stream for athlete 2

    REQUIRED_ARGUMENTS:
      1;  Punch point

    EXAMPLES:
      pt1;1;

Sections are separated by ``---``. This module parses those documents and
checks them against the tag registry and decoder, so a new vendor
revision can be vetted before a competition.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..core.errors import DecodeError
from .decoder import StreamDecoder
from .registry import lookup

DEFAULT_SCHEMA_PATH = Path(__file__).parent / 'pss_schema.txt'

_SECTION_KEYS = {
    'MAIN_STREAMS:': 'main_streams',
    'REQUIRED_ARGUMENTS:': 'required_arguments',
    'OPTIONAL_ARGUMENTS:': 'optional_arguments',
    'EXAMPLES:': 'examples',
}


@dataclass
class ProtocolDefinition:
    """One schema section."""
    title: str = ''
    main_streams: List[str] = field(default_factory=list)
    required_arguments: List[str] = field(default_factory=list)
    optional_arguments: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)


def parse_protocol_section(section: str) -> ProtocolDefinition:
    """Parse one ``---`` delimited section."""
    definition = ProtocolDefinition()
    current: Optional[str] = None

    for line in section.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith('#'):
            if not definition.title:
                definition.title = line.lstrip('#').strip()
            continue

        if line in _SECTION_KEYS:
            current = _SECTION_KEYS[line]
        elif current == 'examples':
            definition.examples.append(line)
        elif current is not None:
            # Entries keep the text before the first ';'
            getattr(definition, current).append(line.split(';', 1)[0].strip())

    return definition


def parse_protocol_definitions(content: str) -> Dict[str, ProtocolDefinition]:
    """
    Parse a whole schema document.

    Returns:
        Definitions keyed by their first main stream
    """
    definitions = {}
    for section in content.split('---'):
        definition = parse_protocol_section(section)
        if definition.main_streams:
            definitions[definition.main_streams[0]] = definition
    return definitions


def load_protocol_definitions(path: Union[str, Path] = DEFAULT_SCHEMA_PATH) -> Dict[str, ProtocolDefinition]:
    """Load and parse a schema file (bundled schema by default)."""
    return parse_protocol_definitions(Path(path).read_text(encoding='ascii'))


@dataclass
class SchemaReport:
    """Result of checking a schema against the decoder."""
    definitions: int = 0
    examples_checked: int = 0
    missing_streams: List[str] = field(default_factory=list)
    failed_examples: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing_streams and not self.failed_examples

    def to_dict(self) -> dict:
        return {
            'ok': self.ok,
            'definitions': self.definitions,
            'examples_checked': self.examples_checked,
            'missing_streams': list(self.missing_streams),
            'failed_examples': [
                {'example': example, 'error': error}
                for example, error in self.failed_examples
            ],
        }


def verify_schema(
    definitions: Dict[str, ProtocolDefinition],
    decoder: Optional[StreamDecoder] = None,
) -> SchemaReport:
    """
    Check every main stream is registered and every example decodes.
    """
    decoder = decoder or StreamDecoder()
    report = SchemaReport(definitions=len(definitions))

    for definition in definitions.values():
        for stream in definition.main_streams:
            if lookup(stream) is None and stream not in report.missing_streams:
                report.missing_streams.append(stream)

        for example in definition.examples:
            report.examples_checked += 1
            for result in decoder.decode_payload(example):
                if isinstance(result, DecodeError):
                    report.failed_examples.append((example, result.message))
                    break

    return report

"""Line-preserving edits of the Docker Compose service-stack definition."""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

IMAGE_LINE_PATTERN = re.compile(
    r"^(?P<prefix>\s*(?:-\s+)?image\s*:\s*)"
    r"(?P<quote>[\"']?)(?P<reference>[^\s\"'#]+)(?P=quote)"
    r"(?P<suffix>.*)$"
)


def split_image_reference(reference: str) -> Tuple[str, Optional[str]]:
    """Splits ``registry/repo:tag@digest`` into repository and tag."""
    name = reference.split("@", 1)[0]
    last_segment_start = name.rfind("/") + 1
    colon = name.find(":", last_segment_start)
    if colon == -1:
        return name, None
    return name[:colon], name[colon + 1 :]


@dataclass(frozen=True)
class ComposeLine:
    text: str
    ending: str

    @classmethod
    def parse(cls, raw: str) -> "ComposeLine":
        body = raw.rstrip("\r\n")
        return cls(text=body, ending=raw[len(body) :])

    @property
    def image_reference(self) -> Optional[str]:
        match = IMAGE_LINE_PATTERN.match(self.text)
        return match.group("reference") if match else None

    def with_image_reference(self, reference: str) -> "ComposeLine":
        match = IMAGE_LINE_PATTERN.match(self.text)
        if not match:
            return self
        text = (
            f"{match.group('prefix')}{match.group('quote')}{reference}"
            f"{match.group('quote')}{match.group('suffix')}"
        )
        return ComposeLine(text=text, ending=self.ending)

    def render(self) -> str:
        return self.text + self.ending


@dataclass(frozen=True)
class ComposeDefinition:
    lines: Tuple[ComposeLine, ...]

    @classmethod
    def parse(cls, content: str) -> "ComposeDefinition":
        return cls(tuple(ComposeLine.parse(raw) for raw in content.splitlines(keepends=True)))

    def render(self) -> str:
        return "".join(line.render() for line in self.lines)

    def image_references(self) -> List[str]:
        return [line.image_reference for line in self.lines if line.image_reference]

    def references_for(self, image_name: str) -> List[str]:
        return [
            reference
            for reference in self.image_references()
            if split_image_reference(reference)[0] == image_name
        ]

    def with_image_tag(self, image_name: str, tag: str) -> "ComposeDefinition":
        new_reference = f"{image_name}:{tag}"
        updated = []
        for line in self.lines:
            reference = line.image_reference
            if reference and split_image_reference(reference)[0] == image_name:
                line = line.with_image_reference(new_reference)
            updated.append(line)
        return ComposeDefinition(tuple(updated))


def rewrite_image_tag(content: str, image_name: str, tag: str) -> Tuple[str, List[str]]:
    """Points every image line for ``image_name`` at ``tag``.

    Returns the new content and the references that were replaced. All other
    lines, including line endings, are returned unchanged.
    """
    definition = ComposeDefinition.parse(content)
    previous = definition.references_for(image_name)
    return definition.with_image_tag(image_name, tag).render(), previous

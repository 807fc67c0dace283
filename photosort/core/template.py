"""Format string engine for PhotoSort.

A format string such as "{type}{_:date}{-:name}{-:dup}.{ext}" is compiled
once into a FormatSpec. Rendering is done in two passes: render_skeleton()
expands everything except the {dup} placeholders, and Skeleton.fill(dup)
fills those holes once the duplicate counter is known.

Placeholder syntax: {[label:]keyword[?modifier]}. A label is emitted in
front of the expansion only when the expansion is not empty.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple, Union

from photosort.core.config import DEFAULT_DATE_FORMAT
from photosort.core.dates import clean_image_name
from photosort.core.errors import TemplateSyntaxError
from photosort.core.models import BracketInfo, DateCandidate, MediaType

logger = logging.getLogger(__name__)

NODATE = "NODATE"

_KEYWORDS = {
    "name": "name",
    "n": "name",
    "original_name": "original_name",
    "on": "original_name",
    "date": "date",
    "d": "date",
    "dup": "dup",
    "duplicate": "dup",
    "type": "type",
    "ftype": "type",
    "t": "type",
    "ext": "ext",
    "extension": "ext",
    "bracket": "bracket",
    "bracketed": "bracket",
    "b": "bracket",
}

_EXT_MODES = {
    "upper": "upper", "up": "upper", "uppercase": "upper", "u": "upper",
    "lower": "lower", "low": "lower", "lowercase": "lower", "l": "lower",
    "copy": "copy", "normal": "copy", "standard": "copy", "pass": "copy", "p": "copy",
}

_BRACKET_MODES = ("seq", "num", "len", "first", "last")

_DUP_WIDTH_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    """A parsed {…} placeholder.

    keyword is the canonical keyword (aliases resolved); modifier is the
    normalised text after '?' (None when absent).
    """
    keyword: str
    modifier: Optional[str] = None
    label: Optional[str] = None
    raw: str = ""

    @property
    def is_dup(self) -> bool:
        return self.keyword == "dup"


Node = Union[Literal, Placeholder]


@dataclass(frozen=True)
class FormatSpec:
    """A compiled format string. Immutable, shared by all workers."""
    source: str
    nodes: Tuple[Node, ...]

    def _has(self, keyword: str) -> bool:
        return any(isinstance(n, Placeholder) and n.keyword == keyword for n in self.nodes)

    @property
    def has_dup(self) -> bool:
        return self._has("dup")

    @property
    def has_extension(self) -> bool:
        return self._has("ext")

    @property
    def uses_bracket(self) -> bool:
        return self._has("bracket")

    def __str__(self) -> str:
        return self.source


@dataclass(frozen=True)
class RenderContext:
    """Everything a placeholder may need for one file (except dup)."""
    date: Optional[DateCandidate]
    name: str
    original_name: str
    extension: str
    media_type: MediaType = MediaType.IMAGE
    date_format: str = DEFAULT_DATE_FORMAT
    bracket: Optional[BracketInfo] = None


@dataclass(frozen=True)
class Skeleton:
    """A rendered format with {dup} placeholders left as holes.

    parts holds plain strings and the dup Placeholders, in order. suffix is
    the extension appended when the format has no {ext} placeholder.
    """
    parts: Tuple[Union[str, Placeholder], ...]
    suffix: str = ""

    @property
    def key(self) -> Tuple:
        """Identity of the skeleton; equal keys share one dup numbering."""
        return (self.parts, self.suffix)

    @property
    def has_dup_hole(self) -> bool:
        return any(isinstance(p, Placeholder) for p in self.parts)

    def fill(self, dup: int = 0) -> str:
        """Render the final relative path for a duplicate counter.

        Returns:
            "/"-separated relative path with sanitised components. Empty
            if nothing remains after sanitising.
        """
        text = "".join(
            _with_label(part.label, _format_dup(part.modifier, dup))
            if isinstance(part, Placeholder) else part
            for part in self.parts
        )
        components = sanitize_components(text)
        if components and self.suffix:
            components[-1] += self.suffix
        return "/".join(components)


def sanitize_components(text: str) -> list:
    """Split a rendered path on '/' and drop unsafe components.

    Backslashes are removed from every component; empty, '.' and '..'
    components are dropped so a result can never leave the target root.
    """
    components = []
    for component in text.split("/"):
        component = component.replace("\\", "")
        if component in ("", ".", ".."):
            continue
        components.append(component)
    return components


def _with_label(label: Optional[str], value: str) -> str:
    if label is not None and value:
        return label + value
    return value


def _format_dup(modifier: Optional[str], dup: int) -> str:
    if modifier is None:
        return str(dup) if dup else ""
    if modifier == "always":
        return str(dup)
    return str(dup).zfill(int(modifier))


def _parse_placeholder(body: str, template: str, position: int) -> Placeholder:
    if not body:
        raise TemplateSyntaxError("Empty placeholder", template, position)

    label = None
    colon = body.find(":")
    question = body.find("?")
    if colon != -1 and (question == -1 or colon < question):
        label, body = body[:colon], body[colon + 1:]

    if "?" in body:
        keyword_text, modifier = body.split("?", 1)
    else:
        keyword_text, modifier = body, None

    keyword = _KEYWORDS.get(keyword_text)
    if keyword is None:
        raise TemplateSyntaxError(f"Unknown placeholder {keyword_text!r}", template, position)

    modifier = _check_modifier(keyword, modifier, template, position)
    return Placeholder(keyword=keyword, modifier=modifier, label=label, raw="{" + body + "}")


def _check_modifier(keyword: str, modifier: Optional[str], template: str, position: int) -> Optional[str]:
    """Validate and normalise a modifier for its keyword."""
    if modifier is None:
        return None

    def bad(hint: str):
        return TemplateSyntaxError(
            f"Unknown modifier {modifier!r} for {{{keyword}}} ({hint})", template, position
        )

    if keyword in ("name", "original_name"):
        raise bad("no modifier allowed")
    if keyword == "date":
        if not modifier:
            raise bad("expected a strftime pattern")
        return modifier
    if keyword == "dup":
        if modifier == "always" or _DUP_WIDTH_RE.match(modifier):
            return modifier
        raise bad("possible values are always or a zero-padding width")
    if keyword == "type":
        if modifier.count(",") > 1:
            raise bad("expected image,video labels")
        return modifier
    if keyword == "ext":
        mode = _EXT_MODES.get(modifier.lower())
        if mode is None:
            raise bad("possible values are upper, lower, copy")
        return mode
    if keyword == "bracket":
        if modifier not in _BRACKET_MODES:
            raise bad("possible values are " + ", ".join(_BRACKET_MODES))
        return modifier
    return modifier


@lru_cache(maxsize=64)
def compile_format(template: str) -> FormatSpec:
    """Compile a format string.

    Args:
        template: Format string, e.g. "{type}{_:date}{-:name}{-:dup}.{ext}".

    Returns:
        Immutable FormatSpec.

    Raises:
        TemplateSyntaxError: On unbalanced braces, empty placeholders,
            unknown keywords or unknown modifiers.
    """
    nodes = []
    literal_start = 0
    i = 0
    while i < len(template):
        char = template[i]
        if char == "}":
            raise TemplateSyntaxError("Unbalanced '}'", template, i)
        if char != "{":
            i += 1
            continue

        end = template.find("}", i + 1)
        nested = template.find("{", i + 1)
        if end == -1:
            raise TemplateSyntaxError("Unclosed '{'", template, i)
        if nested != -1 and nested < end:
            raise TemplateSyntaxError("Nested '{'", template, nested)

        if literal_start < i:
            nodes.append(Literal(template[literal_start:i]))
        nodes.append(_parse_placeholder(template[i + 1:end], template, i))
        i = end + 1
        literal_start = i

    if literal_start < len(template):
        nodes.append(Literal(template[literal_start:]))

    logger.debug(f"Compiled format {template!r} into {len(nodes)} nodes")
    return FormatSpec(source=template, nodes=tuple(nodes))


def _expand(placeholder: Placeholder, ctx: RenderContext) -> str:
    keyword = placeholder.keyword
    modifier = placeholder.modifier

    if keyword == "name":
        return ctx.name
    if keyword == "original_name":
        return ctx.original_name
    if keyword == "date":
        if ctx.date is None:
            return NODATE
        return ctx.date.value.strftime(modifier or ctx.date_format)
    if keyword == "type":
        return _expand_type(modifier, ctx.media_type)
    if keyword == "ext":
        if modifier == "upper":
            return ctx.extension.upper()
        if modifier == "lower":
            return ctx.extension.lower()
        return ctx.extension
    if keyword == "bracket":
        return _expand_bracket(modifier, ctx.bracket)
    raise ValueError(f"Placeholder {placeholder.raw} cannot be expanded here")


def _expand_type(modifier: Optional[str], media_type: MediaType) -> str:
    image_label, video_label = "IMG", "MOV"
    if modifier is not None:
        custom_image, _, custom_video = modifier.partition(",")
        image_label = custom_image or image_label
        video_label = custom_video or video_label
    if media_type is MediaType.IMAGE:
        return image_label
    if media_type is MediaType.VIDEO:
        return video_label
    return ""


def _expand_bracket(modifier: Optional[str], info: Optional[BracketInfo]) -> str:
    if info is None:
        logger.warning("Tried to format a non bracketed file using the {bracket} placeholder")
        return ""
    if modifier in (None, "seq"):
        return str(info.sequence_number)
    if modifier == "num":
        return str(info.group_index)
    if modifier == "len":
        return str(info.sequence_length)
    if modifier == "first":
        return clean_image_name(info.first_name)
    return clean_image_name(info.last_name)


def render_skeleton(spec: FormatSpec, ctx: RenderContext) -> Skeleton:
    """First pass: expand every placeholder except {dup}.

    When the format has no {ext} placeholder and the file has an
    extension, ".<extension>" is appended to the last path component.
    """
    parts = []
    for node in spec.nodes:
        if isinstance(node, Literal):
            value = node.text
        elif node.is_dup:
            parts.append(node)
            continue
        else:
            value = _with_label(node.label, _expand(node, ctx))

        if parts and isinstance(parts[-1], str):
            parts[-1] += value
        else:
            parts.append(value)

    suffix = ""
    if not spec.has_extension and ctx.extension:
        suffix = "." + ctx.extension
    return Skeleton(parts=tuple(parts), suffix=suffix)


def render(spec: FormatSpec, ctx: RenderContext, dup: int = 0) -> str:
    """Render a format in one go (both passes)."""
    return render_skeleton(spec, ctx).fill(dup)

"""Conversion of card text from note markdown to the HTML Anki stores."""
import re
from typing import Callable, Iterable, List, Optional
from urllib.parse import quote, unquote

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter
from markdown_it import MarkdownIt
from mdit_py_plugins.tasklists import tasklists_plugin

from notes_to_anki.utils import escape_markdown

IMAGE_EXTENSIONS = r"(?:png|jpe?g|gif|bmp|svg|tiff|webp|avif)"
AUDIO_EXTENSIONS = r"(?:mp3|webm|wav|m4a|ogg|3gp|flac)"

WIKI_IMAGE_RE = re.compile(
    r"!\[\[([^\[\]|\n]+\." + IMAGE_EXTENSIONS + r")(?:\|(\d+)(?:x(\d+))?)?\]\]", re.IGNORECASE
)
MARKDOWN_IMAGE_RE = re.compile(
    r"!\[[^\]\n]*\]\(([^()|\n]+\." + IMAGE_EXTENSIONS + r")(?:\|(\d+)(?:x(\d+))?)?\)", re.IGNORECASE
)
WIKI_AUDIO_RE = re.compile(r"!\[\[([^\[\]|\n]+\." + AUDIO_EXTENSIONS + r")\]\]", re.IGNORECASE)
WIKI_LINK_RE = re.compile(r"\[\[(.+?)(?:\|(.+?))?\]\]")
MATH_BLOCK_RE = re.compile(r"\$\$(.*?)\$\$", re.DOTALL)
MATH_INLINE_RE = re.compile(r"\$(.+?)\$")
CODE_ELEMENT_RE = re.compile(r"<code\b[^>]*>(.*?)</code>", re.DOTALL | re.IGNORECASE)
HTML_FORMATTER = HTMLFormatter(entity_substitution=EntitySubstitution.substitute_xml, void_element_close_prefix=None)

EmbedCleaner = Callable[[str], str]


def remove_duplicate_embeds(html: str) -> str:
    """Drop every `internal-embed` div whose previous element sibling is an `<img>`.

    Text between the two does not count as a sibling. HTML without such an
    embed is returned unchanged.
    """
    if "internal-embed" not in html:
        return html
    soup = BeautifulSoup(html, "html.parser")
    removed = False
    for embed in soup.find_all("div", class_="internal-embed"):
        if embed.decomposed:
            continue
        previous = embed.find_previous_sibling()
        if previous is not None and previous.name == "img":
            embed.decompose()
            removed = True
    return soup.decode(formatter=HTML_FORMATTER) if removed else html


def encode_uri_component(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def _img_tag(filename: str, width: Optional[str], height: Optional[str]) -> str:
    attrs = f"src='{filename}'"
    if width:
        attrs += f" width='{width}'"
    if height:
        attrs += f" height='{height}'"
    return f"<img {attrs}>"


def build_markdown() -> MarkdownIt:
    return (
        MarkdownIt("commonmark", {"breaks": True, "html": True})
        .enable("table")
        .enable("strikethrough")
        .use(tasklists_plugin)
    )


class ContentTransform:
    """Four fixed stages: media, note links, math, markdown.

    `embed_cleaner` post-processes the rendered HTML; the default removes
    the embed markup an editor leaves after inlined images.
    """

    def __init__(
        self,
        vault_name: str = "",
        embed_cleaner: Optional[EmbedCleaner] = None,
        markdown: Optional[MarkdownIt] = None,
    ) -> None:
        self.vault_name = vault_name
        self.embed_cleaner = embed_cleaner or remove_duplicate_embeds
        self.markdown = markdown or build_markdown()

    def substitute_media(self, text: str) -> str:
        text = WIKI_AUDIO_RE.sub(lambda m: f"[sound:{m.group(1)}]", text)
        text = WIKI_IMAGE_RE.sub(lambda m: _img_tag(m.group(1), m.group(2), m.group(3)), text)
        return MARKDOWN_IMAGE_RE.sub(
            lambda m: _img_tag(unquote(m.group(1)), m.group(2), m.group(3)), text
        )

    def note_link(self, filename: str, label: Optional[str] = None) -> str:
        href = (
            f"obsidian://open?vault={encode_uri_component(self.vault_name)}"
            f"&file={encode_uri_component(filename)}.md"
        )
        return f'<a href="{href}">{label or filename}</a>'

    def substitute_links(self, text: str) -> str:
        return WIKI_LINK_RE.sub(lambda m: self.note_link(m.group(1), m.group(2)), text)

    @staticmethod
    def substitute_math(text: str) -> str:
        # Doubled backslashes survive the markdown pass as single ones
        text = MATH_BLOCK_RE.sub(
            lambda m: "\\\\[" + escape_markdown(m.group(1)) + " \\\\]", text
        )
        return MATH_INLINE_RE.sub(
            lambda m: "\\\\(" + escape_markdown(m.group(1)) + "\\\\)", text
        )

    def to_html(self, text: str) -> str:
        return self.markdown.render(text).strip()

    def convert(self, text: str) -> str:
        text = self.substitute_media(text)
        text = self.substitute_math(self.substitute_links(text))
        return self.embed_cleaner(self.to_html(text))

    __call__ = convert

    @staticmethod
    def media_references(texts: Iterable[str]) -> List[str]:
        """Media file names referenced by the raw (unconverted) texts."""
        references: List[str] = []
        for text in texts:
            references.extend(m.group(1) for m in WIKI_IMAGE_RE.finditer(text))
            references.extend(unquote(m.group(1)) for m in MARKDOWN_IMAGE_RE.finditer(text))
            references.extend(m.group(1) for m in WIKI_AUDIO_RE.finditer(text))
        return list(dict.fromkeys(references))

    @staticmethod
    def contains_code(fields: Iterable[str]) -> bool:
        return any(CODE_ELEMENT_RE.search(field) for field in fields)

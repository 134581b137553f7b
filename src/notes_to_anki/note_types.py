"""Note types (Anki "models") used by the generated cards."""
from typing import Dict, List

from notes_to_anki.data_objects import CODE_SUFFIX, SOURCE_FIELD, SOURCE_SUFFIX

HIGHLIGHT_FILES = ("_highlight.js", "_highlightInit.js", "_highlight.css")
HIGHLIGHT_PROBE = "_highlightInit.js"

CSS = """.card {
 font-family: arial;
 font-size: 20px;
 text-align: center;
 color: black;
 background-color: white;
}

.tag::before {
  content: "#";
}

.tag {
  color: white;
  background-color: #9F2BFF;
  border: none;
  font-size: 11px;
  font-weight: bold;
  padding: 1px 8px;
  margin: 0px 3px;
  text-align: center;
  text-decoration: none;
  cursor: pointer;
  border-radius: 14px;
  display: inline;
  vertical-align: middle;
}
.cloze { font-weight: bold; color: blue;}
.nightMode .cloze { color: lightblue;}
"""

TAGS_SCRIPT = """<script>
    var tagEl = document.querySelector('.tags');
    if (tagEl) {
        var tags = tagEl.textContent.trim().split(' ');
        tagEl.textContent = '';
        tags.forEach(function(tag, index) {
            if (tag) {
                var span = document.createElement('span');
                span.classList.add('tag');
                span.textContent = tag;
                tagEl.appendChild(span);
                if (index < tags.length - 1) {
                    tagEl.appendChild(document.createTextNode(' '));
                }
            }
        });
    }
</script>"""

SOURCE_TEMPLATE = '\n<br><div class="source">{{Source}}</div>'

CODE_SCRIPT = """
<link rel="stylesheet" href="_highlight.css">
<script src="_highlight.js"></script>
<script src="_highlightInit.js"></script>
"""

BASIC = "Obsidian-basic"
BASIC_REVERSED = "Obsidian-basic-reversed"
CLOZE = "Obsidian-cloze"
SPACED = "Obsidian-spaced"


def model_suffix(source_support: bool, code_highlight: bool) -> str:
    return (SOURCE_SUFFIX if source_support else "") + (CODE_SUFFIX if code_highlight else "")


def _front(field_markup: str, code: str, tags_label: str = "") -> str:
    return f'{field_markup}\n<p class="tags">{tags_label}{{{{Tags}}}}</p>\n\n{TAGS_SCRIPT}{code}'


def build_models(source_support: bool, code_highlight: bool) -> List[Dict]:
    """Parameters of the `createModel` actions for one source/code variant."""
    suffix = model_suffix(source_support, code_highlight)
    source = SOURCE_TEMPLATE if source_support else ""
    code = CODE_SCRIPT if code_highlight else ""
    extra_fields = [SOURCE_FIELD] if source_support else []

    front_back = {
        "Name": "Front / Back",
        "Front": _front("{{Front}}", code),
        "Back": "{{FrontSide}}\n\n<hr id=answer>\n\n{{Back}}" + source,
    }
    back_front = {
        "Name": "Back / Front",
        "Front": _front("{{Back}}", code),
        "Back": "{{FrontSide}}\n\n<hr id=answer>\n\n{{Front}}" + source,
    }
    cloze = {
        "Name": "Cloze",
        "Front": _front("{{cloze:Text}}", code),
        "Back": "{{cloze:Text}}\n\n<br>{{Extra}}" + source + "\n" + TAGS_SCRIPT + code,
    }
    spaced = {
        "Name": "Spaced",
        "Front": _front("{{Prompt}}", code, tags_label="\U0001F9E0spaced "),
        "Back": "{{FrontSide}}\n\n<hr id=answer>\U0001F9E0 Review done." + source,
    }
    return [
        {
            "modelName": BASIC + suffix,
            "inOrderFields": ["Front", "Back"] + extra_fields,
            "css": CSS,
            "cardTemplates": [front_back],
        },
        {
            "modelName": BASIC_REVERSED + suffix,
            "inOrderFields": ["Front", "Back"] + extra_fields,
            "css": CSS,
            "cardTemplates": [front_back, back_front],
        },
        {
            "modelName": CLOZE + suffix,
            "inOrderFields": ["Text", "Extra"] + extra_fields,
            "css": CSS,
            "isCloze": True,
            "cardTemplates": [cloze],
        },
        {
            "modelName": SPACED + suffix,
            "inOrderFields": ["Prompt"] + extra_fields,
            "css": CSS,
            "cardTemplates": [spaced],
        },
    ]


def all_models(source_support: bool, code_highlight_support: bool) -> List[Dict]:
    models = build_models(source_support, False)
    if code_highlight_support:
        models += build_models(source_support, True)
    return models

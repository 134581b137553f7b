"""Unit tests for the markdown to HTML conversion."""
import pytest

from notes_to_anki.content import ContentTransform, encode_uri_component, remove_duplicate_embeds


class TestContentTransform:
    """Test suite for ContentTransform."""

    @pytest.fixture
    def transform(self):
        """Create a transform for a vault named TestVault."""
        return ContentTransform(vault_name="TestVault")

    def test_plain_paragraph(self, transform):
        """Test a plain line becomes a paragraph."""
        assert transform.convert("Q1") == "<p>Q1</p>"
        assert transform("Q1") == "<p>Q1</p>"

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("![Alt text](image.png)", ["src='image.png'"]),
            ("![[image.jpg]]", ["src='image.jpg'"]),
            ("![[image.webp|100x200]]", ["src='image.webp'", "width='100'", "height='200'"]),
            ("![[image.avif|150]]", ["src='image.avif'", "width='150'"]),
            ("![Alt text](image.jpg|50x50)", ["src='image.jpg'", "width='50'", "height='50'"]),
            ("![a](my%20picture.png)", ["src='my picture.png'"]),
        ],
    )
    def test_images(self, transform, source, expected):
        """Test image embeds become img tags."""
        result = transform.substitute_media(source)
        for part in expected:
            assert part in result

    @pytest.mark.parametrize("filename", ["audio.mp3", "audio.wav", "audio.ogg"])
    def test_audio(self, transform, filename):
        """Test audio embeds become Anki sound tags."""
        source = f"![[{filename}]]"
        assert transform.substitute_media(source) == f"[sound:{filename}]"
        assert ContentTransform.media_references([source]) == [filename]

    def test_media_references(self):
        """Test all media names are listed once, in order."""
        texts = ["![[a.png]] and ![b](b%20c.jpg)", "![[a.png]] ![[s.mp3]]", "[[not media]]"]
        assert ContentTransform.media_references(texts) == ["a.png", "b c.jpg", "s.mp3"]

    def test_note_links(self, transform):
        """Test wiki links become obsidian:// links into the vault."""
        assert transform.substitute_links("[[Page Name|Alias]]") == (
            '<a href="obsidian://open?vault=TestVault&file=Page%20Name.md">Alias</a>'
        )
        assert transform.substitute_links("[[Page]]") == (
            '<a href="obsidian://open?vault=TestVault&file=Page.md">Page</a>'
        )

    def test_link_survives_markdown(self, transform):
        """Test the generated anchor is passed through as raw HTML."""
        result = transform.convert("See [[Page Name|Alias]]")
        assert '<a href="obsidian://open?vault=TestVault&file=Page%20Name.md">Alias</a>' in result

    def test_inline_math(self, transform):
        """Test inline math is delimited for MathJax."""
        assert transform.substitute_math("$E = mc^2$").startswith("\\\\(")
        assert transform.convert("$E = mc^2$") == "<p>\\(E = mc^2\\)</p>"

    def test_block_math(self, transform):
        """Test block math keeps its braces and backslashes."""
        assert transform.convert("$$\\frac{1}{2}$$") == "<p>\\[\\frac{1}{2} \\]</p>"

    def test_math_markup_is_not_rendered(self, transform):
        """Test markdown characters inside math stay literal."""
        assert transform.convert("$a_1 * b_2 * c$") == "<p>\\(a_1 * b_2 * c\\)</p>"
        assert transform.convert("$a<b$") == "<p>\\(a&lt;b\\)</p>"

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("**Bold with [link](https://example.com) and *nested italic***",
             ["<strong>", '<a href="https://example.com">', "<em>"]),
            ("- Item 1\n  - Nested item\n- Item 2", ["<ul>", "Item 1", "Nested item", "Item 2"]),
            ("Use `const x = 1;` to declare a constant", ["<code>const x = 1;</code>"]),
            ("~~gone~~", ["<s>gone</s>"]),
            ("| a | b |\n| --- | --- |\n| 1 | 2 |", ["<table>", "<td>1</td>"]),
            ("- [ ] todo\n- [x] done", ['type="checkbox"', "todo"]),
            ("first\nsecond", ["first<br", "second"]),
        ],
    )
    def test_markdown(self, transform, source, expected):
        """Test the markdown dialect."""
        result = transform.convert(source)
        for part in expected:
            assert part in result

    def test_images_in_list(self, transform):
        """Test an image inside a list item keeps its tag."""
        result = transform.convert("- It works\n- ![[How to Vibe Code-2025.webp]]")
        assert "<img src='How to Vibe Code-2025.webp'>" in result

    def test_custom_embed_cleaner(self):
        """Test the post-processing step is injectable."""
        transform = ContentTransform(embed_cleaner=lambda html: html.upper())
        assert transform.convert("x") == "<P>X</P>"

    def test_contains_code(self):
        """Test code detection on converted fields."""
        assert ContentTransform.contains_code(["<p>a</p>", "<pre><code class=\"language-py\">x</code></pre>"])
        assert not ContentTransform.contains_code(["<p>a</p>"])


class TestHelpers:
    """Test suite for the module helpers."""

    def test_remove_duplicate_embeds(self):
        """Test the embed block after an image is dropped."""
        html = '<img src="a.png"><div class="internal-embed image-embed" src="a.png">a.png</div>'
        assert remove_duplicate_embeds(html) == '<img src="a.png">'

    def test_remove_duplicate_embeds_nested(self):
        """Test an embed with nested divs is removed as a whole."""
        html = "<p><img src='a.png'><div class=\"internal-embed\"><div>inner</div></div></p>"
        assert remove_duplicate_embeds(html) == '<p><img src="a.png"></p>'

    def test_remove_duplicate_embeds_text_between(self):
        """Test text between the image and the embed does not keep the embed."""
        html = "<p><img src='a.png'> caption <div class=\"internal-embed\">x</div></p>"
        assert remove_duplicate_embeds(html) == '<p><img src="a.png"> caption </p>'

    def test_remove_duplicate_embeds_class_not_first(self):
        """Test the embed class is found whatever the attribute order."""
        html = '<img src="a.png"><div src="a.png" class="image-embed internal-embed">a.png</div>'
        assert remove_duplicate_embeds(html) == '<img src="a.png">'

    def test_remove_duplicate_embeds_needs_image(self):
        """Test an embed after another element is kept."""
        html = '<p>x</p><span>y</span><div class="internal-embed">z</div>'
        assert remove_duplicate_embeds(html) == html

    def test_convert_removes_nested_embed(self):
        """Test the full conversion leaves no stray closing tag."""
        result = ContentTransform().convert('![[a.png]]<div class="internal-embed"><div>inner</div></div>')
        assert result == '<p><img src="a.png"></p>'

    def test_remove_duplicate_embeds_keeps_other_html(self):
        """Test HTML without a duplicated embed is untouched."""
        html = '<p>text</p><div class="internal-embed" src="note.md">note</div>'
        assert remove_duplicate_embeds(html) == html

    def test_encode_uri_component(self):
        """Test the encoding of vault and file names."""
        assert encode_uri_component("My Vault/Note (1)") == "My%20Vault%2FNote%20(1)"
